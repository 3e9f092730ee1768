"""Build bitcoind at several commits and benchmark them with hyperfine."""

__version__ = "0.1.0"
