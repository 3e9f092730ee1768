from enum import Enum


class Network(str, Enum):
    MAINNET = "mainnet"
    SIGNET = "signet"

    @property
    def chain_name(self) -> str:
        """Value bitcoind expects for -chain=."""
        return "main" if self is Network.MAINNET else self.value

    @classmethod
    def parse(cls, value: str) -> "Network":
        """Case-insensitive lookup, raising ValueError with the accepted names."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        accepted = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown network '{value}' (expected one of: {accepted})")
