import logging

from dotenv import load_dotenv


def main() -> None:
    # Settings are read at import time, so .env must be loaded first
    load_dotenv()

    from .cli import cli
    from .config import settings

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    cli(prog_name="benchkit")


if __name__ == "__main__":
    main()
