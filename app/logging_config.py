"""Logging setup for the API process."""
import logging
import sys


def configure_logging(level: str = "INFO", sql_echo: bool = False) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    # engine echo installs its own handler; keep the module logger quiet otherwise
    if not sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
