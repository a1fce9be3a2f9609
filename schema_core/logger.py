import logging
import os

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Theme for import / layout output
custom_theme = Theme(
    {
        "info": "dim cyan",
        "warning": "magenta",
        "error": "bold red",
        "table": "bold blue",
        "layout": "bold green",
    }
)

# stderr, so JSON written to stdout by the CLI stays clean
console = Console(theme=custom_theme, stderr=True)

LOGGER_NAMES = ("schema_core", "backend")


def setup_logging(log_level: str = None):
    """
    Configure the package loggers with a Rich handler.

    The level comes from the argument, else SCHEMA_CORE_LOG_LEVEL, else INFO.
    Safe to call more than once.
    """
    log_level = log_level or os.environ.get("SCHEMA_CORE_LOG_LEVEL", "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)

        # Avoid duplicate handlers
        if not any(isinstance(h, RichHandler) for h in logger.handlers):
            rich_handler = RichHandler(
                console=console,
                rich_tracebacks=True,
                markup=False,  # Messages quote SQL, which is full of brackets
                show_path=False,
                show_time=True,
                omit_repeated_times=True,
                keywords=["CREATE", "TABLE", "INDEX", "REFERENCES", "WARNING", "ERROR"],
            )
            formatter = logging.Formatter("%(message)s", datefmt="[%X]")
            rich_handler.setFormatter(formatter)
            logger.addHandler(rich_handler)
            logger.propagate = False

    return logging.getLogger("schema_core")
