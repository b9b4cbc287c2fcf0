import logging
import logging.config
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "app.log"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class ColourizedFormatter(logging.Formatter):
    """Console formatter that wraps the level name in an ANSI colour."""

    PALETTE = {
        logging.DEBUG: "\x1b[90m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        plain = record.levelname
        colour = self.PALETTE.get(record.levelno)
        if colour:
            record.levelname = f"{colour}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # the file handler formats the same record afterwards
            record.levelname = plain


def _handlers(log_dir: str | None) -> dict[str, dict]:
    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "colour",
        },
    }
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, LOG_FILENAME),
            "encoding": "utf-8",
            "formatter": "plain",
        }
    return handlers


def get_logging_config() -> dict:
    """
    dictConfig payload shared by the app factory and the uvicorn runner.

    ``LOG_LEVEL`` sets the root level; ``LOG_DIR`` adds a plain-text file
    handler next to the console one. Server loggers stay at INFO and do not
    propagate, so access lines are not printed twice.
    """
    handlers = _handlers(os.getenv("LOG_DIR"))
    names = list(handlers)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colour": {"()": ColourizedFormatter, "format": LOG_FORMAT},
            "plain": {"format": LOG_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            "": {"handlers": names, "level": os.getenv("LOG_LEVEL", "INFO").upper()},
            **{
                server: {"handlers": names, "level": "INFO", "propagate": False}
                for server in SERVER_LOGGERS
            },
        },
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
