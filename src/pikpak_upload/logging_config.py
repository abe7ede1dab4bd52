from logging.config import dictConfig


def setup_logging(debug: bool = False) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                    "stream": "ext://sys.stderr",
                },
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
            "loggers": {
                "pikpak_upload": {
                    "level": "DEBUG" if debug else "INFO",
                },
                "httpx": {
                    "level": "INFO" if debug else "WARNING",
                },
            },
        }
    )
