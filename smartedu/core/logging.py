import logging
import sys

from pythonjsonlogger import jsonlogger

from .config import Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    """Install the root handler according to LOG_LEVEL / LOG_FORMAT."""
    handler = logging.StreamHandler(sys.stdout)
    if settings.LOG_FORMAT == "json":
        handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    handler._smartedu = True

    # Replace only the handler installed by a previous call.
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_smartedu", False):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
