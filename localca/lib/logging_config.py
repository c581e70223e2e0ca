"""JSON logging configuration for the localca library."""

import logging

from pythonjsonlogger import jsonlogger

LOG_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno"})


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per line for CA, issuance and trust store events.

    Records are reduced to LOG_FIELDS so a host application can mix localca
    output into its own log stream without pathnames or process details.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        for key in [key for key in log_record if key not in LOG_FIELDS]:
            del log_record[key]


def _setup_logger() -> logging.Logger:
    """Build the "localca" logger: JSON to stderr, WARNING until set_verbose(True)."""
    logger = logging.getLogger("localca")

    # already configured by an earlier import
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = CustomJsonFormatter(
        fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
        timestamp=True,
    )
    handler.setFormatter(formatter)

    logger.setLevel(logging.WARNING)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_verbose(enabled: bool = True) -> None:
    """Toggle informational engine output (CA creation, cert locations, profiles)."""
    LOGGER.setLevel(logging.INFO if enabled else logging.WARNING)


LOGGER = _setup_logger()
