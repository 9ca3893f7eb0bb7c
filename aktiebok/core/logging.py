"""Logging configuration for the register service."""
from __future__ import annotations

import logging
import logging.config
from pathlib import Path

import yaml

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "../.." / "configs" / "logging.yaml"
# Attributes present on every LogRecord; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "otelSpanID", "otelTraceID", "otelTraceSampled", "otelServiceName"}


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends ``extra=`` fields as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if not extras:
            return message
        fields = " ".join(f"{key}={extras[key]}" for key in sorted(extras))
        return f"{message} {fields}"


def configure_logging(config_path: Path | None = None, *, level: str | None = None) -> None:
    """Configure logging from the YAML configuration file if present.

    ``level`` overrides the level of the ``aktiebok`` logger after the file is applied.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    if path.exists():
        with path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=logging.INFO)

    if level:
        logging.getLogger("aktiebok").setLevel(level.upper())


__all__ = ["ExtraFieldsFormatter", "configure_logging"]
