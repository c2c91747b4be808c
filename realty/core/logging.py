"""Logging setup for the API process and scripts."""
from __future__ import annotations

import logging.config
import os
from pathlib import Path

_CONFIG_PATH = Path(__file__).resolve().parent / "../.." / "configs" / "logging.yaml"


def configure_logging(level: str | None = None) -> None:
    """Load ``configs/logging.yaml`` and optionally override the package log level.

    ``REALTY_LOG_LEVEL`` is consulted when ``level`` is not given.
    """
    config_path = Path(os.environ.get("REALTY_LOGGING_CONFIG", _CONFIG_PATH))
    if config_path.exists():
        import yaml  # type: ignore[import-untyped]

        with config_path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=logging.INFO)

    override = level or os.environ.get("REALTY_LOG_LEVEL")
    if override:
        logging.getLogger("realty").setLevel(override.upper())


__all__ = ["configure_logging"]
