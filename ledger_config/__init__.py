"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  No other component reads configuration files directly.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from
    ``ledger_config``; services translate settings into the plain values
    kernel constructors accept.

Failure modes:
    - ``FileNotFoundError`` -- configuration file does not exist.
    - ``ConfigurationError`` -- structural or semantic validation failure.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    config id, version and checksum, tying every report snapshot back to the
    configuration that shaped it.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_config
from ledger_config.schema import (
    EngineSettings,
    FeedSettings,
    LedgerConfig,
    ReportSettings,
    RoleSettings,
)
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """
    The ONLY public configuration entrypoint.

    Does not cache; callers hold the returned config for the duration of a
    request.

    Args:
        config_path: Override path to a YAML file.  Defaults to
            ``ledger_config/sets/default.yaml``.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path), source=str(path))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency_places": config.engine.currency_places,
            "rounding_mode": config.engine.rounding_mode,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "FeedSettings",
    "LedgerConfig",
    "ReportSettings",
    "RoleSettings",
    "get_active_config",
]
