"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``ledger_config.schema``.  Runtime callers go through
``ledger_config.get_active_config()``; this module is its implementation.

Invariants enforced
-------------------
* Unknown roles, entry kinds or rounding modes are rejected, never
  silently defaulted.
* ``compute_checksum`` is deterministic for identical parsed YAML.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    ROUNDING_MODES,
    EngineSettings,
    FeedSettings,
    LedgerConfig,
    ReportSettings,
    RoleSettings,
)
from ledger_kernel.domain.documents import ActorRole
from ledger_kernel.domain.entries import EntryKind
from ledger_kernel.domain.values import DEFAULT_CURRENCY
from ledger_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_engine(data: dict[str, Any], source: str | None) -> EngineSettings:
    places = data.get("currency_places", 2)
    if not isinstance(places, int) or isinstance(places, bool) or not 0 <= places <= 6:
        raise ConfigurationError(
            f"engine.currency_places must be an integer 0..6, got {places!r}", source
        )
    mode = data.get("rounding_mode", "half_up")
    if mode not in ROUNDING_MODES:
        raise ConfigurationError(
            f"engine.rounding_mode must be one of {sorted(ROUNDING_MODES)}, got {mode!r}",
            source,
        )
    currency = data.get("default_currency", DEFAULT_CURRENCY)
    if not isinstance(currency, str) or len(currency) != 3 or not currency.isalpha():
        raise ConfigurationError(
            f"engine.default_currency must be a three-letter code, got {currency!r}", source
        )
    return EngineSettings(
        currency_places=places,
        rounding_mode=mode,
        default_currency=currency.upper(),
    )


def parse_report(data: dict[str, Any], source: str | None) -> ReportSettings:
    label = data.get("unpaid_section_label", "Unpaid")
    if not isinstance(label, str) or not label.strip():
        raise ConfigurationError("report.unpaid_section_label must be non-empty", source)
    return ReportSettings(
        unpaid_section_label=label,
        snapshot_version=int(data.get("snapshot_version", 1)),
    )


def parse_feed(data: dict[str, Any], source: str | None) -> FeedSettings:
    raw = data.get("pending_action_statuses", {})
    statuses: dict[EntryKind, frozenset[str]] = {}
    for kind_name, values in raw.items():
        try:
            kind = EntryKind(kind_name)
        except ValueError as e:
            raise ConfigurationError(
                f"feed.pending_action_statuses: unknown entry kind {kind_name!r}", source
            ) from e
        statuses[kind] = frozenset(str(v) for v in values or ())

    default_size = int(data.get("default_page_size", 25))
    max_size = int(data.get("max_page_size", 100))
    if not 0 < default_size <= max_size:
        raise ConfigurationError(
            "feed.default_page_size must be positive and <= max_page_size", source
        )
    return FeedSettings(
        pending_action_statuses=statuses,
        default_page_size=default_size,
        max_page_size=max_size,
    )


def parse_roles(data: dict[str, Any], source: str | None) -> RoleSettings:
    defaults = RoleSettings()
    parsed: dict[str, tuple[ActorRole, ...]] = {}
    for action in ("finalize", "submit", "unfinalize", "approve", "archive"):
        if action not in data:
            parsed[action] = getattr(defaults, action)
            continue
        try:
            parsed[action] = tuple(ActorRole(r) for r in data[action])
        except ValueError as e:
            raise ConfigurationError(f"roles.{action}: {e}", source) from e
        if not parsed[action]:
            raise ConfigurationError(f"roles.{action} must name at least one role", source)
    return RoleSettings(**parsed)


def parse_config(data: dict[str, Any], source: str | None = None) -> LedgerConfig:
    """
    Parse a configuration dict into a ``LedgerConfig``.

    Raises:
        ConfigurationError: if any section is invalid.
    """
    if "config_id" not in data:
        raise ConfigurationError("config_id is required", source)
    return LedgerConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        engine=parse_engine(data.get("engine") or {}, source),
        report=parse_report(data.get("report") or {}, source),
        feed=parse_feed(data.get("feed") or {}, source),
        roles=parse_roles(data.get("roles") or {}, source),
        checksum=compute_checksum(data),
        source=source,
    )
