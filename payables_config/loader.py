"""
Configuration Loader (``payables_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen ``payables_config.schema``
dataclasses.  Runtime callers go through ``payables_config.get_active_config()``
rather than calling this module directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError`` naming it.
* Invalid value  -> ``ValueError`` from the section's ``__post_init__``.

Audit relevance
---------------
``compute_checksum`` produces a deterministic SHA-256 of the effective
settings so the configuration a process ran with can be identified in logs.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payables_config.schema import (
    ApprovalSettings,
    DatabaseSettings,
    InvoicingSettings,
    PayablesConfig,
    RiskSettings,
    ScheduleSettings,
    TaxSettings,
)

_SECTIONS: dict[str, type] = {
    "tax": TaxSettings,
    "invoicing": InvoicingSettings,
    "approvals": ApprovalSettings,
    "risk": RiskSettings,
    "schedule": ScheduleSettings,
    "database": DatabaseSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base`` one level deep (section by section)."""
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def _coerce(cls: type, key: str, value: Any) -> Any:
    """Decimal fields are written as strings or numbers in YAML; codes may be unquoted."""
    declared = {f.name: f.type for f in fields(cls)}
    if declared.get(key) in (Decimal, "Decimal") and not isinstance(value, Decimal):
        return Decimal(str(value))
    if declared.get(key) in (str, "str") and isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _parse_section(name: str, cls: type, data: dict[str, Any] | None):
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {sorted(unknown)}")
    return cls(**{k: _coerce(cls, k, v) for k, v in data.items()})


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> PayablesConfig:
    """
    Build a ``PayablesConfig`` from a parsed YAML mapping.

    Raises:
        ValueError: on unknown sections/keys or invalid values.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    sections = {
        name: _parse_section(name, cls, data.get(name))
        for name, cls in _SECTIONS.items()
    }
    return PayablesConfig(**sections, checksum=compute_checksum(data))
