"""
payables_config -- single public entrypoint for payables configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly; services receive the relevant
    section (or individual values) through their constructors.

Architecture position:
    Configuration -- sits beside ``payables_kernel``.  Modules and batch
    import from here; the kernel and engines never do.

Resolution order:
    1. Bundled ``defaults.yaml``.
    2. Override file: the ``config_path`` argument, else the file named by
       the ``PAYABLES_CONFIG`` environment variable.  Sections are merged
       key by key over the defaults.
    3. ``PAYABLES_DATABASE_URL`` replaces ``database.url`` when set.

Failure modes:
    - ``FileNotFoundError`` -- override file does not exist.
    - ``ValueError`` -- unknown section/key or invalid value.

Audit relevance:
    Every call logs a ``PAYABLES_CONFIG_TRACE`` entry carrying the checksum
    of the effective settings.
"""

from __future__ import annotations

import os
from pathlib import Path

from payables_config.loader import load_yaml_file, merge_dicts, parse_config
from payables_config.schema import (
    ApprovalSettings,
    DatabaseSettings,
    InvoicingSettings,
    PayablesConfig,
    RiskSettings,
    ScheduleSettings,
    TaxSettings,
)
from payables_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "PAYABLES_CONFIG"
DATABASE_URL_ENV_VAR = "PAYABLES_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> PayablesConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Optional override YAML merged over the defaults.

    Returns:
        A frozen, validated ``PayablesConfig``.
    """
    data = load_yaml_file(DEFAULTS_PATH)

    override = config_path or os.environ.get(CONFIG_ENV_VAR)
    if override:
        data = merge_dicts(data, load_yaml_file(Path(override)))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        data = merge_dicts(data, {"database": {"url": database_url}})

    config = parse_config(data)

    _logger.info(
        "PAYABLES_CONFIG_TRACE",
        extra={
            "trace_type": "PAYABLES_CONFIG_TRACE",
            "checksum": config.checksum,
            "override_path": str(override) if override else None,
            "database_url_overridden": bool(database_url),
        },
    )
    return config


__all__ = [
    "ApprovalSettings",
    "DatabaseSettings",
    "InvoicingSettings",
    "PayablesConfig",
    "RiskSettings",
    "ScheduleSettings",
    "TaxSettings",
    "get_active_config",
]
