"""
groupbuy_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way services, scripts and tests
    obtain configuration.  It reads the policy file (the packaged default,
    ``$GROUPBUY_CONFIG``, or an explicit path) and the database URL
    (``$GROUPBUY_DATABASE_URL``), and returns one frozen ``ActiveConfig``.

Failure modes:
    - ``FileNotFoundError`` -- the requested policy file does not exist.
    - ``ConfigurationError`` -- a value in the policy is invalid.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from groupbuy_config.loader import compute_checksum, load_yaml_file, parse_orders_config
from groupbuy_kernel.exceptions import ConfigurationError
from groupbuy_kernel.logging_config import get_logger
from groupbuy_modules.orders.config import OrdersConfig

_logger = get_logger("config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "sets" / "default.yaml"
DEFAULT_DATABASE_URL = "sqlite:///:memory:"

CONFIG_ENV_VAR = "GROUPBUY_CONFIG"
DATABASE_URL_ENV_VAR = "GROUPBUY_DATABASE_URL"


@dataclass(frozen=True)
class ActiveConfig:
    orders: OrdersConfig
    database_url: str
    log_level: int
    source: Path
    checksum: str


def get_active_config(path: Path | str | None = None) -> ActiveConfig:
    """Load the active policy.

    Precedence for the policy file: ``path`` argument, then
    ``$GROUPBUY_CONFIG``, then the packaged default.  The database URL comes
    from ``$GROUPBUY_DATABASE_URL``, then the policy's ``database_url``,
    then an in-memory SQLite database.
    """
    source = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_POLICY_PATH)
    data = load_yaml_file(source)
    orders = parse_orders_config(data)

    level_name = str((data.get("logging") or {}).get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigurationError("logging.level", f"unknown level {level_name!r}")

    database_url = (
        os.environ.get(DATABASE_URL_ENV_VAR)
        or data.get("database_url")
        or DEFAULT_DATABASE_URL
    )
    active = ActiveConfig(
        orders=orders,
        database_url=database_url,
        log_level=level,
        source=source,
        checksum=compute_checksum(data),
    )
    _logger.info(
        "CONFIG_TRACE",
        extra={
            "trace_type": "CONFIG_TRACE",
            "config_source": str(source),
            "checksum": active.checksum,
            "version": data.get("version"),
        },
    )
    return active


__all__ = [
    "ActiveConfig",
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "DEFAULT_POLICY_PATH",
    "get_active_config",
]
