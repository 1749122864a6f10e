"""
Policy Loader (``groupbuy_config.loader``).

Responsibility
--------------
Loads a YAML policy file and turns it into the typed configuration the
services are built with.  The single public entry point for runtime
configuration is ``groupbuy_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- sits above the kernel and the engines and builds
``groupbuy_modules.orders.config.OrdersConfig``.  The kernel MUST NEVER
import from ``groupbuy_config``.

Invariants enforced
-------------------
* Rates and shares are read as ``Decimal`` through ``str``, never float.
* Unknown top-level sections are rejected, not ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  content for change detection.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError`` naming the offending key.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from groupbuy_kernel.exceptions import ConfigurationError
from groupbuy_modules.orders.config import OrdersConfig

KNOWN_SECTIONS = frozenset({"version", "database_url", "fees", "settlement", "orders", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "policy file must contain a mapping")
    return data


def _decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(key, "must be a number")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(key, f"not a number: {value!r}") from None


def parse_orders_config(data: dict[str, Any]) -> OrdersConfig:
    """
    Build ``OrdersConfig`` from a parsed policy document.

    Sections ``fees``, ``settlement`` and ``orders`` are optional; any
    value left out keeps its default.
    """
    unknown = set(data) - KNOWN_SECTIONS
    if unknown:
        raise ConfigurationError(sorted(unknown)[0], "unknown policy section")

    config: dict[str, Any] = {}

    fees = data.get("fees") or {}
    if fees:
        config["fee_schedule"] = {
            name: _decimal(f"fees.{name}", value) for name, value in fees.items()
        }

    settlement = data.get("settlement") or {}
    if settlement:
        policy = dict(settlement)
        if "first_profit_share" in policy:
            policy["first_profit_share"] = _decimal(
                "settlement.first_profit_share", policy["first_profit_share"],
            )
        config["settlement_policy"] = policy

    orders = data.get("orders") or {}
    config.update(orders)

    try:
        return OrdersConfig.from_dict(config)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("orders", str(exc)) from exc


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
