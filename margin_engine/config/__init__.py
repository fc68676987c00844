"""
Risk-parameter configuration.

Parameters are read from YAML (`risk_params.yaml` ships the defaults) and
written into an accounting store with `apply_risk_params`. The engine itself
only ever reads them back through the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation, localcontext
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import yaml

from ..core.position.math import PRECISION
from ..core.position.types import Market
from ..state import keys
from ..state.store import WritableStore

DEFAULT_RISK_PARAMS_PATH = Path(__file__).resolve().parent / "risk_params.yaml"


@dataclass(frozen=True)
class MarketRiskParams:
    """Per-market parameters, all scaled by PRECISION."""

    position_fee_factor: int = 0
    position_impact_factor_positive: int = 0
    position_impact_factor_negative: int = 0
    position_impact_exponent_factor: int = PRECISION
    max_position_impact_factor_for_liquidations: int = 0
    funding_factor: int = 0
    borrowing_factor_long: int = 0
    borrowing_factor_short: int = 0


@dataclass(frozen=True)
class RiskParams:
    max_leverage: int
    min_collateral_usd: int
    market_defaults: MarketRiskParams = MarketRiskParams()
    markets: Mapping[str, MarketRiskParams] = field(default_factory=dict)

    def for_market(self, market_token: str) -> MarketRiskParams:
        return self.markets.get(keys.canonical_address(market_token), self.market_defaults)


def parse_fixed(value: Any, *, name: str) -> int:
    """Scale a decimal string by PRECISION; ints pass through as already scaled."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{name} must be an int or a decimal string, got {type(value).__name__}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")
        return value
    if not isinstance(value, str):
        raise TypeError(f"{name} must be an int or a decimal string, got {type(value).__name__}")
    try:
        dec = Decimal(value.strip())
    except InvalidOperation as exc:
        raise ValueError(f"{name} is not a decimal: {value!r}") from exc
    if not dec.is_finite() or dec < 0:
        raise ValueError(f"{name} must be a finite non-negative decimal, got {value!r}")
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = dec * PRECISION
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{name} has more precision than PRECISION allows: {value!r}")
    return int(scaled)


_MARKET_FIELDS = tuple(f.name for f in fields(MarketRiskParams))


def _market_params(raw: Any, base: MarketRiskParams, *, where: str) -> MarketRiskParams:
    if raw is None:
        return base
    if not isinstance(raw, Mapping):
        raise TypeError(f"{where} must be a mapping")
    unknown = sorted(set(raw) - set(_MARKET_FIELDS))
    if unknown:
        raise ValueError(f"{where} has unknown fields: {', '.join(unknown)}")
    updates = {name: parse_fixed(val, name=f"{where}.{name}") for name, val in raw.items()}
    return replace(base, **updates)


def risk_params_from_dict(obj: Mapping[str, Any]) -> RiskParams:
    if not isinstance(obj, Mapping):
        raise TypeError("risk params must be a mapping")
    for required in ("max_leverage", "min_collateral_usd"):
        if required not in obj:
            raise KeyError(f"risk params missing {required!r}")

    defaults = _market_params(obj.get("market_defaults"), MarketRiskParams(), where="market_defaults")
    raw_markets = obj.get("markets") or {}
    if not isinstance(raw_markets, Mapping):
        raise TypeError("markets must be a mapping")
    markets: Dict[str, MarketRiskParams] = {}
    for market_token, raw in raw_markets.items():
        canonical = keys.canonical_address(str(market_token), name="market")
        markets[canonical] = _market_params(raw, defaults, where=f"markets.{canonical}")

    return RiskParams(
        max_leverage=parse_fixed(obj["max_leverage"], name="max_leverage"),
        min_collateral_usd=parse_fixed(obj["min_collateral_usd"], name="min_collateral_usd"),
        market_defaults=defaults,
        markets=markets,
    )


def load_risk_params(path: Optional[Union[str, Path]] = None) -> RiskParams:
    """Load risk parameters from YAML (the bundled defaults when *path* is None)."""
    path = Path(path) if path is not None else DEFAULT_RISK_PARAMS_PATH
    obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise TypeError(f"risk params YAML must be a mapping: {path}")
    return risk_params_from_dict(obj)


def apply_risk_params(store: WritableStore, params: RiskParams, markets: Iterable[Market]) -> None:
    """Write global and per-market parameters into *store*."""
    store.set(keys.MAX_LEVERAGE, params.max_leverage)
    store.set(keys.MIN_COLLATERAL_USD, params.min_collateral_usd)
    for market in markets:
        token = market.market_token
        mp = params.for_market(token)
        store.set(keys.position_fee_factor_key(token), mp.position_fee_factor)
        store.set(keys.position_impact_factor_key(token, True), mp.position_impact_factor_positive)
        store.set(keys.position_impact_factor_key(token, False), mp.position_impact_factor_negative)
        store.set(keys.position_impact_exponent_factor_key(token), mp.position_impact_exponent_factor)
        store.set(
            keys.max_position_impact_factor_for_liquidations_key(token),
            mp.max_position_impact_factor_for_liquidations,
        )
        store.set(keys.funding_factor_key(token), mp.funding_factor)
        store.set(keys.borrowing_factor_key(token, True), mp.borrowing_factor_long)
        store.set(keys.borrowing_factor_key(token, False), mp.borrowing_factor_short)


__all__ = [
    "DEFAULT_RISK_PARAMS_PATH",
    "MarketRiskParams",
    "RiskParams",
    "apply_risk_params",
    "load_risk_params",
    "parse_fixed",
    "risk_params_from_dict",
]
