"""
Deterministic Bitcoin mining hashprice projection and cash-flow model.
Builds a monthly hashprice series from bounded market-trend curves, then
accumulates fleet cash flows into a cumulative-profit curve.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields, replace, asdict
from datetime import date
from enum import Enum, Flag, auto
from pathlib import Path
from typing import Dict, List, Any, Optional, Union

import numpy as np
import pandas as pd
import yaml

# Configure logging
logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]

# 86,400 s/day / 3,600,000 J/kWh: J/TH and $/kWh -> $ per TH·day
ENERGY_FLOOR_FACTOR = 0.024

# Difficulty -> USD/TH·day scaling (86,400e12 / 2**32, hashprice-index convention)
HASHPRICE_K = 20_116_568

BLOCKS_PER_DAY = 144
HOURS_PER_DAY = 24

# Security deposit is always two 31-day months of power
DEPOSIT_MONTHS = 2
DEPOSIT_DAYS_PER_MONTH = 31

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


# ─────────────────────────────────────────────────────────────
# DATA STRUCTURES
# ─────────────────────────────────────────────────────────────

class FloorModel(str, Enum):
    """Which hashprice floor drives revenue."""
    ENERGY = "energy"
    PROTOCOL = "protocol"


class PowerBilling(str, Enum):
    """Whether hosting power is billed on uptime or on nameplate draw."""
    UPTIME = "uptime"
    NAMEPLATE = "nameplate"


class CashEvent(Flag):
    """One-time cash events attached to a monthly row."""
    NONE = 0
    TAX_CREDIT = auto()
    TERMINAL = auto()


class InvalidParameterError(ValueError):
    """A parameter that makes the model produce meaningless numbers."""

    def __init__(self, field_name: str, reason: str):
        self.field = field_name
        self.reason = reason
        super().__init__(f"{field_name}: {reason}")


@dataclass(frozen=True)
class SimulationParameters:
    """Complete, immutable input set for one model run."""
    start_date: date
    horizon_months: int = 36

    # Market trends: (x0, g, d) triples for bounded growth curves
    price_0: float = 110_000.0
    price_growth: float = 0.039
    price_decay: float = 0.07
    difficulty_0: float = 129.7e12
    difficulty_growth: float = 0.034
    difficulty_decay: float = 0.06
    fees_per_day_0: float = 3.87
    fees_growth: float = -0.045
    fees_decay: float = 0.06

    # Block reward step at the halving
    block_reward_pre: float = 3.125
    block_reward_post: float = 1.575
    halving_date: date = date(2028, 4, 1)

    # ASIC efficiency path (J/TH)
    efficiency_0: float = 28.0
    efficiency_end: float = 16.0
    efficiency_rate: float = 0.03
    use_efficiency_schedule: bool = True

    # Premium over the floor
    premium_0: float = 0.263
    premium_decay_energy: float = 0.06
    premium_decay_protocol: float = 0.09
    hashprice_additive: float = 0.0

    # Fleet and hosting
    hashrate_per_unit_th: float = 270.0
    quantity: float = 10
    unit_cost: float = 8000.0
    unit_power_kw: float = 3.5
    hosting_price: float = 0.05
    setup_fee_per_unit: float = 25.0
    pool_fee: float = 0.01
    uptime: float = 0.99
    tax_depreciation: float = 0.21
    salvage_fraction: float = 0.2
    floor_energy_price: float = 0.05

    # Tax credit disbursement month
    tax_credit_year: int = 2026
    tax_credit_month: int = 4

    # Model policy
    floor_model: FloorModel = FloorModel.ENERGY
    power_billing: PowerBilling = PowerBilling.UPTIME
    return_deposit_at_horizon: bool = True

    @property
    def total_hashrate_th(self) -> float:
        """Fleet hashrate in TH/s."""
        return self.hashrate_per_unit_th * self.quantity

    @property
    def fleet_capex(self) -> float:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class MonthlyRow:
    """One month of the projection."""
    month: int
    date: date
    days_in_month: int
    price: float
    difficulty: float
    fees_per_day: float
    block_reward: float
    efficiency: float
    premium: float
    floor_hashprice: float
    effective_hashprice: float
    gross_revenue: float
    pool_net_revenue: float
    power_cost: float
    net_revenue: float
    effective_cost_of_power: float
    cash_event: CashEvent = CashEvent.NONE
    one_time_inflow: float = 0.0
    cumulative_profit: float = 0.0


@dataclass(frozen=True)
class UpfrontCost:
    """Capital outlay at month zero."""
    hardware: float
    security_deposit: float
    setup_fees: float

    @property
    def total(self) -> float:
        return self.hardware + self.security_deposit + self.setup_fees


@dataclass
class SimulationResult:
    """Outcome of a run: either the full row sequence or the reason it aborted."""
    params: SimulationParameters
    rows: List[MonthlyRow] = field(default_factory=list)
    error: Optional[InvalidParameterError] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def bottom_line(self) -> Optional[float]:
        """Cumulative profit at the final month, or None if the run failed."""
        if not self.rows:
            return None
        return self.rows[-1].cumulative_profit

    @property
    def summary(self) -> Dict[str, Any]:
        if not self.ok:
            return {}
        return summarize_rows(self.rows, self.params)

    def to_frame(self) -> pd.DataFrame:
        return rows_to_frame(self.rows)


# ─────────────────────────────────────────────────────────────
# CURVE LIBRARY
# ─────────────────────────────────────────────────────────────

def bounded_growth(t: ArrayLike, x0: float, g: float, d: float) -> ArrayLike:
    """
    Growth curve whose rate decays over time.

    ``x0 * exp((g/d) * (1 - exp(-d*t)))``. Returns exactly ``x0`` at t=0 and
    approaches ``x0 * exp(g/d)`` as t grows. Increasing for g > 0,
    decreasing for g < 0.
    """
    return x0 * np.exp((g / d) * (1.0 - np.exp(-d * t)))


def efficiency_path(t: ArrayLike, e0: float, e_end: float, k: float) -> ArrayLike:
    """Exponential relaxation from e0 toward e_end at rate k."""
    return e_end + (e0 - e_end) * np.exp(-k * t)


def premium_path(t: ArrayLike, p0: float, k: float) -> ArrayLike:
    """Premium decaying toward zero at rate k."""
    return p0 * np.exp(-k * t)


# ─────────────────────────────────────────────────────────────
# HASHPRICE MODEL
# ─────────────────────────────────────────────────────────────

def energy_floor(efficiency: ArrayLike, energy_price: float) -> ArrayLike:
    """Energy-cost floor in USD/TH·day."""
    return ENERGY_FLOOR_FACTOR * efficiency * energy_price


def protocol_floor(
    block_reward: ArrayLike,
    fee_per_block: ArrayLike,
    price: ArrayLike,
    difficulty: ArrayLike
) -> ArrayLike:
    """Protocol-emission floor ``K * (R + F) * P / D`` in USD/TH·day."""
    return HASHPRICE_K * (block_reward + fee_per_block) * price / difficulty


def fee_per_block(fees_per_day: ArrayLike) -> ArrayLike:
    return fees_per_day / BLOCKS_PER_DAY


def block_reward_for_date(row_date: date, params: SimulationParameters) -> float:
    """Block subsidy in BTC: pre-halving value before the cutover, post on/after."""
    if row_date < params.halving_date:
        return params.block_reward_pre
    return params.block_reward_post


def effective_hashprice(floor: ArrayLike, premium: ArrayLike, additive: float = 0.0) -> ArrayLike:
    """Floor marked up by the premium, plus an optional flat additive."""
    return floor * (1.0 + premium) + additive


def premium_decay_for(params: SimulationParameters, model: Optional[FloorModel] = None) -> float:
    """
    Premium decay rate that belongs to a floor model.

    Each floor carries its own calibrated rate; the two are not interchangeable.
    """
    model = model or params.floor_model
    if model is FloorModel.PROTOCOL:
        return params.premium_decay_protocol
    return params.premium_decay_energy


def efficiency_at(t: ArrayLike, params: SimulationParameters) -> ArrayLike:
    """Market efficiency at month t, or the pinned starting value."""
    if not params.use_efficiency_schedule:
        return params.efficiency_0 + np.zeros_like(t, dtype=float)
    return efficiency_path(t, params.efficiency_0, params.efficiency_end, params.efficiency_rate)


# ─────────────────────────────────────────────────────────────
# REVENUE ENGINE
# ─────────────────────────────────────────────────────────────

def monthly_gross_revenue(
    hashprice: float,
    total_hashrate_th: float,
    days_in_month: int,
    uptime: float
) -> float:
    return hashprice * total_hashrate_th * days_in_month * uptime


def pool_fee_net(gross: float, pool_fee: float) -> float:
    return gross * (1.0 - pool_fee)


def monthly_power_cost(
    unit_power_kw: float,
    hosting_price: float,
    quantity: float,
    days_in_month: int,
    uptime: Optional[float] = None
) -> float:
    """
    Hosting power bill for one month.

    Pass ``uptime=None`` to bill full nameplate draw for every hour.
    """
    cost = unit_power_kw * hosting_price * quantity * HOURS_PER_DAY * days_in_month
    if uptime is not None:
        cost *= uptime
    return cost


def effective_cost_of_power(hashprice: ArrayLike, efficiency: ArrayLike) -> ArrayLike:
    """Hashprice re-expressed as an equivalent $/kWh at the given efficiency."""
    return hashprice / (ENERGY_FLOOR_FACTOR * efficiency)


# ─────────────────────────────────────────────────────────────
# CASH FLOW ACCUMULATOR
# ─────────────────────────────────────────────────────────────

def security_deposit(params: SimulationParameters) -> float:
    return monthly_power_cost(
        params.unit_power_kw, params.hosting_price, params.quantity,
        DEPOSIT_DAYS_PER_MONTH
    ) * DEPOSIT_MONTHS


def upfront_cost(params: SimulationParameters) -> UpfrontCost:
    return UpfrontCost(
        hardware=params.fleet_capex,
        security_deposit=security_deposit(params),
        setup_fees=params.quantity * params.setup_fee_per_unit
    )


def classify_cash_event(row_date: date, month: int, params: SimulationParameters) -> CashEvent:
    """Tag a row with the one-time events that fire on it."""
    event = CashEvent.NONE
    if row_date.year == params.tax_credit_year and row_date.month == params.tax_credit_month:
        event |= CashEvent.TAX_CREDIT
    if month == params.horizon_months:
        event |= CashEvent.TERMINAL
    return event


def accumulate_cash_flows(rows: List[MonthlyRow], params: SimulationParameters) -> List[MonthlyRow]:
    """
    Left-to-right scan that turns monthly net revenue into cumulative profit.

    Starts from the negative upfront cost. A tax credit lands before the
    month's net; salvage and (optionally) the deposit return land after the
    final month's net. Returns new rows; the input rows are not modified.
    """
    upfront = upfront_cost(params)
    tax_credit = params.tax_depreciation * params.fleet_capex
    salvage = params.salvage_fraction * params.fleet_capex
    deposit_return = upfront.security_deposit if params.return_deposit_at_horizon else 0.0

    cumulative = -upfront.total
    out = []

    for row in rows:
        event = classify_cash_event(row.date, row.month, params)
        inflow = 0.0

        if CashEvent.TAX_CREDIT in event:
            inflow += tax_credit
            cumulative += tax_credit

        cumulative += row.net_revenue

        if CashEvent.TERMINAL in event:
            inflow += salvage + deposit_return
            cumulative += salvage + deposit_return

        out.append(replace(
            row,
            cash_event=event,
            one_time_inflow=inflow,
            cumulative_profit=cumulative
        ))

    return out


# ─────────────────────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────────────────────

_POSITIVE_FIELDS = (
    "price_0", "difficulty_0", "efficiency_0", "efficiency_end",
    "hashrate_per_unit_th", "price_decay", "difficulty_decay", "fees_decay",
)

_NON_NEGATIVE_FIELDS = (
    "fees_per_day_0", "block_reward_pre", "block_reward_post", "efficiency_rate",
    "premium_decay_energy", "premium_decay_protocol", "quantity", "unit_cost",
    "unit_power_kw", "hosting_price", "setup_fee_per_unit", "floor_energy_price",
)

_FRACTION_FIELDS = (
    "premium_0", "pool_fee", "uptime", "tax_depreciation", "salvage_fraction",
)

# Columns that must come out finite on every row
_MODEL_COLUMNS = (
    "price", "difficulty", "fees_per_day", "efficiency", "premium",
    "floor_hashprice", "effective_hashprice", "gross_revenue",
    "power_cost", "net_revenue", "effective_cost_of_power",
)


def validate_parameters(params: SimulationParameters) -> None:
    """
    Fail fast on inputs that would put NaN, inf or a division by zero into a row.

    Raises
    ------
    InvalidParameterError
        Naming the first offending field.
    """
    for f in fields(params):
        if f.type not in ("int", "float"):
            continue
        value = getattr(params, f.name)
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise InvalidParameterError(f.name, f"must be a number, got {value!r}")
        if not math.isfinite(value):
            raise InvalidParameterError(f.name, f"must be finite, got {value!r}")

    if not isinstance(params.start_date, date):
        raise InvalidParameterError("start_date", "must be a date")
    if not isinstance(params.halving_date, date):
        raise InvalidParameterError("halving_date", "must be a date")

    horizon = params.horizon_months
    if isinstance(horizon, bool) or not isinstance(horizon, int) or horizon <= 0:
        raise InvalidParameterError("horizon_months", f"must be a positive integer, got {horizon!r}")

    for name in _POSITIVE_FIELDS:
        value = getattr(params, name)
        if value <= 0:
            raise InvalidParameterError(name, f"must be positive, got {value}")

    for name in _NON_NEGATIVE_FIELDS:
        value = getattr(params, name)
        if value < 0:
            raise InvalidParameterError(name, f"must not be negative, got {value}")

    if not 1 <= params.tax_credit_month <= 12:
        raise InvalidParameterError("tax_credit_month", f"must be 1-12, got {params.tax_credit_month}")

    if not isinstance(params.floor_model, FloorModel):
        raise InvalidParameterError("floor_model", f"unknown floor model {params.floor_model!r}")
    if not isinstance(params.power_billing, PowerBilling):
        raise InvalidParameterError("power_billing", f"unknown billing policy {params.power_billing!r}")


def check_fraction_ranges(params: SimulationParameters) -> List[str]:
    """
    Advisory check for fraction inputs outside [0, 1].

    Out-of-range fractions are still computed; callers decide whether to
    surface the returned messages.
    """
    warnings_list = []
    for name in _FRACTION_FIELDS:
        value = getattr(params, name)
        if not 0.0 <= value <= 1.0:
            warnings_list.append(f"{name}={value} is outside [0, 1]")
    return warnings_list


def _check_curves_positive(months: ArrayLike, **curves: ArrayLike) -> None:
    """Price, difficulty and efficiency must stay finite and above zero on every month."""
    months = np.atleast_1d(months)
    for name, values in curves.items():
        values = np.atleast_1d(values)
        bad = np.where(~(np.isfinite(values) & (values > 0)))[0]
        if len(bad) > 0:
            raise InvalidParameterError(
                name, f"must stay positive and finite, got {values[bad[0]]} at month {months[bad[0]]}"
            )


def _check_rows_finite(rows: List[MonthlyRow]) -> None:
    for row in rows:
        for column in _MODEL_COLUMNS:
            value = getattr(row, column)
            if not math.isfinite(value):
                raise InvalidParameterError(column, f"non-finite value at month {row.month}")


# ─────────────────────────────────────────────────────────────
# MONTHLY SERIES
# ─────────────────────────────────────────────────────────────

def month_date(start: date, month: int) -> date:
    """Calendar date ``month`` months after start (day clamped to month end)."""
    return (pd.Timestamp(start) + pd.DateOffset(months=month)).date()


def days_in_month(row_date: date) -> int:
    return pd.Timestamp(row_date).days_in_month


def build_monthly_row(t: int, params: SimulationParameters) -> MonthlyRow:
    """Everything for month t except the cash-flow scan state."""
    row_date = month_date(params.start_date, t)
    dim = days_in_month(row_date)

    price = float(bounded_growth(t, params.price_0, params.price_growth, params.price_decay))
    difficulty = float(bounded_growth(
        t, params.difficulty_0, params.difficulty_growth, params.difficulty_decay
    ))
    fees_per_day = float(bounded_growth(
        t, params.fees_per_day_0, params.fees_growth, params.fees_decay
    ))
    reward = block_reward_for_date(row_date, params)
    efficiency = float(efficiency_at(t, params))
    premium = float(premium_path(t, params.premium_0, premium_decay_for(params)))
    _check_curves_positive(t, price=price, difficulty=difficulty, efficiency=efficiency)

    if params.floor_model is FloorModel.PROTOCOL:
        floor = protocol_floor(reward, fee_per_block(fees_per_day), price, difficulty)
    else:
        floor = energy_floor(efficiency, params.floor_energy_price)

    hashprice = effective_hashprice(floor, premium, params.hashprice_additive)

    gross = monthly_gross_revenue(hashprice, params.total_hashrate_th, dim, params.uptime)
    pool_net = pool_fee_net(gross, params.pool_fee)
    billed_uptime = params.uptime if params.power_billing is PowerBilling.UPTIME else None
    power = monthly_power_cost(
        params.unit_power_kw, params.hosting_price, params.quantity, dim, billed_uptime
    )

    return MonthlyRow(
        month=t,
        date=row_date,
        days_in_month=dim,
        price=price,
        difficulty=difficulty,
        fees_per_day=fees_per_day,
        block_reward=reward,
        efficiency=efficiency,
        premium=premium,
        floor_hashprice=float(floor),
        effective_hashprice=float(hashprice),
        gross_revenue=gross,
        pool_net_revenue=pool_net,
        power_cost=power,
        net_revenue=pool_net - power,
        effective_cost_of_power=float(effective_cost_of_power(hashprice, efficiency))
    )


def compute(params: SimulationParameters) -> List[MonthlyRow]:
    """
    Full monthly projection, months 0..horizon inclusive.

    Raises
    ------
    InvalidParameterError
        Before any row is returned, if an input or a computed value is unusable.
    """
    validate_parameters(params)

    rows = [build_monthly_row(t, params) for t in range(params.horizon_months + 1)]
    _check_rows_finite(rows)

    return accumulate_cash_flows(rows, params)


def run_simulation(params: SimulationParameters) -> SimulationResult:
    """
    Run the model and wrap the outcome in a SimulationResult.

    Invalid parameters are reported on ``result.error`` with no rows;
    out-of-range fractions are reported on ``result.warnings`` and do not
    stop the run.
    """
    model_name = getattr(params.floor_model, "value", params.floor_model)
    logger.info(f"Running {model_name} floor model over {params.horizon_months} months from {params.start_date}")

    try:
        rows = compute(params)
    except InvalidParameterError as e:
        logger.error(f"Simulation aborted: {e}")
        return SimulationResult(params=params, error=e)

    advisories = check_fraction_ranges(params)
    for message in advisories:
        logger.warning(message)

    logger.info(f"Simulation complete: bottom line ${rows[-1].cumulative_profit:,.0f}")
    return SimulationResult(params=params, rows=rows, warnings=advisories)


def compute_trends(params: SimulationParameters) -> pd.DataFrame:
    """
    Both floors and their effective hashprices side by side.

    Each floor is marked up with its own premium decay rate.
    """
    validate_parameters(params)

    t = np.arange(params.horizon_months + 1)
    dates = [month_date(params.start_date, int(m)) for m in t]

    price = bounded_growth(t, params.price_0, params.price_growth, params.price_decay)
    difficulty = bounded_growth(t, params.difficulty_0, params.difficulty_growth, params.difficulty_decay)
    fees = bounded_growth(t, params.fees_per_day_0, params.fees_growth, params.fees_decay)
    reward = np.array([block_reward_for_date(d, params) for d in dates])
    efficiency = efficiency_at(t, params)
    _check_curves_positive(t, price=price, difficulty=difficulty, efficiency=efficiency)

    premium_energy = premium_path(t, params.premium_0, premium_decay_for(params, FloorModel.ENERGY))
    premium_protocol = premium_path(t, params.premium_0, premium_decay_for(params, FloorModel.PROTOCOL))

    hp_protocol = protocol_floor(reward, fee_per_block(fees), price, difficulty)
    hp_energy = energy_floor(efficiency, params.floor_energy_price)

    return pd.DataFrame({
        "month": t,
        "date": dates,
        "price": price,
        "difficulty": difficulty,
        "difficulty_t": difficulty / 1e12,
        "fees_per_day": fees,
        "fee_per_block": fee_per_block(fees),
        "block_reward": reward,
        "efficiency": efficiency,
        "premium_energy": premium_energy,
        "premium_protocol": premium_protocol,
        "protocol_floor": hp_protocol,
        "protocol_effective": effective_hashprice(hp_protocol, premium_protocol),
        "energy_floor": hp_energy,
        "energy_effective": effective_hashprice(hp_energy, premium_energy),
    }).set_index("month")


# ─────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────

REQUIRED_SECTIONS = ["market", "efficiency", "premium", "operations", "events", "models"]


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load and validate the YAML configuration."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure."""
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a mapping")

    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    for name in config["models"] or {}:
        if name not in {m.value for m in FloorModel}:
            raise ValueError(f"Unknown model preset: {name}")

    known = {f.name for f in fields(SimulationParameters)}
    for section in REQUIRED_SECTIONS[:-1]:
        unknown = set(config[section] or {}) - known
        if unknown:
            raise ValueError(f"Unknown keys in section '{section}': {sorted(unknown)}")


def parameters_from_config(
    config: Dict[str, Any],
    model: Union[str, FloorModel] = FloorModel.ENERGY,
    start_date: Optional[date] = None,
    **overrides: Any
) -> SimulationParameters:
    """
    Build SimulationParameters from config sections plus a model preset.

    Precedence: shared sections, then the model preset, then ``overrides``.
    ``start_date`` defaults to today.
    """
    model = FloorModel(model)
    presets = config["models"] or {}
    if model.value not in presets:
        raise ValueError(f"No preset for model '{model.value}' in configuration")

    kwargs: Dict[str, Any] = {}
    if "horizon_months" in config:
        kwargs["horizon_months"] = config["horizon_months"]
    for section in REQUIRED_SECTIONS[:-1]:
        kwargs.update(config[section] or {})
    kwargs.update(presets[model.value] or {})
    kwargs.update(overrides)

    kwargs["floor_model"] = FloorModel(kwargs.get("floor_model", model))
    kwargs["power_billing"] = PowerBilling(kwargs.get("power_billing", PowerBilling.UPTIME))
    kwargs["start_date"] = start_date or kwargs.get("start_date") or date.today()

    halving = kwargs.get("halving_date")
    if isinstance(halving, str):
        kwargs["halving_date"] = date.fromisoformat(halving)

    known = {f.name for f in fields(SimulationParameters)}
    unknown = set(kwargs) - known
    if unknown:
        raise ValueError(f"Unknown parameters: {sorted(unknown)}")

    return SimulationParameters(**kwargs)


# ─────────────────────────────────────────────────────────────
# LOGGING AND REPORTING
# ─────────────────────────────────────────────────────────────

def rows_to_frame(rows: List[MonthlyRow]) -> pd.DataFrame:
    """Row sequence as a DataFrame indexed by month."""
    records = []
    for row in rows:
        record = asdict(row)
        record["cash_event"] = _event_label(row.cash_event)
        records.append(record)

    df = pd.DataFrame(records)
    if df.empty:
        return df
    return df.set_index("month")


def _event_label(event: CashEvent) -> str:
    if event is CashEvent.NONE:
        return ""
    return "+".join(e.name for e in (CashEvent.TAX_CREDIT, CashEvent.TERMINAL) if e in event)


def summarize_rows(rows: List[MonthlyRow], params: SimulationParameters) -> Dict[str, Any]:
    """Headline metrics for a completed run."""
    upfront = upfront_cost(params)
    cumulative = np.array([r.cumulative_profit for r in rows])
    bottom_line = cumulative[-1]

    # First month the investment is back in the black
    positive = np.where(cumulative >= 0)[0]
    payback_month = int(rows[positive[0]].month) if len(positive) > 0 else None

    credit_rows = [r for r in rows if CashEvent.TAX_CREDIT in r.cash_event]
    tax_credit = params.tax_depreciation * params.fleet_capex * len(credit_rows)
    terminal = params.salvage_fraction * params.fleet_capex
    if params.return_deposit_at_horizon:
        terminal += upfront.security_deposit

    return {
        "Floor Model": params.floor_model.value,
        "Upfront Cost (USD)": upfront.total,
        "Security Deposit (USD)": upfront.security_deposit,
        "Total Gross Revenue (USD)": sum(r.gross_revenue for r in rows),
        "Total Power Cost (USD)": sum(r.power_cost for r in rows),
        "Total Net Revenue (USD)": sum(r.net_revenue for r in rows),
        "Tax Credit (USD)": tax_credit,
        "Terminal Inflow (USD)": terminal,
        "Bottom Line (USD)": bottom_line,
        "ROI (%)": round(bottom_line / upfront.total * 100, 1) if upfront.total > 0 else None,
        "Payback Month": payback_month,
        "Avg Effective Hashprice": float(np.mean([r.effective_hashprice for r in rows])),
    }


def log_run_summary(result: SimulationResult) -> None:
    """Pretty-print a run summary."""

    print("\n" + "="*70)
    print(f"HASHPRICE PROJECTION SUMMARY")
    print("="*70)

    if not result.ok:
        print(f"\n❌ RUN ABORTED: {result.error}")
        print("="*70 + "\n")
        return

    if result.warnings:
        print("\n⚠️  WARNINGS:")
        for warning in result.warnings:
            print(f"   - {warning}")

    summary = result.summary
    first, last = result.rows[0], result.rows[-1]

    print(f"\n📈 HASHPRICE ({summary['Floor Model']} floor):")
    print(f"   Month 0:  floor ${first.floor_hashprice:.4f}  effective ${first.effective_hashprice:.4f} /TH·day")
    print(f"   Month {last.month}: floor ${last.floor_hashprice:.4f}  effective ${last.effective_hashprice:.4f} /TH·day")

    print(f"\n💰 CASH FLOW:")
    print(f"   Upfront cost:     ${summary['Upfront Cost (USD)']:>12,.0f}")
    print(f"   Net revenue:      ${summary['Total Net Revenue (USD)']:>12,.0f}")
    print(f"   Tax credit:       ${summary['Tax Credit (USD)']:>12,.0f}")
    print(f"   Terminal inflow:  ${summary['Terminal Inflow (USD)']:>12,.0f}")
    print(f"   Bottom line:      ${summary['Bottom Line (USD)']:>12,.0f}")
    payback = summary["Payback Month"]
    print(f"   Payback month:    {payback if payback is not None else 'not reached':>13}")

    print("="*70 + "\n")


def generate_text_report(result: SimulationResult) -> str:
    """Plain-text report of a run."""

    report = []
    report.append("HASHPRICE PROJECTION REPORT")
    report.append("="*60)
    report.append(f"Start date: {result.params.start_date.isoformat()}")
    report.append(f"Horizon: {result.params.horizon_months} months")
    report.append("")

    if not result.ok:
        report.append(f"RUN ABORTED: {result.error}")
        return "\n".join(report)

    report.append("SUMMARY")
    report.append("-"*30)
    for key, value in result.summary.items():
        if isinstance(value, float):
            report.append(f"{key}: {value:,.2f}")
        else:
            report.append(f"{key}: {value}")
    report.append("")

    if result.warnings:
        report.append("WARNINGS")
        report.append("-"*30)
        report.extend(f"- {w}" for w in result.warnings)
        report.append("")

    report.append("MONTHLY DETAIL")
    report.append("-"*30)
    columns = ["date", "effective_hashprice", "net_revenue", "cash_event", "cumulative_profit"]
    report.append(result.to_frame()[columns].to_string())

    return "\n".join(report)
