from dataclasses import replace
from datetime import date

import numpy as np
import pytest

from hashprice_model import (
    CashEvent, InvalidParameterError, check_fraction_ranges, compute,
    compute_trends, energy_floor, generate_text_report, log_run_summary,
    protocol_floor, fee_per_block, rows_to_frame, run_simulation
)


def test_compute_is_deterministic(energy_params):
    assert compute(energy_params) == compute(energy_params)


def test_energy_rows_follow_floor_and_premium(energy_params):
    rows = compute(energy_params)

    for row in rows:
        assert row.floor_hashprice == pytest.approx(energy_floor(row.efficiency, 0.05))
        assert row.premium == pytest.approx(0.263 * np.exp(-0.06 * row.month))
        assert row.effective_hashprice == pytest.approx(row.floor_hashprice * (1 + row.premium))

    assert rows[0].efficiency == 28.0


def test_protocol_rows_use_protocol_premium_rate(protocol_params):
    rows = compute(protocol_params)

    for row in rows:
        expected = protocol_floor(row.block_reward, fee_per_block(row.fees_per_day), row.price, row.difficulty)
        assert row.floor_hashprice == pytest.approx(expected)
        assert row.premium == pytest.approx(0.263 * np.exp(-0.09 * row.month))

    assert rows[29].block_reward == 3.125
    assert rows[30].block_reward == 1.575


def test_pinned_efficiency(energy_params):
    rows = compute(replace(energy_params, use_efficiency_schedule=False))
    assert all(r.efficiency == 28.0 for r in rows)


def test_additive_shifts_effective_hashprice(energy_params):
    base = compute(energy_params)
    shifted = compute(replace(energy_params, hashprice_additive=0.002))

    for a, b in zip(base, shifted):
        assert b.effective_hashprice - a.effective_hashprice == pytest.approx(0.002)


@pytest.mark.parametrize("field_name,value", [
    ("price_0", float("nan")),
    ("difficulty_0", 0.0),
    ("efficiency_end", -1.0),
    ("hashrate_per_unit_th", 0.0),
    ("uptime", float("inf")),
    ("price_decay", 0.0),
    ("quantity", -1),
    ("horizon_months", 0),
    ("tax_credit_month", 13),
    ("difficulty_0", "1e12"),
    ("unit_cost", None),
])
def test_invalid_parameters_are_rejected(energy_params, field_name, value):
    params = replace(energy_params, **{field_name: value})

    with pytest.raises(InvalidParameterError) as exc_info:
        compute(params)

    assert exc_info.value.field == field_name


def test_overflowing_curve_is_rejected(energy_params):
    params = replace(energy_params, price_growth=1000.0, price_decay=0.001)

    with pytest.raises(InvalidParameterError) as exc_info:
        with np.errstate(over="ignore"):
            compute(params)

    assert exc_info.value.field == "price"


def test_underflowing_difficulty_is_rejected(protocol_params):
    params = replace(protocol_params, difficulty_growth=-1000.0, difficulty_decay=0.001)

    with pytest.raises(InvalidParameterError) as exc_info:
        compute(params)
    assert exc_info.value.field == "difficulty"

    result = run_simulation(params)
    assert not result.ok
    assert result.rows == []
    assert result.error.field == "difficulty"


def test_underflowing_price_is_rejected(protocol_params):
    result = run_simulation(replace(protocol_params, price_growth=-1000.0, price_decay=0.001))

    assert not result.ok
    assert result.error.field == "price"

    with pytest.raises(InvalidParameterError):
        compute_trends(replace(protocol_params, price_growth=-1000.0, price_decay=0.001))


def test_string_from_config_is_reported_not_raised(energy_params):
    result = run_simulation(replace(energy_params, difficulty_0="1e12"))

    assert not result.ok
    assert result.error.field == "difficulty_0"


def test_run_simulation_reports_error_without_rows(energy_params):
    result = run_simulation(replace(energy_params, difficulty_0=-5.0))

    assert not result.ok
    assert result.rows == []
    assert result.bottom_line is None
    assert result.error.field == "difficulty_0"
    assert result.summary == {}


def test_out_of_range_fractions_are_advisory(energy_params):
    params = replace(energy_params, uptime=1.2, pool_fee=-0.1)

    assert len(check_fraction_ranges(params)) == 2
    assert check_fraction_ranges(energy_params) == []

    result = run_simulation(params)
    assert result.ok
    assert len(result.rows) == 37
    assert any("uptime" in w for w in result.warnings)


def test_run_simulation_bottom_line(energy_params):
    result = run_simulation(energy_params)

    assert result.ok
    assert result.bottom_line == result.rows[-1].cumulative_profit
    assert result.summary["Bottom Line (USD)"] == pytest.approx(result.bottom_line)
    assert result.summary["Upfront Cost (USD)"] == pytest.approx(82_854.0)
    assert result.summary["Tax Credit (USD)"] == pytest.approx(16_800.0)
    assert result.summary["Terminal Inflow (USD)"] == pytest.approx(18_604.0)


def test_rows_to_frame(energy_params):
    df = rows_to_frame(compute(energy_params))

    assert list(df.index) == list(range(37))
    assert df.loc[6, "cash_event"] == "TAX_CREDIT"
    assert df.loc[36, "cash_event"] == "TERMINAL"
    assert df.loc[1, "cash_event"] == ""
    assert "cumulative_profit" in df.columns


def test_compute_trends_side_by_side(energy_params):
    trends = compute_trends(energy_params)

    assert len(trends) == 37
    assert trends.loc[0, "energy_floor"] == pytest.approx(0.024 * 28 * 0.05)
    assert trends.loc[12, "premium_energy"] == pytest.approx(0.263 * np.exp(-0.06 * 12))
    assert trends.loc[12, "premium_protocol"] == pytest.approx(0.263 * np.exp(-0.09 * 12))
    assert (trends["protocol_floor"] > 0).all()
    assert trends.loc[30, "block_reward"] == 1.575


def test_trends_match_protocol_run(protocol_params):
    trends = compute_trends(protocol_params)
    rows = compute(protocol_params)

    assert trends["protocol_effective"].tolist() == pytest.approx([r.effective_hashprice for r in rows])


def test_text_report_and_summary_output(energy_params, capsys):
    result = run_simulation(energy_params)

    report = generate_text_report(result)
    assert "Bottom Line (USD)" in report
    assert "MONTHLY DETAIL" in report

    log_run_summary(result)
    out = capsys.readouterr().out
    assert "HASHPRICE PROJECTION SUMMARY" in out
    assert "energy floor" in out


def test_text_report_for_failed_run(energy_params):
    result = run_simulation(replace(energy_params, efficiency_0=0.0))
    assert "RUN ABORTED" in generate_text_report(result)


def test_start_date_drives_calendar(energy_params):
    rows = compute(replace(energy_params, start_date=date(2026, 4, 20)))
    assert rows[0].cash_event == CashEvent.TAX_CREDIT
    assert rows[0].date == date(2026, 4, 20)
