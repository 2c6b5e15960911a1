from dataclasses import replace
from datetime import date

import pytest

from hashprice_model import (
    CashEvent, accumulate_cash_flows, build_monthly_row, classify_cash_event,
    compute, security_deposit, upfront_cost
)

UPFRONT = 10 * 8000 + (3.5 * 0.05 * 10 * 24 * 31 * 2) + 10 * 25


def test_upfront_cost_breakdown(energy_params):
    upfront = upfront_cost(energy_params)

    assert upfront.hardware == 80_000
    assert upfront.security_deposit == pytest.approx(2604.0)
    assert upfront.setup_fees == 250
    assert upfront.total == pytest.approx(UPFRONT)
    assert upfront.total == pytest.approx(82_854.0)


def test_security_deposit_ignores_calendar(energy_params):
    # Always two 31-day months, whatever the start month
    feb_start = replace(energy_params, start_date=date(2027, 2, 1))
    assert security_deposit(feb_start) == security_deposit(energy_params)


def test_end_to_end_energy_scenario(energy_params):
    rows = compute(energy_params)

    assert len(rows) == 37
    assert rows[0].cumulative_profit == pytest.approx(-UPFRONT + rows[0].net_revenue)

    tax_credit = 0.21 * 10 * 8000
    terminal = 0.2 * 10 * 8000 + 3.5 * 0.05 * 10 * 24 * 31 * 2
    expected = -UPFRONT + sum(r.net_revenue for r in rows) + tax_credit + terminal

    assert rows[-1].cumulative_profit == pytest.approx(expected)


def test_tax_credit_fires_once_in_target_month(energy_params):
    rows = compute(energy_params)

    credited = [r for r in rows if CashEvent.TAX_CREDIT in r.cash_event]
    assert len(credited) == 1
    assert credited[0].date == date(2026, 4, 1)
    assert credited[0].month == 6
    assert credited[0].one_time_inflow == pytest.approx(16_800.0)

    before, row = rows[5], rows[6]
    assert row.cumulative_profit - before.cumulative_profit == pytest.approx(row.net_revenue + 16_800.0)


def test_terminal_inflow_only_on_final_row(energy_params):
    rows = compute(energy_params)

    terminal = [r for r in rows if CashEvent.TERMINAL in r.cash_event]
    assert [r.month for r in terminal] == [36]
    assert rows[-1].one_time_inflow == pytest.approx(16_000.0 + 2604.0)

    plain = [r for r in rows if r.cash_event == CashEvent.NONE]
    assert len(plain) == 35
    assert all(r.one_time_inflow == 0.0 for r in plain)


def test_running_total_is_left_to_right(energy_params):
    rows = compute(energy_params)

    for prev, row in zip(rows, rows[1:]):
        step = row.cumulative_profit - prev.cumulative_profit
        assert step == pytest.approx(row.net_revenue + row.one_time_inflow)


def test_protocol_model_does_not_return_deposit(protocol_params):
    rows = compute(protocol_params)
    assert rows[-1].one_time_inflow == pytest.approx(16_000.0)


def test_no_tax_credit_when_month_outside_horizon(energy_params):
    late = replace(energy_params, tax_credit_year=2035)
    rows = compute(late)
    assert all(CashEvent.TAX_CREDIT not in r.cash_event for r in rows)


def test_tax_credit_and_terminal_can_share_a_row(energy_params):
    params = replace(energy_params, tax_credit_year=2028, tax_credit_month=10)
    rows = compute(params)

    assert rows[-1].cash_event == CashEvent.TAX_CREDIT | CashEvent.TERMINAL
    assert rows[-1].one_time_inflow == pytest.approx(16_800.0 + 16_000.0 + 2604.0)


def test_classify_cash_event(energy_params):
    assert classify_cash_event(date(2026, 4, 15), 6, energy_params) == CashEvent.TAX_CREDIT
    assert classify_cash_event(date(2026, 5, 1), 7, energy_params) == CashEvent.NONE
    assert classify_cash_event(date(2028, 10, 1), 36, energy_params) == CashEvent.TERMINAL


def test_accumulate_does_not_mutate_input(energy_params):
    rows = [build_monthly_row(t, energy_params) for t in range(37)]
    accumulate_cash_flows(rows, energy_params)

    assert all(r.cumulative_profit == 0.0 for r in rows)
    assert all(r.cash_event == CashEvent.NONE for r in rows)
