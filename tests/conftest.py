from datetime import date

import pytest

from hashprice_model import FloorModel, PowerBilling, SimulationParameters

# Month 6 of this run is April 2026; month 30 is April 2028
START = date(2025, 10, 1)


@pytest.fixture
def energy_params() -> SimulationParameters:
    return SimulationParameters(start_date=START)


@pytest.fixture
def protocol_params() -> SimulationParameters:
    return SimulationParameters(
        start_date=START,
        floor_model=FloorModel.PROTOCOL,
        power_billing=PowerBilling.NAMEPLATE,
        return_deposit_at_horizon=False,
        pool_fee=0.02,
        uptime=1.0,
    )
