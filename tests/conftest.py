import matplotlib

matplotlib.use("Agg")

import pytest

from insurance_trend_simulation import SimulationConfig, lognormal_params


@pytest.fixture
def rate_changes():
    return [("2020-01-01", 0.10), ("2021-01-01", -0.05)]


@pytest.fixture
def small_config():
    return SimulationConfig(
        years=[2019, 2020, 2021],
        policies_per_year=200,
        base_premium=500.0,
        premium_sigma=0.1,
        premium_trend=0.04,
        rate_changes=[("2020-01-01", 0.10), ("2021-01-01", -0.05)],
        frequency=0.3,
        severity_params=lognormal_params(5000.0, 0.5),
        seed=7,
    )
