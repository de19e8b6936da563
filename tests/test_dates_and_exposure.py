"""Tests for date spacing and earned exposure."""

import pandas as pd
import pytest

from insurance_trend_simulation import (
    calendar_year_periods,
    earned_exposure,
    earned_exposure_frame,
    uniform_dates_in_year,
    years_between,
)


class TestUniformDates:
    def test_first_date_is_jan_first(self):
        dates = uniform_dates_in_year(2021, 4)
        assert len(dates) == 4
        assert dates[0] == pd.Timestamp("2021-01-01")
        assert dates[1] == pd.Timestamp("2021-04-02")

    def test_all_dates_in_year(self):
        for year in (2019, 2020):
            dates = uniform_dates_in_year(year, 1000)
            assert (dates.year == year).all()
            assert dates.is_monotonic_increasing

    def test_one_per_day_in_leap_year(self):
        dates = uniform_dates_in_year(2020, 366)
        assert dates[-1] == pd.Timestamp("2020-12-31")
        assert dates.is_unique

    def test_one_per_day_in_common_year(self):
        dates = uniform_dates_in_year(2021, 365)
        assert dates[-1] == pd.Timestamp("2021-12-31")
        assert dates.is_unique

    def test_rejects_non_positive_count(self):
        with pytest.raises(ValueError):
            uniform_dates_in_year(2021, 0)


class TestYearsBetween:
    def test_exact_day_count(self):
        assert years_between("2020-01-01", "2021-01-01") == pytest.approx(366 / 365.25)
        assert years_between("2021-01-01", "2022-01-01") == pytest.approx(365 / 365.25)

    def test_negative_when_reversed(self):
        assert years_between("2021-01-01", "2020-01-01") == pytest.approx(-366 / 365.25)

    def test_calendar_year_periods(self):
        periods = calendar_year_periods([2020])
        assert periods == [(2020, pd.Timestamp("2020-01-01"), pd.Timestamp("2020-12-31"))]


class TestEarnedExposure:
    def test_full_year_policy_fully_earned(self):
        assert earned_exposure("2020-01-01", "2021-01-01", "2020-01-01", "2020-12-31") == pytest.approx(1.0)

    def test_mid_year_policy_splits_by_days(self):
        # Term covers 2020-02-29, so 366 days
        first = earned_exposure("2019-07-01", "2020-07-01", "2019-01-01", "2019-12-31")
        second = earned_exposure("2019-07-01", "2020-07-01", "2020-01-01", "2020-12-31")
        assert first == pytest.approx(184 / 366)
        assert second == pytest.approx(182 / 366)
        assert first + second == pytest.approx(1.0)

    def test_no_overlap_is_zero(self):
        assert earned_exposure("2019-07-01", "2020-07-01", "2021-01-01", "2021-12-31") == 0.0
        assert earned_exposure("2019-07-01", "2020-07-01", "2018-01-01", "2018-12-31") == 0.0

    def test_period_end_is_inclusive(self):
        assert earned_exposure("2020-01-01", "2021-01-01", "2020-01-01", "2020-01-01") == pytest.approx(1 / 366)

    def test_expiration_is_exclusive(self):
        assert earned_exposure("2020-01-01", "2020-01-02", "2020-01-01", "2020-01-01") == pytest.approx(1.0)
        assert earned_exposure("2020-01-01", "2020-01-02", "2020-01-02", "2020-01-31") == 0.0

    def test_negative_period_rejected(self):
        with pytest.raises(ValueError, match="before it starts"):
            earned_exposure("2020-01-01", "2021-01-01", "2020-12-31", "2020-01-01")

    def test_inverted_policy_rejected(self):
        with pytest.raises(ValueError, match="expiration"):
            earned_exposure("2021-01-01", "2020-01-01", "2020-01-01", "2020-12-31")


class TestEarnedExposureFrame:
    def test_matches_scalar(self):
        policies = pd.DataFrame({
            'inception_date': pd.to_datetime(["2019-07-01", "2020-01-01", "2020-12-31", "2022-03-15"]),
            'expiration_date': pd.to_datetime(["2020-07-01", "2021-01-01", "2021-12-31", "2023-03-15"]),
        })
        exposure = earned_exposure_frame(policies, "2020-01-01", "2020-12-31")
        expected = [
            earned_exposure(i, e, "2020-01-01", "2020-12-31")
            for i, e in zip(policies['inception_date'], policies['expiration_date'])
        ]
        assert exposure.tolist() == pytest.approx(expected)
        assert exposure.iloc[3] == 0.0

    def test_rejects_bad_policy(self):
        policies = pd.DataFrame({
            'inception_date': pd.to_datetime(["2020-01-01"]),
            'expiration_date': pd.to_datetime(["2020-01-01"]),
        })
        with pytest.raises(ValueError):
            earned_exposure_frame(policies, "2020-01-01", "2020-12-31")

    def test_rejects_missing_dates(self):
        policies = pd.DataFrame({
            'inception_date': pd.to_datetime(["2020-01-01", None]),
            'expiration_date': pd.to_datetime(["2021-01-01", "2021-01-01"]),
        })
        with pytest.raises(ValueError, match="missing dates"):
            earned_exposure_frame(policies, "2020-01-01", "2020-12-31")

    def test_rejects_negative_period(self):
        policies = pd.DataFrame({
            'inception_date': pd.to_datetime(["2020-01-01"]),
            'expiration_date': pd.to_datetime(["2021-01-01"]),
        })
        with pytest.raises(ValueError):
            earned_exposure_frame(policies, "2020-06-01", "2020-05-31")
