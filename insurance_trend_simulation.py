import logging
from dataclasses import dataclass, field
from math import log

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25

# Required parameters for each supported severity distribution
SEVERITY_PARAMS = {
    'exponential': ('mean',),
    'normal': ('mean', 'sd'),
    'lognormal': ('mu', 'sigma'),
}


class ConfigurationError(ValueError):
    """Raised when a SimulationConfig holds one or more invalid fields."""


class RateTableError(ValueError):
    """Raised for rate change tables that are out of order or hold an unusable change."""


# --- Dates ---
def _as_date(value):
    return pd.Timestamp(value).normalize()


def _as_dates(values, index=None):
    if isinstance(values, pd.Series):
        if index is None:
            return pd.to_datetime(values).dt.normalize()
        if len(values) != len(index):
            raise ValueError(f"Got {len(values)} dates for {len(index)} values")
        # positional, whatever labels the dates carry
        values = values.to_numpy()
    return pd.to_datetime(pd.Series(values, index=index)).dt.normalize()


def uniform_dates_in_year(year: int, n: int):
    """
    Spread n dates uniformly across a calendar year.
    Date i is Jan 1 plus floor(i * days_in_year / n) days, so the first date
    is always January 1 and none spill into the next year.
    Returns: pd.DatetimeIndex of length n
    """
    if n <= 0:
        raise ValueError(f"n must be positive, got {n}")
    start = pd.Timestamp(year=year, month=1, day=1)
    days_in_year = 366 if start.is_leap_year else 365
    offsets = (np.arange(n) * days_in_year) // n
    return start + pd.to_timedelta(offsets, unit='D')


def years_between(start, end) -> float:
    """Fractional years from exact day count (days / 365.25)."""
    return (_as_date(end) - _as_date(start)).days / DAYS_PER_YEAR


def calendar_year_periods(years):
    return [(year, pd.Timestamp(year=year, month=1, day=1), pd.Timestamp(year=year, month=12, day=31))
            for year in years]


# --- Earned exposure ---
def _check_period(period_start, period_end):
    if period_end < period_start:
        raise ValueError(
            f"Reporting period ends ({period_end.date()}) before it starts ({period_start.date()})"
        )


def earned_exposure(inception, expiration, period_start, period_end) -> float:
    """
    Share of a policy's term earned inside a reporting period.
    The policy covers [inception, expiration), the period covers the
    calendar days period_start through period_end inclusive.
    Returns: overlap_days / term_days, 0.0 when the two do not intersect
    """
    inception, expiration = _as_date(inception), _as_date(expiration)
    period_start, period_end = _as_date(period_start), _as_date(period_end)
    _check_period(period_start, period_end)
    if expiration <= inception:
        raise ValueError(
            f"Policy expiration ({expiration.date()}) must be after inception ({inception.date()})"
        )

    period_stop = period_end + pd.Timedelta(days=1)
    overlap_days = (min(expiration, period_stop) - max(inception, period_start)).days
    term_days = (expiration - inception).days
    return max(0, overlap_days) / term_days


def earned_exposure_frame(policies: pd.DataFrame, period_start, period_end,
                          inception_col='inception_date', expiration_col='expiration_date'):
    """
    Vectorised earned_exposure over every row of a policy table.
    Returns: pd.Series aligned to policies.index
    """
    period_start, period_end = _as_date(period_start), _as_date(period_end)
    _check_period(period_start, period_end)
    period_stop = period_end + pd.Timedelta(days=1)

    inception = _as_dates(policies[inception_col])
    expiration = _as_dates(policies[expiration_col])
    term_days = (expiration - inception).dt.days
    invalid = term_days.isna() | (term_days <= 0)
    if invalid.any():
        bad = policies.index[invalid.to_numpy()].tolist()
        raise ValueError(f"Policies with missing dates or expiration on or before inception: {bad[:10]}")

    start = inception.where(inception > period_start, period_start)
    stop = expiration.where(expiration < period_stop, period_stop)
    overlap_days = (stop - start).dt.days.clip(lower=0)
    return (overlap_days / term_days).rename('earned_exposure')


# --- Rate changes ---
def validate_rate_changes(rate_changes):
    """
    Check a rate table of (effective_date, rate_change_pct) tuples.
    Effective dates must be strictly increasing and every change must be finite and above -100%.
    Returns: list of (pd.Timestamp, float)
    """
    table = [(_as_date(effective), float(pct)) for effective, pct in rate_changes]
    for (prev, _), (curr, _) in zip(table, table[1:]):
        if curr <= prev:
            raise RateTableError(
                f"Rate changes must be in chronological order: {curr.date()} listed after {prev.date()}"
            )
    for effective, pct in table:
        if not np.isfinite(pct) or pct <= -1.0:
            raise RateTableError(f"Rate change of {pct:.1%} effective {effective.date()} is not allowed")
    return table


def rate_level_factor(rate_changes, as_of) -> float:
    """Cumulative rate level on a date: product of (1 + pct) for changes effective on or before it."""
    as_of = _as_date(as_of)
    factor = 1.0
    for effective, pct in validate_rate_changes(rate_changes):
        if effective > as_of:
            break
        factor *= 1.0 + pct
    return factor


def rate_level_factors(rate_changes, dates):
    dates = _as_dates(dates)
    factors = pd.Series(1.0, index=dates.index, name='rate_level')
    for effective, pct in validate_rate_changes(rate_changes):
        factors = factors.where(dates < effective, factors * (1.0 + pct))
    return factors


def apply_rate_changes(policies: pd.DataFrame, rate_changes,
                       premium_col='trended_premium', date_col='inception_date'):
    """
    Layer rate changes onto policy premium.
    Each policy picks up every change effective on or before its inception date.
    Returns: copy of policies with 'rate_level' and 'written_premium' columns
    """
    out = policies.copy()
    out['rate_level'] = rate_level_factors(rate_changes, out[date_col])
    out['written_premium'] = out[premium_col] * out['rate_level']
    return out


def on_level_factors(policies: pd.DataFrame, rate_changes, current_date, date_col='inception_date'):
    """Factors that restate each policy's premium at the rate level in force on current_date."""
    current = rate_level_factor(rate_changes, current_date)
    return (current / rate_level_factors(rate_changes, policies[date_col])).rename('on_level_factor')


# --- Trend ---
def _check_trend(annual_trend):
    if annual_trend <= -1.0:
        raise ValueError(f"annual_trend must be greater than -100%, got {annual_trend:.1%}")


def trend_factor(from_date, to_date, annual_trend: float) -> float:
    _check_trend(annual_trend)
    return (1.0 + annual_trend) ** years_between(from_date, to_date)


def apply_trend(values, from_dates, to_dates, annual_trend: float):
    """
    Trend values from one date to another:
    value_at(to) = value_at(from) * (1 + annual_trend) ** years_between(from, to)
    Either date argument may be a single date or one date per value.
    """
    _check_trend(annual_trend)
    values = values if isinstance(values, pd.Series) else pd.Series(values)
    start = _as_date(from_dates) if np.ndim(from_dates) == 0 else _as_dates(from_dates, values.index)
    end = _as_date(to_dates) if np.ndim(to_dates) == 0 else _as_dates(to_dates, values.index)

    delta = end - start
    if isinstance(delta, pd.Timedelta):
        years = delta.days / DAYS_PER_YEAR
    else:
        years = delta.dt.days / DAYS_PER_YEAR
    return values * (1.0 + annual_trend) ** years


# --- Configuration ---
def lognormal_params(mean: float, sigma: float):
    # mean = exp(mu + 0.5*sigma^2)
    return {"mu": log(mean) - 0.5 * sigma ** 2, "sigma": sigma}


@dataclass
class SimulationConfig:
    """
    Parameters for a simulated book of annual policies and their claims.

    Attributes:
        years: Calendar years in which policies are written
        policies_per_year: Policies written in each year, inception dates spread uniformly
        base_premium: Mean premium per policy at the start of the first year
        premium_sigma: Lognormal sigma for premium variation between policies (0 = flat)
        premium_trend: Annual premium trend applied from the base date to inception
        rate_changes: (effective_date, rate_change_pct) tuples in chronological order
        frequency: Expected claims per policy-year
        severity_dist: 'exponential', 'normal' (truncated at 0) or 'lognormal'
        severity_params: Distribution parameters at the base date level
        severity_trend: Annual severity trend applied from the base date to occurrence
        report_lag_mean: Mean reporting lag in days (exponential)
        seed: Random seed for reproducibility
    """
    years: list = field(default_factory=lambda: [2018, 2019, 2020, 2021, 2022])
    policies_per_year: int = 1000
    base_premium: float = 1000.0
    premium_sigma: float = 0.2
    premium_trend: float = 0.03
    rate_changes: list = field(default_factory=list)
    frequency: float = 0.1
    severity_dist: str = 'lognormal'
    severity_params: dict = field(default_factory=lambda: lognormal_params(7000.0, 0.9))
    severity_trend: float = 0.05
    report_lag_mean: float = 30.0
    seed: int = 42

    @property
    def base_date(self):
        return pd.Timestamp(year=min(self.years), month=1, day=1)

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: listing every invalid field
        """
        errors = []

        if not self.years:
            errors.append("years: empty. Expected at least one calendar year.")
        elif len(set(self.years)) != len(self.years):
            errors.append(f"years: {self.years} contains duplicates.")

        if self.policies_per_year < 1:
            errors.append(f"policies_per_year: {self.policies_per_year} is out of range. Expected: >= 1.")
        if self.base_premium <= 0:
            errors.append(f"base_premium: {self.base_premium} is out of range. Expected: > 0.")
        if self.premium_sigma < 0:
            errors.append(f"premium_sigma: {self.premium_sigma} is out of range. Expected: >= 0.")
        for name in ('premium_trend', 'severity_trend'):
            value = getattr(self, name)
            if value <= -1.0:
                errors.append(f"{name}: {value} is out of range. Expected: > -1.0.")
        if self.frequency < 0:
            errors.append(f"frequency: {self.frequency} is out of range. Expected: >= 0.")
        if self.report_lag_mean < 0:
            errors.append(f"report_lag_mean: {self.report_lag_mean} is out of range. Expected: >= 0 days.")

        if self.severity_dist not in SEVERITY_PARAMS:
            errors.append(
                f"severity_dist: '{self.severity_dist}' is invalid. "
                f"Expected one of: {', '.join(SEVERITY_PARAMS)}."
            )
        else:
            missing = [p for p in SEVERITY_PARAMS[self.severity_dist] if p not in self.severity_params]
            if missing:
                errors.append(
                    f"severity_params: missing {missing} for '{self.severity_dist}' severity."
                )

        try:
            validate_rate_changes(self.rate_changes)
        except RateTableError as e:
            errors.append(f"rate_changes: {e}")

        if errors:
            raise ConfigurationError(
                "Invalid simulation configuration:\n  - " + "\n  - ".join(errors)
            )


# --- Simulation ---
def simulate_policies(config: SimulationConfig, rng=None):
    """
    Simulate a book of annual policies.
    Inception dates are spread uniformly through each year; each policy
    expires one calendar year later. Premium is drawn around
    config.base_premium, trended from config.base_date to inception and
    then adjusted by the rate changes in force at inception.
    Returns: pd.DataFrame, one row per policy
    """
    config.validate()
    rng = rng if rng is not None else np.random.default_rng(config.seed)

    inception = pd.concat(
        [pd.Series(uniform_dates_in_year(year, config.policies_per_year)) for year in sorted(config.years)],
        ignore_index=True,
    )
    n = len(inception)
    prem = lognormal_params(config.base_premium, config.premium_sigma)

    policies = pd.DataFrame({
        'policy_id': np.arange(1, n + 1),
        'inception_date': inception,
        'expiration_date': inception + pd.DateOffset(years=1),
        'exposure_units': np.ones(n),
        'base_premium': rng.lognormal(prem['mu'], prem['sigma'], size=n),
    })
    policies['trended_premium'] = apply_trend(
        policies['base_premium'], config.base_date, policies['inception_date'], config.premium_trend
    )
    policies = apply_rate_changes(policies, config.rate_changes)

    logger.info("Simulated %d policies written %d-%d", n, min(config.years), max(config.years))
    return policies


def simulate_claim_counts(policies: pd.DataFrame, frequency: float, rng):
    """Poisson claim counts with mean frequency * exposure_units * term in years."""
    term_years = (policies['expiration_date'] - policies['inception_date']).dt.days / DAYS_PER_YEAR
    lam = frequency * policies['exposure_units'] * term_years
    return pd.Series(rng.poisson(lam=lam.to_numpy()), index=policies.index, name='claim_count')


def simulate_severities(n: int, severity_dist: str, severity_params: dict, rng):
    """
    Draw n claim severities.
      - exponential: {'mean': m}
      - normal: {'mean': m, 'sd': s} (truncated at 0)
      - lognormal: {'mu': mu, 'sigma': sigma} (parameters of the underlying normal)
    """
    if severity_dist == 'exponential':
        return rng.exponential(severity_params['mean'], size=n)

    elif severity_dist == 'normal':
        sev = rng.normal(severity_params['mean'], severity_params['sd'], size=n)
        return np.clip(sev, 0, None)

    elif severity_dist == 'lognormal':
        return rng.lognormal(severity_params['mu'], severity_params['sigma'], size=n)
    else:
        raise ValueError(f"Unsupported severity_dist: {severity_dist!r}")


def simulate_claims(policies: pd.DataFrame, config: SimulationConfig, rng=None):
    """
    Simulate individual claims against a policy table.
    Occurrence dates fall uniformly within each policy term and are reported
    after an exponential lag. Severities are drawn at the config.base_date
    level and trended to the occurrence date by config.severity_trend.
    Returns: pd.DataFrame, one row per claim
    """
    config.validate()
    rng = rng if rng is not None else np.random.default_rng(config.seed)

    counts = simulate_claim_counts(policies, config.frequency, rng)
    rows = np.repeat(np.arange(len(policies)), counts.to_numpy())
    claimed = policies.iloc[rows].reset_index(drop=True)
    n = len(claimed)

    term_days = (claimed['expiration_date'] - claimed['inception_date']).dt.days.to_numpy()
    occurrence = claimed['inception_date'] + pd.to_timedelta(
        np.floor(rng.random(n) * term_days).astype(int), unit='D'
    )
    if config.report_lag_mean > 0:
        lag_days = np.floor(rng.exponential(config.report_lag_mean, size=n)).astype(int)
    else:
        lag_days = np.zeros(n, dtype=int)

    claims = pd.DataFrame({
        'claim_id': np.arange(1, n + 1),
        'policy_id': claimed['policy_id'],
        'occurrence_date': occurrence,
        'report_date': occurrence + pd.to_timedelta(lag_days, unit='D'),
        'accident_year': occurrence.dt.year,
    })
    base_severity = pd.Series(
        simulate_severities(n, config.severity_dist, config.severity_params, rng), index=claims.index
    )
    claims['severity'] = apply_trend(
        base_severity, config.base_date, claims['occurrence_date'], config.severity_trend
    )

    logger.info("Simulated %d claims on %d policies", n, len(policies))
    return claims


# --- Aggregation ---
def premium_summary(policies: pd.DataFrame, years, rate_changes=None, current_date=None):
    """
    Written and earned premium by calendar year.
    Written premium is booked in the inception year; earned premium is
    written premium times earned exposure in each year. When rate_changes
    are given, earned premium is also restated at the rate level in force
    on current_date (default: the last day of the last year).
    """
    written_year = policies['inception_date'].dt.year
    if rate_changes is not None:
        if current_date is None:
            current_date = pd.Timestamp(year=max(years), month=12, day=31)
        olf = on_level_factors(policies, rate_changes, current_date)

    rows = []
    for year, start, end in calendar_year_periods(years):
        exposure = earned_exposure_frame(policies, start, end)
        earned = exposure * policies['written_premium']
        row = {
            'year': year,
            'policies_written': int((written_year == year).sum()),
            'written_premium': policies.loc[written_year == year, 'written_premium'].sum(),
            'earned_exposure': exposure.sum(),
            'earned_premium': earned.sum(),
        }
        if rate_changes is not None:
            row['on_level_earned_premium'] = (earned * olf).sum()
        rows.append(row)

    logger.debug("Built premium summary for %d calendar years", len(rows))
    return pd.DataFrame(rows)


def severity_summary(claims: pd.DataFrame):
    """Claim count, total loss and average severity by accident year."""
    summary = (
        claims.groupby('accident_year')['severity']
        .agg(claim_count='count', total_loss='sum', average_severity='mean')
        .reset_index()
    )
    # change against the previous calendar year only, NaN when that year had no claims
    prior = summary['average_severity'].set_axis(summary['accident_year'] + 1)
    summary['severity_change'] = summary['average_severity'] / summary['accident_year'].map(prior) - 1.0
    return summary


def fit_severity_trend(summary: pd.DataFrame, years=None):
    """
    Exponential least-squares fit of average severity on accident year:
    log(average_severity) = intercept + slope * accident_year
    Returns: dict with the fitted annual trend (exp(slope) - 1) and fitted severities
    """
    if years is not None:
        summary = summary[summary['accident_year'].isin(years)]
    if len(summary) < 2:
        raise ValueError("At least two accident years are needed to fit a severity trend")

    x = summary['accident_year'].to_numpy(dtype=float)
    y = np.log(summary['average_severity'].to_numpy(dtype=float))
    slope, intercept = np.polyfit(x, y, 1)

    return {
        "annual_trend": float(np.exp(slope) - 1.0),
        "intercept": float(intercept),
        "fitted": pd.DataFrame({
            'accident_year': summary['accident_year'].to_numpy(),
            'fitted_severity': np.exp(intercept + slope * x),
        }),
    }


def severity_metrics(severities, label):
    return {
        "Scenario": label,
        "Mean": float(np.mean(severities)),
        "Variance": float(np.var(severities)),
        "VaR 95%": float(np.percentile(severities, 95)),
    }


def loss_ratio_summary(premium: pd.DataFrame, severity: pd.DataFrame):
    """Accident year losses over calendar year earned premium."""
    losses = severity[['accident_year', 'total_loss']].rename(columns={'accident_year': 'year'})
    cols = ['year', 'earned_premium']
    if 'on_level_earned_premium' in premium:
        cols.append('on_level_earned_premium')

    out = premium[cols].merge(losses, on='year', how='left')
    out['total_loss'] = out['total_loss'].fillna(0.0)
    out['loss_ratio'] = out['total_loss'] / out['earned_premium']
    if 'on_level_earned_premium' in out:
        out['on_level_loss_ratio'] = out['total_loss'] / out['on_level_earned_premium']
    return out


# --- Plots ---
def plot_premium(summary: pd.DataFrame, ax=None):
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 6))

    x = np.arange(len(summary))
    width = 0.4
    ax.bar(x - width / 2, summary['written_premium'], width, alpha=0.7, label="Written", edgecolor='black')
    ax.bar(x + width / 2, summary['earned_premium'], width, alpha=0.7, label="Earned", edgecolor='black')
    if 'on_level_earned_premium' in summary:
        ax.plot(x, summary['on_level_earned_premium'], marker='o', color='black',
                label="Earned at current rate level")

    ax.set_xticks(x)
    ax.set_xticklabels(summary['year'].astype(str))
    ax.set_title("Written vs Earned Premium by Calendar Year")
    ax.set_xlabel("Calendar Year")
    ax.set_ylabel("Premium ($)")
    ax.legend()
    ax.grid(True, alpha=0.3)
    return ax


def plot_severity_trend(summary: pd.DataFrame, fit, ax=None):
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 6))

    ax.plot(summary['accident_year'], summary['average_severity'], marker='o', label="Average severity")
    ax.plot(fit['fitted']['accident_year'], fit['fitted']['fitted_severity'], linestyle='--',
            label=f"Exponential fit ({fit['annual_trend']:.1%} per year)")
    ax.set_title("Average Claim Severity by Accident Year")
    ax.set_xlabel("Accident Year")
    ax.set_ylabel("Average Severity ($)")
    ax.legend()
    ax.grid(True, alpha=0.3)
    return ax


if __name__ == '__main__':
    # Example usage
    config = SimulationConfig(
        policies_per_year=2000,
        rate_changes=[("2019-07-01", 0.05), ("2021-01-01", 0.08)],
    )
    rng = np.random.default_rng(config.seed)

    policies = simulate_policies(config, rng=rng)
    claims = simulate_claims(policies, config, rng=rng)

    premium = premium_summary(policies, config.years + [max(config.years) + 1], config.rate_changes)
    severity = severity_summary(claims)
    fit = fit_severity_trend(severity, years=config.years[1:])

    print("Insurance Trend Simulation Results")
    print("=" * 40)
    print(premium.to_string(index=False))
    print()
    print(severity.to_string(index=False))
    print(f"\nSelected severity trend: {config.severity_trend:.1%}")
    print(f"Fitted severity trend:   {fit['annual_trend']:.1%}")
