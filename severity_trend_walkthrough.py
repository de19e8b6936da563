# Severity Trend Walkthrough
# Simulates claims with a known severity trend, summarises them by accident
# year and checks how well a simple exponential fit recovers the trend.

import argparse
import logging
import os

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from insurance_trend_simulation import (
    SimulationConfig,
    apply_trend,
    fit_severity_trend,
    lognormal_params,
    loss_ratio_summary,
    plot_severity_trend,
    premium_summary,
    severity_metrics,
    severity_summary,
    simulate_claims,
    simulate_policies,
)

# --- Simulation configuration ---
YEARS = [2018, 2019, 2020, 2021, 2022]
N_POLICIES_PER_YEAR = 5000
FREQUENCY = 0.1               # expected claims per policy-year
SEVERITY_MEAN = 7000.0        # mean severity on 2018-01-01
SEVERITY_SIGMA = 0.9
SEVERITY_TREND = 0.05         # +5% a year
REPORT_LAG_MEAN = 45.0        # days
SEED = 42


def build_config(years=YEARS, policies_per_year=N_POLICIES_PER_YEAR, severity_trend=SEVERITY_TREND, seed=SEED):
    return SimulationConfig(
        years=list(years),
        policies_per_year=policies_per_year,
        frequency=FREQUENCY,
        severity_dist='lognormal',
        severity_params=lognormal_params(SEVERITY_MEAN, SEVERITY_SIGMA),
        severity_trend=severity_trend,
        report_lag_mean=REPORT_LAG_MEAN,
        seed=seed,
    )


def build_claims(config):
    rng = np.random.default_rng(config.seed)
    policies = simulate_policies(config, rng=rng)
    claims = simulate_claims(policies, config, rng=rng)
    return policies, claims


def build_severity_trend(claims, config):
    """
    Summarise by accident year and fit an exponential trend.
    Only fully exposed accident years are fitted: the first written year
    and the run-off year after the last one see claims from a single
    policy cohort, which skews their average occurrence date.
    """
    summary = severity_summary(claims)
    fit = fit_severity_trend(summary, years=config.years[1:])
    return summary, fit


def build_detrended_metrics(claims, config):
    # Bring every claim back to the base date; what is left should look flat
    detrended = apply_trend(claims['severity'], claims['occurrence_date'], config.base_date, config.severity_trend)
    return pd.DataFrame([
        severity_metrics(claims['severity'], "As simulated"),
        severity_metrics(detrended, f"Detrended to {config.base_date.date()}"),
    ])


def main(output_dir=".", show=True):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    config = build_config()
    policies, claims = build_claims(config)

    print("Simulated claims")
    print("=" * 50)
    print(claims.head(10).to_string(index=False))
    print(f"\n{len(claims):,} claims on {len(policies):,} policies\n")

    summary, fit = build_severity_trend(claims, config)
    print("Severity by accident year")
    print("=" * 50)
    print(summary.to_string(index=False, float_format=lambda v: f"{v:,.4f}"))
    print(f"\nSelected severity trend: {config.severity_trend:.2%}")
    print(f"Fitted severity trend:   {fit['annual_trend']:.2%}\n")

    metrics_df = build_detrended_metrics(claims, config)
    print("Severity metrics")
    print("=" * 50)
    print(metrics_df.to_string(index=False))
    print("\n")

    premium = premium_summary(policies, list(config.years) + [max(config.years) + 1])
    loss_ratios = loss_ratio_summary(premium, summary)
    print("Loss ratio by year")
    print("=" * 50)
    print(loss_ratios.to_string(index=False, float_format=lambda v: f"{v:,.4f}"))

    # --- Visualizations ---
    fig, ax = plt.subplots(figsize=(10, 6))
    plot_severity_trend(summary, fit, ax=ax)
    fig.tight_layout()

    fig2, ax2 = plt.subplots(figsize=(10, 6))
    ax2.hist(claims['severity'], bins=100, alpha=0.7, edgecolor='black')
    ax2.set_title("Claim Severity Distribution (Trended)")
    ax2.set_xlabel("Claim Size ($)")
    ax2.set_ylabel("Frequency")
    ax2.grid(True, alpha=0.3)
    fig2.tight_layout()

    # --- Save artifacts ---
    try:
        claims_path = os.path.join(output_dir, "simulated_claims.csv")
        summary_path = os.path.join(output_dir, "severity_by_accident_year.csv")
        claims.to_csv(claims_path, index=False)
        summary.to_csv(summary_path, index=False)
        fig.savefig(os.path.join(output_dir, "severity_trend.png"))
        print(f"\n✓ Claims saved to: {claims_path}")
        print(f"✓ Summary saved to: {summary_path}")
    except OSError as e:
        print(f"Could not save outputs: {e}")

    if show:
        plt.show()
    plt.close('all')
    return summary, fit


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Severity trend walkthrough")
    parser.add_argument("--output-dir", default=".", help="Where to write CSV and PNG outputs")
    parser.add_argument("--no-show", action="store_true", help="Do not open plot windows")
    args = parser.parse_args()
    main(output_dir=args.output_dir, show=not args.no_show)
