# Earned Premium Walkthrough
# Writes five years of annual policies, trends the premium, layers a few rate
# changes on top and works out written, earned and on-level premium by
# calendar year.

import argparse
import logging
import os

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from insurance_trend_simulation import (
    SimulationConfig,
    earned_exposure,
    plot_premium,
    premium_summary,
    rate_level_factor,
    simulate_policies,
    validate_rate_changes,
)

# --- Simulation configuration ---
YEARS = [2018, 2019, 2020, 2021, 2022]
N_POLICIES_PER_YEAR = 1000    # inception dates spread uniformly through each year
BASE_PREMIUM = 1000.0         # average premium on 2018-01-01
PREMIUM_TREND = 0.03          # +3% a year from exposure growth (e.g. insured values)
RATE_CHANGES = [
    ("2019-07-01", 0.05),
    ("2020-04-01", -0.02),
    ("2021-10-01", 0.075),
]
SEED = 42


def build_config(years=YEARS, policies_per_year=N_POLICIES_PER_YEAR, rate_changes=RATE_CHANGES, seed=SEED):
    return SimulationConfig(
        years=list(years),
        policies_per_year=policies_per_year,
        base_premium=BASE_PREMIUM,
        premium_trend=PREMIUM_TREND,
        rate_changes=list(rate_changes),
        seed=seed,
    )


def build_single_policy_example():
    """
    One policy written mid-year earns across two calendar years.
    Term is [2019-07-01, 2020-07-01), 366 days because of 2020-02-29.
    """
    inception, expiration = "2019-07-01", "2020-07-01"
    rows = []
    for year in (2019, 2020, 2021):
        rows.append({
            "Calendar Year": year,
            "Earned Exposure": earned_exposure(inception, expiration, f"{year}-01-01", f"{year}-12-31"),
        })
    return pd.DataFrame(rows)


def build_rate_change_table(rate_changes=RATE_CHANGES):
    rows = []
    for effective, pct in validate_rate_changes(rate_changes):
        rows.append({
            "Effective Date": effective.date(),
            "Rate Change": pct,
            "Cumulative Rate Level": rate_level_factor(rate_changes, effective),
        })
    return pd.DataFrame(rows)


def build_premium_summary(config):
    """
    Simulate the book and summarise it by calendar year.
    The year after the last written year is included so the final
    cohort's premium is fully earned.
    """
    policies = simulate_policies(config, rng=np.random.default_rng(config.seed))
    years = list(config.years) + [max(config.years) + 1]
    summary = premium_summary(policies, years, rate_changes=config.rate_changes)
    summary['average_earned_premium'] = summary['earned_premium'] / summary['earned_exposure']
    return policies, summary


def main(output_dir=".", show=True):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    config = build_config()

    # 1) A single policy: premium is earned evenly over the days of the term
    print("Earned exposure for a policy written 2019-07-01")
    print("=" * 50)
    print(build_single_policy_example().to_string(index=False))
    print("\n")

    # 2) Rate changes apply to policies incepting on or after their effective date
    print("Rate change history")
    print("=" * 50)
    print(build_rate_change_table(config.rate_changes).to_string(index=False))
    print("\n")

    # 3) The whole book
    policies, summary = build_premium_summary(config)
    print("Premium by calendar year")
    print("=" * 50)
    print(summary.to_string(index=False, float_format=lambda v: f"{v:,.2f}"))
    print("\n")

    total_written = summary['written_premium'].sum()
    total_earned = summary['earned_premium'].sum()
    print(f"Total written premium: ${total_written:,.2f}")
    print(f"Total earned premium:  ${total_earned:,.2f}")

    # --- Visualizations ---
    fig, ax = plt.subplots(figsize=(10, 6))
    plot_premium(summary, ax=ax)
    fig.tight_layout()

    fig2, ax2 = plt.subplots(figsize=(10, 6))
    ax2.scatter(policies['inception_date'], policies['written_premium'], s=4, alpha=0.3)
    ax2.set_title("Written Premium by Inception Date")
    ax2.set_xlabel("Inception Date")
    ax2.set_ylabel("Written Premium ($)")
    ax2.grid(True, alpha=0.3)
    fig2.tight_layout()

    # --- Save artifacts ---
    try:
        policies_path = os.path.join(output_dir, "simulated_policies.csv")
        summary_path = os.path.join(output_dir, "premium_by_calendar_year.csv")
        policies.to_csv(policies_path, index=False)
        summary.to_csv(summary_path, index=False)
        fig.savefig(os.path.join(output_dir, "premium_by_calendar_year.png"))
        print(f"✓ Policies saved to: {policies_path}")
        print(f"✓ Summary saved to: {summary_path}")
    except OSError as e:
        print(f"Could not save outputs: {e}")

    if show:
        plt.show()
    plt.close('all')
    return summary


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Earned premium walkthrough")
    parser.add_argument("--output-dir", default=".", help="Where to write CSV and PNG outputs")
    parser.add_argument("--no-show", action="store_true", help="Do not open plot windows")
    args = parser.parse_args()
    main(output_dir=args.output_dir, show=not args.no_show)
