"""
Headline KPIs over cohort summary rows, with period-over-period variation
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Dict, Optional

import pandas as pd

from .percentiles import median
from .utils import round_half_up

# metrics where a smaller number is the better outcome
LOWER_IS_BETTER = {"median_ttc"}
NUMERIC_KPIS = ("avg_contract_pct", "avg_cohort_size", "median_ttc", "total_leads", "total_contracts")


@dataclass(frozen=True)
class KpiDelta:
    avg_contract_pct: float = 0.0
    avg_cohort_size: float = 0.0
    median_ttc: float = 0.0
    total_leads: float = 0.0
    total_contracts: float = 0.0


@dataclass(frozen=True)
class KpiSnapshot:
    avg_contract_pct: float = 0.0
    avg_cohort_size: float = 0.0
    median_ttc: float = 0.0
    best_cohort: Optional[str] = None
    worst_cohort: Optional[str] = None
    total_leads: int = 0
    total_contracts: int = 0
    delta: Optional[KpiDelta] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def variation(current: float, previous: float, lower_is_better: bool = False) -> float:
    """
    Period-over-period change in percent.

    previous == 0 gives 100 when current grew, else 0. For lower-is-better
    metrics the sign is inverted so an improvement always reads positive.
    """
    if previous == 0:
        change = 100.0 if current > 0 else 0.0
    else:
        change = (current - previous) / previous * 100
    return -change if lower_is_better and change != 0 else change


def calc_cohort_kpis(rows: pd.DataFrame, previous: Optional[KpiSnapshot] = None) -> KpiSnapshot:
    """
    Roll cohort summary rows into a KpiSnapshot.

    Parameters
    ----------
    rows : DataFrame with cohort, size, contract_pct_cum and
        time_to_contract_p50 (NaN/None when a cohort has no contracts)
    previous : optional snapshot of the prior period; fills ``delta``

    Notes
    -----
    avg_contract_pct is volume-weighted (total contracts over total
    leads), not the mean of per-cohort percentages. median_ttc is the
    median of per-cohort p50s, a different statistic from the p50 of all
    individual durations.
    """
    if rows is None or rows.empty:
        snapshot = KpiSnapshot()
    else:
        sizes = rows["size"].astype(int)
        total_leads = int(sizes.sum())
        total_contracts = int(sum(
            round_half_up(size * pct / 100)
            for size, pct in zip(sizes, rows["contract_pct_cum"].astype(float))
        ))
        avg_contract_pct = total_contracts / total_leads * 100 if total_leads > 0 else 0.0

        ttc = rows["time_to_contract_p50"].dropna().astype(float).tolist()

        # stable descending sort: ties keep input order
        ranked = rows.sort_values("contract_pct_cum", ascending=False, kind="mergesort")

        snapshot = KpiSnapshot(
            avg_contract_pct=avg_contract_pct,
            avg_cohort_size=total_leads / len(rows),
            median_ttc=median(ttc),
            best_cohort=ranked["cohort"].iloc[0],
            worst_cohort=ranked["cohort"].iloc[-1],
            total_leads=total_leads,
            total_contracts=total_contracts,
        )

    if previous is not None:
        snapshot = replace(snapshot, delta=compare_snapshots(snapshot, previous))
    return snapshot


def compare_snapshots(current: KpiSnapshot, previous: KpiSnapshot) -> KpiDelta:
    """Variation of every numeric KPI against the prior period."""
    return KpiDelta(**{
        key: variation(getattr(current, key), getattr(previous, key), lower_is_better=key in LOWER_IS_BETTER)
        for key in NUMERIC_KPIS
    })
