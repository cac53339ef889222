"""
Cohort summary rows: one line per acquisition month
"""
import numpy as np
import pandas as pd

from .config import Stage
from .percentiles import time_to_event
from .utils import percent

SUMMARY_COLUMNS = [
    "cohort", "size",
    "visit_pct_m1", "visit_pct_m2",
    "offer_pct_m1", "offer_pct_m2",
    "contract_pct_m1", "contract_pct_m2", "contract_pct_m3",
    "contract_pct_cum",
    "time_to_contract_p50", "time_to_contract_p90",
    "top_channel",
]

# (column prefix, stage, months) ; contract uses the configured target stage
MILESTONES = [
    ("visit", Stage.VISITA.value, (1, 2)),
    ("offer", Stage.OFERTA.value, (1, 2)),
]
CONTRACT_MONTHS = (1, 2, 3)


def _reached_by(ev: pd.DataFrame, stage: str, month: int) -> pd.Series:
    """cohort -> distinct leads that reached ``stage`` by relative month ``month``."""
    hit = ev[(ev["stage"] == stage) & (ev["month_rel"] <= month)]
    return hit.groupby("cohort")["lead_id"].nunique()


def top_channels(leads: pd.DataFrame) -> pd.Series:
    """Most frequent acquisition channel per cohort; alphabetical on ties."""
    if "channel" not in leads.columns:
        return pd.Series(dtype=object)
    counts = (
        leads[leads["channel"].notna()]
        .groupby(["cohort", "channel"]).size()
        .reset_index(name="n")
        .sort_values(["cohort", "n", "channel"], ascending=[True, False, True])
    )
    return counts.drop_duplicates("cohort").set_index("cohort")["channel"]


def build_cohort_summary(
    assignment,
    window: int = 12,
    target_stage: str = Stage.CONTRATO.value,
    min_size: int = None,
) -> pd.DataFrame:
    """
    Summary row per cohort.

    The *_pct_mN columns are cumulative: share of the cohort that reached
    the stage by relative month N. contract_pct_cum covers the whole window.
    Time-to-contract percentiles are None for cohorts without conversions.

    Returns
    -------
    DataFrame with SUMMARY_COLUMNS, sorted by cohort
    """
    target = Stage(target_stage).value
    sizes = assignment.sizes
    if min_size is not None:
        sizes = sizes[sizes >= min_size]
    if sizes.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    ev = assignment.events
    ev = ev[(ev["month_rel"] >= 0) & (ev["month_rel"] <= int(window))]

    out = pd.DataFrame({"cohort": sizes.index, "size": sizes.values.astype(int)})

    def pct_col(reached: pd.Series) -> list:
        return [percent(reached.get(c, 0), s) for c, s in zip(out["cohort"], out["size"])]

    for prefix, stage, months in MILESTONES:
        for m in months:
            out[f"{prefix}_pct_m{m}"] = pct_col(_reached_by(ev, stage, m))
    for m in CONTRACT_MONTHS:
        out[f"contract_pct_m{m}"] = pct_col(_reached_by(ev, target, m))
    out["contract_pct_cum"] = pct_col(_reached_by(ev, target, int(window)))

    tte = time_to_event(ev, target, percentiles=(50, 90)).set_index("cohort")
    out["time_to_contract_p50"] = out["cohort"].map(tte["p50"]) if not tte.empty else np.nan
    out["time_to_contract_p90"] = out["cohort"].map(tte["p90"]) if not tte.empty else np.nan
    for col in ("time_to_contract_p50", "time_to_contract_p90"):
        out[col] = out[col].astype(object).where(out[col].notna(), None)

    out["top_channel"] = out["cohort"].map(top_channels(assignment.leads))
    out["top_channel"] = out["top_channel"].astype(object).where(out["top_channel"].notna(), None)

    return out[SUMMARY_COLUMNS].sort_values("cohort").reset_index(drop=True)
