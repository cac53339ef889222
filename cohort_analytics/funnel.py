"""
Funnel overview: distinct leads per stage with stage and cumulative rates
"""
import pandas as pd

from .config import STAGE_ORDER
from .utils import safe_divide

FUNNEL_COLUMNS = ["stage", "count", "stage_rate", "cumulative_rate", "top_channels"]


def stage_rates(counts):
    """
    Conversion rates along an ordered list of stage counts.

    stage_rate[i]      = counts[i] / counts[i-1] * 100
    cumulative_rate[i] = counts[i] / counts[0] * 100
    The first stage is 100 for both; zero denominators give 0.
    """
    counts = list(counts)
    stage, cumulative = [], []
    for i, n in enumerate(counts):
        if i == 0:
            stage.append(100.0)
            cumulative.append(100.0)
        else:
            stage.append(safe_divide(n, counts[i - 1]) * 100)
            cumulative.append(safe_divide(n, counts[0]) * 100)
    return stage, cumulative


def funnel_overview(events: pd.DataFrame, stages=None, top_n: int = 3) -> pd.DataFrame:
    """
    Funnel table from long stage events.

    Parameters
    ----------
    events : normalised events (lead_id, stage, channel)
    stages : funnel order; defaults to every known stage
    top_n : channels listed per stage

    Returns
    -------
    DataFrame with columns:
        stage, count, stage_rate, cumulative_rate, top_channels
    where top_channels is a list of (channel, count) pairs.
    """
    stages = list(stages or STAGE_ORDER)
    ev = events[events["stage"].isin(stages)]

    counts = ev.groupby("stage")["lead_id"].nunique().reindex(stages, fill_value=0)
    stage_rate, cumulative_rate = stage_rates(counts.tolist())

    tops = {}
    if "channel" in ev.columns:
        by_channel = (
            ev[ev["channel"].notna()]
            .groupby(["stage", "channel"])["lead_id"].nunique()
            .reset_index(name="n")
            .sort_values(["stage", "n", "channel"], ascending=[True, False, True])
        )
        for stage, grp in by_channel.groupby("stage"):
            tops[stage] = list(zip(grp["channel"].head(top_n), grp["n"].head(top_n).astype(int)))

    return pd.DataFrame({
        "stage": stages,
        "count": counts.astype(int).values,
        "stage_rate": stage_rate,
        "cumulative_rate": cumulative_rate,
        "top_channels": [tops.get(s, []) for s in stages],
    }, columns=FUNNEL_COLUMNS)
