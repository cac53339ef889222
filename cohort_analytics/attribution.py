"""
Multi-touch attribution: conversion credit across a lead's touchpoints
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from .config import AttributionModel
from .utils import safe_divide

ATTRIBUTION_COLUMNS = ["dimension", "key", "leads", "contracts", "contribution_pct", "spend", "cpl", "cpa"]

USHAPED_ENDS = 0.4
USHAPED_MIDDLE = 0.2


def attribute_touches(channels: Sequence[str], model: str = "last") -> Dict[str, float]:
    """
    Split one lead's credit across its ordered touch channels.

    Weights sum to 1.0; a channel appearing more than once accumulates.
    An empty sequence returns an empty mapping.
    """
    model = AttributionModel(model)
    channels = list(channels)
    n = len(channels)
    credit: Dict[str, float] = defaultdict(float)

    if n == 0:
        return {}

    if model is AttributionModel.LAST:
        credit[channels[-1]] += 1.0
    elif model is AttributionModel.FIRST:
        credit[channels[0]] += 1.0
    elif model is AttributionModel.LINEAR:
        for ch in channels:
            credit[ch] += 1.0 / n
    else:
        if n == 1:
            credit[channels[0]] += 1.0
        elif n == 2:
            credit[channels[0]] += 0.5
            credit[channels[1]] += 0.5
        else:
            credit[channels[0]] += USHAPED_ENDS
            credit[channels[-1]] += USHAPED_ENDS
            middle = USHAPED_MIDDLE / (n - 2)
            for ch in channels[1:-1]:
                credit[ch] += middle

    return dict(credit)


def lead_credits(touches: pd.DataFrame, model: str = "last", dimension: str = "channel") -> pd.DataFrame:
    """
    Per-lead credit table.

    Parameters
    ----------
    touches : normalised touches (lead_id, timestamp, converted, <dimension>),
        ordered by timestamp within each lead
    model : 'last' | 'first' | 'linear' | 'ushaped'
    dimension : touch column credit is assigned to

    Returns
    -------
    DataFrame with lead_id, key, credit, converted
    """
    if dimension not in touches.columns:
        raise KeyError(f"Missing attribution dimension column '{dimension}'.")

    rows = []
    tmp = touches[touches[dimension].notna()]
    for lead_id, grp in tmp.groupby("lead_id", sort=False):
        converted = bool(grp["converted"].any())
        for key, weight in attribute_touches(grp[dimension].astype(str).tolist(), model).items():
            rows.append({"lead_id": lead_id, "key": key, "credit": weight, "converted": converted})

    return pd.DataFrame(rows, columns=["lead_id", "key", "credit", "converted"])


def attribution_table(
    touches: pd.DataFrame,
    model: str = "last",
    dimension: str = "channel",
    spend: Optional[Dict[str, float]] = None,
) -> pd.DataFrame:
    """
    Aggregate attribution per dimension value.

    leads            = credit summed over every lead
    contracts        = credit summed over converted leads
    contribution_pct = share of contract credit, normalised to 100
    cpl / cpa        = spend / leads, spend / contracts (0 when undefined)

    Returns
    -------
    DataFrame with columns:
        dimension, key, leads, contracts, contribution_pct, spend, cpl, cpa
    sorted by contribution_pct descending.
    """
    credits = lead_credits(touches, model=model, dimension=dimension)
    if credits.empty:
        return pd.DataFrame(columns=ATTRIBUTION_COLUMNS)

    credits["contract_credit"] = np.where(credits["converted"], credits["credit"], 0.0)
    agg = (
        credits.groupby("key", sort=False)
        .agg(leads=("credit", "sum"), contracts=("contract_credit", "sum"))
        .reset_index()
    )

    total_contracts = agg["contracts"].sum()
    agg["contribution_pct"] = (
        agg["contracts"] / total_contracts * 100 if total_contracts > 0 else 0.0
    )

    spend = spend or {}
    agg["spend"] = agg["key"].map(lambda k: float(spend.get(k, 0.0)))
    agg["cpl"] = [safe_divide(s, l) for s, l in zip(agg["spend"], agg["leads"])]
    agg["cpa"] = [safe_divide(s, c) for s, c in zip(agg["spend"], agg["contracts"])]
    agg["dimension"] = dimension

    agg = agg.sort_values(["contribution_pct", "leads"], ascending=[False, False], kind="mergesort")
    return agg[ATTRIBUTION_COLUMNS].reset_index(drop=True)
