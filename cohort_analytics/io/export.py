import io
import json
from dataclasses import asdict, is_dataclass

import numpy as np
import pandas as pd

from ..utils import fmt_month


def _json_default(value):
    if isinstance(value, (pd.Timestamp, np.datetime64)):
        return pd.Timestamp(value).isoformat()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return None if np.isnan(value) else float(value)
    if hasattr(value, "value"):
        return value.value
    return str(value)


def _records(df):
    # NaN -> None so "no data" survives as null
    return df.astype(object).where(df.notna(), None).to_dict(orient="records")


def with_cohort_labels(df):
    """Add a display label next to the 'YYYY-MM' cohort key."""
    if "cohort" not in df.columns or df.empty:
        return df
    out = df.copy()
    out.insert(out.columns.get_loc("cohort") + 1, "cohort_label", out["cohort"].map(fmt_month))
    return out


def export_csv(df, labels=False):
    if labels:
        df = with_cohort_labels(df)
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue().encode("utf-8")


def export_json(df, labels=False):
    if labels:
        df = with_cohort_labels(df)
    return json.dumps(_records(df), indent=2, default=_json_default).encode("utf-8")


def _flatten_cells(df):
    # spreadsheet cells hold scalars only: (channel, n) lists become "web (3), ads (1)"
    out = df.copy()
    for col in out.select_dtypes(include="object").columns:
        if out[col].map(lambda v: isinstance(v, (list, tuple))).any():
            out[col] = out[col].map(
                lambda v: ", ".join(f"{k} ({n})" for k, n in v) if isinstance(v, (list, tuple)) else v
            )
    return out


def export_excel(tables):
    """Write {sheet name: DataFrame} to one workbook; returns the bytes."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        for name, df in tables.items():
            _flatten_cells(df).to_excel(writer, index=False, sheet_name=name[:31])
    return output.getvalue()


def export_result(result):
    """Serialise a whole AnalyticsResult as one JSON document."""
    doc = {name: _records(df) for name, df in result.tables().items()}
    doc["kpis"] = asdict(result.kpis) if is_dataclass(result.kpis) else result.kpis
    doc["skipped"] = result.skipped
    doc["errors"] = [e.to_dict() for e in result.errors]
    doc["metric_errors"] = dict(result.metric_errors)
    doc["config"] = asdict(result.config)
    return json.dumps(doc, indent=2, default=_json_default).encode("utf-8")
