"""
Shared fixtures: a small two-cohort lead book.

2024-01 (4 leads)
  L1 web     VISITA 01-20 (m0), OFERTA 02-05 (m1), CONTRATO 02-20 (m1, 46 days)
  L2 portal  VISITA 02-01 (m1), CONTRATO 03-10 (m2, 60 days)
  L3 web     VISITA 01-25 (m0)
  L4 ads     -
2024-02 (2 leads)
  L5 portal  CONTRATO 02-28 (m0, 25 days)
  L6 portal  VISITA 03-01 (m1)
2024-03
  L7 web     VISITA 2024-02-01, before its acquisition -> skipped
"""
import pandas as pd
import pytest

from cohort_analytics.cohorts import assign_cohorts
from cohort_analytics.normalization import normalize_events, normalize_leads


@pytest.fixture
def raw_leads():
    return pd.DataFrame([
        {"lead_id": "L1", "acquired_at": "2024-01-05", "channel": "web", "zone": "Centro", "price": 285000},
        {"lead_id": "L2", "acquired_at": "2024-01-10", "channel": "portal", "zone": "Norte", "price": 320000},
        {"lead_id": "L3", "acquired_at": "2024-01-15", "channel": "web", "zone": "Centro", "price": 150000},
        {"lead_id": "L4", "acquired_at": "2024-01-20", "channel": "ads", "zone": "Sur", "price": 410000},
        {"lead_id": "L5", "acquired_at": "2024-02-03", "channel": "portal", "zone": "Norte", "price": 250000},
        {"lead_id": "L6", "acquired_at": "2024-02-14", "channel": "portal", "zone": "Centro", "price": 199000},
        {"lead_id": "L7", "acquired_at": "2024-03-10", "channel": "web", "zone": "Sur", "price": 300000},
    ])


@pytest.fixture
def raw_events():
    return pd.DataFrame([
        {"lead_id": "L1", "stage": "VISITA", "timestamp": "2024-01-20"},
        {"lead_id": "L1", "stage": "OFERTA", "timestamp": "2024-02-05"},
        {"lead_id": "L1", "stage": "CONTRATO", "timestamp": "2024-02-20"},
        {"lead_id": "L2", "stage": "VISITA", "timestamp": "2024-02-01"},
        {"lead_id": "L2", "stage": "CONTRATO", "timestamp": "2024-03-10"},
        {"lead_id": "L3", "stage": "VISITA", "timestamp": "2024-01-25"},
        {"lead_id": "L5", "stage": "CONTRATO", "timestamp": "2024-02-28"},
        {"lead_id": "L6", "stage": "VISITA", "timestamp": "2024-03-01"},
        {"lead_id": "L7", "stage": "VISITA", "timestamp": "2024-02-01"},
    ])


@pytest.fixture
def leads(raw_leads):
    return normalize_leads(raw_leads)


@pytest.fixture
def events(raw_events):
    return normalize_events(raw_events)


@pytest.fixture
def assignment(leads, events):
    return assign_cohorts(leads, events)


@pytest.fixture
def raw_touches():
    return pd.DataFrame([
        {"lead_id": "L1", "channel": "web", "timestamp": "2024-01-05", "converted": False, "campaign": "spring"},
        {"lead_id": "L1", "channel": "portal", "timestamp": "2024-01-08", "converted": False, "campaign": "spring"},
        {"lead_id": "L1", "channel": "ads", "timestamp": "2024-01-12", "converted": False, "campaign": "retarget"},
        {"lead_id": "L1", "channel": "referido", "timestamp": "2024-02-20", "converted": True, "campaign": "retarget"},
        {"lead_id": "L2", "channel": "portal", "timestamp": "2024-01-10", "converted": True, "campaign": "spring"},
        {"lead_id": "L3", "channel": "web", "timestamp": "2024-01-15", "converted": False, "campaign": "spring"},
        {"lead_id": "L3", "channel": "ads", "timestamp": "2024-01-18", "converted": False, "campaign": "retarget"},
    ])
