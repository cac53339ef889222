from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

import pandas as pd


# =============================================================================
# Closed value sets
# =============================================================================

class Stage(str, Enum):
    LEAD = "LEAD"
    CONTACTADO = "CONTACTADO"
    VISITA = "VISITA"
    OFERTA = "OFERTA"
    RESERVA = "RESERVA"
    CONTRATO = "CONTRATO"


# Funnel order; summary and funnel tables follow it
STAGE_ORDER = [s.value for s in Stage]


class Channel(str, Enum):
    WEB = "web"
    PORTAL = "portal"
    ADS = "ads"
    WHATSAPP = "whatsapp"
    REFERIDO = "referido"


class Device(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"
    TABLET = "tablet"


class PropertyType(str, Enum):
    PISO = "piso"
    CASA = "casa"
    ATICO = "atico"
    DUPLEX = "duplex"
    CHALET = "chalet"
    LOCAL = "local"


class TransactionType(str, Enum):
    VENTA = "venta"
    ALQUILER = "alquiler"


class Origin(str, Enum):
    LANDING = "landing"
    CHATBOT = "chatbot"
    PORTALES = "portales"


class AttributionModel(str, Enum):
    LAST = "last"
    FIRST = "first"
    LINEAR = "linear"
    USHAPED = "ushaped"


class SignificanceMethod(str, Enum):
    HEURISTIC = "heuristic"   # min(99.9, |z| * 33)
    EXACT = "exact"           # (1 - two-tailed p) * 100


class MatrixMode(str, Enum):
    PER_MONTH = "per_month"
    CUMULATIVE = "cumulative"


# =============================================================================
# Config
# =============================================================================

@dataclass(frozen=True)
class AnalyticsConfig:
    # Cohort window
    window: int = 12                        # relative months 0..window are kept
    target_stage: Stage = Stage.CONTRATO
    as_of: Optional[pd.Timestamp] = None    # observation cut-off; latest event if None

    # Time to event
    percentiles: Tuple[int, ...] = (50, 90)

    # Attribution
    attribution_model: AttributionModel = AttributionModel.LAST
    attribution_dimension: str = "channel"

    # A/B testing
    significance_method: SignificanceMethod = SignificanceMethod.HEURISTIC
    significance_threshold: float = 95.0

    def __post_init__(self):
        # accept plain strings from callers
        object.__setattr__(self, "target_stage", Stage(self.target_stage))
        object.__setattr__(self, "attribution_model", AttributionModel(self.attribution_model))
        object.__setattr__(self, "significance_method", SignificanceMethod(self.significance_method))
        if self.as_of is not None:
            object.__setattr__(self, "as_of", pd.Timestamp(self.as_of))
        if int(self.window) < 0:
            raise ValueError("window must be >= 0")

    @classmethod
    def from_filters(cls, filters, **overrides) -> "AnalyticsConfig":
        """Build a config from validated ``CohortFilters``; keyword overrides win."""
        base = cls()
        values = {}
        if filters is not None:
            if filters.window is not None:
                values["window"] = int(filters.window)
            if filters.target_stage is not None:
                values["target_stage"] = filters.target_stage
        values.update(overrides)
        return replace(base, **values)
