"""
A/B test evaluation for two variants of a lead-capture asset.

Conversion is contracts over leads; significance comes from a pooled
two-proportion z-test. Two readings of |z| are available:

- heuristic: min(99.9, |z| * 33), the figure the CRM dashboards have
  always shown
- exact: (1 - two-tailed p-value) * 100 from the standard normal
"""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from typing import Optional, Tuple

from scipy import stats
from statsmodels.stats.proportion import proportion_confint

from .config import SignificanceMethod
from .errors import ValidationError
from .utils import safe_divide

SIGNIFICANCE_CAP = 99.9
HEURISTIC_FACTOR = 33.0


@dataclass(frozen=True)
class ABTestVariant:
    name: str
    impressions: int
    clicks: int
    leads: int
    contracts: int

    def __post_init__(self):
        errors = []
        if not self.name or not isinstance(self.name, str):
            errors.append(("name", "variant name is required"))
        for key in ("impressions", "clicks", "leads", "contracts"):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
                errors.append((key, "must be an integer >= 0"))
        if isinstance(self.impressions, numbers.Integral) and self.impressions == 0:
            errors.append(("impressions", "must be > 0"))
        if errors:
            raise ValidationError(f"Invalid A/B variant {self.name!r}", errors)

    @property
    def conversion_rate(self) -> float:
        return conversion_rate(self)

    @property
    def ctr(self) -> float:
        return safe_divide(self.clicks, self.impressions)

    @property
    def lead_rate(self) -> float:
        return safe_divide(self.leads, self.clicks)


@dataclass(frozen=True)
class ABTestResult:
    variant_a: ABTestVariant
    variant_b: ABTestVariant
    conv_a: float               # fractions, 0..1
    conv_b: float
    uplift: float               # relative, % of conv_a
    diff_pp: float              # absolute, percentage points
    z_score: float
    p_value: float
    significance: float         # 0..99.9
    method: SignificanceMethod
    winner: Optional[str] = None
    ci_a: Tuple[float, float] = field(default=(0.0, 0.0))
    ci_b: Tuple[float, float] = field(default=(0.0, 0.0))

    @property
    def concluded(self) -> bool:
        return self.winner is not None

    def to_dict(self) -> dict:
        return {
            "variants": [
                {
                    "name": v.name,
                    "impressions": v.impressions,
                    "clicks": v.clicks,
                    "leads": v.leads,
                    "contracts": v.contracts,
                    "ctr": v.ctr * 100,
                    "lead_rate": v.lead_rate * 100,
                    "conversion_rate": v.conversion_rate * 100,
                }
                for v in (self.variant_a, self.variant_b)
            ],
            "uplift": self.uplift,
            "diff_pp": self.diff_pp,
            "z_score": self.z_score,
            "p_value": self.p_value,
            "significance": self.significance,
            "method": self.method.value,
            "winner": self.winner,
            "ci_a": list(self.ci_a),
            "ci_b": list(self.ci_b),
        }


def conversion_rate(variant: ABTestVariant) -> float:
    """contracts / leads, 0 when there are no leads."""
    return safe_divide(variant.contracts, variant.leads)


def rate_ci(successes: int, n: int, alpha: float = 0.05, method: str = "wilson") -> Tuple[float, float]:
    """Confidence interval for a proportion; (0, 0) when n is 0."""
    if n <= 0:
        return 0.0, 0.0
    low, high = proportion_confint(successes, n, alpha=alpha, method=method)
    return float(low), float(high)


def z_test(variant_a: ABTestVariant, variant_b: ABTestVariant) -> float:
    """Pooled two-proportion z statistic of B against A; 0 when se is 0."""
    n_a, n_b = variant_a.leads, variant_b.leads
    if n_a == 0 or n_b == 0:
        return 0.0
    pooled = (variant_a.contracts + variant_b.contracts) / (n_a + n_b)
    se = math.sqrt(pooled * (1 - pooled) * (1 / n_a + 1 / n_b))
    if se == 0:
        return 0.0
    return (conversion_rate(variant_b) - conversion_rate(variant_a)) / se


def significance_from_z(z: float, method: str = "heuristic") -> Tuple[float, float]:
    """
    Map a z statistic to (significance, two-tailed p-value).

    The p-value is always the exact normal one; only the significance
    figure depends on the method.
    """
    method = SignificanceMethod(method)
    p_value = float(2 * stats.norm.sf(abs(z)))
    if method is SignificanceMethod.HEURISTIC:
        sig = abs(z) * HEURISTIC_FACTOR
    else:
        sig = (1 - p_value) * 100
    return min(SIGNIFICANCE_CAP, sig), p_value


def evaluate_ab_test(
    variant_a: ABTestVariant,
    variant_b: ABTestVariant,
    method: str = "heuristic",
    threshold: float = 95.0,
) -> ABTestResult:
    """
    Compare two variants.

    winner is the higher-converting variant once significance reaches
    ``threshold``; otherwise None (not concluded).
    """
    conv_a = conversion_rate(variant_a)
    conv_b = conversion_rate(variant_b)
    uplift = safe_divide(conv_b - conv_a, conv_a) * 100 if conv_a > 0 else 0.0

    z = z_test(variant_a, variant_b)
    significance, p_value = significance_from_z(z, method)

    winner = None
    if significance >= threshold and conv_a != conv_b:
        winner = variant_b.name if conv_b > conv_a else variant_a.name

    return ABTestResult(
        variant_a=variant_a,
        variant_b=variant_b,
        conv_a=conv_a,
        conv_b=conv_b,
        uplift=uplift,
        diff_pp=(conv_b - conv_a) * 100,
        z_score=z,
        p_value=p_value,
        significance=significance,
        method=SignificanceMethod(method),
        winner=winner,
        ci_a=rate_ci(variant_a.contracts, variant_a.leads),
        ci_b=rate_ci(variant_b.contracts, variant_b.leads),
    )
