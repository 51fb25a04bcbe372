"""Trend classification for health and feed-performance metrics.

Compares the mean of a recent window against the mean of an older window and
labels the direction. A relative noise band keeps single-point fluctuations
from flipping the label.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from herdhealth.domains.livestock.domain_logic.models import Trend
from herdhealth.domains.livestock.domain_logic.policy import (
    DEFAULT_SCORING_POLICY,
    ScoringPolicy,
)
from herdhealth.domains.livestock.domain_logic.scoring import compute_observation_score

if TYPE_CHECKING:
    from herdhealth.core.storage.repository import HerdRepository

logger = logging.getLogger(__name__)


def classify_trend(
    history: Sequence[float],
    higher_is_better: bool,
    *,
    band: float = DEFAULT_SCORING_POLICY.trend_band,
    window: int = DEFAULT_SCORING_POLICY.trend_window,
) -> Trend:
    """Classify a metric history as improving, stable or declining.

    Args:
        history: Metric values ordered newest first.
        higher_is_better: True for scores, False for FCR and cost per gain.
        band: Relative change required before a direction is reported.
        window: Size of the recent and older windows. The windows overlap
            when the history holds fewer than ``2 * window`` points.
    """
    if len(history) < 2:
        return "stable"

    recent_mean = statistics.mean(history[:window])
    older_mean = statistics.mean(history[-window:])

    upper = older_mean * (1 + band)
    lower = older_mean * (1 - band)

    if higher_is_better:
        if recent_mean > upper:
            return "improving"
        if recent_mean < lower:
            return "declining"
        return "stable"

    if recent_mean < lower:
        return "improving"
    if recent_mean > upper:
        return "declining"
    return "stable"


class TrendAnalyzer:
    """Computes trends from the stored history of one animal.

    Usage::

        analyzer = TrendAnalyzer(repository)
        trend = analyzer.compute_health_trend("calf-17")
        feed = analyzer.compute_feed_trends("calf-17")
    """

    def __init__(
        self,
        repository: HerdRepository,
        policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
    ) -> None:
        self._repo = repository
        self._policy = policy

    def classify(self, history: Sequence[float], higher_is_better: bool) -> Trend:
        return classify_trend(
            history,
            higher_is_better,
            band=self._policy.trend_band,
            window=self._policy.trend_window,
        )

    def compute_health_trend(self, animal_id: str, *, limit: int = 30) -> dict[str, Any]:
        """Trend statistics for the per-observation health score.

        Returns:
            Dict with: direction, current, mean, median, min, max, std_dev,
            volatility, data_points. With no history only ``direction``,
            ``data_points`` and ``status`` are present.
        """
        observations = self._repo.list_observations(animal_id, limit=limit)
        if not observations:
            return {
                "animal_id": animal_id,
                "direction": "stable",
                "data_points": 0,
                "status": "no_data",
            }

        values = [compute_observation_score(obs, self._policy) for obs in observations]
        mean_val = statistics.mean(values)
        std_val = statistics.stdev(values) if len(values) > 1 else 0.0
        volatility = std_val / mean_val if mean_val > 0 else 0.0

        return {
            "animal_id": animal_id,
            "direction": self.classify(values, higher_is_better=True),
            "current": values[0],
            "mean": round(mean_val, 2),
            "median": round(statistics.median(values), 2),
            "min": min(values),
            "max": max(values),
            "std_dev": round(std_val, 2),
            "volatility": round(volatility, 4),
            "data_points": len(values),
        }

    def compute_feed_trends(self, animal_id: str, *, limit: int = 12) -> dict[str, Trend]:
        """FCR, cost and efficiency trends from stored feed-efficiency history.

        Periods with no weight gain carry no FCR and are skipped for the FCR
        and cost series.
        """
        records = self._repo.list_feed_efficiency_records(animal_id, limit=limit)
        fcr_values = [r.fcr for r in records if r.fcr is not None]
        cost_values = [r.cost_per_lb_gain for r in records if r.cost_per_lb_gain is not None]
        efficiency_values = [float(r.efficiency_score) for r in records]

        trends: dict[str, Trend] = {
            "fcr_trend": self.classify(fcr_values, higher_is_better=False),
            "cost_trend": self.classify(cost_values, higher_is_better=False),
            "efficiency_trend": self.classify(efficiency_values, higher_is_better=True),
        }
        logger.debug("Feed trends for %s over %d periods: %s", animal_id, len(records), trends)
        return trends
