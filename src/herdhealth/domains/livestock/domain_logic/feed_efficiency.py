"""Feed conversion analysis: period aggregates, benchmarks, recommendations.

All functions are pure. Weight and feed samples are fetched by the caller.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from herdhealth.domains.livestock.domain_logic.models import (
    FeedEfficiencyRecord,
    FeedEntry,
    FeedTotals,
    Trend,
    WeightEntry,
    WeightTotals,
)
from herdhealth.domains.livestock.domain_logic.policy import (
    DEFAULT_SCORING_POLICY,
    ScoringPolicy,
)
from herdhealth.domains.livestock.domain_logic.scoring import compute_feed_efficiency
from herdhealth.domains.livestock.domain_logic.trend_analyzer import classify_trend

# Fallbacks when there is no comparable herd data
DEFAULT_INDUSTRY_FCR = 6.5
DEFAULT_TOP_PERFORMER_FCR = 4.5

HIGH_COST_PER_LB_GAIN = 2.0
LOW_EFFICIENCY_SCORE = 50
TARGET_AVG_DAILY_GAIN = 1.5   # lbs/day
TARGET_FCR_IMPROVEMENT = 0.9  # aim for a 10% better FCR
DAYS_TO_TARGET = 60
PERIODS_PER_YEAR = 12


@dataclass(frozen=True)
class FeedBenchmarks:
    industry_average: float = DEFAULT_INDUSTRY_FCR
    species_average: float = DEFAULT_INDUSTRY_FCR
    top_performers: float = DEFAULT_TOP_PERFORMER_FCR


@dataclass
class FeedRecommendations:
    immediate: list[str] = field(default_factory=list)
    short_term: list[str] = field(default_factory=list)
    long_term: list[str] = field(default_factory=list)


@dataclass
class FeedEfficiencyAnalysis:
    current: FeedEfficiencyRecord
    historical: list[FeedEfficiencyRecord]
    benchmarks: FeedBenchmarks
    trends: dict[str, Trend]
    recommendations: FeedRecommendations
    target_fcr: float | None
    projected_savings: float
    days_to_target: int


@dataclass
class FeedOptimizationPlan:
    current: FeedEfficiencyRecord
    target_fcr: float
    target_cost_per_lb_gain: float | None
    expected_savings: float
    feed_changes: list[str]
    schedule_adjustments: list[str]
    monitoring_points: list[str]
    timeline: dict[str, str]


def summarize_feed_period(
    animal_id: str,
    feed_entries: Sequence[FeedEntry],
    weight_entries: Sequence[WeightEntry],
    *,
    period_days: int = 30,
    end_date: date | None = None,
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> FeedEfficiencyRecord:
    """Aggregate one period of feed and weight samples.

    Samples outside ``[end_date - period_days, end_date]`` are ignored. Gain
    is the last weigh-in minus the first; with fewer than two weigh-ins the
    gain is zero and FCR is undefined.
    """
    if period_days <= 0:
        raise ValueError("period_days must be positive")

    end = end_date or date.today()
    start = end - timedelta(days=period_days)

    feed = [e for e in feed_entries if start <= e.entry_date <= end]
    weights = sorted(
        (w for w in weight_entries if start <= w.entry_date <= end),
        key=lambda w: w.entry_date,
    )

    total_feed = sum(e.amount_lbs for e in feed)
    total_cost = sum(e.cost for e in feed)
    feed_types = sorted({e.feed_type for e in feed if e.feed_type})

    start_weight = weights[0].weight_lbs if weights else None
    end_weight = weights[-1].weight_lbs if weights else None
    total_gain = (end_weight - start_weight) if len(weights) >= 2 else 0.0

    result = compute_feed_efficiency(
        FeedTotals(total_feed=total_feed, total_cost=total_cost, feed_types=tuple(feed_types)),
        WeightTotals(total_gain=total_gain, start_weight=start_weight, end_weight=end_weight),
        policy,
    )

    return FeedEfficiencyRecord(
        animal_id=animal_id,
        start_date=start,
        end_date=end,
        period_days=period_days,
        total_feed=total_feed,
        avg_daily_feed=total_feed / period_days,
        feed_cost=total_cost,
        feed_types=feed_types,
        start_weight=start_weight,
        end_weight=end_weight,
        total_gain=total_gain,
        avg_daily_gain=total_gain / period_days,
        fcr=result.fcr,
        cost_per_lb_gain=result.cost_per_lb_gain,
        efficiency_score=result.efficiency_score,
    )


def compute_benchmarks(fcr_values: Sequence[float]) -> FeedBenchmarks:
    """Herd FCR benchmarks: the mean and the 10th-percentile (top performer) FCR."""
    values = sorted(v for v in fcr_values if v is not None and v > 0)
    if not values:
        return FeedBenchmarks()
    average = statistics.mean(values)
    return FeedBenchmarks(
        industry_average=average,
        species_average=average,
        top_performers=values[int(len(values) * 0.1)],
    )


def feed_trends(
    historical: Sequence[FeedEfficiencyRecord],
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> dict[str, Trend]:
    """FCR, cost and efficiency trends; ``historical`` is newest first."""
    def _trend(values: list[float], higher_is_better: bool) -> Trend:
        return classify_trend(
            values, higher_is_better, band=policy.trend_band, window=policy.trend_window
        )

    return {
        "fcr_trend": _trend([r.fcr for r in historical if r.fcr is not None], False),
        "cost_trend": _trend(
            [r.cost_per_lb_gain for r in historical if r.cost_per_lb_gain is not None], False
        ),
        "efficiency_trend": _trend([float(r.efficiency_score) for r in historical], True),
    }


def feed_recommendations(
    current: FeedEfficiencyRecord,
    benchmarks: FeedBenchmarks,
) -> FeedRecommendations:
    recs = FeedRecommendations()

    if current.fcr is not None and current.fcr > benchmarks.industry_average * 1.2:
        recs.immediate.append(
            "Feed conversion ratio is significantly above industry average - review feed quality"
        )
        recs.short_term.append("Consider switching to higher quality feed with better protein content")

    if current.cost_per_lb_gain is not None and current.cost_per_lb_gain > HIGH_COST_PER_LB_GAIN:
        recs.immediate.append("Cost per pound gain is high - evaluate feed pricing and alternatives")
        recs.short_term.append("Research bulk purchasing options or alternative feed suppliers")

    if current.efficiency_score < LOW_EFFICIENCY_SCORE:
        recs.immediate.append("Feed efficiency is below optimal - increase monitoring frequency")
        recs.short_term.append("Implement daily feed intake and waste monitoring")
        recs.long_term.append("Develop comprehensive feed management strategy")

    if current.avg_daily_gain < TARGET_AVG_DAILY_GAIN:
        recs.immediate.append("Daily weight gain is below target - assess animal health and nutrition")
        recs.short_term.append("Consult with nutritionist for feed formulation review")

    return recs


def analyze_feed_efficiency(
    current: FeedEfficiencyRecord,
    historical: Sequence[FeedEfficiencyRecord],
    benchmarks: FeedBenchmarks | None = None,
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> FeedEfficiencyAnalysis:
    """Trends, recommendations and a 10%-improvement projection for one animal."""
    marks = benchmarks or FeedBenchmarks()

    target_fcr = current.fcr * TARGET_FCR_IMPROVEMENT if current.fcr is not None else None
    projected_savings = 0.0
    if current.cost_per_lb_gain is not None:
        projected_savings = (
            current.cost_per_lb_gain * (1 - TARGET_FCR_IMPROVEMENT)
            * current.total_gain * PERIODS_PER_YEAR
        )

    return FeedEfficiencyAnalysis(
        current=current,
        historical=list(historical),
        benchmarks=marks,
        trends=feed_trends(historical, policy),
        recommendations=feed_recommendations(current, marks),
        target_fcr=target_fcr,
        projected_savings=round(projected_savings, 2),
        days_to_target=DAYS_TO_TARGET,
    )


def efficiency_distribution(records: Sequence[FeedEfficiencyRecord], *, top: int = 5) -> dict:
    """Herd-level summary: score buckets, average FCR and the top performers."""
    fcrs = [r.fcr for r in records if r.fcr is not None]
    return {
        "total_animals": len(records),
        "average_fcr": round(statistics.mean(fcrs), 2) if fcrs else None,
        "total_feed_cost": round(sum(r.feed_cost for r in records), 2),
        "total_weight_gain": round(sum(r.total_gain for r in records), 2),
        "distribution": {
            "excellent": sum(1 for r in records if r.efficiency_score >= 90),
            "good": sum(1 for r in records if 70 <= r.efficiency_score < 90),
            "average": sum(1 for r in records if 50 <= r.efficiency_score < 70),
            "poor": sum(1 for r in records if r.efficiency_score < 50),
        },
        "top_performers": [
            {"animal_id": r.animal_id, "fcr": r.fcr, "efficiency_score": r.efficiency_score}
            for r in sorted(records, key=lambda r: (-r.efficiency_score, r.animal_id))[:top]
        ],
    }


def create_optimization_plan(current: FeedEfficiencyRecord, target_fcr: float) -> FeedOptimizationPlan:
    """Action plan for moving an animal from its current FCR to ``target_fcr``."""
    if target_fcr <= 0:
        raise ValueError("target_fcr must be positive")

    target_cost = None
    expected_savings = 0.0
    if current.fcr and current.cost_per_lb_gain is not None:
        target_cost = current.cost_per_lb_gain * (target_fcr / current.fcr)
        expected_savings = round(
            (current.cost_per_lb_gain - target_cost) * current.total_gain * PERIODS_PER_YEAR, 2
        )

    feed_changes: list[str] = []
    schedule = []
    if current.fcr and (current.fcr - target_fcr) / current.fcr > 0.1:
        feed_changes.append("Upgrade to higher protein feed (18-20% protein)")
        feed_changes.append("Add digestibility enhancers to current feed")
        schedule.append("Implement smaller, more frequent feeding schedule")
    schedule.append("Monitor feed intake daily at same time")
    schedule.append("Weigh animals weekly for progress tracking")

    return FeedOptimizationPlan(
        current=current,
        target_fcr=target_fcr,
        target_cost_per_lb_gain=target_cost,
        expected_savings=expected_savings,
        feed_changes=feed_changes,
        schedule_adjustments=schedule,
        monitoring_points=[
            "Daily feed consumption tracking",
            "Weekly weight measurements",
            "Monthly FCR calculations",
            "Feed waste assessment",
        ],
        timeline={
            "phase1": "Week 1-2: Implement new feeding schedule and begin enhanced monitoring",
            "phase2": "Week 3-6: Transition to optimized feed formulation and assess initial results",
            "phase3": "Week 7+: Fine-tune approach based on performance data and maintain improvements",
        },
    )
