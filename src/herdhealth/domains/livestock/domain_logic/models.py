"""Livestock health record models and domain constants."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Literal


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

ObservationType = Literal["routine", "illness", "treatment", "emergency"]
OBSERVATION_TYPES = ("routine", "illness", "treatment", "emergency")

EyeCondition = Literal["normal", "discharge", "swollen", "cloudy", "injured", "other"]
EYE_CONDITIONS = ("normal", "discharge", "swollen", "cloudy", "injured", "other")

NasalDischarge = Literal["none", "clear", "thick", "bloody", "purulent", "other"]
NASAL_DISCHARGES = ("none", "clear", "thick", "bloody", "purulent", "other")

ManureConsistency = Literal["normal", "soft", "loose", "watery", "hard", "bloody", "other"]
MANURE_CONSISTENCIES = ("normal", "soft", "loose", "watery", "hard", "bloody", "other")

GaitMobility = Literal["normal", "slight_limp", "obvious_limp", "reluctant_to_move", "down", "other"]
GAIT_MOBILITIES = ("normal", "slight_limp", "obvious_limp", "reluctant_to_move", "down", "other")

AppetiteCategory = Literal["normal", "reduced", "absent", "increased", "other"]
APPETITE_CATEGORIES = ("normal", "reduced", "absent", "increased", "other")

UnknownConditionPriority = Literal["monitor", "concern", "urgent", "emergency"]
UNKNOWN_CONDITION_PRIORITIES = ("monitor", "concern", "urgent", "emergency")

TreatmentType = Literal["medication", "vaccination", "procedure", "supportive_care", "other"]
TREATMENT_TYPES = ("medication", "vaccination", "procedure", "supportive_care", "other")

AlertType = Literal[
    "treatment_due",
    "vaccination_due",
    "follow_up_required",
    "health_decline",
    "abnormal_symptoms",
    "emergency",
    "routine_check",
]
ALERT_TYPES = (
    "treatment_due",
    "vaccination_due",
    "follow_up_required",
    "health_decline",
    "abnormal_symptoms",
    "emergency",
    "routine_check",
)

AlertSeverity = Literal["low", "medium", "high", "critical"]
# Total order, lowest first
ALERT_SEVERITIES = ("low", "medium", "high", "critical")
SEVERITY_RANK = {name: rank for rank, name in enumerate(ALERT_SEVERITIES, start=1)}

AlertStatus = Literal["active", "dismissed", "resolved"]
TERMINAL_ALERT_STATUSES = frozenset({"dismissed", "resolved"})

Trend = Literal["improving", "stable", "declining"]


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware datetime; naive values are taken to be UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Health records
# ---------------------------------------------------------------------------

@dataclass
class Observation:
    """One health check for one animal at one point in time.

    Condition scores use the 1-5 scale throughout this package.
    """

    id: str
    animal_id: str
    recorded_by: str
    recorded_at: datetime
    notes: str = ""
    observation_type: ObservationType = "routine"

    # Vital signs
    temperature: float | None = None       # Fahrenheit
    heart_rate: float | None = None        # BPM
    respiratory_rate: float | None = None  # breaths/min

    # Condition scores (1-5)
    body_condition_score: int | None = None
    mobility_score: int | None = None
    appetite_score: int | None = None
    alertness_score: int | None = None

    # Categorical observations
    eye_condition: EyeCondition = "normal"
    nasal_discharge: NasalDischarge = "none"
    manure_consistency: ManureConsistency = "normal"
    gait_mobility: GaitMobility = "normal"
    appetite: AppetiteCategory = "normal"

    symptoms: list[str] = field(default_factory=list)
    custom_symptoms: list[str] = field(default_factory=list)
    severity_level: int | None = None  # 1 (mild) - 5 (severe); 0/None = not rated

    # Unknown condition tracking
    is_unknown_condition: bool = False
    priority: UnknownConditionPriority | None = None
    expert_review_requested: bool = False

    follow_up_required: bool = False
    follow_up_date: date | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    def distinct_symptoms(self) -> set[str]:
        """Standard and custom symptoms, deduplicated case-insensitively."""
        found = {s.strip().lower() for s in self.symptoms if s and s.strip()}
        found.update(s.strip().lower() for s in self.custom_symptoms if s and s.strip())
        return found


@dataclass
class Treatment:
    """An intervention administered in response to an observation."""

    id: str
    health_record_id: str
    animal_id: str
    name: str
    administered_by: str
    administered_date: date
    treatment_type: TreatmentType = "medication"
    description: str = ""
    next_dose_date: date | None = None
    cost: float | None = None
    treatment_complete: bool = False
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Vaccination:
    """A vaccination given to one animal."""

    id: str
    animal_id: str
    vaccine_name: str
    administered_date: date
    administered_by: str = ""
    vaccine_type: str = ""
    next_due_date: date | None = None
    cost: float | None = None
    notes: str = ""
    created_at: datetime | None = None


@dataclass
class Alert:
    """A synthesized notification. Never authored directly by a user."""

    id: str
    animal_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    created_at: datetime
    action_required: str = ""
    due_date: date | None = None
    status: AlertStatus = "active"
    source_record_id: str | None = None
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    dismissed_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def dismissed(self) -> bool:
        return self.status == "dismissed"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ALERT_STATUSES


# ---------------------------------------------------------------------------
# Disease reference catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DiseaseReference:
    """Static catalog entry used for differential-diagnosis lookups."""

    id: str
    name: str
    species: frozenset[str]
    primary_symptoms: frozenset[str]
    secondary_symptoms: frozenset[str] = frozenset()
    common_names: tuple[str, ...] = ()
    category: str = "other"
    severity: int = 1
    contagious: bool = False
    zoonotic: bool = False
    causes: tuple[str, ...] = ()
    risk_factors: tuple[str, ...] = ()
    treatment_options: tuple[str, ...] = ()
    prevention_methods: tuple[str, ...] = ()
    when_to_call_vet: tuple[str, ...] = ()
    seasonal_pattern: str | None = None
    educational_notes: str = ""

    @property
    def all_symptoms(self) -> frozenset[str]:
        return self.primary_symptoms | self.secondary_symptoms


@dataclass(frozen=True)
class SymptomDefinition:
    """Entry of the predefined symptom list."""

    id: str
    name: str
    category: str


@dataclass(frozen=True)
class DiseaseMatch:
    """A disease ranked against a requested symptom set."""

    disease: DiseaseReference
    matched_symptoms: frozenset[str]

    @property
    def match_count(self) -> int:
        return len(self.matched_symptoms)

    @property
    def primary_match_count(self) -> int:
        return len(self.matched_symptoms & self.disease.primary_symptoms)


# ---------------------------------------------------------------------------
# Feed and weight
# ---------------------------------------------------------------------------

@dataclass
class FeedEntry:
    """Feed given to one animal on one day."""

    id: str
    animal_id: str
    entry_date: date
    amount_lbs: float
    cost: float = 0.0
    feed_type: str = ""


@dataclass
class WeightEntry:
    """A weigh-in for one animal."""

    id: str
    animal_id: str
    entry_date: date
    weight_lbs: float


@dataclass(frozen=True)
class FeedTotals:
    total_feed: float
    total_cost: float
    feed_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class WeightTotals:
    total_gain: float
    start_weight: float | None = None
    end_weight: float | None = None


@dataclass(frozen=True)
class FeedEfficiency:
    """Result of the FCR / cost-per-gain calculation.

    ``fcr`` and ``cost_per_lb_gain`` are None when the period shows no gain.
    """

    fcr: float | None
    cost_per_lb_gain: float | None
    efficiency_score: int
    fcr_score: float = 0.0
    cost_score: float = 0.0


@dataclass
class FeedEfficiencyRecord:
    """Per-animal, per-period feed conversion aggregate."""

    animal_id: str
    start_date: date
    end_date: date
    period_days: int
    total_feed: float
    avg_daily_feed: float
    feed_cost: float
    feed_types: list[str]
    start_weight: float | None
    end_weight: float | None
    total_gain: float
    avg_daily_gain: float
    fcr: float | None
    cost_per_lb_gain: float | None
    efficiency_score: int
    id: str = ""
    calculated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

@dataclass
class HealthSummary:
    """Computed per-animal aggregate. Recomputed on every request."""

    animal_id: str
    total_records: int
    last_health_check: datetime | None
    current_health_score: float
    condition_score: float
    health_trend: Trend
    recent_issues: list[str] = field(default_factory=list)
    common_symptoms: list[tuple[str, int]] = field(default_factory=list)
    active_alerts: list[Alert] = field(default_factory=list)
    upcoming_treatments: list[Treatment] = field(default_factory=list)
    upcoming_vaccinations: list[Vaccination] = field(default_factory=list)
    total_health_costs: float = 0.0
    cost_by_category: dict[str, float] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)
