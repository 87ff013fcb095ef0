"""Cohort analytics data models."""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any


class SkillLevel(str, Enum):
    """Skill tier assigned from an absolute score."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class DistributionType(str, Enum):
    """Shape of a score distribution."""

    NORMAL = "normal"
    BIMODAL = "bimodal"
    MULTIMODAL = "multimodal"
    UNIFORM = "uniform"


class OutlierType(str, Enum):
    LOW = "low"
    HIGH = "high"


class StrategyType(str, Enum):
    """Teaching strategy for a cohort."""

    SINGLE_TRACK = "single_track"
    SPLIT_TWO_TRACKS = "split_two_tracks"
    SPLIT_MULTIPLE_TRACKS = "split_multiple_tracks"


@dataclass(frozen=True)
class CohortThresholds:
    """Pedagogical policy constants used by the cohort analytics.

    Level bands are inclusive on their upper end: a score equal to
    ``beginner_max`` is still a beginner.
    """

    beginner_max: float = 40.0
    intermediate_max: float = 70.0
    advanced_max: float = 85.0
    bimodal_separation: float = 1.5
    uniform_flatness: float = 0.3
    split_variation: float = 0.4
    bimodal_confidence: float = 0.7
    min_samples: int = 10
    outlier_iqr_factor: float = 1.5
    bin_count: int = 10

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CohortThresholds":
        """Build thresholds from a config mapping, ignoring unknown keys.

        Raises:
            ValueError: If a value is not a number, or a count is not whole
        """
        if not data:
            return cls()
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = float(data[f.name])
            if f.type is int:
                if not value.is_integer():
                    raise ValueError(f"{f.name} must be a whole number, got {data[f.name]!r}")
                value = int(value)
            values[f.name] = value
        return cls(**values)


DEFAULT_THRESHOLDS = CohortThresholds()


@dataclass(frozen=True)
class StudentScore:
    """A single student's result on an assessment."""

    student_id: int
    score: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StudentScore":
        """Accept both ``student_id`` and ``studentId`` keys."""
        student_id = data.get("student_id", data.get("studentId"))
        if student_id is None or "score" not in data:
            raise ValueError(f"Score record needs student_id and score: {data!r}")
        return cls(student_id=int(student_id), score=float(data["score"]))


@dataclass
class CohortStatistics:
    """Descriptive statistics over a score sample."""

    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    q1: float = 0.0
    q2: float = 0.0
    q3: float = 0.0
    count: int = 0

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1

    @property
    def coefficient_of_variation(self) -> float:
        """Standard deviation relative to the mean, 0 when the mean is 0."""
        if self.mean == 0:
            return 0.0
        return self.std_dev / self.mean


@dataclass
class DistributionMode:
    """Detected distribution shape with peak positions and confidence."""

    type: DistributionType
    peaks: list[float]
    confidence: float


@dataclass
class StudentClassification:
    student_id: int
    score: float
    level: SkillLevel
    percentile: int


@dataclass
class Outlier:
    student_id: int
    score: float
    type: OutlierType
    deviation_from_median: float


@dataclass
class SuggestedGroup:
    """A teaching track proposed by the strategy recommender."""

    name: str
    target_levels: list[str]
    student_count: int
    recommended_pace: str


@dataclass
class CohortStrategy:
    type: StrategyType
    reasoning: str
    suggested_groups: list[SuggestedGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _to_jsonable(asdict(self))


@dataclass
class HistogramBin:
    min: float
    max: float
    count: int
    percentage: float


@dataclass
class BoxPlot:
    """Five-number summary plus outlier scores."""

    min: float
    q1: float
    median: float
    q3: float
    max: float
    outliers: list[float] = field(default_factory=list)


@dataclass
class GaussianCurve:
    mean: float
    std_dev: float
    data_points: list[tuple[float, float]] = field(default_factory=list)


@dataclass
class VisualizationData:
    """Chart-ready data derived from a score sample."""

    histogram: list[HistogramBin]
    box_plot: BoxPlot
    gaussian_curve: GaussianCurve

    def to_dict(self) -> dict[str, Any]:
        data = _to_jsonable(asdict(self))
        data["gaussian_curve"]["data_points"] = [
            {"x": x, "y": y} for x, y in self.gaussian_curve.data_points
        ]
        return data


@dataclass
class CohortAssessment:
    """Full cohort analysis: statistics, shape, tier counts and advice."""

    statistics: CohortStatistics
    distribution: DistributionMode
    level_counts: dict[SkillLevel, int]
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _to_jsonable(
            {
                "statistics": asdict(self.statistics),
                "distribution": asdict(self.distribution),
                "level_counts": {level.value: n for level, n in self.level_counts.items()},
                "recommendations": list(self.recommendations),
            }
        )


def _to_jsonable(value: Any) -> Any:
    """Replace enum members with their values, recursively."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_to_jsonable(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value
