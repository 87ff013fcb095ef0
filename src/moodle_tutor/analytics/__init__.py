"""
Cohort analytics module.

Statistics, distribution-shape detection, skill classification, outlier
detection and teaching-strategy recommendations over student scores.
"""

from .cohort import (
    analyze_cohort_performance,
    count_levels,
    generate_recommendations,
    get_cohort_visualization_data,
    recommend_cohort_strategy,
)
from .models import (
    DEFAULT_THRESHOLDS,
    CohortAssessment,
    CohortStatistics,
    CohortStrategy,
    CohortThresholds,
    DistributionMode,
    DistributionType,
    HistogramBin,
    Outlier,
    OutlierType,
    SkillLevel,
    StrategyType,
    StudentClassification,
    StudentScore,
    SuggestedGroup,
    VisualizationData,
)
from .statistics import (
    InvalidArgumentError,
    calculate_cohort_statistics,
    calculate_mean,
    calculate_median,
    calculate_percentile,
    calculate_std_dev,
    classify_level,
    classify_students_by_score,
    detect_distribution_mode,
    generate_histogram,
    identify_outliers,
)

__all__ = [
    # Statistics
    "calculate_mean",
    "calculate_median",
    "calculate_std_dev",
    "calculate_percentile",
    "calculate_cohort_statistics",
    "detect_distribution_mode",
    "generate_histogram",
    "classify_level",
    "classify_students_by_score",
    "identify_outliers",
    # Cohort decisions
    "analyze_cohort_performance",
    "count_levels",
    "generate_recommendations",
    "get_cohort_visualization_data",
    "recommend_cohort_strategy",
    # Exceptions
    "InvalidArgumentError",
    # Models
    "DEFAULT_THRESHOLDS",
    "CohortAssessment",
    "CohortStatistics",
    "CohortStrategy",
    "CohortThresholds",
    "DistributionMode",
    "DistributionType",
    "HistogramBin",
    "Outlier",
    "OutlierType",
    "SkillLevel",
    "StrategyType",
    "StudentClassification",
    "StudentScore",
    "SuggestedGroup",
    "VisualizationData",
]
