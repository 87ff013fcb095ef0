"""
Cohort assessment.

Combines the statistics, distribution, classification and outlier results
into teaching decisions: a track strategy, a list of recommendations and
chart-ready visualization data.
"""

import math
from collections.abc import Iterable, Sequence

from .models import (
    DEFAULT_THRESHOLDS,
    BoxPlot,
    CohortAssessment,
    CohortStatistics,
    CohortStrategy,
    CohortThresholds,
    DistributionMode,
    DistributionType,
    GaussianCurve,
    SkillLevel,
    StrategyType,
    StudentClassification,
    StudentScore,
    SuggestedGroup,
    VisualizationData,
)
from .statistics import (
    calculate_cohort_statistics,
    classify_students_by_score,
    detect_distribution_mode,
    generate_histogram,
    identify_outliers,
    round_half_up,
)

GAUSSIAN_STEPS = 50


def count_levels(classifications: Iterable[StudentClassification]) -> dict[SkillLevel, int]:
    """Number of students per skill tier, every tier present."""
    counts = {level: 0 for level in SkillLevel}
    for classification in classifications:
        counts[classification.level] += 1
    return counts


def _is_clear_bimodal(distribution: DistributionMode, thresholds: CohortThresholds) -> bool:
    return (
        distribution.type == DistributionType.BIMODAL
        and distribution.confidence > thresholds.bimodal_confidence
    )


def recommend_cohort_strategy(
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> CohortStrategy:
    """
    Decide whether to teach the cohort as one track, two tracks or three.

    Rules, first match wins:
        1. Clear bimodal distribution: split at the median into a foundation
           track (below the median) and an advanced track (at or above it).
        2. High relative spread with a multimodal shape: three tracks sized
           from the skill tiers, advanced and expert combined.
        3. Otherwise a single unified track.

    Args:
        records: Student scores for one assessment
        thresholds: Policy constants

    Returns:
        CohortStrategy with reasoning and suggested groups
    """
    scores = [r.score for r in records]
    stats = calculate_cohort_statistics(scores)
    distribution = detect_distribution_mode(scores, thresholds=thresholds)
    classifications = classify_students_by_score(records, thresholds)
    level_counts = count_levels(classifications)

    if _is_clear_bimodal(distribution, thresholds):
        low_group = [c for c in classifications if c.score < stats.median]
        high_group = [c for c in classifications if c.score >= stats.median]

        return CohortStrategy(
            type=StrategyType.SPLIT_TWO_TRACKS,
            reasoning=(
                f"Cohort shows clear bimodal distribution "
                f"(confidence: {distribution.confidence * 100:.0f}%) with two distinct groups. "
                "Splitting will allow better pacing for each group."
            ),
            suggested_groups=[
                SuggestedGroup(
                    name="Track A - Foundation",
                    target_levels=["beginner", "intermediate-low"],
                    student_count=len(low_group),
                    recommended_pace="slower with more examples and support",
                ),
                SuggestedGroup(
                    name="Track B - Advanced",
                    target_levels=["intermediate-high", "advanced", "expert"],
                    student_count=len(high_group),
                    recommended_pace="faster with challenging materials",
                ),
            ],
        )

    if (
        stats.coefficient_of_variation > thresholds.split_variation
        and distribution.type == DistributionType.MULTIMODAL
    ):
        return CohortStrategy(
            type=StrategyType.SPLIT_MULTIPLE_TRACKS,
            reasoning=(
                f"High variance (std dev: {stats.std_dev:.1f}) and multiple skill clusters "
                "detected. Consider 3 tracks for optimal learning."
            ),
            suggested_groups=[
                SuggestedGroup(
                    name="Beginner Track",
                    target_levels=["beginner"],
                    student_count=level_counts[SkillLevel.BEGINNER],
                    recommended_pace="foundational with extensive support",
                ),
                SuggestedGroup(
                    name="Intermediate Track",
                    target_levels=["intermediate"],
                    student_count=level_counts[SkillLevel.INTERMEDIATE],
                    recommended_pace="standard curriculum",
                ),
                SuggestedGroup(
                    name="Advanced Track",
                    target_levels=["advanced", "expert"],
                    student_count=level_counts[SkillLevel.ADVANCED] + level_counts[SkillLevel.EXPERT],
                    recommended_pace="accelerated with enrichment",
                ),
            ],
        )

    return CohortStrategy(
        type=StrategyType.SINGLE_TRACK,
        reasoning=(
            f"Cohort is relatively homogeneous (std dev: {stats.std_dev:.1f}, "
            f"mean: {stats.mean:.1f}). Single track appropriate with differentiated "
            "support for outliers."
        ),
        suggested_groups=[
            SuggestedGroup(
                name="Unified Cohort",
                target_levels=["all levels"],
                student_count=len(records),
                recommended_pace="standard with individual adaptations",
            )
        ],
    )


def generate_recommendations(
    statistics: CohortStatistics,
    distribution: DistributionMode,
    level_counts: dict[SkillLevel, int],
    total_students: int,
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> list[str]:
    """Plain-language teaching advice derived from the cohort signals."""
    recommendations = []

    if _is_clear_bimodal(distribution, thresholds):
        recommendations.append(
            "BIMODAL DISTRIBUTION DETECTED: Consider splitting cohort into two tracks "
            "for optimal learning outcomes."
        )

    if statistics.mean < 50:
        recommendations.append(
            "LOW AVERAGE SCORE: Majority of cohort struggling. Consider reviewing "
            "prerequisites and adding foundational materials."
        )
    elif statistics.mean > 80:
        recommendations.append(
            "HIGH AVERAGE SCORE: Cohort performing well. Consider adding enrichment "
            "and advanced challenges."
        )

    if statistics.std_dev > 20:
        recommendations.append(
            "HIGH VARIANCE: Large skill gaps in cohort. Personalized support and "
            "differentiated instruction recommended."
        )

    if total_students > 0:
        beginner_pct = level_counts.get(SkillLevel.BEGINNER, 0) / total_students * 100
        if beginner_pct > 40:
            recommendations.append(
                f"{beginner_pct:.0f}% are beginners: Adjust pace and add more scaffolding "
                "to curriculum."
            )

        expert_pct = level_counts.get(SkillLevel.EXPERT, 0) / total_students * 100
        if expert_pct > 20:
            recommendations.append(
                f"{expert_pct:.0f}% are experts: Provide peer mentoring opportunities and "
                "advanced projects."
            )

    if statistics.min < statistics.q1 - thresholds.outlier_iqr_factor * statistics.iqr:
        recommendations.append(
            "LOW OUTLIERS DETECTED: Some students significantly below cohort average. "
            "Immediate intervention needed."
        )

    return recommendations


def analyze_cohort_performance(
    records: Sequence[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> CohortAssessment:
    """Run statistics, shape detection and classification over one assessment."""
    scores = [r.score for r in records]
    statistics = calculate_cohort_statistics(scores)
    distribution = detect_distribution_mode(scores, thresholds=thresholds)
    level_counts = count_levels(classify_students_by_score(records, thresholds))

    return CohortAssessment(
        statistics=statistics,
        distribution=distribution,
        level_counts=level_counts,
        recommendations=generate_recommendations(
            statistics, distribution, level_counts, len(records), thresholds
        ),
    )


def gaussian_curve(stats: CohortStatistics, steps: int = GAUSSIAN_STEPS) -> GaussianCurve:
    """
    Sample the normal PDF with the cohort's mean and std dev across [min, max].

    Returns ``steps + 1`` points, both ends included; x is rounded to 1
    decimal and y to 3. A zero std dev or zero range yields no points.
    """
    curve = GaussianCurve(mean=stats.mean, std_dev=stats.std_dev)
    if stats.std_dev == 0 or stats.max == stats.min:
        return curve

    step = (stats.max - stats.min) / steps
    norm = 1 / (stats.std_dev * math.sqrt(2 * math.pi))

    for k in range(steps + 1):
        x = stats.min + k * step
        y = norm * math.exp(-((x - stats.mean) ** 2) / (2 * stats.std_dev**2))
        curve.data_points.append((round_half_up(x, 1), round_half_up(y, 3)))

    return curve


def get_cohort_visualization_data(
    scores: Sequence[float],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> VisualizationData:
    """Histogram, box plot and Gaussian curve for one score sample."""
    stats = calculate_cohort_statistics(scores)
    outliers = identify_outliers(
        [StudentScore(student_id=i, score=s) for i, s in enumerate(scores)], thresholds
    )

    return VisualizationData(
        histogram=generate_histogram(scores, thresholds.bin_count),
        box_plot=BoxPlot(
            min=stats.min,
            q1=stats.q1,
            median=stats.median,
            q3=stats.q3,
            max=stats.max,
            outliers=[o.score for o in outliers],
        ),
        gaussian_curve=gaussian_curve(stats),
    )
