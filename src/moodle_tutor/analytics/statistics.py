"""
Statistical utilities for cohort analysis.

Pure functions over in-memory score samples: descriptive statistics,
distribution shape detection, skill-tier classification, IQR outliers and
histogram bins. Inputs are never mutated; sorting works on copies.

Degenerate samples (empty or a single score) are not errors: every function
returns a zeroed or fallback value for them. The only error raised is
InvalidArgumentError for an out-of-range percentile or bin count.
"""

import math
from collections.abc import Iterable, Sequence

from .models import (
    DEFAULT_THRESHOLDS,
    CohortStatistics,
    CohortThresholds,
    DistributionMode,
    DistributionType,
    HistogramBin,
    Outlier,
    OutlierType,
    SkillLevel,
    StudentClassification,
    StudentScore,
)


# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class InvalidArgumentError(ValueError):
    """An argument lies outside its valid domain."""

    pass


# -----------------------------------------------------------------------------
# Descriptive Statistics
# -----------------------------------------------------------------------------


def calculate_mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sample."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def calculate_median(values: Sequence[float]) -> float:
    """Middle value of the sorted sample, 0 for an empty sample."""
    if not values:
        return 0.0

    ordered = sorted(values)
    mid = len(ordered) // 2

    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def calculate_std_dev(values: Sequence[float]) -> float:
    """Population standard deviation (divisor N)."""
    if not values:
        return 0.0

    mean = calculate_mean(values)
    return math.sqrt(calculate_mean([(v - mean) ** 2 for v in values]))


def calculate_percentile(values: Sequence[float], percentile: float) -> float:
    """
    Percentile by linear interpolation between closest ranks.

    The fractional index ``(p / 100) * (n - 1)`` selects an element of the
    sorted sample, interpolating between its floor and ceil neighbours.

    Args:
        values: Score sample
        percentile: Requested percentile in [0, 100]

    Returns:
        The interpolated value, 0 for an empty sample

    Raises:
        InvalidArgumentError: If percentile is outside [0, 100]
    """
    if percentile < 0 or percentile > 100:
        raise InvalidArgumentError(
            f"Percentile must be between 0 and 100, got {percentile}"
        )
    if not values:
        return 0.0

    ordered = sorted(values)
    index = (percentile / 100) * (len(ordered) - 1)

    if float(index).is_integer():
        return ordered[int(index)]

    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower

    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def calculate_cohort_statistics(values: Sequence[float]) -> CohortStatistics:
    """Bundle mean, median, std dev, min/max, quartiles and count."""
    if not values:
        return CohortStatistics()

    ordered = sorted(values)

    return CohortStatistics(
        mean=calculate_mean(values),
        median=calculate_median(values),
        std_dev=calculate_std_dev(values),
        min=ordered[0],
        max=ordered[-1],
        q1=calculate_percentile(values, 25),
        q2=calculate_percentile(values, 50),
        q3=calculate_percentile(values, 75),
        count=len(values),
    )


# -----------------------------------------------------------------------------
# Distribution Shape
# -----------------------------------------------------------------------------


def _validate_bin_count(bin_count: int) -> None:
    if bin_count < 1:
        raise InvalidArgumentError(f"Bin count must be at least 1, got {bin_count}")


def _histogram_counts(
    values: Sequence[float], low: float, bin_size: float, bin_count: int
) -> list[int]:
    """Count values per equal-width bin; the maximum lands in the last bin."""
    counts = [0] * bin_count
    for value in values:
        if bin_size > 0:
            index = min(math.floor((value - low) / bin_size), bin_count - 1)
        else:
            index = 0
        counts[index] += 1
    return counts


def detect_distribution_mode(
    values: Sequence[float],
    bin_count: int | None = None,
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> DistributionMode:
    """
    Detect whether a score distribution is normal, bimodal, multimodal or uniform.

    Builds a fixed-bin histogram over ``[min, max]`` and scans interior bins
    for local maxima. Two peaks further apart than ``bimodal_separation``
    standard deviations make a bimodal cohort. A nearly flat histogram
    overrides any peak-based verdict with ``uniform``.

    Args:
        values: Score sample
        bin_count: Number of histogram bins (defaults to thresholds.bin_count)
        thresholds: Policy constants

    Returns:
        DistributionMode; ``peaks`` falls back to ``[mean]`` when none are found
    """
    if bin_count is None:
        bin_count = thresholds.bin_count
    _validate_bin_count(bin_count)

    if len(values) < thresholds.min_samples:
        return DistributionMode(
            type=DistributionType.NORMAL,
            peaks=[calculate_mean(values)],
            confidence=0.3,
        )

    stats = calculate_cohort_statistics(values)
    bin_size = (stats.max - stats.min) / bin_count
    histogram = _histogram_counts(values, stats.min, bin_size, bin_count)

    peaks = [
        stats.min + (i + 0.5) * bin_size
        for i in range(1, bin_count - 1)
        if histogram[i] > histogram[i - 1] and histogram[i] > histogram[i + 1]
    ]

    if len(peaks) <= 1:
        dist_type, confidence = DistributionType.NORMAL, 0.7
    elif len(peaks) == 2:
        separation = abs(peaks[1] - peaks[0]) / stats.std_dev
        if separation > thresholds.bimodal_separation:
            dist_type = DistributionType.BIMODAL
            confidence = min(0.9, 0.5 + separation / 4)
        else:
            dist_type, confidence = DistributionType.NORMAL, 0.6
    else:
        dist_type, confidence = DistributionType.MULTIMODAL, 0.7

    # Applied after the peak verdict, so a flat histogram wins even over bimodal
    histogram_mean = calculate_mean(histogram)
    if histogram_mean > 0:
        flatness = calculate_std_dev(histogram) / histogram_mean
        if flatness < thresholds.uniform_flatness:
            dist_type, confidence = DistributionType.UNIFORM, 0.8

    return DistributionMode(
        type=dist_type,
        peaks=peaks or [stats.mean],
        confidence=confidence,
    )


def generate_histogram(values: Sequence[float], bin_count: int = 10) -> list[HistogramBin]:
    """
    Histogram bins for charting.

    Bin ``i`` covers ``[min + i*w, min + (i+1)*w)``; the last bin is closed so
    the maximum is counted. Values are binned exactly as in
    ``detect_distribution_mode``, so a zero-width range puts everything in
    bin 0. Bounds and percentages are rounded to 1 decimal.
    """
    _validate_bin_count(bin_count)
    if not values:
        return []

    low, high = min(values), max(values)
    bin_size = (high - low) / bin_count
    counts = _histogram_counts(values, low, bin_size, bin_count)
    bins = []

    for i, count in enumerate(counts):
        bin_min = low + i * bin_size
        bin_max = bin_min + bin_size
        bins.append(
            HistogramBin(
                min=round_half_up(bin_min, 1),
                max=round_half_up(bin_max, 1),
                count=count,
                percentage=round_half_up(count / len(values) * 100, 1),
            )
        )

    return bins


# -----------------------------------------------------------------------------
# Classification & Outliers
# -----------------------------------------------------------------------------


def classify_level(score: float, thresholds: CohortThresholds = DEFAULT_THRESHOLDS) -> SkillLevel:
    """Map an absolute score onto a skill tier."""
    if score <= thresholds.beginner_max:
        return SkillLevel.BEGINNER
    if score <= thresholds.intermediate_max:
        return SkillLevel.INTERMEDIATE
    if score <= thresholds.advanced_max:
        return SkillLevel.ADVANCED
    return SkillLevel.EXPERT


def classify_students_by_score(
    records: Iterable[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> list[StudentClassification]:
    """
    Classify each student into a skill tier with a cohort percentile rank.

    The rank is the share of scores less than or equal to the student's own,
    so tied students share a rank. Output order follows input order.
    """
    records = list(records)
    scores = [r.score for r in records]
    total = len(scores)

    return [
        StudentClassification(
            student_id=r.student_id,
            score=r.score,
            level=classify_level(r.score, thresholds),
            percentile=int(round_half_up(sum(1 for s in scores if s <= r.score) / total * 100)),
        )
        for r in records
    ]


def identify_outliers(
    records: Iterable[StudentScore],
    thresholds: CohortThresholds = DEFAULT_THRESHOLDS,
) -> list[Outlier]:
    """Flag scores outside the IQR fences ``q1 - k*IQR`` and ``q3 + k*IQR``."""
    records = list(records)
    stats = calculate_cohort_statistics([r.score for r in records])

    lower_bound = stats.q1 - thresholds.outlier_iqr_factor * stats.iqr
    upper_bound = stats.q3 + thresholds.outlier_iqr_factor * stats.iqr

    outliers = []
    for record in records:
        if record.score < lower_bound:
            outliers.append(
                Outlier(
                    student_id=record.student_id,
                    score=record.score,
                    type=OutlierType.LOW,
                    deviation_from_median=stats.median - record.score,
                )
            )
        elif record.score > upper_bound:
            outliers.append(
                Outlier(
                    student_id=record.student_id,
                    score=record.score,
                    type=OutlierType.HIGH,
                    deviation_from_median=record.score - stats.median,
                )
            )

    return outliers


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with halves going up, as chart and rank displays expect."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor
