"""Tests for the descriptive statistics, shape detection and classification."""

import pytest

from conftest import as_records
from moodle_tutor.analytics import (
    CohortThresholds,
    DistributionType,
    InvalidArgumentError,
    OutlierType,
    SkillLevel,
    StudentScore,
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
from moodle_tutor.analytics.statistics import round_half_up


# -----------------------------------------------------------------------------
# Descriptive statistics
# -----------------------------------------------------------------------------


class TestDescriptive:
    def test_empty_sample_is_zero(self):
        assert calculate_mean([]) == 0
        assert calculate_median([]) == 0
        assert calculate_std_dev([]) == 0

    def test_mean(self):
        assert calculate_mean([1, 2, 3, 4]) == 2.5

    def test_median_odd_and_even(self):
        assert calculate_median([3, 1, 2]) == 2
        assert calculate_median([4, 1, 3, 2]) == 2.5

    def test_median_does_not_mutate_input(self):
        values = [3, 1, 2]
        calculate_median(values)
        assert values == [3, 1, 2]

    def test_population_std_dev(self):
        assert calculate_std_dev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    def test_single_value_has_zero_spread(self):
        assert calculate_std_dev([42]) == 0


class TestPercentile:
    def test_interpolates_between_ranks(self):
        assert calculate_percentile([1, 2, 3, 4], 50) == pytest.approx(2.5)
        assert calculate_percentile([10, 20, 30, 40, 50], 25) == 20

    def test_bounds_are_min_and_max(self):
        values = [7, 3, 9, 1]
        assert calculate_percentile(values, 0) == 1
        assert calculate_percentile(values, 100) == 9

    @pytest.mark.parametrize("percentile", [10, 25, 33.3, 75, 90])
    def test_order_independent(self, bimodal_scores, percentile):
        shuffled = bimodal_scores[1::2] + bimodal_scores[::2][::-1]
        assert calculate_percentile(shuffled, percentile) == calculate_percentile(bimodal_scores, percentile)

    def test_fiftieth_percentile_equals_median(self, bimodal_scores):
        assert calculate_percentile(bimodal_scores, 50) == calculate_median(bimodal_scores)

    def test_empty_sample(self):
        assert calculate_percentile([], 50) == 0

    @pytest.mark.parametrize("percentile", [-1, 100.5, 101])
    def test_out_of_range_raises(self, percentile):
        with pytest.raises(InvalidArgumentError):
            calculate_percentile([1, 2, 3], percentile)

    def test_range_checked_before_empty(self):
        with pytest.raises(InvalidArgumentError):
            calculate_percentile([], 101)

    def test_invalid_argument_is_value_error(self):
        assert issubclass(InvalidArgumentError, ValueError)


class TestCohortStatistics:
    def test_bundle(self):
        stats = calculate_cohort_statistics([10, 20, 30, 40, 50])
        assert stats.mean == 30
        assert stats.median == 30
        assert stats.min == 10
        assert stats.max == 50
        assert stats.q1 == 20
        assert stats.q2 == 30
        assert stats.q3 == 40
        assert stats.count == 5
        assert stats.iqr == 20

    def test_quartiles_are_ordered(self, bimodal_scores):
        stats = calculate_cohort_statistics(bimodal_scores)
        assert stats.min <= stats.q1 <= stats.median <= stats.q3 <= stats.max
        assert stats.q2 == stats.median

    def test_empty_is_all_zero(self):
        stats = calculate_cohort_statistics([])
        assert stats.count == 0
        assert stats.mean == stats.std_dev == stats.max == 0

    def test_coefficient_of_variation(self):
        assert calculate_cohort_statistics([0, 0]).coefficient_of_variation == 0
        stats = calculate_cohort_statistics([40, 60])
        assert stats.coefficient_of_variation == pytest.approx(10 / 50)


# -----------------------------------------------------------------------------
# Distribution shape
# -----------------------------------------------------------------------------


class TestDistributionMode:
    def test_small_sample_falls_back_to_normal(self):
        mode = detect_distribution_mode([10, 90, 20, 80])
        assert mode.type == DistributionType.NORMAL
        assert mode.peaks == [50]
        assert mode.confidence == 0.3

    def test_bimodal(self, bimodal_scores):
        mode = detect_distribution_mode(bimodal_scores)
        assert mode.type == DistributionType.BIMODAL
        assert mode.peaks == [25, 85]
        assert mode.confidence == pytest.approx(0.9)

    def test_close_peaks_are_normal(self, bimodal_scores):
        strict = CohortThresholds(bimodal_separation=3.0)
        mode = detect_distribution_mode(bimodal_scores, thresholds=strict)
        assert mode.type == DistributionType.NORMAL
        assert mode.confidence == 0.6

    def test_multimodal(self, multimodal_scores):
        mode = detect_distribution_mode(multimodal_scores)
        assert mode.type == DistributionType.MULTIMODAL
        assert mode.peaks == [15, 45, 75]
        assert mode.confidence == 0.7

    def test_flat_histogram_is_uniform(self):
        scores = list(range(100))
        mode = detect_distribution_mode(scores)
        assert mode.type == DistributionType.UNIFORM
        assert mode.confidence == 0.8
        assert mode.peaks == [calculate_mean(scores)]

    def test_single_peak_is_normal(self):
        scores = [0, 25, 35, 45] + [52] * 8 + [55, 65, 75, 100]
        mode = detect_distribution_mode(scores)
        assert mode.type == DistributionType.NORMAL
        assert mode.confidence == 0.7

    def test_identical_scores(self):
        mode = detect_distribution_mode([60] * 12)
        assert mode.peaks == [60]
        assert 0 <= mode.confidence <= 1

    def test_confidence_bounded(self, bimodal_scores, multimodal_scores):
        for scores in (bimodal_scores, multimodal_scores, list(range(100))):
            assert 0 <= detect_distribution_mode(scores).confidence <= 1

    def test_invalid_bin_count(self, bimodal_scores):
        with pytest.raises(InvalidArgumentError):
            detect_distribution_mode(bimodal_scores, bin_count=0)


class TestHistogram:
    def test_empty(self):
        assert generate_histogram([]) == []

    def test_counts_cover_every_value(self, bimodal_scores):
        bins = generate_histogram(bimodal_scores, 10)
        assert [b.count for b in bins] == [1, 2, 20, 2, 0, 0, 1, 2, 20, 2]
        assert sum(b.count for b in bins) == len(bimodal_scores)

    def test_identical_scores_land_in_first_bin(self):
        bins = generate_histogram([60] * 12, 10)
        assert bins[0].count == 12
        assert bins[0].percentage == 100.0
        assert sum(b.count for b in bins[1:]) == 0

    def test_last_bin_includes_maximum(self):
        bins = generate_histogram([0, 50, 100], 4)
        assert bins[-1].count == 1
        assert bins[-1].max == 100

    def test_bounds_and_percentages_rounded(self):
        bins = generate_histogram(list(range(100)), 10)
        assert bins[1].min == 9.9
        assert bins[1].max == 19.8
        assert all(b.percentage == 10.0 for b in bins)


# -----------------------------------------------------------------------------
# Classification & outliers
# -----------------------------------------------------------------------------


class TestClassification:
    @pytest.mark.parametrize(
        "score,level",
        [
            (0, SkillLevel.BEGINNER),
            (40, SkillLevel.BEGINNER),
            (40.01, SkillLevel.INTERMEDIATE),
            (70, SkillLevel.INTERMEDIATE),
            (70.5, SkillLevel.ADVANCED),
            (85, SkillLevel.ADVANCED),
            (85.1, SkillLevel.EXPERT),
            (100, SkillLevel.EXPERT),
        ],
    )
    def test_level_boundaries(self, score, level):
        assert classify_level(score) == level

    def test_whole_number_boundaries(self):
        records = [StudentScore(i, s) for i, s in enumerate([40, 41, 70, 71, 85, 86], start=1)]
        levels = [c.level for c in classify_students_by_score(records)]
        assert levels == [
            SkillLevel.BEGINNER,
            SkillLevel.INTERMEDIATE,
            SkillLevel.INTERMEDIATE,
            SkillLevel.ADVANCED,
            SkillLevel.ADVANCED,
            SkillLevel.EXPERT,
        ]

    def test_custom_bands(self):
        thresholds = CohortThresholds(beginner_max=50)
        assert classify_level(45, thresholds) == SkillLevel.BEGINNER

    def test_percentile_rank_and_order(self):
        records = [
            StudentScore(student_id=7, score=100),
            StudentScore(student_id=8, score=50),
            StudentScore(student_id=9, score=50),
        ]
        result = classify_students_by_score(records)
        assert [c.student_id for c in result] == [7, 8, 9]
        assert [c.percentile for c in result] == [100, 67, 67]
        assert result[0].level == SkillLevel.EXPERT
        assert result[1].level == SkillLevel.INTERMEDIATE

    def test_empty(self):
        assert classify_students_by_score([]) == []


class TestOutliers:
    def test_high_outlier(self):
        records = as_records([10, 12, 11, 13, 12, 90])
        outliers = identify_outliers(records)
        assert len(outliers) == 1
        assert outliers[0].student_id == 6
        assert outliers[0].type == OutlierType.HIGH
        assert outliers[0].deviation_from_median == pytest.approx(78)

    def test_low_outlier(self):
        outliers = identify_outliers(as_records([80, 82, 81, 83, 82, 5]))
        assert [o.type for o in outliers] == [OutlierType.LOW]
        assert outliers[0].deviation_from_median == pytest.approx(76.5)

    def test_no_outliers(self, bimodal_scores):
        assert identify_outliers(as_records(bimodal_scores)) == []

    def test_empty(self):
        assert identify_outliers([]) == []

    def test_identical_scores(self):
        assert identify_outliers(as_records([70] * 5)) == []


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(66.666, 1) == 66.7
    assert round_half_up(0.125, 2) == 0.13
