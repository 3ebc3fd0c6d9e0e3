########################################################################################
##
##                                  TESTS FOR
##                               'opt/statistics.py'
##
##                              Kevin McBride 2026
##
########################################################################################

# IMPORTS ==============================================================================

"""
Tests for bootfit.opt.statistics

Covers:
- mean / standard_deviation edge cases
- confidence_interval coverage, in-place sorting, clamping
- aic_corrected, bic, reduced_statistic
"""

import math

import numpy as np
import pytest

from bootfit.opt.statistics import (
    CONFIDENCE_MASS,
    mean,
    standard_deviation,
    confidence_interval,
    aic_corrected,
    bic,
    reduced_statistic,
)


# ═══════════════════════════════════════════════════════════════════════════
# Sample statistics
# ═══════════════════════════════════════════════════════════════════════════

class TestMeanAndStd:

    @pytest.mark.parametrize("value, n", [(4.2, 10), (0.1, 3), (1.0 / 3.0, 11), (-7.5, 200)])
    def test_constant_samples_are_exact(self, value, n):
        x = np.full(n, value)
        assert mean(x) == value
        assert standard_deviation(x) == 0.0

    def test_mean_uses_exact_summation(self):
        x = [1e16, 1.0, -1e16, 1.0]
        assert mean(x) == 0.5

    def test_sample_std_uses_n_minus_one(self):
        x = [1.0, 2.0, 3.0, 4.0]
        assert standard_deviation(x) == pytest.approx(np.std(x, ddof=1))

    def test_empty_input_is_nan(self):
        assert math.isnan(mean([]))
        assert math.isnan(standard_deviation([]))

    def test_single_sample_std_is_nan(self):
        assert mean([3.0]) == 3.0
        assert math.isnan(standard_deviation([3.0]))


# ═══════════════════════════════════════════════════════════════════════════
# Confidence interval
# ═══════════════════════════════════════════════════════════════════════════

class TestConfidenceInterval:

    def test_default_mass(self):
        assert CONFIDENCE_MASS == 0.68

    def test_normal_draws_enclose_central_mass(self):
        rng = np.random.default_rng(1234)
        x = rng.normal(0.0, 1.0, size=1000)
        lo, hi = confidence_interval(x.copy())
        frac = np.mean((x >= lo) & (x <= hi))
        assert frac == pytest.approx(0.68, abs=0.02)
        # close to +/- one standard deviation
        assert lo == pytest.approx(-1.0, abs=0.15)
        assert hi == pytest.approx(1.0, abs=0.15)

    def test_sorts_float_array_in_place(self):
        x = np.array([5.0, 1.0, 3.0, 2.0, 4.0])
        confidence_interval(x)
        np.testing.assert_array_equal(x, [1.0, 2.0, 3.0, 4.0, 5.0])

    def test_list_input_not_required_sorted(self):
        lo, hi = confidence_interval([3.0, 1.0, 2.0])
        assert lo <= hi

    def test_index_rule(self):
        x = np.arange(100, dtype=float)
        lo, hi = confidence_interval(x)
        assert lo == 16.0
        assert hi == 84.0

    def test_single_sample_clamped(self):
        assert confidence_interval(np.array([7.0])) == (7.0, 7.0)

    def test_empty_is_nan(self):
        lo, hi = confidence_interval(np.array([]))
        assert math.isnan(lo) and math.isnan(hi)

    def test_invalid_mass(self):
        with pytest.raises(ValueError, match="mass"):
            confidence_interval([1.0, 2.0], mass=1.5)


# ═══════════════════════════════════════════════════════════════════════════
# Information criteria
# ═══════════════════════════════════════════════════════════════════════════

class TestInformationCriteria:

    def test_aicc(self):
        # 10 + 2*2 + 2*2*3/(20-2-1)
        assert aic_corrected(10.0, 2, 20) == pytest.approx(14.0 + 12.0 / 17.0)

    def test_aicc_without_dof_is_inf(self):
        assert aic_corrected(1.0, 3, 4) == float("inf")

    def test_bic(self):
        assert bic(10.0, 2, 20) == pytest.approx(10.0 + 2 * np.log(20))

    def test_bic_no_data(self):
        assert math.isnan(bic(1.0, 1, 0))

    def test_reduced_statistic(self):
        assert reduced_statistic(18.0, 20, 2) == pytest.approx(1.0)
        assert reduced_statistic(1.0, 2, 2) == float("inf")
