"""
Tests for the from-scratch t and normal tail probabilities.

scipy.special / scipy.stats serve as the reference implementation.
"""

import math

import numpy as np
import pytest
from scipy import special, stats

from depcorr.stats.distributions import (
    NORMAL_APPROX_DF,
    log_gamma,
    normal_cdf,
    regularized_incomplete_beta,
    t_two_tailed_p,
)


class TestLogGamma:

    @pytest.mark.parametrize("x", [0.1, 0.5, 1.0, 1.5, 2.0, 3.7, 10.0, 55.5, 171.0, 1000.0])
    def test_matches_scipy(self, x):
        assert log_gamma(x) == pytest.approx(special.gammaln(x), rel=1e-10, abs=1e-12)

    def test_integer_factorials(self):
        for n in range(1, 12):
            assert math.exp(log_gamma(n + 1)) == pytest.approx(math.factorial(n), rel=1e-10)

    def test_reflection_branch(self):
        # Γ(0.25) via reflection
        assert log_gamma(0.25) == pytest.approx(math.lgamma(0.25), rel=1e-10)


class TestRegularizedIncompleteBeta:

    @pytest.mark.parametrize("x,a,b", [
        (0.1, 0.5, 0.5),
        (0.5, 2.0, 3.0),
        (0.9, 5.0, 0.5),
        (0.3, 10.0, 0.5),
        (0.95, 50.0, 0.5),
        (0.6, 1.0, 1.0),
    ])
    def test_matches_scipy(self, x, a, b):
        assert regularized_incomplete_beta(x, a, b) == pytest.approx(special.betainc(a, b, x), abs=1e-9)

    def test_bounds(self):
        assert regularized_incomplete_beta(0.0, 2.0, 3.0) == 0.0
        assert regularized_incomplete_beta(-1.0, 2.0, 3.0) == 0.0
        assert regularized_incomplete_beta(1.0, 2.0, 3.0) == 1.0

    def test_symmetry(self):
        x, a, b = 0.35, 3.0, 7.0
        assert regularized_incomplete_beta(x, a, b) == pytest.approx(
            1.0 - regularized_incomplete_beta(1.0 - x, b, a), abs=1e-12
        )


class TestNormalCdf:

    @pytest.mark.parametrize("x", [-5.0, -2.5, -1.96, -0.3, 0.0, 0.7, 1.645, 3.0, 6.0])
    def test_matches_scipy(self, x):
        assert normal_cdf(x) == pytest.approx(stats.norm.cdf(x), abs=2e-7)

    def test_symmetry(self):
        for x in np.linspace(0, 4, 9):
            assert normal_cdf(x) + normal_cdf(-x) == pytest.approx(1.0, abs=1e-12)

    def test_center(self):
        assert normal_cdf(0.0) == 0.5
        assert normal_cdf(-0.0) == 0.5

    def test_lower_tail_is_reflected_upper_tail(self):
        for x in (0.1, 1.0, 2.5, 5.0):
            assert normal_cdf(-x) == pytest.approx(1.0 - normal_cdf(x), abs=1e-15)
            assert 0.0 < normal_cdf(-x) < 0.5


class TestTTwoTailedP:
    """Two-tailed Student t p-values."""

    @pytest.mark.parametrize("t", [0.0, 0.5, 1.0, 2.0, 2.228, 3.5, 8.0])
    @pytest.mark.parametrize("df", [1.0, 2.5, 5.0, 10.0, 37.3, 100.0])
    def test_matches_scipy_small_df(self, t, df):
        expected = 2.0 * stats.t.sf(t, df)
        assert t_two_tailed_p(t, df) == pytest.approx(expected, abs=1e-8)

    @pytest.mark.parametrize("t", [0.5, 1.96, 3.0])
    @pytest.mark.parametrize("df", [100.5, 250.0, 5000.0])
    def test_normal_approximation_large_df(self, t, df):
        assert df > NORMAL_APPROX_DF
        assert t_two_tailed_p(t, df) == pytest.approx(2.0 * stats.norm.sf(t), abs=5e-7)
        # Within the t-vs-normal gap of the exact value
        assert t_two_tailed_p(t, df) == pytest.approx(2.0 * stats.t.sf(t, df), abs=5e-3)

    def test_sign_ignored(self):
        assert t_two_tailed_p(-2.5, 12.0) == t_two_tailed_p(2.5, 12.0)

    def test_zero_t(self):
        assert t_two_tailed_p(0.0, 10.0) == pytest.approx(1.0)

    def test_textbook_critical_value(self):
        assert t_two_tailed_p(2.228, 10) == pytest.approx(0.05, abs=1e-3)

    @pytest.mark.parametrize("t,df", [
        (float("nan"), 10.0),
        (2.0, float("nan")),
        (2.0, 0.0),
        (2.0, -3.0),
    ])
    def test_degenerate_inputs_give_one(self, t, df):
        assert t_two_tailed_p(t, df) == 1.0

    def test_infinite_t(self):
        assert t_two_tailed_p(float("inf"), 10.0) == 0.0

    def test_in_unit_interval(self):
        rng = np.random.RandomState(0)
        for t, df in zip(rng.uniform(-20, 20, 200), rng.uniform(0.5, 300, 200)):
            p = t_two_tailed_p(t, df)
            assert 0.0 <= p <= 1.0

    def test_monotone_in_t(self):
        ps = [t_two_tailed_p(t, 15.0) for t in np.linspace(0, 6, 25)]
        assert all(a >= b for a, b in zip(ps, ps[1:]))
