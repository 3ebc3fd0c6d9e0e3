########################################################################################
##
##                                  TESTS FOR
##                               'opt/bootstrap.py'
##
##                              Kevin McBride 2026
##
########################################################################################

# IMPORTS ==============================================================================

"""
Tests for bootfit.opt.bootstrap

Covers:
- BootstrapOptions validation and keyword overrides
- fixed parameters, zero iterations
- end-to-end bootstrap of a three-parameter linear model
- seeding, reproducibility, thread-pool equivalence
- failure policies (keep / exclude / retry)
- differential-evolution fallback for the Cash statistic
- sample file output, console report, plotting
"""

import math

import numpy as np
import pytest

from bootfit.opt import dispatch
from bootfit.opt.backends import FitOutcome
from bootfit.opt.bootstrap import (
    FAILURE_POLICIES,
    BootstrapOptions,
    BootstrapResult,
    ParameterSummary,
    bootstrap_errors,
)
from bootfit.opt.dispatch import run_fit
from bootfit.opt.errors import OutputFileError, ParameterLimitsError
from bootfit.opt.limits import bounded_limit, fixed_limit, free_limit
from bootfit.opt.model import FitStatistic, CurveModel


# ═══════════════════════════════════════════════════════════════════════════
# Helpers / Fixtures
# ═══════════════════════════════════════════════════════════════════════════

SIGMA = 0.1


def _quadratic(x, a, b, c):
    return a + b * x + c * x ** 2


def _make_model(statistic=FitStatistic.CHISQUARE):
    rng = np.random.default_rng(0)
    x = np.linspace(-2.0, 2.0, 40)
    y = _quadratic(x, 1.0, 0.5, -0.3) + rng.normal(0.0, SIGMA, x.size)
    if statistic is not FitStatistic.CHISQUARE:
        y = np.abs(y) + 5.0
    return CurveModel(_quadratic, x, y, sigma=SIGMA, statistic=statistic)


@pytest.fixture
def fitted():
    """(model, best-fit params, least-squares outcome) for the quadratic data."""
    model = _make_model()
    params = np.array([0.0, 0.0, 0.0])
    outcome = run_fit(model, params, ftol=1e-10)
    assert outcome.success
    return model, params, outcome


class _ScriptedBackend:
    """Backend double returning scripted statuses.

    Each call writes its running call number into every parameter so the
    columns of the sample matrix identify the call that produced them.
    """

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.n_calls = 0

    def __call__(self, n_params, params, limits, model, ftol, verbose=-1):
        status = self.statuses[self.n_calls % len(self.statuses)]
        self.n_calls += 1
        params[:] = float(self.n_calls)
        return FitOutcome(status=status, backend="least-squares")


@pytest.fixture
def scripted(monkeypatch):
    def _install(statuses):
        backend = _ScriptedBackend(statuses)
        monkeypatch.setitem(dispatch.BACKENDS, "least-squares", backend)
        return backend
    return _install


# ═══════════════════════════════════════════════════════════════════════════
# Options
# ═══════════════════════════════════════════════════════════════════════════

class TestBootstrapOptions:

    def test_defaults(self):
        opts = BootstrapOptions()
        assert opts.n_iterations == 200
        assert opts.ftol == 1e-8
        assert opts.statistic is None
        assert opts.output_file == ""
        assert opts.seed is None
        assert opts.failure_policy == "keep"
        assert opts.workers == 1
        assert opts.verbose == -1

    def test_policies(self):
        assert FAILURE_POLICIES == ("keep", "exclude", "retry")

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"n_iterations": -1}, "n_iterations"),
            ({"ftol": 0.0}, "ftol"),
            ({"failure_policy": "ignore"}, "failure_policy"),
            ({"max_retries": -2}, "max_retries"),
            ({"workers": 0}, "workers"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            BootstrapOptions(**kwargs)

    def test_statistic_coerced(self):
        assert BootstrapOptions(statistic="cash").statistic is FitStatistic.CASH

    def test_overrides_applied(self, scripted):
        scripted([1])
        model = _make_model()
        result = bootstrap_errors(
            np.zeros(3), None, model, BootstrapOptions(n_iterations=7), seed=3
        )
        assert result.n_iterations == 7

    def test_unknown_override(self):
        with pytest.raises(TypeError):
            bootstrap_errors(np.zeros(3), None, _make_model(), n_rounds=5)


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class TestBootstrapEngine:

    def test_end_to_end_linear_model(self, fitted):
        model, params, outcome = fitted
        best = params.copy()

        result = bootstrap_errors(params, None, model, n_iterations=50, ftol=1e-6, seed=42)

        assert isinstance(result, BootstrapResult)
        assert result.samples.shape == (3, 50)
        assert result.backend == "least-squares"
        assert result.seed == 42
        assert result.n_failed == 0
        np.testing.assert_array_equal(params, best)

        for i, s in enumerate(result.summaries):
            assert isinstance(s, ParameterSummary)
            assert not s.fixed
            assert s.best_fit == best[i]
            assert s.half_width > 0.0
            assert s.lower < s.upper
            assert s.plus == pytest.approx(s.upper - s.best_fit)
            assert s.minus == pytest.approx(s.best_fit - s.lower)
            assert abs(s.mean - s.best_fit) < s.std
            # pairs bootstrap agrees with the covariance estimate
            assert 0.5 < s.std / outcome.std_errors[i] < 2.0

    def test_model_switched_to_bootstrap_mode(self, fitted):
        model, params, _ = fitted
        bootstrap_errors(params, None, model, n_iterations=2, seed=1)
        assert model.in_bootstrap_mode

    def test_fixed_parameter_rows(self, fitted):
        model, params, _ = fitted
        limits = [free_limit("a"), fixed_limit("b"), free_limit("c")]

        result = bootstrap_errors(params, limits, model, n_iterations=20, seed=5)

        np.testing.assert_array_equal(result.samples[1], np.full(20, params[1]))
        fixed = result.summary("b")
        assert fixed.fixed
        assert fixed.best_fit == params[1]
        assert fixed.half_width is None
        assert fixed.lower is None and fixed.upper is None
        assert result.summary("a").half_width > 0.0

    def test_matrix_keeps_iteration_order(self, fitted):
        model, params, _ = fitted
        result = bootstrap_errors(params, None, model, n_iterations=30, seed=8)
        row = result.samples[0]
        assert not np.all(np.diff(row) >= 0.0)

    def test_zero_iterations(self, fitted, capsys):
        model, params, _ = fitted

        result = bootstrap_errors(params, None, model, n_iterations=0, seed=1)

        assert result.samples.shape == (3, 0)
        assert result.n_iterations == 0
        for s in result.summaries:
            assert math.isnan(s.mean)
            assert math.isnan(s.std)
            assert math.isnan(s.lower) and math.isnan(s.upper)
        result.display()
        assert "nan" in capsys.readouterr().out

    def test_best_fit_size_checked(self):
        with pytest.raises(ParameterLimitsError, match="best_fit"):
            bootstrap_errors(np.zeros(2), None, _make_model(), n_iterations=1)

    def test_limits_length_checked(self):
        with pytest.raises(ParameterLimitsError):
            bootstrap_errors(np.zeros(3), [free_limit("a")], _make_model(), n_iterations=1)

    def test_cash_statistic_uses_simplex(self):
        model = _make_model(FitStatistic.CASH)
        params = np.array([6.0, 0.0, 0.0])
        run_fit(model, params, ftol=1e-8)

        result = bootstrap_errors(params, None, model, n_iterations=4, seed=2)

        assert result.backend == "nelder-mead"
        assert result.samples.shape == (3, 4)

    def test_statistic_without_deviates_fails_per_iteration(self):
        model = _make_model(FitStatistic.CASH)

        result = bootstrap_errors(
            np.array([6.0, 0.0, 0.0]), None, model,
            n_iterations=3, seed=2, statistic=FitStatistic.CHISQUARE,
        )

        assert result.backend == "least-squares"
        np.testing.assert_array_equal(result.statuses, [-1, -1, -1])
        assert result.n_failed == result.n_iterations


# ═══════════════════════════════════════════════════════════════════════════
# Differential-evolution fallback
# ═══════════════════════════════════════════════════════════════════════════

class TestDifferentialEvolutionFallback:

    BACKENDS = ["least-squares", "differential-evolution"]

    def _cash_fit(self):
        model = _make_model(FitStatistic.CASH)
        params = np.array([6.0, 0.0, 0.0])
        run_fit(model, params, ftol=1e-8)
        return model, params

    def test_bounded_refits(self):
        model, params = self._cash_fit()
        limits = [
            bounded_limit("a", 0.0, 20.0),
            fixed_limit("b"),
            bounded_limit("c", -5.0, 5.0),
        ]
        kwargs = dict(n_iterations=3, ftol=1e-3, seed=21, backends=self.BACKENDS)

        r1 = bootstrap_errors(params, limits, model, **kwargs)
        r2 = bootstrap_errors(params, limits, model, **kwargs)

        assert r1.backend == "differential-evolution"
        np.testing.assert_array_equal(r1.samples, r2.samples)
        np.testing.assert_array_equal(r1.samples[1], np.full(3, params[1]))
        assert np.all(r1.statuses >= 0)
        assert np.all((r1.samples[0] >= 0.0) & (r1.samples[0] <= 20.0))

    def test_incomplete_limits_fail_every_iteration(self, monkeypatch):
        model, params = self._cash_fit()
        limits = [free_limit("a"), fixed_limit("b"), bounded_limit("c", -5.0, 5.0)]

        calls = []
        real = dispatch.BACKENDS["differential-evolution"]

        def counting(*args, **kwargs):
            calls.append(1)
            return real(*args, **kwargs)

        monkeypatch.setitem(dispatch.BACKENDS, "differential-evolution", counting)

        result = bootstrap_errors(
            params, limits, model, n_iterations=4, seed=3, backends=self.BACKENDS,
            failure_policy="retry", max_retries=2,
        )

        assert result.backend == "differential-evolution"
        np.testing.assert_array_equal(result.statuses, np.full(4, -1))
        assert result.n_failed == result.n_iterations
        assert len(calls) == 4
        np.testing.assert_array_equal(result.samples, np.tile(params[:, None], (1, 4)))


# ═══════════════════════════════════════════════════════════════════════════
# Seeding and parallel execution
# ═══════════════════════════════════════════════════════════════════════════

class TestSeeding:

    def test_same_seed_same_samples(self, fitted):
        model, params, _ = fitted
        r1 = bootstrap_errors(params, None, model, n_iterations=10, seed=123)
        r2 = bootstrap_errors(params, None, model, n_iterations=10, seed=123)
        np.testing.assert_array_equal(r1.samples, r2.samples)

    def test_different_seed_different_samples(self, fitted):
        model, params, _ = fitted
        r1 = bootstrap_errors(params, None, model, n_iterations=10, seed=1)
        r2 = bootstrap_errors(params, None, model, n_iterations=10, seed=2)
        assert not np.array_equal(r1.samples, r2.samples)

    def test_fresh_entropy_is_reported(self, fitted):
        model, params, _ = fitted
        r1 = bootstrap_errors(params, None, model, n_iterations=5)
        assert isinstance(r1.seed, int)

        r2 = bootstrap_errors(params, None, model, n_iterations=5, seed=r1.seed)
        np.testing.assert_array_equal(r1.samples, r2.samples)

    def test_workers_match_sequential(self, fitted):
        model, params, _ = fitted
        seq = bootstrap_errors(params, None, model, n_iterations=12, seed=77)
        par = bootstrap_errors(params, None, model, n_iterations=12, seed=77, workers=3)
        np.testing.assert_array_equal(seq.samples, par.samples)
        np.testing.assert_array_equal(seq.statuses, par.statuses)


# ═══════════════════════════════════════════════════════════════════════════
# Failure policies
# ═══════════════════════════════════════════════════════════════════════════

class TestFailurePolicies:

    def test_keep_counts_every_column(self, scripted):
        scripted([1, 0])
        result = bootstrap_errors(np.zeros(3), None, _make_model(), n_iterations=6, seed=0)

        np.testing.assert_array_equal(result.statuses, [1, 0, 1, 0, 1, 0])
        assert result.n_failed == 3
        assert result.used_mask.all()
        assert result.summaries[0].mean == pytest.approx(3.5)

    def test_exclude_drops_failed_columns_from_statistics(self, scripted):
        scripted([1, 0])
        result = bootstrap_errors(
            np.zeros(3), None, _make_model(), n_iterations=6, seed=0,
            failure_policy="exclude",
        )

        assert result.samples.shape == (3, 6)
        np.testing.assert_array_equal(result.used_mask, [True, False] * 3)
        assert result.summaries[0].mean == pytest.approx(3.0)
        assert result.summaries[0].std == pytest.approx(2.0)

    def test_retry_refits_until_success(self, scripted):
        backend = scripted([0, 1])
        result = bootstrap_errors(
            np.zeros(3), None, _make_model(), n_iterations=4, seed=0,
            failure_policy="retry", max_retries=3,
        )

        assert backend.n_calls == 8
        assert result.n_failed == 0
        np.testing.assert_array_equal(result.samples[0], [2.0, 4.0, 6.0, 8.0])

    def test_retry_records_last_attempt(self, scripted):
        backend = scripted([0])
        result = bootstrap_errors(
            np.zeros(3), None, _make_model(), n_iterations=2, seed=0,
            failure_policy="retry", max_retries=2,
        )

        assert backend.n_calls == 6
        assert result.n_failed == 2
        np.testing.assert_array_equal(result.samples[0], [3.0, 6.0])

    def test_retry_stops_on_invalid_input(self, scripted):
        backend = scripted([-1])
        result = bootstrap_errors(
            np.zeros(3), None, _make_model(), n_iterations=3, seed=0,
            failure_policy="retry", max_retries=4,
        )

        assert backend.n_calls == 3
        np.testing.assert_array_equal(result.statuses, [-1, -1, -1])

    def test_failures_are_logged(self, scripted, caplog):
        scripted([-1])
        with caplog.at_level("WARNING", logger="bootfit"):
            bootstrap_errors(np.zeros(3), None, _make_model(), n_iterations=2, seed=0)
        assert any("refit status -1" in r.getMessage() for r in caplog.records)


# ═══════════════════════════════════════════════════════════════════════════
# Output
# ═══════════════════════════════════════════════════════════════════════════

class TestBootstrapOutput:

    def test_output_file(self, fitted, tmp_path):
        model, params, _ = fitted
        path = tmp_path / "boot.dat"

        result = bootstrap_errors(
            params, None, model, n_iterations=10, seed=4, output_file=str(path)
        )

        lines = path.read_text().splitlines()
        assert lines[0] == "# a\tb\tc"
        assert len(lines) == 11
        first = np.array([float(v) for v in lines[1].split("\t")])
        np.testing.assert_allclose(first, result.samples[:, 0], rtol=1e-5)

    def test_unwritable_output_file(self, fitted, tmp_path):
        model, params, _ = fitted
        bad = tmp_path / "missing" / "boot.dat"
        with pytest.raises(OutputFileError, match="Couldn't open file"):
            bootstrap_errors(params, None, model, n_iterations=1, seed=0, output_file=str(bad))

    def test_write_custom_header(self, fitted, tmp_path):
        model, params, _ = fitted
        result = bootstrap_errors(params, None, model, n_iterations=3, seed=4)
        path = tmp_path / "custom.dat"
        result.write(path, header="# custom")
        assert path.read_text().splitlines()[0] == "# custom"

    def test_display(self, fitted, capsys):
        model, params, _ = fitted
        limits = [free_limit("a"), fixed_limit("b"), free_limit("c")]
        result = bootstrap_errors(params, limits, model, n_iterations=10, seed=4)

        result.display()
        out = capsys.readouterr().out

        assert "bootstrap resampling (10 rounds)" in out
        assert "[fixed parameter]" in out
        assert "+/-" in out

    def test_display_reports_failures(self, scripted, capsys):
        scripted([0])
        result = bootstrap_errors(np.zeros(3), None, _make_model(), n_iterations=3, seed=0)
        result.display()
        assert "3 of 3 refits did not converge" in capsys.readouterr().out

    def test_summary_lookup(self, fitted):
        model, params, _ = fitted
        result = bootstrap_errors(params, None, model, n_iterations=3, seed=4)
        assert result.summary("c").name == "c"
        with pytest.raises(KeyError):
            result.summary("zz")

    def test_plot(self, fitted):
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        model, params, _ = fitted
        limits = [free_limit("a"), fixed_limit("b"), free_limit("c")]
        result = bootstrap_errors(params, limits, model, n_iterations=15, seed=4)

        fig, axes = result.plot(bins=5)

        assert len(axes) == 2
        assert axes[0].get_title() == "a"
        plt.close(fig)
