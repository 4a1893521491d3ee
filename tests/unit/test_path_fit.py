"""Unit tests for medpower.stats.path_fit."""

import numpy as np
import pytest

from medpower.stats.path_fit import _ols_with_covariance, fit_path_model


def _mediation_data(n, a=0.5, b=0.4, cp=0.2, seed=0):
    rng = np.random.RandomState(seed)
    x = rng.standard_normal(n)
    m = a * x + rng.standard_normal(n)
    y = cp * x + b * m + rng.standard_normal(n)
    return np.column_stack([x, m, y])


# columns: x=0, m=1, y=2
MEDIATION_EQUATIONS = [
    (1, [("a", [0])], []),
    (2, [("cp", [0]), ("b", [1])], []),
]


class TestOLS:
    def test_matches_normal_equations(self, rng):
        X = rng.standard_normal((200, 3))
        y = 1.0 + X @ np.array([0.5, -0.2, 0.0]) + rng.standard_normal(200)
        beta, cov, sigma2, r2 = _ols_with_covariance(X, y)

        X_int = np.column_stack([np.ones(200), X])
        beta_ref = np.linalg.solve(X_int.T @ X_int, X_int.T @ y)
        resid = y - X_int @ beta_ref
        sigma2_ref = resid @ resid / (200 - 4)
        cov_ref = sigma2_ref * np.linalg.inv(X_int.T @ X_int)

        np.testing.assert_allclose(beta, beta_ref[1:], rtol=1e-8)
        np.testing.assert_allclose(cov, cov_ref[1:, 1:], rtol=1e-8)
        assert sigma2 == pytest.approx(sigma2_ref)
        assert r2 == pytest.approx(1 - resid @ resid / np.sum((y - y.mean()) ** 2))

    def test_singular_design(self, rng):
        x = rng.standard_normal(50)
        with pytest.raises(np.linalg.LinAlgError):
            _ols_with_covariance(np.column_stack([x, 2 * x]), rng.standard_normal(50))

    def test_constant_predictor_is_singular(self, rng):
        with pytest.raises(np.linalg.LinAlgError):
            _ols_with_covariance(np.ones((50, 1)), rng.standard_normal(50))

    def test_no_degrees_of_freedom(self, rng):
        with pytest.raises(ValueError, match="degrees of freedom"):
            _ols_with_covariance(rng.standard_normal((3, 2)), rng.standard_normal(3))


class TestFitPathModel:
    def test_recovers_mediation_paths(self):
        data = _mediation_data(20_000)
        fit = fit_path_model(data, MEDIATION_EQUATIONS, ["a", "cp", "b"])
        assert fit.labels == ["a", "cp", "b"]
        np.testing.assert_allclose(fit.estimates, [0.5, 0.2, 0.4], atol=0.03)
        np.testing.assert_allclose(fit.residual_variances, [1.0, 1.0], atol=0.05)
        assert fit.as_dict()["b"] == fit.estimates[2]

    def test_block_diagonal_covariance(self):
        fit = fit_path_model(_mediation_data(500), MEDIATION_EQUATIONS, ["a", "cp", "b"])
        assert fit.acov[0, 1] == 0.0
        assert fit.acov[0, 2] == 0.0
        assert fit.acov[1, 2] != 0.0
        np.testing.assert_allclose(fit.standard_errors, np.sqrt(np.diag(fit.acov)))

    def test_label_order_follows_argument(self):
        data = _mediation_data(500)
        fit1 = fit_path_model(data, MEDIATION_EQUATIONS, ["a", "cp", "b"])
        fit2 = fit_path_model(data, MEDIATION_EQUATIONS, ["b", "a", "cp"])
        np.testing.assert_allclose(fit2.estimates, fit1.estimates[[2, 0, 1]])
        np.testing.assert_allclose(fit2.acov, fit1.acov[np.ix_([2, 0, 1], [2, 0, 1])])

    def test_fixed_path_moves_to_offset(self):
        data = _mediation_data(20_000, cp=0.5)
        equations = [(1, [("a", [0])], []), (2, [("b", [1])], [(0.5, [0])])]
        fit = fit_path_model(data, equations, ["a", "b"])
        np.testing.assert_allclose(fit.estimates, [0.5, 0.4], atol=0.03)

    def test_product_term(self):
        rng = np.random.RandomState(4)
        n = 20_000
        x, w = rng.standard_normal(n), rng.standard_normal(n)
        m = 0.3 * x + 0.1 * w + 0.2 * x * w + rng.standard_normal(n)
        data = np.column_stack([x, w, m])
        equations = [(2, [("a1", [0]), ("a2", [1]), ("a3", [0, 1])], [])]
        fit = fit_path_model(data, equations, ["a1", "a2", "a3"])
        np.testing.assert_allclose(fit.estimates, [0.3, 0.1, 0.2], atol=0.03)

    def test_shared_label_is_precision_weighted(self):
        data = _mediation_data(400, a=0.4, b=0.4, cp=0.0, seed=3)
        fit_sep = fit_path_model(data, [(1, [("a", [0])], []), (2, [("b", [1])], [])], ["a", "b"])
        fit_eq = fit_path_model(data, [(1, [("a", [0])], []), (2, [("a", [1])], [])], ["a"])

        w = 1 / np.diag(fit_sep.acov)
        expected = (w @ fit_sep.estimates) / w.sum()
        assert fit_eq.estimates[0] == pytest.approx(expected)
        assert fit_eq.acov[0, 0] == pytest.approx(1 / w.sum())
        assert fit_eq.acov[0, 0] < fit_sep.acov.diagonal().min()

    def test_repeated_label_within_equation_shares_column(self):
        rng = np.random.RandomState(5)
        n = 20_000
        x, w = rng.standard_normal(n), rng.standard_normal(n)
        y = 0.3 * x + 0.3 * w + rng.standard_normal(n)
        data = np.column_stack([x, w, y])
        fit = fit_path_model(data, [(2, [("a", [0]), ("a", [1])], [])], ["a"])
        assert fit.estimates.shape == (1,)
        assert fit.estimates[0] == pytest.approx(0.3, abs=0.02)

    def test_equation_with_only_fixed_paths(self):
        data = _mediation_data(500)
        equations = [(1, [("a", [0])], []), (2, [], [(0.2, [0]), (0.4, [1])])]
        fit = fit_path_model(data, equations, ["a"])
        assert fit.labels == ["a"]
        assert fit.residual_variances[1] == pytest.approx(1.0, abs=0.2)
