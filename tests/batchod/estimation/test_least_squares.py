########################################################################################
##
##                                  TESTS FOR
##                         'estimation/least_squares.py'
##
########################################################################################

# IMPORTS ==============================================================================

import unittest

import numpy as np

from batchod.errors import ObservationShapeError, SingularNormalEquationsError
from batchod.estimation.least_squares import (
    LeastSquaresSolution,
    root_mean_square,
    solve_weighted_normal_equations,
)


# HELPERS ==============================================================================

def _system():
    """3 observations, 2 parameters: y = a + b t at t = 0, 1, 2."""
    H = np.array([[1.0, 0.0], [1.0, 1.0], [1.0, 2.0]])
    r = np.array([1.0, 2.0, 4.0])
    return H, r


# TESTS ================================================================================

class TestSolveWeightedNormalEquations(unittest.TestCase):
    """
    Test the regularized weighted least-squares solution
    """

    def test_reduces_to_ordinary_least_squares(self):
        H, r = _system()
        sol = solve_weighted_normal_equations(H, r, np.ones(3))

        # closed form: a = 5/6, b = 3/2
        np.testing.assert_allclose(sol.correction, [5.0 / 6.0, 1.5], atol=1e-12)
        np.testing.assert_allclose(sol.correction, np.linalg.lstsq(H, r, rcond=None)[0], atol=1e-12)


    def test_covariance_and_information(self):
        H, r = _system()
        sol = solve_weighted_normal_equations(H, r, np.ones(3))

        np.testing.assert_allclose(sol.inverse_covariance, H.T @ H)
        np.testing.assert_allclose(sol.covariance @ sol.inverse_covariance, np.eye(2), atol=1e-12)
        self.assertIsInstance(sol, LeastSquaresSolution)


    def test_weights(self):
        H, r = _system()
        w = np.array([1.0, 4.0, 0.5])
        sol = solve_weighted_normal_equations(H, r, w)

        W = np.diag(w)
        expected = np.linalg.solve(H.T @ W @ H, H.T @ W @ r)
        np.testing.assert_allclose(sol.correction, expected, atol=1e-12)


    def test_apriori_regularization(self):
        H, r = _system()
        P = np.diag([10.0, 0.0])
        sol = solve_weighted_normal_equations(H, r, np.ones(3), P)

        expected = np.linalg.solve(H.T @ H + P, H.T @ r)
        np.testing.assert_allclose(sol.correction, expected, atol=1e-12)
        np.testing.assert_allclose(sol.inverse_covariance, H.T @ H + P)


    def test_apriori_makes_underdetermined_system_solvable(self):
        H = np.array([[1.0, 1.0]])
        sol = solve_weighted_normal_equations(H, [2.0], [1.0], np.eye(2))
        np.testing.assert_allclose(sol.correction, [2.0 / 3.0, 2.0 / 3.0], atol=1e-12)


    def test_singular_raises(self):
        H = np.array([[1.0, 0.0], [2.0, 0.0]])
        with self.assertRaises(SingularNormalEquationsError) as ctx:
            solve_weighted_normal_equations(H, [1.0, 2.0], [1.0, 1.0], np.zeros((2, 2)))
        self.assertIn("2 x 2", str(ctx.exception))


    def test_singular_is_linalg_error(self):
        H = np.array([[1.0, 0.0], [2.0, 0.0]])
        with self.assertRaises(np.linalg.LinAlgError):
            solve_weighted_normal_equations(H, [1.0, 2.0], [1.0, 1.0])


    def test_empty_system(self):
        P = np.diag([4.0, 2.0])
        sol = solve_weighted_normal_equations(np.zeros((0, 2)), [], [], P)

        np.testing.assert_array_equal(sol.correction, np.zeros(2))
        np.testing.assert_allclose(sol.covariance, np.diag([0.25, 0.5]))
        np.testing.assert_array_equal(sol.inverse_covariance, P)


    def test_shape_errors(self):
        H, r = _system()
        with self.assertRaises(ObservationShapeError):
            solve_weighted_normal_equations(H, r[:2], np.ones(3))
        with self.assertRaises(ObservationShapeError):
            solve_weighted_normal_equations(H, r, np.ones(2))
        with self.assertRaises(ObservationShapeError):
            solve_weighted_normal_equations(H, r, np.ones(3), np.eye(3))
        with self.assertRaises(ObservationShapeError):
            solve_weighted_normal_equations(r, r, np.ones(3))


class TestRootMeanSquare(unittest.TestCase):
    """
    Test RMS of residual vectors
    """

    def test_value(self):
        self.assertAlmostEqual(root_mean_square([3.0, -4.0]), np.sqrt(12.5))


    def test_empty(self):
        self.assertEqual(root_mean_square([]), 0.0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
