"""End-to-end certification of pose graphs with known optima."""

import numpy as np
import pytest

from sesync.core.models.settings import Formulation
from sesync.core.problem.certification import SMinusLambdaOperator
from sesync.core.problem.problem import SESyncProblem
from sesync.core.synthetic.alignment import pose_errors
from sesync.core.synthetic.pose_graph_gen import PoseGraphGenerator


def critical_point_residual(problem, Y):
    """||(S - Lambda(Y)) Y^T||, zero at first-order critical points."""
    operator = SMinusLambdaOperator(problem, Y)
    return float(np.linalg.norm(operator.matmat(np.ascontiguousarray(Y.T))))


class TestCertification:
    """Certify exact solutions and reject non-optimal points."""

    @pytest.mark.parametrize("d", [2, 3])
    def test_exact_cycle_is_certified(self, d, formulation):
        """On noiseless data the chordal estimate is certifiably optimal."""
        graph = PoseGraphGenerator(seed=7).generate_cycle(4, d=d, translation_scale=2.0)
        problem = SESyncProblem(graph.measurements, formulation=formulation, relaxation_rank=d + 1)

        Y = problem.chordal_initialization()

        assert critical_point_residual(problem, Y) < 1e-8
        assert np.linalg.norm(problem.riemannian_gradient(Y)) < 1e-8

        result = problem.compute_S_minus_Lambda_min_eig(Y, rng=np.random.default_rng(0))

        assert result.converged
        assert result.min_eigenvalue > -1e-4
        assert result.is_certified(tolerance=1e-4)

        X = problem.round_solution(Y)
        rotation_errors, translation_errors = pose_errors(X, graph.rotations, graph.translations)
        assert np.max(rotation_errors) < 1e-6
        assert np.max(translation_errors) < 1e-6

    def test_larger_exact_graph(self):
        """Certification scales past the Lanczos subspace size."""
        graph = PoseGraphGenerator(seed=21).generate_odometry_with_loop_closures(
            30, num_loop_closures=15, d=3
        )
        problem = SESyncProblem(graph.measurements, relaxation_rank=4)
        Y = problem.chordal_initialization()

        result = problem.compute_S_minus_Lambda_min_eig(Y, rng=np.random.default_rng(1))

        assert result.is_certified(tolerance=1e-4)
        assert result.shift < 0
        assert result.num_matvecs > 0

    def test_random_point_not_certified(self, noisy_graph):
        """A random point of the domain is not a certifiable minimizer."""
        problem = SESyncProblem(noisy_graph.measurements, formulation=Formulation.IMPLICIT)
        Y = problem.random_sample(np.random.default_rng(3))

        result = problem.compute_S_minus_Lambda_min_eig(Y, rng=np.random.default_rng(4))

        assert result.min_eigenvalue < -1e-3
        assert not result.is_certified()

    def test_rank_increase_keeps_certificate(self, noiseless_cycle):
        """Raising the rank preserves an exact solution's certificate."""
        problem = SESyncProblem(noiseless_cycle.measurements)
        Y = problem.chordal_initialization()

        problem.set_relaxation_rank(5)
        Y_lifted = np.vstack([Y, np.zeros((2, Y.shape[1]))])

        assert problem.geometry.is_feasible(Y_lifted)
        result = problem.compute_S_minus_Lambda_min_eig(Y_lifted, rng=np.random.default_rng(0))
        assert result.is_certified(tolerance=1e-4)
