"""Shared fixtures: synthetic pose graphs and problems built from them."""

import numpy as np
import pytest

from sesync.core.models.settings import Formulation, PreconditionerType
from sesync.core.problem.problem import SESyncProblem
from sesync.core.synthetic.pose_graph_gen import PoseGraphGenerator


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def noiseless_cycle():
    """Four poses in SE(3) on a cycle with exact measurements."""
    return PoseGraphGenerator(seed=7).generate_cycle(4, d=3, translation_scale=2.0)


@pytest.fixture
def noisy_graph():
    """Ten poses in SE(3), odometry plus loop closures, mildly noisy."""
    return PoseGraphGenerator(seed=11).generate_odometry_with_loop_closures(
        10,
        num_loop_closures=8,
        d=3,
        kappa=50.0,
        tau=10.0,
        rotation_noise=0.05,
        translation_noise=0.05,
    )


@pytest.fixture(params=[Formulation.IMPLICIT, Formulation.EXPLICIT], ids=["implicit", "explicit"])
def formulation(request):
    """Both supported formulations."""
    return request.param


@pytest.fixture
def noisy_problem(noisy_graph, formulation):
    """Rank-5 problem over the noisy graph."""
    return SESyncProblem(
        noisy_graph.measurements,
        formulation=formulation,
        preconditioner=PreconditionerType.JACOBI,
        relaxation_rank=5,
    )
