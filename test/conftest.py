"""
conftest.py - pytest fixtures shared across the test suite.

Provides pre-built state spaces, motion models, validity checkers and a
small planner configuration so that individual test modules stay short.
"""

import math

import numpy as np
import pytest

from aitkin.collision import AllInvalidChecker, AllValidChecker, SceneValidityChecker
from aitkin.dynamics import HolonomicModel, KinematicCarModel
from aitkin.models import PlannerConfig
from aitkin.obstacles import Scene
from aitkin.spaces import KinematicCarSpace, RealVectorSpace, SE2Space


# =========================================================================
# State spaces
# =========================================================================

@pytest.fixture()
def space3d() -> RealVectorSpace:
    """[-10, 10]^3 real vector space."""
    return RealVectorSpace([-10.0] * 3, [10.0] * 3)


@pytest.fixture()
def space2d() -> RealVectorSpace:
    """[0, 10]^2 real vector space."""
    return RealVectorSpace([0.0, 0.0], [10.0, 10.0])


@pytest.fixture()
def se2_space() -> SE2Space:
    return SE2Space([-10.0, -10.0, -math.pi], [10.0, 10.0, math.pi])


@pytest.fixture()
def car_space() -> KinematicCarSpace:
    return KinematicCarSpace([-10.0, -10.0, -math.pi, -1.0],
                             [10.0, 10.0, math.pi, 1.0])


# =========================================================================
# Motion models
# =========================================================================

@pytest.fixture()
def holonomic3d(space3d) -> HolonomicModel:
    return HolonomicModel(space3d, max_speed=1.0)


@pytest.fixture()
def holonomic2d(space2d) -> HolonomicModel:
    return HolonomicModel(space2d, max_speed=1.0)


@pytest.fixture()
def car_model(car_space) -> KinematicCarModel:
    return KinematicCarModel(car_space)


# =========================================================================
# Validity checkers
# =========================================================================

@pytest.fixture()
def all_valid(space3d) -> AllValidChecker:
    return AllValidChecker(space3d, resolution=0.1)


@pytest.fixture()
def all_invalid(space3d) -> AllInvalidChecker:
    return AllInvalidChecker(space3d, resolution=0.1)


@pytest.fixture()
def wall_scene() -> Scene:
    """A 2D wall at x in [4, 5] spanning y in [-3, 3]."""
    scene = Scene()
    scene.add_obstacle([4.0, -3.0], [5.0, 3.0], name="wall")
    return scene


@pytest.fixture()
def wall_checker(wall_scene, se2_space) -> SceneValidityChecker:
    return SceneValidityChecker(wall_scene, se2_space, resolution=0.1)


# =========================================================================
# Config / RNG
# =========================================================================

@pytest.fixture()
def small_config() -> PlannerConfig:
    """Small batches and a fixed seed for fast deterministic planner tests."""
    return PlannerConfig(batch_size=200, seed=42)


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)
