"""
test_models.py - Unit tests for models.py data classes.

Covers:
    - PlannerConfig defaults, validation and JSON round-trip
    - PathControl helpers
    - PlannerResult status / serialisation
    - PlannerData
"""

import json
import math

import numpy as np
import pytest

from aitkin.errors import ConfigurationError
from aitkin.models import (
    PathControl,
    PlannerConfig,
    PlannerData,
    PlannerResult,
    PlannerStatus,
)


class TestPlannerConfig:

    def test_defaults_valid(self):
        cfg = PlannerConfig()
        cfg.validate()
        assert cfg.num_threads == 1
        assert cfg.batch_size == 1000
        assert math.isinf(cfg.radius)
        assert cfg.heuristic_strategy == 'dijkstra'

    @pytest.mark.parametrize("kwargs", [
        {"num_threads": 0},
        {"batch_size": 0},
        {"goal_bias": 1.5},
        {"min_dist_between_vertices": -1.0},
        {"radius": 0.0},
        {"heuristic_strategy": "bfs"},
        {"motion_resolution": 0.0},
        {"enable_geometric_graph": False, "enable_control_graph": False},
        {"min_dist_between_vertices": 1.0, "max_dist_between_vertices": 0.5},
        {"min_dist_between_vertices": 0.6, "control_goal_tolerance": 0.5},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            PlannerConfig(**kwargs).validate()

    def test_goal_tolerance_only_checked_for_control_graph(self):
        PlannerConfig(min_dist_between_vertices=0.6, control_goal_tolerance=0.5,
                      enable_control_graph=False).validate()

    def test_json_roundtrip_with_infinite_radius(self, tmp_path):
        cfg = PlannerConfig(batch_size=50, seed=7)
        fp = cfg.to_json(tmp_path / "sub" / "cfg.json")
        with open(fp) as f:
            assert json.load(f)['radius'] is None
        loaded = PlannerConfig.from_json(fp)
        assert loaded == cfg

    def test_from_dict_ignores_unknown(self):
        cfg = PlannerConfig.from_dict({"batch_size": 10, "no_such_field": 1})
        assert cfg.batch_size == 10


class TestPathControl:

    def test_geometric_path(self):
        path = PathControl()
        path.append([0.0, 0.0])
        path.append([1.0, 0.0])
        assert len(path) == 2
        assert not path.has_controls
        assert path.total_duration == 0.0

    def test_control_path(self):
        path = PathControl()
        path.append([0.0, 0.0])
        path.append([1.0, 0.0], [1.0, 0.0], 0.5)
        path.append([2.0, 0.0], [1.0, 0.0], 0.25)
        assert path.has_controls
        assert path.total_duration == pytest.approx(0.75)
        assert path.controls[0] is None
        assert isinstance(path.states[1], np.ndarray)

    def test_dict_roundtrip(self):
        path = PathControl()
        path.append([0.0, 0.0])
        path.append([1.0, 0.0], [1.0, 0.0], 0.5)
        loaded = PathControl.from_dict(path.to_dict())
        assert loaded.n_states == 2
        np.testing.assert_allclose(loaded.segments[1].control, [1.0, 0.0])
        assert loaded.segments[0].control is None


class TestPlannerResult:

    def test_default_is_no_solution(self):
        result = PlannerResult()
        assert result.status is PlannerStatus.NO_SOLUTION
        assert not result.success
        assert not result.status
        assert result.path is None
        assert math.isinf(result.cost)

    def test_path_prefers_control(self):
        g = PathControl()
        g.append([0.0])
        c = PathControl()
        c.append([1.0])
        result = PlannerResult(status=PlannerStatus.SOLVED, geometric_path=g,
                               control_path=c, geometric_cost=1.0, control_cost=2.0)
        assert result.path is c
        assert result.cost == 2.0

    def test_save_replaces_inf(self, tmp_path):
        result = PlannerResult(cost_history=[(1, math.inf, math.inf)])
        fp = result.save(tmp_path / "r.json")
        with open(fp) as f:
            data = json.load(f)
        assert data['status'] == 'no_solution'
        assert data['geometric_cost'] is None
        assert data['cost_history'] == [[1, None, None]]
        assert data['first_solution_time'] is None


class TestPlannerData:

    def test_counts(self):
        data = PlannerData(
            thread_id=0,
            geometric_states=np.zeros((3, 2)),
            geometric_edges=[(0, 2, 1.0)],
            geometric_blacklisted=[],
            control_states=np.zeros((2, 2)),
            control_edges=[],
        )
        assert data.n_geometric_vertices == 3
        assert data.n_control_vertices == 2
        assert data.to_dict()['geometric_edges'] == [[0, 2, 1.0]]
