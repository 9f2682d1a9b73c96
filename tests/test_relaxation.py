"""Unit tests for RelaxationEngine."""

import math

import numpy as np
import pygame
import pytest

from conftest import INDEX_KINDS
from relaxation import (
    RelaxationEngine,
    clamp_window_size,
    _edge_wraps_jit,
    _wrap_coordinate_jit,
)
from spatial_index import ConfigurationError


def make_engine(config, positions, bounds=(100, 100), seed=0):
    config = dict(config, point_count=len(positions))
    engine = RelaxationEngine(config, np.random.default_rng(seed), bounds, max_points=len(positions))
    for i, (x, y) in enumerate(positions):
        engine.place_point(i, x, y)
    return engine


@pytest.fixture(params=INDEX_KINDS)
def config(request, sim_config):
    return dict(sim_config, spatial_index=request.param)


class TestGeometryHelpers:
    """Edge mirroring and coordinate wrapping."""

    def test_edge_wraps_near_left_and_top(self):
        near_x, wrap_x, near_y, wrap_y = _edge_wraps_jit(2.0, 3.0, 100.0, 80.0, 10.0)
        assert near_x and near_y
        assert wrap_x == pytest.approx(102.0)
        assert wrap_y == pytest.approx(83.0)

    def test_edge_wraps_near_right_and_bottom(self):
        near_x, wrap_x, near_y, wrap_y = _edge_wraps_jit(98.0, 75.0, 100.0, 80.0, 10.0)
        assert near_x and near_y
        assert wrap_x == pytest.approx(-2.0)
        assert wrap_y == pytest.approx(-5.0)

    def test_edge_wraps_interior(self):
        near_x, _, near_y, _ = _edge_wraps_jit(50.0, 40.0, 100.0, 80.0, 10.0)
        assert not near_x
        assert not near_y

    @pytest.mark.parametrize("value, expected", [
        (50.0, 50.0),
        (0.0, 0.0),
        (100.0, 0.0),
        (-5.0, 95.0),
        (105.0, 5.0),
        (-250.0, 50.0),
        (330.0, 30.0),
    ])
    def test_wrap_coordinate(self, value, expected):
        assert _wrap_coordinate_jit(value, 0.0, 100.0) == pytest.approx(expected)


class TestConstruction:
    """Configuration and point pool."""

    def test_initial_points_scattered_around_centre(self, sim_config):
        config = dict(sim_config, point_count=50)
        engine = RelaxationEngine(config, np.random.default_rng(1), (400, 200), max_points=50)

        xs = engine.positions[:, 0]
        ys = engine.positions[:, 1]
        assert xs.min() >= 120 and xs.max() <= 280
        assert ys.min() >= 60 and ys.max() <= 140
        assert len(engine.spatial_index) == 50

    def test_same_seed_same_layout(self, sim_config):
        a = RelaxationEngine(sim_config, np.random.default_rng(9), (100, 100), max_points=10)
        b = RelaxationEngine(sim_config, np.random.default_rng(9), (100, 100), max_points=10)
        np.testing.assert_array_equal(a.positions, b.positions)

    @pytest.mark.parametrize("override", [
        {"min_distance": 0},
        {"circle_radius": -1},
        {"spatial_index": "octree"},
        {"spatial_index": "grid", "cell_size": 0},
    ])
    def test_bad_config_rejected(self, sim_config, override):
        with pytest.raises(ConfigurationError):
            RelaxationEngine(dict(sim_config, **override), np.random.default_rng(0), (100, 100))

    def test_bad_bounds_rejected(self, sim_config):
        with pytest.raises(ConfigurationError):
            RelaxationEngine(sim_config, np.random.default_rng(0), (0, 100))


class TestTick:
    """One frame of relaxation."""

    def test_close_points_repel(self, config):
        engine = make_engine(config, [(50, 50), (54, 50)])
        engine.tick(0.1)

        a, b = engine.points
        # force = speed * dt = 1.0, scaled by (10 - 4) / 10
        assert a.x == pytest.approx(49.4)
        assert b.x == pytest.approx(54.6)
        assert a.y == pytest.approx(50.0)
        assert b.y == pytest.approx(50.0)

    def test_contract_mode_attracts(self, config):
        config = dict(config, expand=False)
        engine = make_engine(config, [(50, 50), (54, 50)])
        engine.tick(0.1)

        a, b = engine.points
        assert a.x == pytest.approx(50.6)
        assert b.x == pytest.approx(53.4)

    def test_points_repel_across_wrapped_edge(self, config):
        engine = make_engine(config, [(2, 50), (98, 50)])
        engine.tick(0.1)

        a, b = engine.points
        # Wrapped distance is 4, so each moves 0.6 away from the other
        assert a.x == pytest.approx(2.6)
        assert b.x == pytest.approx(97.4)
        assert engine.get_stats()['interactions'] == 2

    def test_points_repel_across_wrapped_vertical_edge(self, config):
        engine = make_engine(config, [(50, 97), (50, 1)])
        engine.tick(0.1)

        a, b = engine.points
        assert a.y == pytest.approx(96.4)
        assert b.y == pytest.approx(1.6)

    def test_distant_points_are_left_alone(self, config):
        engine = make_engine(config, [(20, 50), (80, 50)])
        engine.tick(0.1)

        a, b = engine.points
        assert (a.x, a.y) == (20.0, 50.0)
        assert (b.x, b.y) == (80.0, 50.0)
        assert engine.get_stats()['moved'] == 0

    def test_coincident_points_separate_by_full_force(self, config):
        engine = make_engine(config, [(50, 50), (50, 50)])
        engine.tick(0.1)

        for point in engine.points:
            assert math.hypot(point.x - 50, point.y - 50) == pytest.approx(1.0)

    def test_large_delta_is_clamped(self, config):
        engine = make_engine(config, [(50, 50), (54, 50)])
        engine.tick(10.0)

        # speed 10 * 0.25 s = 2.5, scaled by 0.6
        assert engine.points[0].x == pytest.approx(48.5)

    def test_index_reconciled_after_tick(self, config):
        engine = make_engine(config, [(50, 50), (54, 50)])
        engine.tick(0.1)

        index = engine.spatial_index
        assert index.pending_updates == 0
        for point in engine.points:
            hits = index.search((point.x, point.y), 1e-9)
            assert [record.object for record in hits] == [point]
        np.testing.assert_allclose(engine.positions, [[49.4, 50.0], [54.6, 50.0]])

    def test_tick_summary_logged_every_interval(self, sim_config, app_log):
        config = dict(sim_config, log_interval=2)
        engine = make_engine(config, [(50, 50), (54, 50)])

        def tick_lines():
            return [r for r in app_log.records if r.getMessage().startswith("Tick=")]

        engine.tick(0.1)
        assert tick_lines() == []

        engine.tick(0.1)
        lines = tick_lines()
        assert len(lines) == 1
        assert lines[0].levelname == "DEBUG"
        assert "Tick=2, Points=2, Interactions=2, Moved=2" in lines[0].getMessage()

    def test_zero_interval_disables_tick_log(self, sim_config, app_log):
        engine = make_engine(sim_config, [(50, 50), (54, 50)])
        for _ in range(3):
            engine.tick(0.1)
        assert not [r for r in app_log.records if r.getMessage().startswith("Tick=")]

    def test_relaxation_reaches_minimum_separation(self, config):
        config = dict(config, point_count=30, speed=40.0)
        engine = RelaxationEngine(config, np.random.default_rng(4), (100, 100), max_points=30)
        for _ in range(400):
            engine.tick(0.1)

        positions = engine.positions
        closest = np.inf
        for i in range(len(positions)):
            delta = np.abs(positions[i + 1:] - positions[i])
            delta = np.minimum(delta, 100.0 - delta)  # toroidal distance
            if len(delta):
                closest = min(closest, np.sqrt((delta ** 2).sum(axis=1)).min())
        assert closest > 0.7 * engine.min_distance


class TestRepulsor:
    """Pointer-controlled circle."""

    def test_inactive_repulsor_has_no_effect(self, config):
        config = dict(config, circle_radius=20.0)
        engine = make_engine(config, [(10, 50)])
        engine.repulsor.move_to(12, 50)
        engine.tick(0.1)
        assert engine.points[0].x == 10.0

    def test_pushes_point_out_and_wraps(self, config):
        engine = make_engine(config, [(1, 50)])
        engine.repulsor.move_to(3, 50)
        engine.repulsor.toggle()
        engine.tick(0.1)

        # Penetration 18: displacement 18 * (18 / 20) * 1.0 = 16.2 to the left, then wrapped
        point = engine.points[0]
        assert point.x == pytest.approx(84.8)
        assert point.y == pytest.approx(50.0)
        hits = engine.spatial_index.search((point.x, point.y), 1e-6)
        assert [record.object for record in hits] == [point]

    def test_pushes_through_mirror(self, config):
        engine = make_engine(config, [(98, 50)])
        engine.repulsor.move_to(3, 50)
        engine.repulsor.toggle()
        engine.tick(0.1)

        # Mirror centre at x=103: penetration 15, displacement 15 * 0.75 = 11.25
        assert engine.points[0].x == pytest.approx(86.75)

    def test_repulsor_repels_in_contract_mode(self, config):
        config = dict(config, expand=False)
        engine = make_engine(config, [(50, 50)])
        engine.repulsor.move_to(60, 50)
        engine.repulsor.toggle()
        engine.tick(0.1)
        assert engine.points[0].x < 50

    def test_centres_include_mirrors(self, config):
        engine = make_engine(config, [(50, 50)])
        engine.repulsor.move_to(5, 95)
        assert engine.repulsor_centres() == [(5.0, 95.0), (105.0, 95.0), (5.0, -5.0)]


class TestParameters:
    """Control-panel driven setters."""

    def test_point_count_adds_and_removes(self, sim_config):
        config = dict(sim_config, point_count=5)
        engine = RelaxationEngine(config, np.random.default_rng(0), (100, 100), max_points=10)
        assert len(engine.spatial_index) == 5

        engine.set_point_count(8)
        assert engine.num_points == 8
        assert len(engine.spatial_index) == 8
        assert all(engine.points[i] in engine.spatial_index for i in range(8))

        engine.set_point_count(2)
        assert len(engine.spatial_index) == 2
        assert engine.points[5] not in engine.spatial_index

    def test_point_count_is_clamped(self, sim_config):
        engine = RelaxationEngine(sim_config, np.random.default_rng(0), (100, 100), max_points=10)
        engine.set_point_count(0)
        assert engine.num_points == 1
        engine.set_point_count(100)
        assert engine.num_points == 10

    def test_reactivated_points_are_wrapped_into_domain(self, sim_config):
        config = dict(sim_config, point_count=1)
        engine = RelaxationEngine(config, np.random.default_rng(0), (400, 400), max_points=2)
        engine.points[1].x = 390.0
        engine.resize(330, 330)
        engine.set_point_count(2)
        assert engine.points[1].x == pytest.approx(60.0)

    def test_setters_clamp_to_ranges(self, sim_config):
        engine = RelaxationEngine(sim_config, np.random.default_rng(0), (100, 100), max_points=2)
        engine.set_min_distance(1000)
        engine.set_speed(-5)
        engine.set_circle_radius(0)
        engine.set_expand(0)

        assert engine.min_distance == 200.0
        assert engine.speed == 1.0
        assert engine.repulsor.radius == 1.0
        assert engine.expand is False

    def test_resize_rewraps_on_next_tick(self, sim_config):
        engine = make_engine(sim_config, [(350, 350)], bounds=(400, 400))
        engine.resize(330, 330)
        assert engine.needs_wrap

        engine.tick(0.1)

        point = engine.points[0]
        assert (point.x, point.y) == (pytest.approx(20.0), pytest.approx(20.0))
        assert not engine.needs_wrap
        hits = engine.spatial_index.search((20, 20), 1e-6)
        assert [record.object for record in hits] == [point]

    def test_resize_respects_minimum_window(self, sim_config):
        engine = RelaxationEngine(sim_config, np.random.default_rng(0), (400, 400), max_points=2)
        engine.resize(10, 10)
        assert tuple(engine.bounds) == (320.0, 240.0)

    def test_resize_caps_at_default_window(self, sim_config):
        engine = RelaxationEngine(sim_config, np.random.default_rng(0), (400, 400), max_points=2)
        assert engine.resize(4000, 500.7) == (1024, 500)
        assert tuple(engine.bounds) == (1024.0, 500.0)

    @pytest.mark.parametrize("requested, expected", [
        ((640, 480), (640, 480)),
        ((10, 10), (320, 240)),
        ((5000, 5000), (1024, 768)),
    ])
    def test_clamp_window_size(self, requested, expected):
        assert clamp_window_size(*requested) == expected


class TestDraw:
    """Rendering onto a pygame surface."""

    def test_draw_points_and_repulsor(self, sim_config):
        engine = make_engine(sim_config, [(10, 10), (50, 50)])
        surface = pygame.Surface((100, 100))
        engine.repulsor.move_to(5, 5)
        engine.repulsor.toggle()

        engine.draw(surface)

        expected = tuple(int(c * 255) for c in engine.colors[1])
        assert tuple(surface.get_at((50, 50)))[:3] == expected

    def test_draw_reads_render_buffer(self, sim_config):
        engine = make_engine(sim_config, [(10, 10), (50, 50)])
        engine.colors[1] = (1.0, 0.0, 0.0)
        engine.place_point(1, 70, 30)
        surface = pygame.Surface((100, 100))

        engine.draw(surface)

        assert tuple(surface.get_at((70, 30)))[:3] == (255, 0, 0)
        assert tuple(surface.get_at((50, 50)))[:3] == (0, 0, 0)

    def test_buffer_tracks_points_after_tick(self, config):
        engine = make_engine(config, [(50, 50), (54, 50)])
        engine.tick(0.1)
        for i, point in enumerate(engine.points):
            assert tuple(engine.positions[i]) == (point.x, point.y)
