# relaxation.py

import math
import numpy as np
import pygame
import logging
import numba

from point import Point
from repulsor import Repulsor
from spatial_index import create_spatial_index, ConfigurationError
import constants

logger = logging.getLogger("vector_relax")

# --- JIT-Compiled Geometry Helpers ---
# Scalar kernels for the inner loop of the force phase. They operate only on
# plain floats, as required by Numba's nopython mode.

@numba.jit(nopython=True)
def _separation_jit(px, py, qx, qy, reach, force):
    """
    Displacement that pushes p away from q.

    The magnitude falls linearly from `force` when the points touch to zero at
    `reach`. Callers handle coincident points, which have no direction.
    """
    dx = px - qx
    dy = py - qy
    distance = math.sqrt(dx * dx + dy * dy)
    scale = (reach - distance) / reach * force
    return dx / distance * scale, dy / distance * scale


@numba.jit(nopython=True)
def _edge_wraps_jit(x, y, width, height, reach):
    """
    Mirror positions of (x, y) across the domain edges it lies within `reach` of.

    Returns (near_x, wrap_x, near_y, wrap_y): wrap_x is the x coordinate of the
    mirror across the left/right edge, wrap_y that across the top/bottom edge.
    """
    left = abs(x)
    right = abs(width - x)
    top = abs(y)
    bottom = abs(height - y)

    near_x = False
    wrap_x = x
    if left <= reach:
        near_x = True
        wrap_x = width + left
    elif right <= reach:
        near_x = True
        wrap_x = -right

    near_y = False
    wrap_y = y
    if top <= reach:
        near_y = True
        wrap_y = height + top
    elif bottom <= reach:
        near_y = True
        wrap_y = -bottom

    return near_x, wrap_x, near_y, wrap_y


@numba.jit(nopython=True)
def _wrap_coordinate_jit(value, low, high):
    """Translates `value` by whole domain widths into [low, high)."""
    if low <= value and value < high:
        return value
    width = high - low
    value = value - width * math.floor((value - low) / width)
    if value >= high:  # Rounding on tiny negative offsets
        value = low
    return value


def _clamp_to_range(value, value_range):
    low, high, _ = value_range
    return float(min(max(value, low), high))


def clamp_window_size(width, height):
    """Limits a requested window size to the supported range, in whole pixels."""
    width = int(min(max(width, constants.MIN_WIDTH), constants.WIDTH))
    height = int(min(max(height, constants.MIN_HEIGHT), constants.HEIGHT))
    return width, height


class RelaxationEngine:
    """
    Pushes a population of points apart until no two lie closer than
    `min_distance`, on a toroidal domain.

    Each tick runs two phases. The query phase asks the spatial index for every
    point's neighbours, adding mirrored queries for points near an edge, and
    changes nothing. The force phase moves each point away from its neighbours
    (or towards them when `expand` is off) and out of the repulsor, wraps it
    back into the domain and flags it in the index. A single batched
    `update()` then reconciles the index for the next tick.

    Data Contract:
    - Inputs:
        - config (dict): The 'simulation' section of the config file.
        - rng (np.random.Generator): The master seeded random number generator.
        - bounds (tuple): The (width, height) of the domain.
        - max_points (int): Size of the pre-allocated point pool.
    - Outputs: None. This class modifies its internal state.
    - Side Effects: Writes point positions and flags them in the spatial index.
    - Invariants:
        - Exactly the first `num_points` points of the pool are in the index.
        - Between ticks the index agrees with every active point's position.
        - `positions[i]` mirrors `points[i]`; `draw` reads only the buffers.
    """
    def __init__(self, config: dict, rng: np.random.Generator, bounds: tuple,
                 max_points: int = constants.MAX_POINTS):
        width, height = bounds
        if not (width > 0 and height > 0):
            raise ConfigurationError(f"Domain bounds must be positive, got {bounds}.")
        if not config['min_distance'] > 0:
            raise ConfigurationError(f"min_distance must be positive, got {config['min_distance']}.")
        if not config['circle_radius'] > 0:
            raise ConfigurationError(f"circle_radius must be positive, got {config['circle_radius']}.")
        if not max_points > 0:
            raise ConfigurationError(f"max_points must be positive, got {max_points}.")

        self.config = config
        self.rng = rng
        self.bounds = np.array(bounds, dtype=float)
        self.max_points = max_points
        self.min_distance = float(config['min_distance'])
        self.speed = float(config['speed'])
        self.expand = bool(config.get('expand', True))
        self.log_interval = config.get('log_interval', 100)
        self.repulsor = Repulsor(float(config['circle_radius']))
        self.needs_wrap = False
        self.tick_count = 0
        self.last_interactions = 0
        self.last_moved = 0

        self.spatial_index = create_spatial_index(config.get('spatial_index', 'grid'), config, bounds)

        # --- Pre-allocate the whole point pool (Structure of Arrays, drawn directly) ---
        centre = self.bounds * 0.5
        spread = self.bounds * constants.POINT_SPREAD
        self.positions = rng.uniform(centre - spread, centre + spread, (max_points, 2))
        self.colors = rng.uniform(constants.POINT_COLOR_MIN, constants.POINT_COLOR_MAX, (max_points, 3))
        self.points = [
            Point(i, float(self.positions[i, 0]), float(self.positions[i, 1]), self.colors[i])
            for i in range(max_points)
        ]

        self.num_points = 0
        self.set_point_count(config['point_count'])

        logger.info(
            f"RelaxationEngine created with {self.num_points} active points "
            f"(pool of {max_points}) in a {width}x{height} domain."
        )

    # --- Parameter controls ---

    def set_point_count(self, count):
        """Activates or deactivates points so exactly `count` are simulated."""
        count = int(min(max(count, constants.POINT_COUNT_RANGE[0]), self.max_points))
        previous = self.num_points
        if count > previous:
            width, height = float(self.bounds[0]), float(self.bounds[1])
            for i in range(previous, count):
                # Pool points joining after a resize may sit outside the domain
                point = self.points[i]
                point.x = _wrap_coordinate_jit(point.x, 0.0, width)
                point.y = _wrap_coordinate_jit(point.y, 0.0, height)
                self.positions[i] = (point.x, point.y)
                self.spatial_index.add(point)
        elif count < previous:
            for i in range(count, previous):
                self.spatial_index.remove(self.points[i])
        self.num_points = count

        if count != previous:
            logger.info(f"Point count changed from {previous} to {count}.")

    def set_min_distance(self, distance):
        self.min_distance = _clamp_to_range(distance, constants.MIN_DISTANCE_RANGE)
        logger.info(f"Minimum distance set to {self.min_distance:.1f}.")

    def set_speed(self, speed):
        self.speed = _clamp_to_range(speed, constants.SPEED_RANGE)
        logger.info(f"Speed set to {self.speed:.1f}.")

    def set_expand(self, expand):
        self.expand = bool(expand)
        logger.info(f"Points now {'expand' if self.expand else 'contract'}.")

    def set_circle_radius(self, radius):
        self.repulsor.radius = _clamp_to_range(radius, constants.CIRCLE_RADIUS_RANGE)
        logger.info(f"Repulsor radius set to {self.repulsor.radius:.1f}.")

    def resize(self, width, height):
        """
        Changes the domain and re-wraps every point on the next tick.
        Returns the clamped (width, height) the window must be set to.
        """
        width, height = clamp_window_size(width, height)
        self.bounds = np.array((width, height), dtype=float)
        self.needs_wrap = True
        logger.info(f"Domain resized to {width}x{height}.")
        return width, height

    def place_point(self, i, x, y):
        """Moves point `i` directly, keeping the index consistent."""
        point = self.points[i]
        point.x = float(x)
        point.y = float(y)
        self.positions[i] = (point.x, point.y)
        self.spatial_index.flag_updated(point)
        self.spatial_index.update()

    # --- Simulation ---

    def _find_neighbors(self, x, y, width, height):
        index = self.spatial_index
        reach = self.min_distance
        hits = index.search((x, y), reach)

        near_x, wrap_x, near_y, wrap_y = _edge_wraps_jit(x, y, width, height, reach)
        if near_x:
            hits.extend(index.search((wrap_x, y), reach))
        if near_y:
            hits.extend(index.search((x, wrap_y), reach))
        if near_x or near_y:
            # A small domain can return the same record through several queries
            hits = list({id(record): record for record in hits}.values())
        return hits

    def repulsor_centres(self):
        """The repulsor's position followed by its mirrors across nearby edges."""
        repulsor = self.repulsor
        width, height = self.bounds
        centres = [(repulsor.x, repulsor.y)]
        near_x, wrap_x, near_y, wrap_y = _edge_wraps_jit(
            repulsor.x, repulsor.y, width, height, repulsor.radius
        )
        if near_x:
            centres.append((wrap_x, repulsor.y))
        if near_y:
            centres.append((repulsor.x, wrap_y))
        return centres

    def _apply_force(self, x, y, qx, qy, reach, force, invert):
        if x == qx and y == qy:
            # Coincident points have no separating direction, pick one at random
            angle = self.rng.uniform(0.0, 2.0 * np.pi)
            move_x, move_y = math.cos(angle) * force, math.sin(angle) * force
        else:
            move_x, move_y = _separation_jit(x, y, qx, qy, reach, force)

        if invert:
            move_x, move_y = -move_x, -move_y
        return x + move_x, y + move_y

    def tick(self, delta_time: float):
        """
        Advances the simulation by one frame.

        - Inputs: delta_time (float) - seconds since the previous tick, clamped
          to constants.MAX_DELTA_TIME.
        """
        delta = min(delta_time, constants.MAX_DELTA_TIME)
        force = self.speed * delta
        min_distance = self.min_distance
        min_distance_sq = min_distance * min_distance
        width, height = float(self.bounds[0]), float(self.bounds[1])
        invert = not self.expand
        points = self.points
        index = self.spatial_index

        # --- 1. Query phase: collect every neighbourhood before anything moves ---
        all_hits = [
            self._find_neighbors(points[i].x, points[i].y, width, height)
            for i in range(self.num_points)
        ]

        repulsor = self.repulsor
        centres = self.repulsor_centres() if repulsor.active else []
        radius_sq = repulsor.radius_sq

        # --- 2. Force phase ---
        interactions = 0
        moved = 0
        for i in range(self.num_points):
            point = points[i]
            needs_update = self.needs_wrap
            x, y = point.x, point.y

            for record in all_hits[i]:
                if record.object is point:
                    continue  # Don't compare a point against itself

                qx, qy = record.x, record.y
                dx, dy = x - qx, y - qy
                if dx * dx + dy * dy > min_distance_sq:
                    # Found through a mirrored query, resolve the distance across the edge
                    near_x, wrap_x, near_y, wrap_y = _edge_wraps_jit(qx, qy, width, height, min_distance)
                    if near_x and (x - wrap_x) ** 2 + (y - qy) ** 2 <= min_distance_sq:
                        x, y = self._apply_force(x, y, wrap_x, qy, min_distance, force, invert)
                    if near_y and (x - qx) ** 2 + (y - wrap_y) ** 2 <= min_distance_sq:
                        x, y = self._apply_force(x, y, qx, wrap_y, min_distance, force, invert)
                else:
                    x, y = self._apply_force(x, y, qx, qy, min_distance, force, invert)

                interactions += 1
                needs_update = True

            # Push out of the repulsor, through its mirrors when it straddles an edge
            for cx, cy in centres:
                distance_sq = (x - cx) ** 2 + (y - cy) ** 2
                if distance_sq < radius_sq:
                    penetration = repulsor.radius - math.sqrt(distance_sq)
                    x, y = self._apply_force(x, y, cx, cy, repulsor.radius, force * penetration, False)
                    needs_update = True
                    break

            x = _wrap_coordinate_jit(x, 0.0, width)
            y = _wrap_coordinate_jit(y, 0.0, height)

            if needs_update:
                point.x = x
                point.y = y
                self.positions[i, 0] = x
                self.positions[i, 1] = y
                index.flag_updated(point)
                moved += 1

        # --- 3. Batched reconciliation of the index ---
        index.update()
        self.needs_wrap = False
        self.tick_count += 1
        self.last_interactions = interactions
        self.last_moved = moved

        if self.log_interval and self.tick_count % self.log_interval == 0:
            logger.debug(
                f"Tick={self.tick_count}, "
                f"Points={self.num_points}, "
                f"Interactions={interactions}, "
                f"Moved={moved}, "
                f"Delta={delta:.4f}"
            )

    def get_stats(self) -> dict:
        return {
            'tick': self.tick_count,
            'points': self.num_points,
            'interactions': self.last_interactions,
            'moved': self.last_moved,
            'indexed': len(self.spatial_index),
        }

    # --- Rendering ---

    def draw(self, screen: pygame.Surface):
        """
        Draws the active points from the render buffers and, when active, the
        repulsor with its wrap ghosts.
        """
        # Convert the whole buffer at once, then draw with Python-native types
        count = self.num_points
        pixels = self.positions[:count].astype(np.int32).tolist()
        colors = np.clip(self.colors[:count] * 255, 0, 255).astype(np.int32).tolist()

        for (x, y), rgb_color in zip(pixels, colors):
            pygame.draw.circle(
                screen,
                rgb_color,
                (x, y),
                constants.POINT_DRAW_RADIUS
            )

        if self.repulsor.active:
            radius = int(self.repulsor.radius)
            for n, (cx, cy) in enumerate(self.repulsor_centres()):
                color = constants.WHITE if n == 0 else constants.GREY
                pygame.draw.circle(screen, color, (int(cx), int(cy)), radius, width=1)
