# point.py

import numpy as np


class Point:
    """
    A single relaxing point, the external object the spatial index tracks.

    Data Contract:
    - Inputs:
        - point_id (int): position of the point in the engine's pool.
        - x, y (float): initial position in domain coordinates.
        - color (np.ndarray): RGB channels in [0, 1], a view into the engine's
          colour buffer.
    - Invariants: `x` and `y` are only written by the relaxation engine, which
      flags the point in the index after every write.
    """
    def __init__(self, point_id: int, x: float, y: float, color: np.ndarray):
        self.id = point_id
        self.x = x
        self.y = y
        self.color = color

    def __repr__(self):
        return f"Point(id={self.id}, x={self.x:.2f}, y={self.y:.2f})"
