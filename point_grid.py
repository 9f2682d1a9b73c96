# point_grid.py

import math

from point_data import PointData
from spatial_index import SpatialIndex, ConfigurationError


class PointGridData(PointData):
    """PointData that remembers which grid cell it was last filed under."""

    def __init__(self, obj, on_collect=None):
        super().__init__(obj, on_collect)
        self.inserted_key = None

    def get_cell_key(self, cell_size):
        return (math.floor(self.x / cell_size), math.floor(self.y / cell_size))


class PointGrid(SpatialIndex):
    """
    Uniform grid spatial hash.

    Space is split into square cells of `cell_size`. Each cell is keyed by its
    integer (cell_x, cell_y) pair, so distinct cells never share a bucket. The
    cell enumeration in `search` over-covers the query circle with a box of
    cells; the exact distance check on every candidate makes the result exact.

    Data Contract:
    - Inputs: cell_size (float) - side length of a cell, must be > 0.
    - Invariants: a record appears in at most one bucket, the one named by its
      `inserted_key`. Buckets are never left empty.
    """
    record_type = PointGridData

    def __init__(self, cell_size: float):
        if not cell_size > 0:
            raise ConfigurationError(f"Grid cell size must be positive, got {cell_size}.")
        super().__init__()
        self.cell_size = cell_size
        self.cell_map = {}  # key = cell coordinates, value = records in cell

    def _reindex(self, record):
        if record.inserted_key is None:
            # Flagged before it was ever filed
            record.update()
            self._insert(record)
            return

        if record.update():
            key = record.get_cell_key(self.cell_size)
            if key != record.inserted_key:
                self._discard(record)
                self._insert(record)

    def search(self, center, radius):
        if radius < 0:
            return []

        cx, cy = center
        cell_size = self.cell_size
        low_x = math.floor((cx - radius) / cell_size)
        high_x = math.floor((cx + radius) / cell_size)
        low_y = math.floor((cy - radius) / cell_size)
        high_y = math.floor((cy + radius) / cell_size)
        radius_sq = radius * radius

        hits = []
        cell_map = self.cell_map
        for x in range(low_x, high_x + 1):
            for y in range(low_y, high_y + 1):
                contents = cell_map.get((x, y))
                if not contents:
                    continue
                for record in contents:
                    if record.distance_sq(cx, cy) <= radius_sq:
                        hits.append(record)
        return hits

    def _insert(self, record):
        key = record.get_cell_key(self.cell_size)
        record.inserted_key = key
        contents = self.cell_map.get(key)
        if contents is None:
            self.cell_map[key] = [record]
        else:
            contents.append(record)

    def _discard(self, record):
        key = record.inserted_key
        if key is None:
            return  # Not inserted
        record.inserted_key = None

        contents = self.cell_map.get(key)
        if not contents:
            return
        for i, candidate in enumerate(contents):
            if candidate is record:
                del contents[i]
                break
        if not contents:
            del self.cell_map[key]

    @property
    def cell_count(self) -> int:
        return len(self.cell_map)

    def __repr__(self):
        return f"PointGrid(cell_size={self.cell_size}, points={len(self)}, cells={self.cell_count})"
