# spatial_index.py

"""
Spatial Index Contract

Shared bookkeeping for the incremental point indexes (grid, sweep-and-prune and
quadtree). Subclasses implement the structure-specific `_insert`, `_discard`,
`_reindex` and `search`; this module owns the object-to-record mapping and the
per-tick dirty buffer.

Data Contract:
- Objects are tracked by identity. The mapping is keyed by `id(obj)` and each
  record only holds a weak reference, so the index never extends an object's
  lifetime. A collected object's record is dropped from the structure by the
  weakref callback, before its id can be reused.
- `add`, `remove` and `flag_updated` are silent no-ops on invalid input.
- Mutation of the structure is deferred: `flag_updated` only marks a record,
  `update` reconciles every marked record in one pass.
"""

import logging

from point_data import PointData
import constants

logger = logging.getLogger("vector_relax")

INDEX_KINDS = ("grid", "sweep_and_prune", "quadtree")


class ConfigurationError(ValueError):
    """Raised when an index or engine is constructed with invalid parameters."""


class SpatialIndex:
    """Base class for the point indexes. Not usable on its own."""

    record_type = PointData

    def __init__(self):
        self._records = {}
        # Insertion-ordered so reindexing follows flag order; keyed by handle so
        # a point flagged many times in one tick is reindexed once.
        self._updated = {}

    def _lookup(self, obj):
        record = self._records.get(id(obj))
        if record is not None and record.object is obj:
            return record
        return None

    def add(self, obj):
        if self._lookup(obj) is not None:
            return  # Already got it

        key = id(obj)
        record = self.record_type(obj, lambda dead: self._forget(key, dead))
        self._records[key] = record
        self._insert(record)

    def _forget(self, key, record):
        """Drops the record of a collected object. Runs from the weakref callback."""
        if self._records.get(key) is not record:
            return  # Already removed
        del self._records[key]
        self._updated.pop(key, None)
        self._discard(record)

    def remove(self, obj):
        record = self._lookup(obj)
        if record is None:
            return

        del self._records[id(obj)]
        self._updated.pop(id(obj), None)
        self._discard(record)

    def flag_updated(self, obj):
        record = self._lookup(obj)
        if record is not None:
            self._updated[id(obj)] = record

    def update(self):
        """Reindexes every record flagged since the last call, then clears the flags."""
        updated = self._updated
        self._updated = {}
        for key, record in updated.items():
            if self._records.get(key) is record:
                self._reindex(record)

    def search(self, center, radius):
        """
        Returns the records within `radius` (inclusive) of `center`.

        - Inputs:
            - center: an (x, y) pair.
            - radius (float): search radius. Negative radii match nothing.
        - Outputs: list of records, in no particular order.
        """
        raise NotImplementedError

    def records(self):
        return list(self._records.values())

    @property
    def pending_updates(self) -> int:
        return len(self._updated)

    def __len__(self):
        return len(self._records)

    def __contains__(self, obj):
        return self._lookup(obj) is not None

    def _insert(self, record):
        raise NotImplementedError

    def _discard(self, record):
        raise NotImplementedError

    def _reindex(self, record):
        raise NotImplementedError


def create_spatial_index(kind: str, config: dict, bounds) -> SpatialIndex:
    """
    Builds the index named by `kind` from the 'simulation' config section.

    - Inputs:
        - kind (str): one of INDEX_KINDS.
        - config (dict): reads 'cell_size', 'quadtree_threshold' and
          'quadtree_max_depth', falling back to the defaults in constants.
        - bounds (tuple): (width, height) of the domain; seeds the quadtree root.
    - Raises: ConfigurationError for an unknown kind or invalid parameters.
    """
    # Imported here because the implementations subclass SpatialIndex.
    from point_grid import PointGrid
    from sweep_and_prune import PointSweepAndPrune
    from quadtree import QuadTree, BoundingBox

    if kind == "grid":
        index = PointGrid(config.get('cell_size', constants.DEFAULT_CELL_SIZE))
    elif kind == "sweep_and_prune":
        index = PointSweepAndPrune()
    elif kind == "quadtree":
        width, height = bounds
        index = QuadTree(
            BoundingBox(x=0.0, y=0.0, width=float(width), height=float(height)),
            threshold=config.get('quadtree_threshold', constants.DEFAULT_QUADTREE_THRESHOLD),
            max_depth=config.get('quadtree_max_depth', constants.DEFAULT_QUADTREE_MAX_DEPTH),
        )
    else:
        raise ConfigurationError(
            f"Unknown spatial index '{kind}'. Expected one of: {', '.join(INDEX_KINDS)}."
        )

    logger.info(f"Spatial index created: {index!r}")
    return index
