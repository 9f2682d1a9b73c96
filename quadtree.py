# quadtree.py

import numpy as np
from collections import namedtuple
import logging
import numba

from point_data import PointData
from spatial_index import SpatialIndex, ConfigurationError

logger = logging.getLogger("vector_relax")

# A simple structure for defining the bounding box of the tree's root.
BoundingBox = namedtuple('BoundingBox', ['x', 'y', 'width', 'height'])

ROOT = 0
NO_CHILD = -1


@numba.jit(nopython=True)
def _subdivide_jit(node_idx, first_child, node_bounds, node_children, node_parent, node_depth):
    """JIT-friendly subdivision of a node into four children at its centre."""
    min_x = node_bounds[node_idx, 0]
    min_y = node_bounds[node_idx, 1]
    max_x = node_bounds[node_idx, 2]
    max_y = node_bounds[node_idx, 3]
    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2

    # Children occupy a block of four consecutive slots: NW, NE, SW, SE
    for i in range(4):
        child = first_child + i
        node_children[node_idx, i] = child

        # Bit 0 picks the east half, bit 1 the south half
        if i & 1:
            node_bounds[child, 0] = center_x
            node_bounds[child, 2] = max_x
        else:
            node_bounds[child, 0] = min_x
            node_bounds[child, 2] = center_x
        if i & 2:
            node_bounds[child, 1] = center_y
            node_bounds[child, 3] = max_y
        else:
            node_bounds[child, 1] = min_y
            node_bounds[child, 3] = center_y

        for j in range(4):
            node_children[child, j] = -1
        node_parent[child] = node_idx
        node_depth[child] = node_depth[node_idx] + 1


class QuadTree(SpatialIndex):
    """
    Incremental point quadtree stored as an arena of nodes.

    Nodes are rows of parallel NumPy arrays addressed by index: bounds
    (min_x, min_y, max_x, max_y), parent, four children (-1 when absent), depth
    and the number of records in the subtree. Leaf record lists live in
    `node_points`; internal nodes hold None there.

    Data Contract:
    - Inputs:
        - boundary (BoundingBox): initial root rectangle, positive width and height.
        - threshold (int): records a leaf holds before it splits, > 0.
        - max_depth (int): leaves at this depth never split, > 0.
    - Invariants:
        - A node with children holds no records directly.
        - Every record lives in the first leaf, in NW, NE, SW, SE order, whose
          rectangle contains its indexed position.
        - Only the root grows. An out-of-bounds insertion expands the root
          rectangle and rebuilds the whole tree; every other node rejects it.
    """
    record_type = PointData

    def __init__(self, boundary: BoundingBox, threshold: int = 8, max_depth: int = 16):
        if not (boundary.width > 0 and boundary.height > 0):
            raise ConfigurationError(f"Quadtree bounds must have positive area, got {boundary}.")
        if not threshold > 0:
            raise ConfigurationError(f"Quadtree threshold must be positive, got {threshold}.")
        if not max_depth > 0:
            raise ConfigurationError(f"Quadtree max depth must be positive, got {max_depth}.")
        super().__init__()
        self.threshold = threshold
        self.max_depth = max_depth

        self.max_nodes = 0
        self.node_bounds = np.empty((0, 4), dtype=np.float64)
        self.node_children = np.empty((0, 4), dtype=np.int32)
        self.node_parent = np.empty(0, dtype=np.int32)
        self.node_depth = np.empty(0, dtype=np.int32)
        self.node_count = np.empty(0, dtype=np.int64)
        self.node_points = []
        self.num_nodes = 0
        self.free_blocks = []

        self._reset((boundary.x, boundary.y, boundary.x + boundary.width, boundary.y + boundary.height))

    def _ensure_capacity(self, required_nodes):
        """Grow the arena arrays, doubling, so at least `required_nodes` slots exist."""
        if required_nodes <= self.max_nodes:
            return
        old_max = self.max_nodes
        new_max = max(required_nodes, old_max * 2, 64)

        node_bounds = np.zeros((new_max, 4), dtype=np.float64)
        node_children = np.full((new_max, 4), NO_CHILD, dtype=np.int32)
        node_parent = np.full(new_max, NO_CHILD, dtype=np.int32)
        node_depth = np.zeros(new_max, dtype=np.int32)
        node_count = np.zeros(new_max, dtype=np.int64)

        node_bounds[:old_max] = self.node_bounds
        node_children[:old_max] = self.node_children
        node_parent[:old_max] = self.node_parent
        node_depth[:old_max] = self.node_depth
        node_count[:old_max] = self.node_count

        self.node_bounds = node_bounds
        self.node_children = node_children
        self.node_parent = node_parent
        self.node_depth = node_depth
        self.node_count = node_count
        self.node_points.extend([None] * (new_max - old_max))
        self.max_nodes = new_max

    def _reset(self, bounds):
        """Drops every node and record, leaving an empty root covering `bounds`."""
        self._ensure_capacity(1)
        self.node_children.fill(NO_CHILD)
        self.node_parent.fill(NO_CHILD)
        self.node_depth.fill(0)
        self.node_count.fill(0)
        self.node_points = [None] * self.max_nodes
        self.node_bounds[ROOT] = bounds
        self.node_points[ROOT] = []
        self.num_nodes = 1
        self.free_blocks = []

    def _allocate_block(self):
        if self.free_blocks:
            return self.free_blocks.pop()
        first = self.num_nodes
        self._ensure_capacity(first + 4)
        self.num_nodes += 4
        return first

    def _is_leaf(self, node):
        return self.node_children[node, 0] == NO_CHILD

    def _contains(self, node, x, y):
        """Inclusive on every edge, so points on a split line belong to two children."""
        min_x, min_y, max_x, max_y = self.node_bounds[node].tolist()
        return min_x <= x <= max_x and min_y <= y <= max_y

    def _child_containing(self, node, x, y):
        for child in self.node_children[node]:
            if self._contains(child, x, y):
                return child
        return NO_CHILD

    @property
    def bounds(self):
        """Root rectangle as (min_x, min_y, max_x, max_y)."""
        return tuple(float(v) for v in self.node_bounds[ROOT])

    @property
    def active_node_count(self) -> int:
        return self.num_nodes - 4 * len(self.free_blocks)

    def depth(self) -> int:
        """Depth of the deepest live node."""
        deepest = 0
        stack = [ROOT]
        while stack:
            node = stack.pop()
            deepest = max(deepest, int(self.node_depth[node]))
            if not self._is_leaf(node):
                stack.extend(self.node_children[node])
        return deepest

    # --- Insertion ---

    def _insert(self, record):
        if not self._insert_into(ROOT, record):
            self._expand_root(record)

    def _insert_into(self, node, record):
        """Adds `record` below `node`. Returns False if it lies outside `node`."""
        if not self._contains(node, record.x, record.y):
            return False

        if self._is_leaf(node):
            points = self.node_points[node]
            points.append(record)
            self.node_count[node] += 1
            if len(points) > self.threshold and self.node_depth[node] < self.max_depth:
                self._split(node)
            return True

        for child in self.node_children[node]:
            if self._insert_into(child, record):
                self.node_count[node] += 1
                return True
        return False

    def _split(self, node):
        first_child = self._allocate_block()
        _subdivide_jit(node, first_child, self.node_bounds, self.node_children,
                       self.node_parent, self.node_depth)
        for child in range(first_child, first_child + 4):
            self.node_points[child] = []
            self.node_count[child] = 0

        # Push the records down; the node's own count is unchanged
        points = self.node_points[node]
        self.node_points[node] = None
        for record in points:
            for child in self.node_children[node]:
                if self._insert_into(child, record):
                    break

    def _expand_root(self, record):
        """Grows the root to take `record` and rebuilds the tree under the new bounds."""
        min_x, min_y, max_x, max_y = self.bounds
        new_bounds = (
            min(min_x, record.x), min(min_y, record.y),
            max(max_x, record.x), max(max_y, record.y),
        )
        records = self._collect(ROOT)
        logger.info(
            f"Quadtree root expanded from {(min_x, min_y, max_x, max_y)} to {new_bounds}; "
            f"rebuilding {len(records)} records."
        )

        self._reset(new_bounds)
        for existing in records:
            self._insert_into(ROOT, existing)
        self._insert_into(ROOT, record)

    def _collect(self, node):
        records = []
        stack = [node]
        while stack:
            current = stack.pop()
            if self._is_leaf(current):
                records.extend(self.node_points[current])
            else:
                stack.extend(self.node_children[current])
        return records

    # --- Removal ---

    def _discard(self, record):
        self._remove_at(record, record.x, record.y)

    def _remove_at(self, record, x, y):
        """
        Removes `record`, which is indexed at (x, y), and merges emptied subtrees.
        Returns False if it is not found.
        """
        if not self._contains(ROOT, x, y):
            return False

        path = []
        node = ROOT
        while not self._is_leaf(node):
            path.append(node)
            node = self._child_containing(node, x, y)
            if node == NO_CHILD:
                return False

        points = self.node_points[node]
        for i, candidate in enumerate(points):
            if candidate is record:
                del points[i]
                break
        else:
            return False

        self.node_count[node] -= 1
        for ancestor in path:
            self.node_count[ancestor] -= 1

        for ancestor in reversed(path):
            if not self._try_merge(ancestor):
                break
        return True

    def _try_merge(self, node):
        """Folds four leaf children back into `node` once it is small enough."""
        if self.node_count[node] > self.threshold:
            return False
        children = self.node_children[node].copy()
        if not all(self._is_leaf(child) for child in children):
            return False

        merged = []
        for child in children:
            merged.extend(self.node_points[child])
            self.node_points[child] = None
            self.node_count[child] = 0
        self.node_points[node] = merged
        self.node_children[node, :] = NO_CHILD
        self.free_blocks.append(int(children[0]))
        return True

    # --- Update & search ---

    def _reindex(self, record):
        old_x, old_y = record.x, record.y
        if record.update():
            self._remove_at(record, old_x, old_y)
            self._insert(record)

    def search(self, center, radius):
        if radius < 0 or self.node_count[ROOT] == 0:
            return []

        cx, cy = center
        radius_sq = radius * radius
        hits = []
        stack = [ROOT]
        while stack:
            node = stack.pop()
            min_x, min_y, max_x, max_y = self.node_bounds[node].tolist()
            # Skip nodes outside the bounding box of the query circle
            if cx + radius < min_x or cx - radius > max_x or cy + radius < min_y or cy - radius > max_y:
                continue
            if self._is_leaf(node):
                for record in self.node_points[node]:
                    if record.distance_sq(cx, cy) <= radius_sq:
                        hits.append(record)
            else:
                stack.extend(self.node_children[node])
        return hits

    def __repr__(self):
        return (
            f"QuadTree(bounds={self.bounds}, threshold={self.threshold}, "
            f"max_depth={self.max_depth}, points={len(self)}, nodes={self.active_node_count})"
        )
