# sweep_and_prune.py

"""
Sweep-and-prune point index.

Every tracked point sits in two lists, one sorted by x and one by y. A radius
query cuts a band out of each list with binary search, intersects the two
bands and drops the corners of the resulting box that fall outside the circle.

All lookups go through a three-way comparator `compare(element, value)` that
returns a negative number, zero or a positive number as the element sorts
before, level with or after `value`.
"""

from point_data import PointData
from spatial_index import SpatialIndex


def binary_search(array, value, compare):
    """
    Returns the index of an element comparing equal to `value`, or the bitwise
    complement of the index `value` would be inserted at. With runs of equal
    keys any member of the run may be returned.
    """
    low = 0
    high = len(array) - 1

    if not array or compare(array[low], value) > 0:
        return ~low  # Goes before every single item

    if compare(array[high], value) < 0:
        return ~(high + 1)

    while low <= high:
        mid = (low + high) >> 1
        c = compare(array[mid], value)
        if c < 0:
            low = mid + 1
        elif c > 0:
            high = mid - 1
        else:
            return mid

    return ~low


def sorted_insert(array, value, compare):
    index = binary_search(array, value, compare)
    if index < 0:
        index = ~index
    array.insert(index, value)


def _find_in_equal_run(array, start, value, compare):
    """Scans the run of keys equal to `value` around `start` for the instance itself."""
    index = start
    while index > 0 and compare(array[index - 1], value) == 0:
        index -= 1
        if array[index] is value:
            return index

    index = start
    last = len(array) - 1
    while index < last and compare(array[index + 1], value) == 0:
        index += 1
        if array[index] is value:
            return index

    return None


def sorted_remove(array, value, compare) -> bool:
    """
    Removes the exact instance `value` from a sorted array.

    `compare` must place `value` by the key it is currently sorted under. Returns
    False when the instance is not in the array.
    """
    index = binary_search(array, value, compare)
    if index < 0:
        return False  # Not added

    if array[index] is not value:
        # Landed on a different element with an equal key
        index = _find_in_equal_run(array, index, value, compare)
        if index is None:
            return False

    del array[index]
    return True


def _lower_bound(array, value, compare):
    """First index whose element does not sort before `value`."""
    low, high = 0, len(array)
    while low < high:
        mid = (low + high) >> 1
        if compare(array[mid], value) < 0:
            low = mid + 1
        else:
            high = mid
    return low


def _upper_bound(array, value, compare):
    """First index whose element sorts after `value`."""
    low, high = 0, len(array)
    while low < high:
        mid = (low + high) >> 1
        if compare(array[mid], value) <= 0:
            low = mid + 1
        else:
            high = mid
    return low


def search_axis(axis, position, radius, compare):
    """
    Returns the slice of `axis` whose keys lie in [position - radius, position + radius],
    or None when the band is empty.
    """
    start = _lower_bound(axis, position - radius, compare)
    if start >= len(axis):
        return None  # Every key is below the band

    end = _upper_bound(axis, position + radius, compare)
    if start >= end:
        return None

    return axis[start:end]


def _x_sort(a, b):
    return a.x - b.x


def _y_sort(a, b):
    return a.y - b.y


# While a record is being reindexed its `x` already holds the new value but its
# slot in the list still reflects `old_x`, so it is compared by `old_x` too.
def _x_remove(a, b):
    return (a.old_x if a is b else a.x) - b.old_x


def _y_remove(a, b):
    return (a.old_y if a is b else a.y) - b.old_y


def _x_search(a, b):
    return a.x - b


def _y_search(a, b):
    return a.y - b


class PointSweepAndPrune(SpatialIndex):
    """
    Dual-axis sorted-array index.

    Data Contract:
    - Invariants: `x_points` and `y_points` hold the same records, each exactly
      once, sorted ascending by the record's indexed `x` and `y` respectively.
    - Costs: locating is O(log n); inserting or removing shifts the list, O(n).
    """
    record_type = PointData

    def __init__(self):
        super().__init__()
        self.x_points = []
        self.y_points = []

    def _insert(self, record):
        sorted_insert(self.x_points, record, _x_sort)
        sorted_insert(self.y_points, record, _y_sort)

    def _discard(self, record):
        sorted_remove(self.x_points, record, _x_sort)
        sorted_remove(self.y_points, record, _y_sort)

    def _reindex(self, record):
        if record.update_x():
            sorted_remove(self.x_points, record, _x_remove)
            sorted_insert(self.x_points, record, _x_sort)

        if record.update_y():
            sorted_remove(self.y_points, record, _y_remove)
            sorted_insert(self.y_points, record, _y_sort)

    def search(self, center, radius):
        if radius < 0:
            return []

        cx, cy = center
        # Search on X axis first
        x_hits = search_axis(self.x_points, cx, radius, _x_search)
        if not x_hits:
            return []  # No hits along X, so Y is never consulted

        y_hits = search_axis(self.y_points, cy, radius, _y_search)
        if not y_hits:
            return []

        # Iterate the smaller band, test membership against the larger one
        if len(x_hits) > len(y_hits):
            biggest, other = x_hits, y_hits
        else:
            biggest, other = y_hits, x_hits
        biggest = set(biggest)

        radius_sq = radius * radius
        return [
            hit for hit in other
            if hit in biggest and hit.distance_sq(cx, cy) <= radius_sq
        ]

    def __repr__(self):
        return f"PointSweepAndPrune(points={len(self)})"
