# point_data.py

import weakref


class PointData:
    """
    Index-side record mirroring the position of one tracked object.

    Data Contract:
    - Inputs:
        - obj - any object exposing numeric `x` and `y` attributes that
          supports weak references.
        - on_collect (callable, optional) - called with this record once `obj`
          has been garbage-collected.
    - Invariants:
        - `x`, `y` hold the position the record is currently indexed under.
        - `old_x`, `old_y` hold the value each axis had before its most recent
          change, which sorted structures need to find the stale entry.
        - The record never keeps its object alive.
    """
    def __init__(self, obj, on_collect=None):
        if on_collect is None:
            self._ref = weakref.ref(obj)
        else:
            self._ref = weakref.ref(obj, lambda ref: on_collect(self))
        self.x = self.old_x = obj.x
        self.y = self.old_y = obj.y

    @property
    def object(self):
        """The tracked object, or None once it has been garbage-collected."""
        return self._ref()

    def update_x(self) -> bool:
        obj = self._ref()
        if obj is not None and obj.x != self.x:
            self.old_x = self.x
            self.x = obj.x
            return True
        return False

    def update_y(self) -> bool:
        obj = self._ref()
        if obj is not None and obj.y != self.y:
            self.old_y = self.y
            self.y = obj.y
            return True
        return False

    def update(self) -> bool:
        """Pulls both coordinates from the object. Returns True if either changed."""
        x_changed = self.update_x()
        y_changed = self.update_y()
        return x_changed or y_changed

    def distance_sq(self, x: float, y: float) -> float:
        dx = self.x - x
        dy = self.y - y
        return dx * dx + dy * dy

    def __repr__(self):
        return f"{type(self).__name__}(x={self.x}, y={self.y})"
