# controls.py

"""
Control Panel

Named, range-limited simulation knobs with change callbacks. The application
maps key presses onto `nudge`; every accepted change is forwarded to the
engine through the control's callback.

Data Contract:
- Numeric controls carry a (min, max, step) range and are clamped into it.
- Boolean controls carry no range; `nudge` toggles them.
- Callbacks fire only when the stored value actually changes.
"""

import logging

import constants

logger = logging.getLogger("vector_relax")


class Control:
    def __init__(self, name, value, value_range=None, on_change=None, label=None):
        self.name = name
        self.value = value
        self.value_range = value_range
        self.on_change = on_change
        self.label = label or name

    @property
    def is_boolean(self):
        return self.value_range is None

    def coerce(self, value):
        if self.is_boolean:
            return bool(value)
        low, high, step = self.value_range
        value = min(max(value, low), high)
        # Integer steps mean an integer control, e.g. the point count
        return int(round(value)) if isinstance(step, int) else float(value)


class ControlPanel:
    def __init__(self):
        self.controls = {}

    def add(self, name, value, value_range=None, on_change=None, label=None):
        control = Control(name, value, value_range, on_change, label)
        control.value = control.coerce(value)
        self.controls[name] = control
        return control

    def get(self, name):
        return self.controls[name].value

    def set(self, name, value):
        """Stores a new value for `name`. Returns True if the value changed."""
        control = self.controls[name]
        value = control.coerce(value)
        if value == control.value:
            return False

        control.value = value
        logger.debug(f"Control '{control.label}' -> {value}")
        if control.on_change is not None:
            control.on_change(value)
        return True

    def nudge(self, name, steps=1):
        """Moves a numeric control by whole steps, or toggles a boolean one."""
        control = self.controls[name]
        if control.is_boolean:
            return self.set(name, not control.value)
        return self.set(name, control.value + steps * control.value_range[2])

    def describe(self):
        lines = []
        for control in self.controls.values():
            value = control.value
            if isinstance(value, float):
                value = f"{value:.1f}"
            lines.append(f"{control.label}: {value}")
        return lines


def bind_engine(engine) -> ControlPanel:
    """Builds the standard panel wired to a RelaxationEngine's setters."""
    panel = ControlPanel()
    panel.add('min_distance', engine.min_distance, constants.MIN_DISTANCE_RANGE,
              engine.set_min_distance, label='Min Distance')
    panel.add('speed', engine.speed, constants.SPEED_RANGE,
              engine.set_speed, label='Speed')
    panel.add('expand', engine.expand, None,
              engine.set_expand, label='Expand')
    panel.add('circle_radius', engine.repulsor.radius, constants.CIRCLE_RADIUS_RANGE,
              engine.set_circle_radius, label='Circle Radius')
    panel.add('point_count', engine.num_points,
              (constants.POINT_COUNT_RANGE[0], engine.max_points, constants.POINT_COUNT_RANGE[2]),
              engine.set_point_count, label='Point Count')
    return panel
