# repulsor.py

import logging

logger = logging.getLogger("vector_relax")


class Repulsor:
    """
    Pointer-controlled circle that pushes points out of its radius.

    Clicking toggles it; moving the pointer drags it. It starts inactive at the
    origin.
    """
    def __init__(self, radius: float):
        self.x = 0.0
        self.y = 0.0
        self.radius = radius
        self.active = False

    @property
    def radius_sq(self):
        return self.radius * self.radius

    def toggle(self):
        self.active = not self.active
        logger.info(f"Repulsor {'activated' if self.active else 'deactivated'} at ({self.x:.1f}, {self.y:.1f}).")
        return self.active

    def move_to(self, x: float, y: float):
        self.x = float(x)
        self.y = float(y)
