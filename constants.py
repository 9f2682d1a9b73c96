# constants.py

"""
Application Constants

This module defines static configuration values for the application's framework.
These are not expected to change between simulation runs.

Data Contract:
- All values are immutable constants.
- Units are specified in comments where applicable.
"""

# Screen dimensions. The window starts at, and never grows past, WIDTH x HEIGHT.
WIDTH = 1024  # Pixels
HEIGHT = 768  # Pixels
MIN_WIDTH = 320  # Pixels
MIN_HEIGHT = 240  # Pixels

# Framerate
FPS = 60  # Frames per second

# Largest time step a single tick may integrate. Longer frames are clamped so
# a stalled window does not fling points across the domain.
MAX_DELTA_TIME = 0.25  # Seconds

# Colors (RGB)
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
GREY = (170, 170, 170)

# Window Title
TITLE = "Vector Relaxation"

# Points
POINT_DRAW_RADIUS = 2  # Pixels
POINT_SPREAD = 0.2  # Fraction of the domain around its centre used for initial scatter.
POINT_COLOR_MIN = 0.1  # Per-channel colour range, as a fraction of 255.
POINT_COLOR_MAX = 1.0

# Control ranges (min, max, step)
POINT_COUNT_RANGE = (1, 5000, 1)
MIN_DISTANCE_RANGE = (1.0, 200.0, 1.0)  # Pixels
SPEED_RANGE = (1.0, 1000.0, 5.0)  # Pixels per second
CIRCLE_RADIUS_RANGE = (1.0, 200.0, 2.0)  # Pixels

MAX_POINTS = POINT_COUNT_RANGE[1]

# Spatial index defaults
DEFAULT_CELL_SIZE = 16.0  # Pixels
DEFAULT_QUADTREE_THRESHOLD = 8  # Records per leaf before it splits.
DEFAULT_QUADTREE_MAX_DEPTH = 16
