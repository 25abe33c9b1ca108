"""Grid helpers and randomizer. Pure functions, no session state.

Every sampler takes an optional ``rng`` (anything with ``randrange`` and
``choice``, e.g. ``random.Random(seed)``) so callers can pin the sequence.
"""
import random
import string
import time

from .domain import Position, ShapeColor, ShapeType

SHAPES = tuple(ShapeType)
COLORS = tuple(ShapeColor)
_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id(rng=random, length: int = 9) -> str:
    return ''.join(rng.choice(_ID_ALPHABET) for _ in range(length))


def grid_bounds(grid_size: int) -> tuple[int, int]:
    """Inclusive (low, high) range for the x and z axes."""
    half = grid_size // 2
    return -half, half - 1


def in_bounds(position: Position, grid_size: int, max_height: int = 10) -> bool:
    low, high = grid_bounds(grid_size)
    return (
        low <= position.x <= high
        and low <= position.z <= high
        and 0 <= position.y <= max_height
    )


def random_position(grid_size: int, max_height: int = 10, rng=random) -> Position:
    half = grid_size // 2
    return Position(
        x=rng.randrange(grid_size) - half,
        y=rng.randrange(max_height + 1),
        z=rng.randrange(grid_size) - half,
    )


def random_shape(rng=random) -> ShapeType:
    return rng.choice(SHAPES)


def random_color(rng=random) -> ShapeColor:
    return rng.choice(COLORS)
