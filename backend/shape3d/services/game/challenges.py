"""Challenge engine: round accounting and slot generation."""
import random
from typing import Optional

from .domain import Challenge, ChallengeSlot, GameState, Position
from .grid import generate_id, grid_bounds, now_ms, random_color, random_position, random_shape
from .scoring import is_occupied


def pick_slot_positions(
    state: GameState,
    count: int,
    grid_size: int,
    max_height: int,
    max_attempts: int = 100,
    rng=random,
) -> list[Position]:
    """Sample ``count`` positions avoiding placed shapes and each other.

    After ``max_attempts`` misses for one slot the grid is scanned for a
    cell nobody has built on, so a slot is never put where it can no longer
    be filled. Only when every cell is taken is the last sample kept.
    """
    chosen: list[Position] = []
    for _ in range(count):
        candidate = random_position(grid_size, max_height, rng)
        attempts = 1
        while attempts < max_attempts and (
            is_occupied(state.shapes, candidate) or candidate in chosen
        ):
            candidate = random_position(grid_size, max_height, rng)
            attempts += 1
        if is_occupied(state.shapes, candidate) or candidate in chosen:
            candidate = _first_free_cell(state, chosen, grid_size, max_height) or candidate
        chosen.append(candidate)
    return chosen


def _first_free_cell(
    state: GameState,
    chosen: list[Position],
    grid_size: int,
    max_height: int,
) -> Optional[Position]:
    """First unoccupied cell, preferring one no other slot uses."""
    taken = {s.position for s in state.shapes}
    low, high = grid_bounds(grid_size)
    fallback = None
    for x in range(low, high + 1):
        for y in range(0, max_height + 1):
            for z in range(low, high + 1):
                cell = Position(x, y, z)
                if cell in taken:
                    continue
                if cell not in chosen:
                    return cell
                if fallback is None:
                    fallback = cell
    return fallback


def create_challenge(
    state: GameState,
    *,
    grid_size: int,
    max_height: int = 10,
    slot_count: int = 3,
    max_attempts: int = 100,
    duration: int = 0,
    rng=random,
    now: Optional[int] = None,
) -> Optional[Challenge]:
    """Advance ``state`` to its next round and install a fresh challenge.

    Returns None, leaving ``state`` untouched, once every round has been
    played. The round bump and the new challenge are applied to the same
    aggregate so they are persisted together.
    """
    if state.current_round >= state.total_rounds:
        return None

    state.current_round += 1
    positions = pick_slot_positions(state, slot_count, grid_size, max_height, max_attempts, rng)
    slots = tuple(
        ChallengeSlot(position=p, shape=random_shape(rng), color=random_color(rng))
        for p in positions
    )
    challenge = Challenge(
        id=generate_id(rng),
        slots=slots,
        start_time=now if now is not None else now_ms(),
        duration=duration,
    )
    state.current_challenge = challenge
    return challenge
