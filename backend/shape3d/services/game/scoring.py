"""Placement validation and scoring.

A shape counts toward a challenge only when it was placed inside the
challenge window (timestamp >= challenge start). Completion and the
first-placement bonus both go through ``_in_window`` so the two checks
cannot disagree about leftover geometry from earlier rounds.
"""
from typing import Iterable, Optional

from .domain import Challenge, GameState, PlacedShape, PlayerScoreEntry, Position
from .grid import now_ms

FIRST_PLACEMENT_BONUS = 1


def is_occupied(shapes: Iterable[PlacedShape], position: Position) -> bool:
    return any(shape.position == position for shape in shapes)


def _in_window(challenge: Challenge, shape: PlacedShape) -> bool:
    return shape.timestamp >= challenge.start_time


def validate_challenge_move(state: GameState, shape: PlacedShape) -> bool:
    """True when the shape fills one of the active challenge's slots exactly."""
    challenge = state.current_challenge
    if challenge is None:
        return False
    slot = challenge.slot_at(shape.position)
    if slot is None:
        return False
    return slot.matches(shape)


def is_first_placement_in_challenge(state: GameState, shape: PlacedShape) -> bool:
    """True when no other in-window shape already satisfies any slot.

    Must be evaluated before ``shape`` is appended to ``state.shapes``.
    """
    challenge = state.current_challenge
    if challenge is None:
        return False
    for other in state.shapes:
        if other.id == shape.id or not _in_window(challenge, other):
            continue
        if validate_challenge_move(state, other):
            return False
    return True


def sort_leaderboard(entries: list[PlayerScoreEntry]) -> None:
    # score desc, then earliest most-recent scoring time first
    entries.sort(key=lambda e: (-e.score, e.last_placement if e.last_placement is not None else 0))


def score_placement(
    state: GameState,
    player_id: str,
    bonus: int = 0,
    now: Optional[int] = None,
) -> PlayerScoreEntry:
    """Award ``1 + bonus`` points to ``player_id`` and re-rank the leaderboard."""
    entry = next((e for e in state.leaderboard if e.player_id == player_id), None)
    if entry is None:
        entry = PlayerScoreEntry(player_id=player_id)
        state.leaderboard.append(entry)
    entry.score += 1 + max(0, bonus)
    entry.last_placement = now if now is not None else now_ms()
    sort_leaderboard(state.leaderboard)
    return entry


def check_challenge_completion(state: GameState) -> bool:
    challenge = state.current_challenge
    if challenge is None:
        return False
    window = [s for s in state.shapes if _in_window(challenge, s)]
    return all(any(slot.matches(s) for s in window) for slot in challenge.slots)
