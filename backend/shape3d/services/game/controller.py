"""Session controller: join, placement and round advancement.

Every mutation of a session is a read-modify-write of the whole aggregate,
run under that session's lock and persisted with a single
``SessionStore.save`` so round, challenge, shapes, players and leaderboard
are always written together. Broadcasts go out after the lock is released
and never affect the result returned to the caller.
"""
import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Optional

from .broadcast import GAME_COMPLETE, NEW_CHALLENGE, BroadcastGateway
from .challenges import create_challenge
from .domain import Challenge, GameState, PlacedShape, PlacementRequest
from .errors import InvalidPlacement, RejectedPlacement, SessionNotFound, StoreFailure
from .grid import generate_id, in_bounds, now_ms
from .scheduler import ChallengeTimers
from .scoring import (
    FIRST_PLACEMENT_BONUS,
    check_challenge_completion,
    is_first_placement_in_challenge,
    is_occupied,
    score_placement,
    validate_challenge_move,
)
from .store import SessionStore

ANONYMOUS = 'anonymous'


@dataclass
class JoinResult:
    success: bool
    game_state: GameState

    def to_dict(self) -> dict[str, Any]:
        return {'type': 'join', 'success': self.success, 'game_state': self.game_state.to_dict()}


@dataclass
class PlacementResult:
    success: bool
    message: str
    game_state: GameState
    shape: Optional[PlacedShape] = None
    is_first_placement: bool = False
    scored: bool = False
    points: int = 0
    player_name: Optional[str] = None
    # NEW_CHALLENGE or GAME_COMPLETE when this placement cleared the challenge
    transition: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'type': 'place',
            'success': self.success,
            'shape': self.shape.to_dict() if self.shape else None,
            'message': self.message,
            'is_first_placement': self.is_first_placement,
            'scored': self.scored,
            'points': self.points,
            'player_name': self.player_name,
            'game_state': self.game_state.to_dict(),
        }


class SessionController:

    def __init__(
        self,
        store: SessionStore,
        broadcaster: BroadcastGateway,
        timers: ChallengeTimers,
        *,
        grid_size: int = 20,
        max_height: int = 10,
        slot_count: int = 3,
        max_attempts: int = 100,
        challenge_duration: int = 0,
        challenge_interval: int = 0,
        logger: Optional[logging.Logger] = None,
        rng=random,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.timers = timers
        self.grid_size = grid_size
        self.max_height = max_height
        self.slot_count = slot_count
        self.max_attempts = max_attempts
        self.challenge_duration = challenge_duration
        self.challenge_interval = challenge_interval
        self.logger = logger or logging.getLogger(__name__)
        self.rng = rng
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config, store, broadcaster, timers, logger=None) -> 'SessionController':
        return cls(
            store,
            broadcaster,
            timers,
            grid_size=int(config.get('GRID_SIZE', 20)),
            max_height=int(config.get('MAX_HEIGHT', 10)),
            slot_count=int(config.get('SLOTS_PER_CHALLENGE', 3)),
            max_attempts=int(config.get('MAX_POSITION_ATTEMPTS', 100)),
            challenge_duration=int(config.get('CHALLENGE_DURATION_SEC', 0)),
            challenge_interval=int(config.get('CHALLENGE_INTERVAL_SEC', 0)),
            logger=logger,
        )

    @property
    def total_rounds(self) -> int:
        return self.store.total_rounds

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def _load_created(self, session_id: str) -> GameState:
        # only initialize_session creates a session
        if not self.store.exists(session_id):
            raise SessionNotFound(f"Session {session_id} has not been created")
        return self.store.load(session_id)

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    def snapshot(self, session_id: str) -> GameState:
        """Current state, or an empty state if the store cannot be read."""
        try:
            return self.store.load(session_id)
        except StoreFailure:
            self.logger.exception(f"[store-fail] session={session_id} op=snapshot")
            return GameState(total_rounds=self.total_rounds)

    def leaderboard(self, session_id: str) -> dict[str, Any]:
        state = self.snapshot(session_id)
        return {
            'entries': [e.to_dict() for e in state.leaderboard],
            'total_players': len(state.players),
            'current_round': state.current_round,
            'total_rounds': state.total_rounds,
        }

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    def initialize_session(self, session_id: str, reset: bool = False) -> GameState:
        """Create round 1 and its challenge before anyone can reach the session.

        An existing session is returned untouched unless ``reset`` is set.
        Store errors propagate: the hosting collaborator decides what to do
        with a session that could not be created.
        """
        with self._lock_for(session_id):
            if not reset and self.store.exists(session_id):
                self.logger.info(f"[session-exists] session={session_id}")
                return self.store.load(session_id)
            state = GameState(total_rounds=self.total_rounds)
            challenge = self._next_challenge(state)
            self.store.save(session_id, state)
        self.logger.info(
            f"[session-init] session={session_id} round={state.current_round} "
            f"challenge={challenge.id if challenge else None}"
        )
        self._arm_expiry(session_id, challenge)
        return state

    def join(self, session_id: str, player_id: str) -> JoinResult:
        """Add a player to a created session.

        Raises SessionNotFound if no session exists under ``session_id``.
        """
        player_id = player_id or ANONYMOUS
        try:
            with self._lock_for(session_id):
                state = self._load_created(session_id)
                if player_id not in state.players:
                    state.players.append(player_id)
                    self.store.save(session_id, state)
                    self.logger.info(f"[join] session={session_id} player={player_id} players={len(state.players)}")
            return JoinResult(success=True, game_state=state)
        except SessionNotFound:
            self.logger.info(f"[join-unknown] session={session_id} player={player_id}")
            raise
        except Exception:
            self.logger.exception(f"[store-fail] session={session_id} op=join player={player_id}")
            return JoinResult(success=False, game_state=self.snapshot(session_id))

    # -------------------------------------------------
    # Placement
    # -------------------------------------------------

    def place_shape(self, session_id: str, player_id: str, request: PlacementRequest) -> PlacementResult:
        """Validate, apply and score one placement.

        Raises InvalidPlacement for an off-grid position before the store is
        touched, and SessionNotFound for a session that was never created.
        Every other failure is reported as an unsuccessful result.
        """
        player_id = player_id or ANONYMOUS
        position = request.position
        if not in_bounds(position, self.grid_size, self.max_height):
            raise InvalidPlacement(f"Position {position} is outside the grid")

        try:
            with self._lock_for(session_id):
                state = self._load_created(session_id)

                if is_occupied(state.shapes, position):
                    raise RejectedPlacement(f"Position {position} is already occupied!")

                shape = PlacedShape(
                    id=generate_id(self.rng),
                    type=request.type,
                    color=request.color,
                    position=position,
                    player_id=player_id,
                    timestamp=now_ms(),
                )
                # both checks run against the state without the new shape
                scored = validate_challenge_move(state, shape)
                is_first = scored and is_first_placement_in_challenge(state, shape)

                state.shapes.append(shape)
                points = 0
                if scored:
                    bonus = FIRST_PLACEMENT_BONUS if is_first else 0
                    score_placement(state, player_id, bonus, now=shape.timestamp)
                    points = 1 + bonus

                transition = None
                if check_challenge_completion(state):
                    transition = self._complete_challenge(session_id, state)

                self.store.save(session_id, state)
        except RejectedPlacement as exc:
            self.logger.info(f"[place-rejected] session={session_id} player={player_id} pos={position} occupied")
            return PlacementResult(
                success=False,
                message=str(exc),
                game_state=state,
                player_name=player_id,
            )
        except SessionNotFound:
            self.logger.info(f"[place-unknown] session={session_id} player={player_id}")
            raise
        except Exception:
            self.logger.exception(f"[store-fail] session={session_id} op=place player={player_id}")
            return PlacementResult(
                success=False,
                message='Could not place shape, please try again.',
                game_state=self.snapshot(session_id),
                player_name=player_id,
            )

        self.logger.info(
            f"[place] session={session_id} player={player_id} pos={position} "
            f"scored={scored} first={is_first} transition={transition}"
        )
        if transition == NEW_CHALLENGE:
            self._arm_expiry(session_id, state.current_challenge)

        self.broadcaster.shape_placed(session_id, shape, is_first, state)
        self._broadcast_transition(session_id, transition, state)

        return PlacementResult(
            success=True,
            message=self._describe(shape, points, transition, state),
            game_state=state,
            shape=shape,
            is_first_placement=is_first,
            scored=scored,
            points=points,
            player_name=player_id,
            transition=transition,
        )

    def _describe(self, shape: PlacedShape, points: int, transition: Optional[str], state: GameState) -> str:
        message = f"{shape.player_id} placed a {shape.color.value} {shape.type.value} at {shape.position}"
        if points:
            message += f" (+{points})"
        if transition == NEW_CHALLENGE:
            message += f". Challenge complete! Round {state.current_round} of {state.total_rounds} begins."
        elif transition == GAME_COMPLETE:
            message += '. Challenge complete! All rounds finished.'
        return message

    # -------------------------------------------------
    # Challenge transitions
    # -------------------------------------------------

    def _next_challenge(self, state: GameState) -> Optional[Challenge]:
        return create_challenge(
            state,
            grid_size=self.grid_size,
            max_height=self.max_height,
            slot_count=self.slot_count,
            max_attempts=self.max_attempts,
            duration=self.challenge_duration,
            rng=self.rng,
        )

    def _complete_challenge(self, session_id: str, state: GameState) -> str:
        """Clear the satisfied challenge and install the next one on ``state``."""
        finished = state.current_challenge
        state.current_challenge = None
        self.timers.cancel(session_id)
        challenge = self._next_challenge(state)
        if challenge is None:
            self.logger.info(f"[finish] session={session_id} challenge={finished.id} round={state.current_round}")
            return GAME_COMPLETE
        self.logger.info(
            f"[challenge-new] session={session_id} cleared={finished.id} "
            f"round={state.current_round} challenge={challenge.id}"
        )
        return NEW_CHALLENGE

    def _broadcast_transition(self, session_id: str, transition: Optional[str], state: GameState) -> None:
        if transition == NEW_CHALLENGE:
            self.broadcaster.new_challenge(session_id, state)
        elif transition == GAME_COMPLETE:
            self.broadcaster.game_complete(session_id, state)

    def _arm_expiry(self, session_id: str, challenge: Optional[Challenge]) -> None:
        if challenge is None or challenge.duration <= 0:
            self.timers.cancel(session_id)
            return
        challenge_id = challenge.id
        self.timers.arm(
            session_id,
            challenge.duration,
            lambda: self.expire_challenge(session_id, challenge_id),
            label='expiry',
        )

    def expire_challenge(self, session_id: str, challenge_id: str) -> Optional[str]:
        """Timer callback: drop an uncompleted challenge and move the session on.

        No-op when ``challenge_id`` is no longer current. Returns the
        transition that followed, or None when the next challenge is delayed.
        """
        with self._lock_for(session_id):
            state = self.store.load(session_id)
            current = state.current_challenge
            if current is None or current.id != challenge_id:
                self.logger.info(f"[timer-abort] session={session_id} challenge={challenge_id} no longer current")
                return None
            state.current_challenge = None
            transition = None
            delayed = self.challenge_interval > 0 and state.current_round < state.total_rounds
            if not delayed:
                transition = NEW_CHALLENGE if self._next_challenge(state) else GAME_COMPLETE
            self.store.save(session_id, state)

        self.logger.info(f"[challenge-expired] session={session_id} challenge={challenge_id} transition={transition}")
        self.broadcaster.challenge_expired(session_id, challenge_id, state)
        if delayed:
            self.timers.arm(
                session_id,
                self.challenge_interval,
                lambda: self.start_next_challenge(session_id),
                label='next-challenge',
            )
            return None
        if transition == NEW_CHALLENGE:
            self._arm_expiry(session_id, state.current_challenge)
        self._broadcast_transition(session_id, transition, state)
        return transition

    def start_next_challenge(self, session_id: str) -> Optional[str]:
        """Timer callback for the delayed next challenge after an expiry."""
        with self._lock_for(session_id):
            state = self.store.load(session_id)
            if state.current_challenge is not None:
                self.logger.info(f"[timer-abort] session={session_id} challenge already active")
                return None
            transition = NEW_CHALLENGE if self._next_challenge(state) else GAME_COMPLETE
            self.store.save(session_id, state)
        if transition == NEW_CHALLENGE:
            self._arm_expiry(session_id, state.current_challenge)
        self._broadcast_transition(session_id, transition, state)
        return transition

    def shutdown(self) -> None:
        self.timers.cancel_all()
