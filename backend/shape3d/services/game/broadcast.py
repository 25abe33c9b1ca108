"""Broadcast gateway: fans session snapshots out to a Socket.IO room.

Every event is emitted as ``game_update`` with a ``type`` tag and a full
``game_state`` so subscribers can replace their local copy wholesale.
Publishing never fails the caller.
"""
import logging
from typing import Any, Optional

from .domain import GameState, PlacedShape
from .errors import BroadcastFailure

EVENT_NAME = 'game_update'
SHAPE_PLACE = 'shapePlace'
NEW_CHALLENGE = 'newChallenge'
GAME_COMPLETE = 'gameComplete'
CHALLENGE_EXPIRED = 'challengeExpired'


def room_for(session_id: str) -> str:
    return f"session:{session_id}"


class BroadcastGateway:

    def __init__(self, socketio, namespace: str = '/ws', logger: Optional[logging.Logger] = None):
        self.socketio = socketio
        self.namespace = namespace
        self.logger = logger or logging.getLogger(__name__)

    def publish(self, session_id: str, event: dict[str, Any]) -> bool:
        try:
            self._emit(session_id, event)
        except BroadcastFailure as exc:
            self.logger.warning(f"[broadcast-fail] session={session_id} type={event.get('type')} error={exc}")
            return False
        return True

    def _emit(self, session_id: str, event: dict[str, Any]) -> None:
        try:
            self.socketio.emit(EVENT_NAME, event, to=room_for(session_id), namespace=self.namespace)
        except Exception as exc:
            raise BroadcastFailure(str(exc)) from exc

    def shape_placed(self, session_id: str, shape: PlacedShape, is_first_placement: bool, state: GameState) -> bool:
        return self.publish(session_id, {
            'type': SHAPE_PLACE,
            'shape': shape.to_dict(),
            'placing_player': shape.player_id,
            'is_first_placement': is_first_placement,
            'game_state': state.to_dict(),
        })

    def new_challenge(self, session_id: str, state: GameState) -> bool:
        return self.publish(session_id, {'type': NEW_CHALLENGE, 'game_state': state.to_dict()})

    def game_complete(self, session_id: str, state: GameState) -> bool:
        return self.publish(session_id, {'type': GAME_COMPLETE, 'game_state': state.to_dict()})

    def challenge_expired(self, session_id: str, challenge_id: str, state: GameState) -> bool:
        return self.publish(session_id, {
            'type': CHALLENGE_EXPIRED,
            'challenge_id': challenge_id,
            'game_state': state.to_dict(),
        })
