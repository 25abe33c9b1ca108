"""Domain types for a shape-placement session.

These map one-to-one onto the JSON documents kept in the key-value store.
Every ``from_dict`` raises ``KeyError``/``TypeError``/``ValueError`` on
malformed input; the store adapter turns those into ``StoreFailure``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import InvalidPlacement


class ShapeType(str, Enum):
    CUBE = 'cube'
    TRIANGLE = 'triangle'
    SPHERE = 'sphere'


class ShapeColor(str, Enum):
    RED = 'red'
    BLUE = 'blue'
    GREEN = 'green'
    YELLOW = 'yellow'
    PURPLE = 'purple'
    ORANGE = 'orange'


@dataclass(frozen=True)
class Position:
    x: int
    y: int
    z: int

    def to_dict(self) -> dict[str, int]:
        return {'x': self.x, 'y': self.y, 'z': self.z}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Position':
        return cls(x=_as_int(data['x']), y=_as_int(data['y']), z=_as_int(data['z']))

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


@dataclass(frozen=True)
class PlacedShape:
    id: str
    type: ShapeType
    color: ShapeColor
    position: Position
    player_id: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'color': self.color.value,
            'position': self.position.to_dict(),
            'player_id': self.player_id,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'PlacedShape':
        return cls(
            id=str(data['id']),
            type=ShapeType(data['type']),
            color=ShapeColor(data['color']),
            position=Position.from_dict(data['position']),
            player_id=str(data['player_id']),
            timestamp=_as_int(data['timestamp']),
        )


@dataclass(frozen=True)
class ChallengeSlot:
    position: Position
    shape: ShapeType
    color: ShapeColor

    def matches(self, shape: PlacedShape) -> bool:
        return (
            shape.position == self.position
            and shape.type == self.shape
            and shape.color == self.color
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'position': self.position.to_dict(),
            'shape': self.shape.value,
            'color': self.color.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'ChallengeSlot':
        return cls(
            position=Position.from_dict(data['position']),
            shape=ShapeType(data['shape']),
            color=ShapeColor(data['color']),
        )


@dataclass(frozen=True)
class Challenge:
    id: str
    slots: tuple[ChallengeSlot, ...]
    start_time: int
    # seconds; 0 means the challenge only ends when completed
    duration: int = 0

    def slot_at(self, position: Position) -> Optional[ChallengeSlot]:
        for slot in self.slots:
            if slot.position == position:
                return slot
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'slots': [s.to_dict() for s in self.slots],
            'start_time': self.start_time,
            'duration': self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Challenge':
        return cls(
            id=str(data['id']),
            slots=tuple(ChallengeSlot.from_dict(s) for s in data['slots']),
            start_time=_as_int(data['start_time']),
            duration=_as_int(data.get('duration', 0)),
        )


@dataclass
class PlayerScoreEntry:
    player_id: str
    score: int = 0
    # ms timestamp of the player's most recent scoring placement
    last_placement: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'player_id': self.player_id,
            'score': self.score,
            'last_placement': self.last_placement,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'PlayerScoreEntry':
        last = data.get('last_placement')
        return cls(
            player_id=str(data['player_id']),
            score=_as_int(data['score']),
            last_placement=_as_int(last) if last is not None else None,
        )


@dataclass
class GameState:
    """Aggregate root for one session."""
    total_rounds: int
    shapes: list[PlacedShape] = field(default_factory=list)
    current_challenge: Optional[Challenge] = None
    players: list[str] = field(default_factory=list)
    leaderboard: list[PlayerScoreEntry] = field(default_factory=list)
    current_round: int = 0

    @property
    def is_active(self) -> bool:
        return self.current_round < self.total_rounds

    def to_dict(self) -> dict[str, Any]:
        return {
            'shapes': [s.to_dict() for s in self.shapes],
            'current_challenge': self.current_challenge.to_dict() if self.current_challenge else None,
            'players': list(self.players),
            'leaderboard': [e.to_dict() for e in self.leaderboard],
            'current_round': self.current_round,
            'total_rounds': self.total_rounds,
            'is_active': self.is_active,
        }


@dataclass(frozen=True)
class PlacementRequest:
    type: ShapeType
    color: ShapeColor
    position: Position

    @classmethod
    def from_dict(cls, data: Any) -> 'PlacementRequest':
        if not isinstance(data, dict):
            raise InvalidPlacement('Placement body must be a JSON object')
        try:
            shape_type = ShapeType(data.get('type'))
        except ValueError:
            raise InvalidPlacement(f"Unknown shape type: {data.get('type')!r}") from None
        try:
            color = ShapeColor(data.get('color'))
        except ValueError:
            raise InvalidPlacement(f"Unknown color: {data.get('color')!r}") from None
        raw = data.get('position')
        if not isinstance(raw, dict):
            raise InvalidPlacement('position must be an object with x, y and z')
        try:
            position = Position.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            raise InvalidPlacement('position must have integer x, y and z') from None
        return cls(type=shape_type, color=color, position=position)


def _as_int(value: Any) -> int:
    # bools are ints in Python but never valid coordinates/scores here
    if isinstance(value, bool):
        raise TypeError(f"expected integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"expected integer, got {value!r}")
        return int(value)
    if isinstance(value, int):
        return value
    raise TypeError(f"expected integer, got {value!r}")
