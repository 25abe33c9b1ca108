"""Session store adapter.

A session is kept as five independently keyed strings::

    game:<session_id>:shapes       JSON list of placed shapes
    game:<session_id>:challenge    JSON challenge (absent when none)
    game:<session_id>:players      JSON list of player ids
    game:<session_id>:leaderboard  JSON list of score entries
    game:<session_id>:round        decimal string

Missing keys read as empty collections / no challenge / round 0. The whole
aggregate is written through ``KeyValueStore.write_many`` in one call so a
backend with transactions can persist round and challenge together.
"""
import json
import time
from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from shape3d.models import KeyValueEntry

from .domain import Challenge, GameState, PlacedShape, PlayerScoreEntry
from .errors import StoreFailure

FIELDS = ('shapes', 'challenge', 'players', 'leaderboard', 'round')


def session_key(session_id: str, field: str) -> str:
    return f"game:{session_id}:{field}"


class KeyValueStore(ABC):

    @abstractmethod
    def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        """Return the values for the keys that exist; absent keys are omitted."""

    @abstractmethod
    def write_many(self, values: Mapping[str, Optional[str]]) -> None:
        """Set every key in one unit. A value of None deletes the key."""

    def get(self, key: str) -> Optional[str]:
        return self.get_many([key]).get(key)

    def set(self, key: str, value: str) -> None:
        self.write_many({key: value})

    def delete(self, key: str) -> None:
        self.write_many({key: None})


class SqlKeyValueStore(KeyValueStore):
    """Key-value store on the ``kv_entry`` table; ``write_many`` is one transaction."""

    def __init__(self, database):
        self.db = database

    def get_many(self, keys):
        keys = list(keys)
        try:
            rows = self.db.session.query(KeyValueEntry).filter(KeyValueEntry.key.in_(keys)).all()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreFailure(f"read failed: {exc}") from exc
        return {row.key: row.value for row in rows}

    def write_many(self, values):
        try:
            now = time.time()
            for key, value in values.items():
                entry = self.db.session.get(KeyValueEntry, key)
                if value is None:
                    if entry is not None:
                        self.db.session.delete(entry)
                    continue
                if entry is None:
                    entry = KeyValueEntry(key=key)
                    self.db.session.add(entry)
                entry.value = value
                entry.updated_at = now
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreFailure(f"write failed: {exc}") from exc


class SessionStore:
    """Serializes ``GameState`` to and from a ``KeyValueStore``. No game rules here."""

    def __init__(self, kv: KeyValueStore, total_rounds: int):
        self.kv = kv
        self.total_rounds = total_rounds

    def exists(self, session_id: str) -> bool:
        return self.kv.get(session_key(session_id, 'round')) is not None

    def load(self, session_id: str) -> GameState:
        keys = {f: session_key(session_id, f) for f in FIELDS}
        raw = self.kv.get_many(keys.values())
        try:
            shapes = _load_json(raw.get(keys['shapes']), [])
            challenge = _load_json(raw.get(keys['challenge']), None)
            players = _load_json(raw.get(keys['players']), [])
            leaderboard = _load_json(raw.get(keys['leaderboard']), [])
            round_raw = raw.get(keys['round'])
            return GameState(
                total_rounds=self.total_rounds,
                shapes=[PlacedShape.from_dict(s) for s in shapes],
                current_challenge=Challenge.from_dict(challenge) if challenge else None,
                players=[str(p) for p in players],
                leaderboard=[PlayerScoreEntry.from_dict(e) for e in leaderboard],
                current_round=int(round_raw) if round_raw else 0,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            # json.JSONDecodeError is a ValueError
            raise StoreFailure(f"malformed session data for {session_id}: {exc}") from exc

    def save(self, session_id: str, state: GameState) -> None:
        challenge = state.current_challenge
        self.kv.write_many({
            session_key(session_id, 'shapes'): json.dumps([s.to_dict() for s in state.shapes]),
            session_key(session_id, 'challenge'): json.dumps(challenge.to_dict()) if challenge else None,
            session_key(session_id, 'players'): json.dumps(list(state.players)),
            session_key(session_id, 'leaderboard'): json.dumps([e.to_dict() for e in state.leaderboard]),
            session_key(session_id, 'round'): str(state.current_round),
        })


def _load_json(raw, default):
    if raw is None or raw == '':
        return default
    value = json.loads(raw)
    return default if value is None else value
