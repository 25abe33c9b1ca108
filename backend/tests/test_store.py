import json

import pytest
from sqlalchemy.exc import OperationalError

from shape3d import db
from shape3d.services.game.domain import (
    Challenge,
    ChallengeSlot,
    GameState,
    PlacedShape,
    PlayerScoreEntry,
    Position,
    ShapeColor,
    ShapeType,
)
from shape3d.services.game.errors import StoreFailure
from shape3d.services.game.store import SessionStore, SqlKeyValueStore, session_key


@pytest.fixture()
def kv(flask_app):
    return SqlKeyValueStore(db)


@pytest.fixture()
def store(kv):
    return SessionStore(kv, total_rounds=5)


def sample_state():
    return GameState(
        total_rounds=5,
        shapes=[PlacedShape('s1', ShapeType.CUBE, ShapeColor.RED, Position(1, 2, 3), 'alice', 111)],
        current_challenge=Challenge(
            id='c1',
            slots=(
                ChallengeSlot(Position(0, 0, 0), ShapeType.SPHERE, ShapeColor.BLUE),
                ChallengeSlot(Position(1, 0, 0), ShapeType.CUBE, ShapeColor.ORANGE),
                ChallengeSlot(Position(2, 0, 0), ShapeType.TRIANGLE, ShapeColor.PURPLE),
            ),
            start_time=100,
        ),
        players=['alice', 'bob'],
        leaderboard=[PlayerScoreEntry('alice', 2, 111)],
        current_round=2,
    )


def test_absent_keys_read_as_empty_session(store):
    state = store.load('nope')
    assert state.shapes == []
    assert state.current_challenge is None
    assert state.players == []
    assert state.leaderboard == []
    assert state.current_round == 0
    assert state.total_rounds == 5
    assert not store.exists('nope')


def test_save_then_load_keeps_every_field(store):
    store.save('p1', sample_state())
    assert store.exists('p1')
    assert store.load('p1') == sample_state()


def test_round_is_a_decimal_string_and_values_are_json(store, kv):
    store.save('p1', sample_state())
    assert kv.get(session_key('p1', 'round')) == '2'
    assert json.loads(kv.get(session_key('p1', 'players'))) == ['alice', 'bob']
    shapes = json.loads(kv.get(session_key('p1', 'shapes')))
    assert shapes[0]['position'] == {'x': 1, 'y': 2, 'z': 3}


def test_cleared_challenge_removes_the_key(store, kv):
    store.save('p1', sample_state())
    state = store.load('p1')
    state.current_challenge = None
    store.save('p1', state)
    assert kv.get(session_key('p1', 'challenge')) is None
    assert store.load('p1').current_challenge is None


def test_null_challenge_value_reads_as_none(store, kv):
    kv.set(session_key('p1', 'challenge'), 'null')
    assert store.load('p1').current_challenge is None


def test_malformed_json_is_a_store_failure(store, kv):
    kv.set(session_key('p1', 'shapes'), '{not json')
    with pytest.raises(StoreFailure):
        store.load('p1')


def test_bad_enum_value_is_a_store_failure(store, kv):
    kv.set(session_key('p1', 'shapes'), json.dumps([{
        'id': 'x', 'type': 'pyramid', 'color': 'red',
        'position': {'x': 0, 'y': 0, 'z': 0}, 'player_id': 'a', 'timestamp': 1,
    }]))
    with pytest.raises(StoreFailure):
        store.load('p1')


class BrokenSession:
    rolled_back = False

    def query(self, *args, **kwargs):
        raise OperationalError('SELECT', {}, Exception('database is locked'))

    def rollback(self):
        self.rolled_back = True


class BrokenDb:
    def __init__(self):
        self.session = BrokenSession()


def test_sql_errors_become_store_failures():
    broken = BrokenDb()
    with pytest.raises(StoreFailure):
        SqlKeyValueStore(broken).get_many(['a'])
    assert broken.session.rolled_back


def test_delete(kv):
    kv.write_many({'a': '1', 'b': '2'})
    kv.delete('a')
    assert kv.get_many(['a', 'b']) == {'b': '2'}
