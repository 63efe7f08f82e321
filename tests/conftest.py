import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from dataclasses import dataclass, field, replace
from typing import Any, Callable

import pytest

from cloudttt.config import Settings
from cloudttt.engine import MatchEngine
from cloudttt.game_logic import Role
from cloudttt.network import AuthoritativeStore
from cloudttt.session import MatchSession

MATCH_ID = "alice_bob"


@dataclass
class Call:
    op: str
    args: dict
    on_result: Callable[[Any], None]
    on_error: Callable[[Exception], None]
    done: bool = field(default=False)

    def reply(self, value=None):
        self.done = True
        self.on_result(value)

    def fail(self, error):
        self.done = True
        self.on_error(error)


class ManualStore(AuthoritativeStore):
    """Records every call; the test decides when and how each one completes."""

    def __init__(self):
        self.calls = []

    def _record(self, op, args, on_result, on_error):
        call = Call(op, args, on_result, on_error)
        self.calls.append(call)
        return call

    def get_match_state(self, match_id, on_result, on_error):
        self._record("get", {"matchId": match_id}, on_result, on_error)

    def update_match_state(self, payload, on_result, on_error):
        self._record("update", dict(payload), on_result, on_error)

    def reset_match_state(self, match_id, player_x, player_o, on_result, on_error):
        self._record("reset", {"matchId": match_id, "playerX": player_x, "playerO": player_o},
                     on_result, on_error)

    def heartbeat(self, match_id, role, on_result, on_error):
        self._record("heartbeat", {"matchId": match_id, "role": Role(role).value},
                     on_result, on_error)

    def pending(self, op=None):
        return [c for c in self.calls if not c.done and (op is None or c.op == op)]

    def next(self, op):
        calls = self.pending(op)
        assert calls, f"no outstanding {op} call"
        return calls[0]

    def count(self, op):
        return sum(1 for c in self.calls if c.op == op)


def snapshot_body(board="---------", turn="X", count=None, winner="", wrapped=True):
    if count is None:
        count = sum(1 for c in board if c != "-")
    data = {
        "boardState": board,
        "turn": turn,
        "turnCount": str(count),
        "winner": winner,
        "playerX": "alice",
        "playerO": "bob",
        "playerXlastActive": "",
        "playerOlastActive": "",
    }
    return {"data": data} if wrapped else data


@pytest.fixture(autouse=True)
def _qt_app(qapp):
    # QTimer/QObject need an application instance
    return qapp


@pytest.fixture
def store():
    return ManualStore()


@pytest.fixture
def settings():
    return Settings(poll_interval=3.0, heartbeat_interval=5.0, offline_threshold=10.0)


def make_session(role):
    if role is Role.X:
        return MatchSession(MATCH_ID, Role.X, "alice", "bob")
    return MatchSession(MATCH_ID, Role.O, "bob", "alice")


@pytest.fixture
def make_engine(store, settings):
    engines = []

    def build(role=Role.X, initial=None, **overrides):
        s = replace(settings, **overrides)
        engine = MatchEngine(make_session(role), store, s)
        engine.start()
        store.next("get").reply(initial if initial is not None else snapshot_body())
        engines.append(engine)
        return engine

    yield build
    for engine in engines:
        engine.stop()


@pytest.fixture
def engine_x(make_engine):
    return make_engine(Role.X)


@pytest.fixture
def engine_o(make_engine):
    return make_engine(Role.O)
