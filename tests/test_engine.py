import pytest

from cloudttt.config import Settings
from cloudttt.engine import MatchEngine, Phase
from cloudttt.errors import ConfigurationError, GameInProgress, SessionTerminal, TransportError
from cloudttt.game_logic import DRAW, GameState, Role, Status
from cloudttt.network import MemoryMatchStore
from cloudttt.session import MatchSession

from .conftest import make_session, snapshot_body


def test_missing_match_id_never_starts_loops(store, qtbot):
    engine = MatchEngine(MatchSession("", Role.X, "alice", "bob"), store)
    with qtbot.waitSignal(engine.configuration_error) as blocker:
        with pytest.raises(ConfigurationError):
            engine.start()
    assert "match id" in blocker.args[0]
    assert engine.phase is Phase.NOT_STARTED
    assert not engine.sync.timer.isActive()
    assert not engine.presence.timer.isActive()
    assert store.calls == []


def test_phases_for_a_fresh_match(store):
    engine = MatchEngine(make_session(Role.X), store)
    phases = []
    engine.phase_changed.connect(phases.append)
    engine.start()
    assert engine.phase is Phase.LOADING
    assert not engine.sync.timer.isActive()
    store.next("get").reply(snapshot_body("---------"))
    assert phases == ["loading", "fresh", "active"]
    assert engine.sync.timer.isActive()
    assert engine.presence.timer.isActive()
    assert store.count("update") == 0  # nothing to push before the first move
    engine.stop()


def test_resume_adopts_the_stored_game(store):
    engine = MatchEngine(make_session(Role.O), store)
    phases = []
    engine.phase_changed.connect(phases.append)
    engine.start()
    store.next("get").reply(snapshot_body("X---O---X", turn="O"))
    assert phases == ["loading", "resuming", "active"]
    assert engine.model.state.board_text == "X---O---X"
    assert engine.model.state.move_count == 3
    engine.request_move(2)
    assert store.next("update").args["turnCount"] == 4
    engine.stop()


def test_load_failure_falls_back_to_fresh(store):
    engine = MatchEngine(make_session(Role.X), store)
    engine.start()
    store.next("get").fail(TransportError("getMatchState", "timeout"))
    assert engine.phase is Phase.ACTIVE
    assert engine.model.state == GameState.fresh()
    engine.stop()


def test_stop_halts_both_timers_and_refuses_moves(engine_x):
    engine_x.stop()
    assert engine_x.phase is Phase.STOPPED
    assert not engine_x.sync.timer.isActive()
    assert not engine_x.presence.timer.isActive()
    with pytest.raises(SessionTerminal):
        engine_x.request_move(0)


def test_moves_before_loading_finishes_are_refused(store):
    engine = MatchEngine(make_session(Role.X), store)
    engine.start()
    with pytest.raises(SessionTerminal):
        engine.request_move(0)
    engine.stop()


def test_ui_notifications(engine_x, store):
    boards, turns, endings = [], [], []
    engine_x.model.board_changed.connect(boards.append)
    engine_x.model.turn_changed.connect(turns.append)
    engine_x.model.terminal.connect(endings.append)
    engine_x.request_move(0)
    store.next("update").reply()
    engine_x.sync.poll_once()
    store.next("get").reply(snapshot_body("X--O-----", turn="X"))
    engine_x.request_move(1)
    store.next("update").reply()
    engine_x.sync.poll_once()
    store.next("get").reply(snapshot_body("XX-OO----", turn="X"))
    engine_x.request_move(2)
    assert boards == ["X--------", "X--O-----", "XX-O-----", "XX-OO----", "XXXOO----"]
    assert turns == ["O", "X", "O", "X"]
    assert endings == ["X"]
    assert engine_x.phase is Phase.TERMINAL


def test_reset_refused_mid_game(engine_x, store, qtbot):
    engine_x.request_move(4)
    store.next("update").reply()
    with qtbot.waitSignal(engine_x.controller.move_rejected) as blocker:
        with pytest.raises(GameInProgress):
            engine_x.request_reset()
    assert blocker.args == ["finish the game before a rematch"]
    assert store.count("reset") == 0
    assert engine_x.model.state.board_text == "----X----"
    assert engine_x.phase is Phase.ACTIVE


# -- two engines over one in-memory store -------------------------------------

def _pump(qtbot, engines):
    for engine in engines:
        engine.sync.poll_once()
    qtbot.wait(10)


def _start_pair(qtbot):
    store = MemoryMatchStore()
    settings = Settings(poll_interval=60.0, heartbeat_interval=60.0)
    x = MatchEngine(make_session(Role.X), store, settings)
    o = MatchEngine(make_session(Role.O), store, settings)
    for engine in (x, o):
        engine.start()
    qtbot.waitUntil(lambda: x.phase is Phase.ACTIVE and o.phase is Phase.ACTIVE)
    return store, x, o


def _play(qtbot, x, o, moves):
    for index in moves:
        mover = x if x.model.state.turn is Role.X else o
        qtbot.waitUntil(lambda: not mover.controller.pending
                        and mover.model.state.turn is mover.session.local_role)
        mover.request_move(index)
        qtbot.waitUntil(lambda: not mover.controller.pending)
        _pump(qtbot, (x, o))
        qtbot.waitUntil(lambda: x.model.state == o.model.state)


def test_two_players_share_a_memory_store(qtbot):
    store, x, o = _start_pair(qtbot)

    # X0 O1 X2 O4 X3 O5 X7 O6 X8 ends in a draw
    _play(qtbot, x, o, [0, 1, 2, 4, 3, 5, 7, 6, 8])
    assert x.model.state.status == DRAW
    assert o.model.state.status == DRAW
    assert x.phase is Phase.TERMINAL and o.phase is Phase.TERMINAL

    # O asks for a rematch, X picks it up on its next poll
    o.request_reset()
    qtbot.waitUntil(lambda: not o.controller.pending)
    _pump(qtbot, (x, o))
    qtbot.waitUntil(lambda: x.model.state == GameState.fresh())
    assert x.phase is Phase.ACTIVE
    x.request_move(4)
    qtbot.waitUntil(lambda: not x.controller.pending)
    _pump(qtbot, (x, o))
    qtbot.waitUntil(lambda: o.model.state.board_text == "----X----")
    assert store.matches[x.session.match_id]["playerX"] == "alice"

    for engine in (x, o):
        engine.stop()


def test_winner_is_the_same_on_both_sides(qtbot):
    store, x, o = _start_pair(qtbot)

    # X0 O3 X1 O4 X2, top row for X
    _play(qtbot, x, o, [0, 3, 1, 4, 2])
    assert x.model.state.status == Status.won(Role.X)
    assert o.model.state.status == Status.won(Role.X)
    assert o.phase is Phase.TERMINAL
    with pytest.raises(SessionTerminal):
        o.request_move(8)
    for engine in (x, o):
        engine.stop()


def test_mid_game_reset_cannot_split_the_match(qtbot):
    store, x, o = _start_pair(qtbot)
    _play(qtbot, x, o, [0, 4, 8])
    with pytest.raises(GameInProgress):
        x.request_reset()
    for _ in range(3):
        _pump(qtbot, (x, o))
    assert x.model.state == o.model.state
    assert store.matches[x.session.match_id]["boardState"] == "X---O---X"
    for engine in (x, o):
        engine.stop()


def test_both_players_asking_for_a_rematch_converge(qtbot):
    store, x, o = _start_pair(qtbot)
    _play(qtbot, x, o, [0, 3, 1, 4, 2])
    assert o.phase is Phase.TERMINAL

    # X starts the new game and moves before O has polled
    x.request_reset()
    qtbot.waitUntil(lambda: not x.controller.pending)
    x.request_move(4)
    qtbot.waitUntil(lambda: not x.controller.pending)
    # O's own rematch wipes that move from the store
    o.request_reset()
    qtbot.waitUntil(lambda: not o.controller.pending)

    for _ in range(3):
        _pump(qtbot, (x, o))
    qtbot.waitUntil(lambda: x.model.state == o.model.state)
    assert x.model.state == GameState.fresh()
    assert x.phase is Phase.ACTIVE and o.phase is Phase.ACTIVE

    # and the new game goes on normally
    _play(qtbot, x, o, [4, 0])
    assert o.model.state.board_text == "O---X----"
    for engine in (x, o):
        engine.stop()
