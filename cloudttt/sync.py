"""
Poll, push and reconcile against the match store.

The store is only reachable by request/response, so the local view is kept
honest by a logical clock: every accepted move bumps moveCount by one, and a
remote snapshot only replaces local state when its clock is ahead. Terminal
snapshots are the exception and always win, so both players end up agreeing
on how the game ended even if a local optimistic move was still in flight.

Polls are numbered. A local reset (or a rematch picked up from the store)
starts a new game epoch, and answers to polls sent before that are dropped
since they describe the previous game. Whenever local state settles (a local
write, its ack, an adopted snapshot) the current poll number is recorded; a
later poll showing the store behind a settled game can only mean the store
was reset underneath us, so it is followed instead of ignored.

While the game is over the loop keeps polling for a rematch, but only for a
bounded number of ticks; a local reset starts it again.
"""
import logging
from enum import Enum

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .errors import MalformedSnapshot
from .game_logic import is_consistent_with
from .network import GET_MATCH_STATE, build_update_payload, parse_snapshot

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ADOPT = "adopt"                    # remote clock ahead
    ADOPT_TERMINAL = "adopt_terminal"  # remote game is over, always wins
    REMATCH = "rematch"                # store was reset after our game ended
    REWIND = "rewind"                  # store fell behind a settled game, it was reset
    DISCARD = "discard"                # stale or duplicate


def reconcile(local, remote, pending=False, rematch_eligible=False):
    """
    Decide what a remote snapshot does to local state.

    local: current GameState
    remote: RemoteSnapshot from the store
    pending: a local write is in flight
    rematch_eligible: the poll was sent after local state last settled, so
        an answer behind it can only mean the store was reset since
    """
    if remote.status.is_terminal:
        if remote.to_state() == local:
            return Decision.DISCARD
        return Decision.ADOPT_TERMINAL
    if local.status.is_terminal:
        # a finished game never goes back to in progress, only a new game replaces it
        if rematch_eligible and not pending:
            return Decision.REMATCH
        return Decision.DISCARD
    if remote.move_count > local.move_count:
        return Decision.ADOPT
    if remote.move_count < local.move_count and rematch_eligible and not pending:
        return Decision.REWIND
    return Decision.DISCARD


class SyncEngine(QObject):
    """
    periodic pull + push after local writes
    """
    rematch_started = Signal()
    snapshot_adopted = Signal(str)   # decision value
    transport_error = Signal(str)

    def __init__(self, model, session, store, poll_interval=3.0,
                 conditional_push=False, terminal_poll_limit=20, parent=None):
        super().__init__(parent)
        self.model = model
        self.session = session
        self.store = store
        self.conditional_push = conditional_push
        self.terminal_poll_limit = terminal_poll_limit
        self.controller = None
        self.active = False
        self.failure_streak = 0     # consecutive failed store calls
        self._seq = 0               # last poll number handed out
        self._epoch_mark = 0        # polls at or below this belong to an older game
        self._settled_mark = 0      # polls at or below this were sent before local state settled
        self._terminal_polls = 0    # polls issued since the game ended

        self.timer = QTimer(self)
        self.timer.setInterval(int(poll_interval * 1000))
        self.timer.timeout.connect(self.poll_once)

    def bind(self, controller):
        self.controller = controller

    @property
    def pending(self):
        return bool(self.controller and self.controller.pending)

    def start(self):
        self.active = True
        self.timer.start()

    def stop(self):
        self.active = False
        self.timer.stop()

    def begin_epoch(self):
        """
        everything asked of the store so far describes the previous game
        """
        self._epoch_mark = self._seq
        self._settled_mark = self._seq
        self._terminal_polls = 0
        if self.active and not self.timer.isActive():
            self.timer.start()

    def settle(self):
        # polls issued so far may predate the current local state
        self._settled_mark = self._seq

    def should_pull(self):
        state = self.model.state
        if self.pending:
            return False
        # nothing can change remotely while we hold the move
        if state.turn == self.session.local_role and not state.status.is_terminal:
            return False
        return True

    @Slot()
    def poll_once(self):
        if not self.active:
            return
        if self.controller is not None and self.controller.needs_resync:
            self.controller.resync()
            return
        if not self.should_pull():
            logger.debug("skipping poll (pending=%s, turn=%s)",
                         self.pending, self.model.state.turn.value)
            return
        if self.model.state.status.is_terminal:
            if self._terminal_polls >= self.terminal_poll_limit:
                logger.info("no rematch after %d polls, pausing until a reset", self._terminal_polls)
                self.timer.stop()
                return
            self._terminal_polls += 1
        self.fetch(self._on_poll_result)

    def fetch(self, handler):
        """
        ask for the current snapshot; handler(seq, body) on success
        """
        self._seq += 1
        seq = self._seq
        self.store.get_match_state(
            self.session.match_id,
            lambda body: handler(seq, body),
            lambda err: self._on_store_error(GET_MATCH_STATE, err))
        return seq

    def load(self, on_loaded):
        """
        one-off fetch for session start; on_loaded(snapshot or None)
        """
        def loaded(seq, body):
            try:
                snapshot = parse_snapshot(body)
            except MalformedSnapshot as e:
                logger.warning("initial snapshot unreadable, starting fresh: %s", e)
                snapshot = None
            self.settle()
            on_loaded(snapshot)

        def failed(err):
            logger.warning("could not load match %s: %s", self.session.match_id, err)
            self.failure_streak += 1
            on_loaded(None)

        self._seq += 1
        seq = self._seq
        self.store.get_match_state(
            self.session.match_id, lambda body: loaded(seq, body), failed)

    def _on_poll_result(self, seq, body):
        if not self.active:
            return
        if seq <= self._epoch_mark:
            logger.debug("dropping poll %d from before the last reset", seq)
            return
        try:
            remote = parse_snapshot(body)
        except MalformedSnapshot as e:
            logger.warning("ignoring malformed snapshot: %s", e)
            return
        self.failure_streak = 0
        self.apply_snapshot(remote, rematch_eligible=seq > self._settled_mark)

    def apply_snapshot(self, remote, rematch_eligible=False):
        """
        reconcile one remote snapshot into the model
        """
        local = self.model.state
        decision = reconcile(local, remote, self.pending, rematch_eligible)
        if decision is Decision.DISCARD:
            logger.debug("discarding snapshot turn %d (local turn %d)",
                         remote.move_count, local.move_count)
            return decision

        logger.info("%s: %s turn %d -> %s turn %d", decision.value,
                    local.board_text, local.move_count, remote.board_text, remote.move_count)
        if decision is Decision.ADOPT and not is_consistent_with(local.board, remote.board):
            logger.warning("remote board %s overwrites local marks on %s",
                           remote.board_text, local.board_text)
        if decision in (Decision.REMATCH, Decision.REWIND):
            self.begin_epoch()
        else:
            self.settle()
        if self.controller is not None:
            self.controller.on_remote_adopted(release_lock=decision is not Decision.ADOPT)
        self.model.set_state(remote.to_state())
        self.snapshot_adopted.emit(decision.value)
        if decision is Decision.REMATCH:
            self.rematch_started.emit()
        return decision

    def push(self, state, on_ack, on_fail):
        """
        overwrite the store with local state after a local move
        """
        # first move of a fresh match also records who plays what
        assignment = self.session.role_assignment() if state.move_count == 1 else None
        expected = state.move_count - 1 if self.conditional_push else None
        payload = build_update_payload(self.session.match_id, state, assignment, expected)
        self.settle()
        logger.info("pushing %s turn %d", state.board_text, state.move_count)
        self.store.update_match_state(
            payload,
            lambda result: self._on_push_ok(on_ack, result),
            lambda err: self._on_push_error(on_fail, err))

    def push_reset(self, on_ack, on_fail):
        self.begin_epoch()
        assignment = self.session.role_assignment()
        logger.info("pushing reset for %s", self.session.match_id)
        self.store.reset_match_state(
            self.session.match_id, assignment["playerX"], assignment["playerO"],
            lambda result: self._on_push_ok(on_ack, result),
            lambda err: self._on_push_error(on_fail, err))

    def _on_push_ok(self, on_ack, result):
        self.failure_streak = 0
        self.settle()
        on_ack(result)

    def _on_push_error(self, on_fail, err):
        self._on_store_error("push", err)
        on_fail(err)

    def _on_store_error(self, operation, err):
        self.failure_streak += 1
        if isinstance(err, MalformedSnapshot):
            logger.warning("%s returned garbage: %s", operation, err)
        else:
            logger.warning("%s failed (%d in a row): %s", operation, self.failure_streak, err)
        self.transport_error.emit(str(err))
