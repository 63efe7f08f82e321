import logging
from enum import Enum

from PySide6.QtCore import QObject, Signal

from .errors import (
    CellOccupied, InvalidCell, MoveAlreadyPending, NotMyTurn, RuleViolation,
    SessionTerminal,
)
from .game_logic import CELL_COUNT, GameState

logger = logging.getLogger(__name__)

UNSYNCED_MOVE = "move"
UNSYNCED_RESET = "reset"


class MoveState(str, Enum):
    IDLE = "idle"
    MOVE_PENDING = "move_pending"


class MoveController(QObject):
    """
    local writes: validates a move, applies it optimistically, pushes it,
    and holds the pending lock until the push comes back either way
    """
    move_rejected = Signal(str)
    move_applied = Signal(int)

    def __init__(self, model, session, sync, parent=None):
        super().__init__(parent)
        self.model = model
        self.session = session
        self.sync = sync
        self.state = MoveState.IDLE
        self._write_token = 0     # identifies the write currently in flight
        self._unsynced = None     # what a failed write still owes the store
        sync.bind(self)

    @property
    def pending(self):
        return self.state is MoveState.MOVE_PENDING

    @property
    def needs_resync(self):
        return self._unsynced is not None and not self.pending

    def check_move(self, index):
        """
        raise the RuleViolation a move at index would hit, if any
        """
        state = self.model.state
        if state.status.is_terminal:
            raise SessionTerminal()
        if self.pending:
            raise MoveAlreadyPending()
        if state.turn != self.session.local_role:
            raise NotMyTurn()
        if not 0 <= index < CELL_COUNT:
            raise InvalidCell(f"no such cell: {index}")
        if not state.is_cell_empty(index):
            raise CellOccupied()

    def submit_local_move(self, index):
        try:
            self.check_move(index)
        except RuleViolation as e:
            logger.info("move %s rejected: %s", index, e)
            self.move_rejected.emit(str(e))
            raise

        new = self.model.state.apply_move(index, self.session.local_role)
        # ui sees the move before any round trip
        self.model.set_state(new)
        self.move_applied.emit(index)
        logger.info("played %d as %s (turn %d, %s)",
                    index, self.session.local_role.value, new.move_count, new.status)
        self._push_move(new)
        return new

    def request_reset(self):
        """
        drop the local game and tell the store to start over
        """
        if self.pending:
            e = MoveAlreadyPending()
            self.move_rejected.emit(str(e))
            raise e
        logger.info("resetting match %s", self.session.match_id)
        self.model.set_state(GameState.fresh())
        self._push_reset()

    def resync(self):
        # retry whatever the last failed write owed the store
        if not self.needs_resync:
            return
        logger.info("retrying unsynced %s", self._unsynced)
        if self._unsynced == UNSYNCED_RESET:
            self._push_reset()
        else:
            self._push_move(self.model.state)

    def on_push_acknowledged(self):
        self.state = MoveState.IDLE
        self._unsynced = None

    def on_push_failed(self, error=None):
        # always release, a stuck lock would block polls and moves for good
        self.state = MoveState.IDLE
        if getattr(error, "conflict", False):
            logger.warning("store moved on, dropping local write: %s", error)
            self._unsynced = None

    def on_remote_adopted(self, release_lock=False):
        """
        a remote snapshot replaced local state; nothing local is owed anymore
        release_lock: terminal or new-game snapshots also end an in-flight write
        """
        self._unsynced = None
        if release_lock and self.pending:
            logger.info("remote state overrides in-flight write")
            self._write_token += 1    # stale push callbacks become no-ops
            self.state = MoveState.IDLE

    def _begin_write(self, kind):
        self._write_token += 1
        token = self._write_token
        self.state = MoveState.MOVE_PENDING
        self._unsynced = kind

        def acked(_result=None):
            if token == self._write_token:
                self.on_push_acknowledged()

        def failed(error):
            if token == self._write_token:
                self.on_push_failed(error)
        return acked, failed

    def _push_move(self, state):
        acked, failed = self._begin_write(UNSYNCED_MOVE)
        self.sync.push(state, acked, failed)

    def _push_reset(self):
        acked, failed = self._begin_write(UNSYNCED_RESET)
        self.sync.push_reset(acked, failed)
