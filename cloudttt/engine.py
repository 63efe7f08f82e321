"""
One player's side of a match: wires model, move controller, sync loop and
presence loop together and walks the session through its phases.
"""
import logging
from enum import Enum

from PySide6.QtCore import QObject, Signal, Slot

from .config import Settings
from .controller import MoveController
from .errors import ConfigurationError, GameInProgress, SessionTerminal
from .model import MatchModel
from .presence import PresenceMonitor
from .sync import SyncEngine

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    LOADING = "loading"
    FRESH = "fresh"
    RESUMING = "resuming"
    ACTIVE = "active"
    TERMINAL = "terminal"
    STOPPED = "stopped"


class MatchEngine(QObject):
    """
    the ui talks to this: request_move / request_reset in, model + loop signals out
    """
    phase_changed = Signal(str)
    configuration_error = Signal(str)

    def __init__(self, session, store, settings=None, parent=None):
        super().__init__(parent)
        settings = settings or Settings()
        self.session = session
        self.store = store
        self.phase = Phase.NOT_STARTED

        self.model = MatchModel(parent=self)
        self.sync = SyncEngine(self.model, session, store,
                               poll_interval=settings.poll_interval,
                               conditional_push=settings.conditional_push,
                               terminal_poll_limit=settings.terminal_poll_limit, parent=self)
        self.controller = MoveController(self.model, session, self.sync, parent=self)
        self.presence = PresenceMonitor(session, store,
                                        interval=settings.heartbeat_interval,
                                        threshold=settings.offline_threshold, parent=self)

        self.model.terminal.connect(self._on_terminal)
        self.sync.rematch_started.connect(self._on_new_game)

    def _set_phase(self, phase):
        if phase is self.phase:
            return
        logger.info("match %s: %s -> %s", self.session.match_id, self.phase.value, phase.value)
        self.phase = phase
        self.phase_changed.emit(phase.value)

    @property
    def running(self):
        return self.phase in (Phase.ACTIVE, Phase.TERMINAL)

    def start(self):
        """
        validate the session, load the stored game, then start both loops
        """
        if self.phase is not Phase.NOT_STARTED:
            return
        try:
            self.session.validate()
        except ConfigurationError as e:
            logger.error("cannot start match: %s", e)
            self.configuration_error.emit(str(e))
            raise
        self._set_phase(Phase.LOADING)
        self.sync.load(self._on_loaded)

    def _on_loaded(self, snapshot):
        if self.phase is not Phase.LOADING:
            return  # stopped while loading
        if snapshot is not None and snapshot.status.is_terminal:
            # previous game finished, start clean so the old result isn't polled back in
            logger.info("previous game ended (%s), resetting", snapshot.status)
            self._set_phase(Phase.FRESH)
            self.controller.request_reset()
        elif snapshot is not None and not snapshot.is_empty:
            self._set_phase(Phase.RESUMING)
            self.model.set_state(snapshot.to_state())
        else:
            self._set_phase(Phase.FRESH)
        self.sync.start()
        self.presence.start()
        self._set_phase(Phase.ACTIVE)

    def stop(self):
        """
        leave the match; both timers stop, late callbacks are ignored
        """
        self.sync.stop()
        self.presence.stop()
        if self.phase is not Phase.NOT_STARTED:
            self._set_phase(Phase.STOPPED)

    def _require_running(self):
        if not self.running:
            e = SessionTerminal("match is not running")
            self.controller.move_rejected.emit(str(e))
            raise e

    @Slot(int)
    def request_move(self, index):
        self._require_running()
        return self.controller.submit_local_move(index)

    @Slot()
    def request_reset(self):
        """
        rematch; only once the current game is over
        """
        self._require_running()
        if self.phase is not Phase.TERMINAL:
            e = GameInProgress()
            self.controller.move_rejected.emit(str(e))
            raise e
        self.controller.request_reset()
        self._on_new_game()

    def _on_terminal(self, _winner):
        if self.running:
            self._set_phase(Phase.TERMINAL)

    def _on_new_game(self):
        if self.phase is Phase.TERMINAL:
            self._set_phase(Phase.FRESH)
            self._set_phase(Phase.ACTIVE)
