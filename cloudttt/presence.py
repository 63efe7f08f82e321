import logging

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .network import HEARTBEAT

logger = logging.getLogger(__name__)


class PresenceMonitor(QObject):
    """
    heartbeat loop guessing whether the opponent is still around
    purely informational, never touches game state
    """
    opponent_possibly_offline = Signal(float)   # seconds since opponent checked in
    opponent_online = Signal()
    ping_updated = Signal(float)

    def __init__(self, session, store, interval=5.0, threshold=10.0, parent=None):
        super().__init__(parent)
        self.session = session
        self.store = store
        self.threshold = threshold
        self.active = False
        self.opponent_offline = False
        self.last_ping = None
        self.failure_streak = 0

        self.timer = QTimer(self)
        self.timer.setInterval(int(interval * 1000))
        self.timer.timeout.connect(self.beat_once)

    def start(self):
        self.active = True
        self.timer.start()

    def stop(self):
        self.active = False
        self.timer.stop()

    @Slot()
    def beat_once(self):
        if not self.active:
            return
        self.store.heartbeat(self.session.match_id, self.session.local_role,
                             self._on_ping, self._on_error)

    def _on_ping(self, ping_difference):
        if not self.active:
            return
        self.failure_streak = 0
        self.last_ping = float(ping_difference)
        self.ping_updated.emit(self.last_ping)
        offline = self.last_ping > self.threshold
        if offline == self.opponent_offline:
            return
        # only signal transitions
        self.opponent_offline = offline
        if offline:
            logger.info("opponent quiet for %.1fs, may be offline", self.last_ping)
            self.opponent_possibly_offline.emit(self.last_ping)
        else:
            logger.info("opponent back (%.1fs)", self.last_ping)
            self.opponent_online.emit()

    def _on_error(self, err):
        self.failure_streak += 1
        logger.warning("%s failed (%d in a row): %s", HEARTBEAT, self.failure_streak, err)
