import logging
import sys

from PySide6.QtWidgets import QApplication, QMessageBox
from PySide6.QtCore import Qt
from PySide6.QtGui import QPalette, QColor

from cloudttt.config import load_settings
from cloudttt.engine import MatchEngine
from cloudttt.errors import ConfigurationError
from cloudttt.game_logic import Role
from cloudttt.network import HttpMatchStore, MemoryMatchStore
from cloudttt.session import MatchSession, session_from_env, shared_match_id
from cloudttt.ui.main_window import MatchWindow

logger = logging.getLogger("cloudttt")

# -----------------------------------------------------------------------------
# COLOR CONSTANTS
# -----------------------------------------------------------------------------

WINDOW_COLOR = QColor(53, 53, 53)
WINDOW_TEXT_COLOR = Qt.white
BASE_COLOR = QColor(35, 35, 35)
ALT_BASE_COLOR = QColor(53, 53, 53)
TEXT_COLOR = Qt.white
BUTTON_COLOR = QColor(66, 66, 66)
BUTTON_TEXT_COLOR = Qt.white
HIGHLIGHT_COLOR = QColor(42, 130, 218)
HIGHLIGHTED_TEXT_COLOR = Qt.white
DISABLED_TEXT_COLOR = QColor(127, 127, 127)

# local mode participants
LOCAL_X_ID = "local-x"
LOCAL_O_ID = "local-o"

# -----------------------------------------------------------------------------
# PALETTE SETUP
# -----------------------------------------------------------------------------

def apply_default_palette(app: QApplication):
    """
    Apply the dark theme palette.
    """
    palette = QPalette()
    palette.setColor(QPalette.Window, WINDOW_COLOR)
    palette.setColor(QPalette.WindowText, WINDOW_TEXT_COLOR)
    palette.setColor(QPalette.Base, BASE_COLOR)
    palette.setColor(QPalette.AlternateBase, ALT_BASE_COLOR)
    palette.setColor(QPalette.Text, TEXT_COLOR)
    palette.setColor(QPalette.Button, BUTTON_COLOR)
    palette.setColor(QPalette.ButtonText, BUTTON_TEXT_COLOR)
    palette.setColor(QPalette.Highlight, HIGHLIGHT_COLOR)
    palette.setColor(QPalette.HighlightedText, HIGHLIGHTED_TEXT_COLOR)
    palette.setColor(QPalette.Disabled, QPalette.Text, DISABLED_TEXT_COLOR)
    palette.setColor(QPalette.Disabled, QPalette.ButtonText, DISABLED_TEXT_COLOR)
    app.setPalette(palette)

# -----------------------------------------------------------------------------
# MATCH SETUP
# -----------------------------------------------------------------------------

def build_windows(settings):
    """
    remote store: one window for the session in the environment
    no store url: two windows, X and O, sharing an in-process store
    """
    if not settings.local_mode:
        session = session_from_env()
        store = HttpMatchStore(settings.store_url, settings.api_token, settings.request_timeout)
        return [MatchWindow(MatchEngine(session, store, settings))]

    store = MemoryMatchStore()
    match_id = shared_match_id(LOCAL_X_ID, LOCAL_O_ID)
    sessions = (
        MatchSession(match_id, Role.X, LOCAL_X_ID, LOCAL_O_ID),
        MatchSession(match_id, Role.O, LOCAL_O_ID, LOCAL_X_ID),
    )
    return [MatchWindow(MatchEngine(s, store, settings)) for s in sessions]

# -----------------------------------------------------------------------------
# ENTRY POINT
# -----------------------------------------------------------------------------

if __name__ == '__main__':
    app = QApplication(sys.argv)
    app.setStyle('Fusion')
    apply_default_palette(app)

    try:
        settings = load_settings()
        logging.basicConfig(
            level=getattr(logging, settings.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        windows = build_windows(settings)
        for window in windows:
            window.show()
            window.engine.start()
    except ConfigurationError as e:
        logger.error("%s", e)
        QMessageBox.critical(None, "Match Error", str(e))
        sys.exit(1)
    sys.exit(app.exec())
