from ..engine import Phase
from ..errors import MatchError
from .board_widget import BoardWidget

from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QPushButton, QLabel, QMenuBar, QMenu, QMessageBox, QSizePolicy
)
from PySide6.QtGui import QAction, QFont
from PySide6.QtCore import Qt, Slot


class MatchWindow(QMainWindow):
    """
    one player's window onto a MatchEngine
    """
    def __init__(self, engine, parent=None):
        """
        init widgets, hook engine signals
        """
        super().__init__(parent)
        self.engine = engine
        self.session = engine.session
        self.board_widget = BoardWidget(parent=self)
        self._setup_ui()
        self._connect_engine()
        self._update_message("connecting to match...")

    def _setup_ui(self):
        '''window look + layout'''
        self.setWindowTitle(f"Tic-Tac-Toe ({self.session.local_role.value})")
        self.setStyleSheet("""
            QMainWindow { background-color: #222; }
            QMenuBar { background-color: #333; color: #eee; }
            QMenuBar::item:selected { background-color: #555; }
            QMenu { background-color: #333; color: #eee; border: 1px solid #555; }
            QMenu::item:selected { background-color: #555; }
            QPushButton { background-color: #444; color: #eee; border: 1px solid #555; padding: 8px 15px; border-radius: 5px; }
            QPushButton:hover { background-color: #555; }
            QLabel { color: #eee; }
        """)
        self.central_widget = QWidget()
        self.setCentralWidget(self.central_widget)
        self.main_layout = QVBoxLayout(self.central_widget)

        self._create_menu_bar()            # top menu
        self.main_layout.addWidget(self.board_widget, 1)
        self.board_widget.cell_clicked.connect(self._on_cell_clicked)
        self._create_bottom_controls()     # status + buttons
        self.main_layout.addWidget(self.controls_bottom_widget)
        self._update_rematch_button()

    def _create_menu_bar(self):
        '''game menu actions'''
        menu_bar = QMenuBar()
        game_menu = QMenu("Game", self)
        self.rematch_action = QAction("Rematch", self)
        self.rematch_action.triggered.connect(self._request_rematch)
        quit_action = QAction("Quit", self)
        quit_action.triggered.connect(self.close)
        game_menu.addAction(self.rematch_action)
        game_menu.addSeparator(); game_menu.addAction(quit_action)
        menu_bar.addMenu(game_menu)
        self.setMenuBar(menu_bar)

    def _create_bottom_controls(self):
        # status label + presence hint + rematch button
        self.controls_bottom_widget = QWidget()
        hl = QHBoxLayout(self.controls_bottom_widget)
        self.controls_bottom_widget.setStyleSheet("background: transparent;")
        self.message_label = QLabel("")
        f = QFont(); f.setPointSize(12); self.message_label.setFont(f)
        self.message_label.setAlignment(Qt.AlignLeft | Qt.AlignVCenter)
        self.message_label.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Preferred)
        self.message_label.setWordWrap(True)
        self.presence_label = QLabel("")
        self.presence_label.setStyleSheet("color: #ffcc66;")
        self.rematch_button = QPushButton("Rematch?")
        self.rematch_button.clicked.connect(self._request_rematch)
        for w in (self.message_label, self.presence_label, None, self.rematch_button):
            if w: hl.addWidget(w)
            else: hl.addStretch(1)

    def _connect_engine(self):
        model = self.engine.model
        model.board_changed.connect(self.board_widget.set_board)
        model.turn_changed.connect(self._show_turn)
        model.terminal.connect(self._on_terminal)
        self.engine.phase_changed.connect(self._on_phase_changed)
        self.engine.configuration_error.connect(self._on_configuration_error)
        self.engine.controller.move_rejected.connect(
            lambda reason: self._update_message(reason, is_error=True))
        self.engine.sync.rematch_started.connect(
            lambda: self._update_message("opponent started a rematch", is_turn=True))
        self.engine.presence.opponent_possibly_offline.connect(self._on_opponent_offline)
        self.engine.presence.opponent_online.connect(lambda: self.presence_label.setText(""))

    @Slot(str)
    def _update_message(self, text, is_error=False,
                        is_success=False, is_turn=False):
        # set message text + style
        style = "color: #eee;"
        if is_error:   style = "color: #ff8a8a; font-weight: bold;"
        elif is_success: style = "color: lime; font-weight: bold;"
        elif is_turn:    style = "color: #8acaff; font-weight: bold;"
        self.message_label.setStyleSheet(style)
        self.message_label.setText(text)

    def _update_rematch_button(self):
        over = self.engine.phase is Phase.TERMINAL
        self.rematch_button.setVisible(over); self.rematch_button.setEnabled(over)
        self.rematch_action.setEnabled(over)

    @Slot(str)
    def _show_turn(self, *_):
        state = self.engine.model.state
        if state.status.is_terminal:
            return
        mine = state.turn == self.session.local_role
        self.board_widget.set_accept_clicks(mine)
        if mine:
            self._update_message(f"Your ({self.session.local_role.value}) turn!", is_turn=True)
        else:
            self._update_message(f"Waiting for opponent ('{self.session.remote_role.value}')...")

    @Slot(str)
    def _on_terminal(self, winner):
        # end game ui updates
        self.board_widget.set_accept_clicks(False)
        if winner == "draw":
            self._update_message("It's a draw!", is_success=True)
        elif winner == self.session.local_role.value:
            self._update_message(f"You ({winner}) win!", is_success=True)
        else:
            self._update_message(f"Opponent ({winner}) wins!", is_error=True)

    @Slot(str)
    def _on_phase_changed(self, phase):
        self._update_rematch_button()
        if phase == Phase.ACTIVE.value:
            self.board_widget.set_board(self.engine.model.state.board_text)
            self._show_turn()
        elif phase == Phase.STOPPED.value:
            self.board_widget.set_accept_clicks(False)
            self._update_message("left the match")

    @Slot(str)
    def _on_configuration_error(self, reason):
        self._update_message(reason, is_error=True)
        QMessageBox.critical(self, "Match Error", reason)

    @Slot(float)
    def _on_opponent_offline(self, seconds):
        self.presence_label.setText(f"opponent quiet for {seconds:.0f}s")

    @Slot(int)
    def _on_cell_clicked(self, index):
        try:
            self.engine.request_move(index)
        except MatchError:
            pass  # controller already reported it via move_rejected

    @Slot()
    def _request_rematch(self):
        try:
            self.engine.request_reset()
        except MatchError as e:
            self._update_message(str(e), is_error=True)
            return
        self._update_message("rematch requested...")
        self._show_turn()

    def closeEvent(self, event):
        # stop both loops on close
        self.engine.stop()
        event.accept()
