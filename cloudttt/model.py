import logging

from PySide6.QtCore import QObject, Signal

from .game_logic import GameState

logger = logging.getLogger(__name__)


class MatchModel(QObject):
    """
    holds the current GameState and fans out what changed
    every write goes through set_state on the qt thread
    """
    board_changed = Signal(str)    # 9 char board
    turn_changed = Signal(str)     # 'X' / 'O'
    terminal = Signal(str)         # 'X', 'O' or 'draw'
    state_replaced = Signal(object)

    def __init__(self, state=None, parent=None):
        super().__init__(parent)
        self.state = state or GameState.fresh()

    def set_state(self, new):
        """
        swap in new state, emit only the parts that differ
        returns True if anything changed
        """
        old = self.state
        if new == old:
            return False
        self.state = new
        if new.board != old.board:
            self.board_changed.emit(new.board_text)
        if new.turn != old.turn:
            self.turn_changed.emit(new.turn.value)
        if new.status.is_terminal and new.status != old.status:
            logger.info("game over: %s (turn %d)", new.status, new.move_count)
            self.terminal.emit(new.status.to_wire())
        self.state_replaced.emit(new)
        return True
