from PySide6.QtWidgets import QWidget, QSizePolicy
from PySide6.QtCore import Qt, QSize, Signal, QPointF, QRect, Slot
from PySide6.QtGui import QPainter, QColor, QPen, QFont

from ..game_logic import BOARD_SIZE, EMPTY, empty_board, encode_board, evaluate, parse_board

X_COLOR = "#8acaff"
O_COLOR = "#ff8a8a"


class BoardWidget(QWidget):
    """
    draws a 9 char board and turns clicks into cell indices
    """
    cell_clicked = Signal(int)  # emits row*3+col on click

    def __init__(self, parent=None):
        super().__init__(parent)
        self.board = empty_board()
        self.setSizePolicy(QSizePolicy.Ignored, QSizePolicy.Ignored)
        self.setMinimumSize(QSize(150, 150))
        self._accept_clicks = True      # toggle click handling

    def set_accept_clicks(self, accept):
        # enable/disable user input
        self._accept_clicks = accept

    @Slot(str)
    def set_board(self, text):
        self.board = parse_board(text)
        self.update()

    def board_text(self):
        return encode_board(self.board)

    def heightForWidth(self, width):
        # keep square shape
        return width

    def hasHeightForWidth(self):
        return True

    def _geometry(self):
        w, h = self.width(), self.height()
        side = min(w, h)
        return (w-side)/2, (h-side)/2, side

    def paintEvent(self, event):
        """
        draw grid, X/O marks, and the winner on top
        """
        painter = QPainter(self)
        try:
            painter.setRenderHint(QPainter.Antialiasing, True)
            offset_x, offset_y, side = self._geometry()
            painter.fillRect(self.rect(), QColor("#333"))
            cell_size = side / BOARD_SIZE
            # grid lines
            painter.setPen(QPen(QColor("#555"), 2))
            for i in range(1, BOARD_SIZE):
                x = offset_x + i*cell_size
                painter.drawLine(int(x), int(offset_y), int(x), int(offset_y+side))
                y = offset_y + i*cell_size
                painter.drawLine(int(offset_x), int(y), int(offset_x+side), int(y))
            # marks
            for index, sym in enumerate(self.board):
                if sym == EMPTY: continue
                r, c = divmod(index, BOARD_SIZE)
                cx = offset_x + c*cell_size + cell_size/2
                cy = offset_y + r*cell_size + cell_size/2
                rad = cell_size/2 * 0.7
                if sym == 'X':
                    painter.setPen(QPen(QColor(X_COLOR), 4))
                    painter.drawLine(QPointF(cx-rad, cy-rad), QPointF(cx+rad, cy+rad))
                    painter.drawLine(QPointF(cx+rad, cy-rad), QPointF(cx-rad, cy+rad))
                else:
                    painter.setPen(QPen(QColor(O_COLOR), 4))
                    painter.drawEllipse(QPointF(cx, cy), rad, rad)
            # winner overlay
            status = evaluate(self.board)
            if status.winner is not None:
                win = status.winner.value
                painter.setFont(QFont("Arial", int(side*0.6), QFont.Bold))
                color = QColor(X_COLOR) if win == 'X' else QColor(O_COLOR)
                painter.setPen(QPen(color, 10, Qt.SolidLine, Qt.RoundCap, Qt.RoundJoin))
                rect = QRect(int(offset_x), int(offset_y), int(side), int(side))
                painter.drawText(rect, Qt.AlignCenter, win)
        finally:
            painter.end()

    def cell_at(self, x, y):
        """
        widget coords -> cell index, None outside the grid
        """
        ox, oy, side = self._geometry()
        if side <= 0 or not (ox <= x < ox+side and oy <= y < oy+side):
            return None
        cell = side / BOARD_SIZE
        col = min(int((x-ox)//cell), BOARD_SIZE-1)
        row = min(int((y-oy)//cell), BOARD_SIZE-1)
        return row*BOARD_SIZE + col

    def mouseReleaseEvent(self, event):
        if not self._accept_clicks:
            return
        index = self.cell_at(event.position().x(), event.position().y())
        if index is not None:
            self.cell_clicked.emit(index)  # notify main window
