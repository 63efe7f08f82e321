from dataclasses import dataclass, replace
from enum import Enum

from .errors import MalformedSnapshot

BOARD_SIZE = 3                      # fixed 3x3 grid
CELL_COUNT = BOARD_SIZE * BOARD_SIZE
EMPTY = '-'                         # wire char for a blank cell

# rows, cols, diags as flat indices (row*3+col)
LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)


class Role(str, Enum):
    """
    player mark, value is the wire char
    """
    X = 'X'
    O = 'O'

    @property
    def other(self):
        return Role.O if self is Role.X else Role.X


@dataclass(frozen=True)
class Status:
    """
    in_progress, won(role) or draw
    """
    kind: str
    winner: Role = None

    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAW = "draw"

    @classmethod
    def won(cls, role):
        return cls(cls.WON, Role(role))

    @property
    def is_terminal(self):
        return self.kind != Status.IN_PROGRESS

    def to_wire(self):
        # "", "X", "O" or "draw" as stored in the winner field
        if self.kind == Status.WON: return self.winner.value
        if self.kind == Status.DRAW: return "draw"
        return ""

    @classmethod
    def from_wire(cls, text):
        text = (text or "").strip()
        if not text: return IN_PROGRESS
        if text.lower() == "draw": return DRAW
        try:
            return cls.won(text.upper())
        except ValueError:
            raise MalformedSnapshot(f"bad winner field: {text!r}") from None

    def __str__(self):
        return self.to_wire() or "in progress"


IN_PROGRESS = Status(Status.IN_PROGRESS)
DRAW = Status(Status.DRAW)


def empty_board():
    return (EMPTY,) * CELL_COUNT


def encode_board(board):
    """
    board -> 9 char wire string
    """
    return "".join(board)


def parse_board(text):
    """
    9 char wire string -> board tuple, strict on length and alphabet
    """
    if not isinstance(text, str) or len(text) != CELL_COUNT:
        raise MalformedSnapshot(f"board must be {CELL_COUNT} chars: {text!r}")
    cells = tuple(text.upper())
    bad = [c for c in cells if c not in (EMPTY, Role.X.value, Role.O.value)]
    if bad:
        raise MalformedSnapshot(f"bad board chars {bad!r} in {text!r}")
    return cells


def winning_lines(board):
    """
    every line owned end to end by one mark
    """
    return [line for line in LINES
            if board[line[0]] != EMPTY
            and board[line[0]] == board[line[1]] == board[line[2]]]


def evaluate(board):
    """
    pure rules check: won(role), draw or in progress
    """
    lines = winning_lines(board)
    if lines:
        return Status.won(board[lines[0][0]])
    if all(cell != EMPTY for cell in board):
        return DRAW
    return IN_PROGRESS


def is_consistent_with(older, newer):
    """
    true if every filled cell of older is unchanged in newer
    """
    return all(a == EMPTY or a == b for a, b in zip(older, newer))


@dataclass(frozen=True)
class GameState:
    """
    board, turn owner, move counter, status; the unit the sync engine merges
    """
    board: tuple
    turn: Role
    move_count: int
    status: Status

    @classmethod
    def fresh(cls):
        # X always opens
        return cls(empty_board(), Role.X, 0, IN_PROGRESS)

    @classmethod
    def from_wire(cls, board_text, turn, move_count):
        board = parse_board(board_text)
        return cls(board, Role(turn), int(move_count), evaluate(board))

    @property
    def board_text(self):
        return encode_board(self.board)

    def is_cell_empty(self, index):
        return 0 <= index < CELL_COUNT and self.board[index] == EMPTY

    def apply_move(self, index, role):
        """
        place role at index, bump clock, rescore, flip turn while still open
        no legality checks here, the move controller owns those
        """
        board = list(self.board)
        board[index] = Role(role).value
        board = tuple(board)
        status = evaluate(board)
        turn = self.turn if status.is_terminal else Role(role).other
        return replace(self, board=board, turn=turn,
                       move_count=self.move_count + 1, status=status)
