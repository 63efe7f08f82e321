class MatchError(Exception):
    """
    base for everything the match engine raises
    """


class ConfigurationError(MatchError):
    """
    session or settings unusable, engine must not start
    """


class TransportError(MatchError):
    """
    rpc to the match store failed
    """
    def __init__(self, operation, message, conflict=False):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.conflict = conflict  # store refused a conditional push


class MalformedSnapshot(MatchError):
    """
    store response could not be decoded
    """


class RuleViolation(MatchError):
    """
    local move refused before touching state
    """
    reason = "rule violation"

    def __init__(self, message=None):
        super().__init__(message or self.reason)


class NotMyTurn(RuleViolation):
    reason = "not your turn"


class CellOccupied(RuleViolation):
    reason = "cell taken"


class SessionTerminal(RuleViolation):
    reason = "game is over"


class MoveAlreadyPending(RuleViolation):
    reason = "waiting for last move to sync"


class InvalidCell(RuleViolation):
    reason = "no such cell"


class GameInProgress(RuleViolation):
    reason = "finish the game before a rematch"
