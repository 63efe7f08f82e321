"""
match store client: the four remote calls and the wire codec around them
"""
import json
import logging
import time
from dataclasses import dataclass

from PySide6.QtCore import QByteArray, QObject, QTimer, QUrl
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

from .errors import MalformedSnapshot, TransportError
from .game_logic import (
    EMPTY, IN_PROGRESS, GameState, Role, Status, empty_board, encode_board,
    evaluate, parse_board,
)

logger = logging.getLogger(__name__)

GET_MATCH_STATE = "getMatchState"
UPDATE_MATCH_STATE = "updateMatchState"
RESET_MATCH_STATE = "resetMatchState"
HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class RemoteSnapshot:
    """
    decoded GetMatchState response
    """
    board: tuple
    turn: Role
    move_count: int
    status: Status
    player_x: str = ""
    player_o: str = ""
    player_x_last_active: str = ""
    player_o_last_active: str = ""

    @property
    def is_empty(self):
        # no game recorded yet for this match
        return self.move_count == 0 and all(c == EMPTY for c in self.board)

    @property
    def board_text(self):
        return encode_board(self.board)

    def to_state(self):
        return GameState(self.board, self.turn, self.move_count, self.status)


def _field(data, name):
    value = data.get(name, "")
    return "" if value is None else str(value).strip()


def parse_snapshot(body):
    """
    raw response (bare or wrapped in "data") -> RemoteSnapshot
    raises MalformedSnapshot on anything it can't trust
    """
    if not isinstance(body, dict):
        raise MalformedSnapshot(f"expected an object, got {type(body).__name__}")
    data = body.get("data", body)
    if not isinstance(data, dict):
        raise MalformedSnapshot("data field is not an object")

    players = dict(
        player_x=_field(data, "playerX"),
        player_o=_field(data, "playerO"),
        player_x_last_active=_field(data, "playerXlastActive"),
        player_o_last_active=_field(data, "playerOlastActive"),
    )
    board_text = _field(data, "boardState")
    if not board_text:
        return RemoteSnapshot(empty_board(), Role.X, 0, IN_PROGRESS, **players)

    board = parse_board(board_text)
    try:
        turn = Role(_field(data, "turn").upper())
    except ValueError:
        raise MalformedSnapshot(f"bad turn field: {data.get('turn')!r}") from None
    try:
        move_count = int(_field(data, "turnCount"))
    except ValueError:
        raise MalformedSnapshot(f"bad turnCount: {data.get('turnCount')!r}") from None
    filled = sum(1 for c in board if c != EMPTY)
    if move_count != filled:
        raise MalformedSnapshot(f"turnCount {move_count} but {filled} marks on {board_text}")

    # board is the truth, winner field must agree with it when present
    status = evaluate(board)
    declared = Status.from_wire(_field(data, "winner"))
    if declared.is_terminal and declared != status:
        raise MalformedSnapshot(f"winner {declared} contradicts board {board_text}")
    return RemoteSnapshot(board, turn, move_count, status, **players)


def build_update_payload(match_id, state, assignment=None, expected_move_count=None):
    """
    UpdateMatchState body; role assignment on a fresh match, expected clock
    only when conditional pushes are on
    """
    payload = {
        "matchId": match_id,
        "boardState": state.board_text,
        "turn": state.turn.value,
        "turnCount": state.move_count,
    }
    if assignment:
        payload.update(assignment)
    if expected_move_count is not None:
        payload["expectedTurnCount"] = expected_move_count
    return payload


def parse_ping(body):
    data = body.get("data", body) if isinstance(body, dict) else None
    try:
        return float(data["pingDifference"])
    except (KeyError, TypeError, ValueError):
        raise MalformedSnapshot(f"bad heartbeat response: {body!r}") from None


class AuthoritativeStore:
    """
    async request/response calls against the match store
    callbacks must run on the thread that made the call
    """
    def get_match_state(self, match_id, on_result, on_error):
        raise NotImplementedError

    def update_match_state(self, payload, on_result, on_error):
        raise NotImplementedError

    def reset_match_state(self, match_id, player_x, player_o, on_result, on_error):
        raise NotImplementedError

    def heartbeat(self, match_id, role, on_result, on_error):
        raise NotImplementedError


class HttpMatchStore(QObject, AuthoritativeStore):
    """
    json over http post, one endpoint per store function
    replies land on the qt thread that owns the manager
    """
    def __init__(self, base_url, api_token="", timeout=10.0, parent=None):
        super().__init__(parent)
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.manager = QNetworkAccessManager(self)

    def get_match_state(self, match_id, on_result, on_error):
        self._post(GET_MATCH_STATE, {"matchId": match_id}, on_result, on_error)

    def update_match_state(self, payload, on_result, on_error):
        self._post(UPDATE_MATCH_STATE, payload, on_result, on_error)

    def reset_match_state(self, match_id, player_x, player_o, on_result, on_error):
        body = {"matchId": match_id, "playerX": player_x, "playerO": player_o}
        self._post(RESET_MATCH_STATE, body, on_result, on_error)

    def heartbeat(self, match_id, role, on_result, on_error):
        body = {"matchId": match_id, "role": Role(role).value}
        self._post(HEARTBEAT, body, on_result, on_error, decode=parse_ping)

    def _post(self, function, body, on_result, on_error, decode=None):
        request = QNetworkRequest(QUrl(f"{self.base_url}/{function}"))
        request.setHeader(QNetworkRequest.KnownHeaders.ContentTypeHeader, "application/json")
        if self.api_token:
            request.setRawHeader(b"Authorization", f"Bearer {self.api_token}".encode("utf-8"))
        request.setTransferTimeout(int(self.timeout * 1000))
        reply = self.manager.post(request, QByteArray(json.dumps(body).encode("utf-8")))
        reply.finished.connect(
            lambda: self._on_finished(reply, function, on_result, on_error, decode))

    def _on_finished(self, reply, function, on_result, on_error, decode):
        """
        map the reply to exactly one callback
        """
        try:
            if reply.error() != QNetworkReply.NetworkError.NoError:
                code = reply.attribute(QNetworkRequest.Attribute.HttpStatusCodeAttribute)
                on_error(TransportError(function, reply.errorString(), conflict=(code == 409)))
                return
            raw = bytes(reply.readAll().data())
            try:
                body = json.loads(raw.decode("utf-8")) if raw else {}
            except (UnicodeDecodeError, ValueError) as e:
                if function == GET_MATCH_STATE:
                    on_error(MalformedSnapshot(f"unreadable body: {e}"))
                else:
                    on_error(TransportError(function, f"unreadable body: {e}"))
                return
            if decode is not None:
                try:
                    body = decode(body)
                except MalformedSnapshot as e:
                    on_error(e)
                    return
            on_result(body)
        finally:
            reply.deleteLater()


class MemoryMatchStore(QObject, AuthoritativeStore):
    """
    in-process store for two windows on one machine
    replies are deferred to the event loop so callers always see async completion
    """
    def __init__(self, clock=time.monotonic, parent=None):
        super().__init__(parent)
        self.clock = clock
        self.matches = {}   # match id -> stored record

    def _record(self, match_id):
        if match_id not in self.matches:
            now = self.clock()
            self.matches[match_id] = {
                "boardState": "", "turn": Role.X.value, "turnCount": 0,
                "winner": "", "playerX": "", "playerO": "",
                "lastActive": {Role.X.value: now, Role.O.value: now},
            }
        return self.matches[match_id]

    def _reply(self, callback, value):
        QTimer.singleShot(0, lambda: callback(value))

    def get_match_state(self, match_id, on_result, on_error):
        rec = self._record(match_id)
        body = {
            "boardState": rec["boardState"],
            "turn": rec["turn"],
            "turnCount": str(rec["turnCount"]),
            "winner": rec["winner"],
            "playerX": rec["playerX"],
            "playerO": rec["playerO"],
            "playerXlastActive": str(rec["lastActive"][Role.X.value]),
            "playerOlastActive": str(rec["lastActive"][Role.O.value]),
        }
        self._reply(on_result, {"data": body})

    def update_match_state(self, payload, on_result, on_error):
        rec = self._record(payload["matchId"])
        expected = payload.get("expectedTurnCount")
        if expected is not None and int(expected) != rec["turnCount"]:
            err = TransportError(UPDATE_MATCH_STATE,
                                 f"store at turn {rec['turnCount']}, push expected {expected}",
                                 conflict=True)
            self._reply(on_error, err)
            return
        board = parse_board(payload["boardState"])
        rec.update(boardState=payload["boardState"], turn=payload["turn"],
                   turnCount=int(payload["turnCount"]), winner=evaluate(board).to_wire())
        for key in ("playerX", "playerO"):
            if payload.get(key):
                rec[key] = payload[key]
        self._reply(on_result, {"message": "ok"})

    def reset_match_state(self, match_id, player_x, player_o, on_result, on_error):
        rec = self._record(match_id)
        rec.update(boardState=encode_board(empty_board()), turn=Role.X.value, turnCount=0,
                   winner="", playerX=player_x, playerO=player_o)
        self._reply(on_result, {"message": "reset"})

    def heartbeat(self, match_id, role, on_result, on_error):
        rec = self._record(match_id)
        role = Role(role)
        now = self.clock()
        rec["lastActive"][role.value] = now
        self._reply(on_result, now - rec["lastActive"][role.other.value])
