"""
match identity handed over by the matchmaker before the engine starts
"""
import os
from dataclasses import dataclass

from .errors import ConfigurationError
from .game_logic import Role


def shared_match_id(player_a, player_b):
    """
    both devices derive the same id: sorted participant ids joined by '_'
    """
    first, second = sorted((player_a, player_b))
    return f"{first}_{second}"


@dataclass(frozen=True)
class MatchSession:
    """
    who plays what in which match, fixed for the lifetime of one engine
    """
    match_id: str
    local_role: Role
    local_player_id: str
    remote_player_id: str

    def validate(self):
        if not (self.match_id or "").strip():
            raise ConfigurationError("match id is missing")
        if not isinstance(self.local_role, Role):
            raise ConfigurationError(f"local role must be X or O, got {self.local_role!r}")
        if not self.local_player_id or not self.remote_player_id:
            raise ConfigurationError("both participant ids are required")
        return self

    @property
    def remote_role(self):
        return self.local_role.other

    def role_assignment(self):
        # {"playerX": id, "playerO": id} as the store expects
        if self.local_role is Role.X:
            x_id, o_id = self.local_player_id, self.remote_player_id
        else:
            x_id, o_id = self.remote_player_id, self.local_player_id
        return {"playerX": x_id, "playerO": o_id}


def session_from_env(environ=None):
    env = os.environ if environ is None else environ
    raw_role = env.get("CLOUDTTT_ROLE", "").strip().upper()
    try:
        role = Role(raw_role)
    except ValueError:
        raise ConfigurationError(f"CLOUDTTT_ROLE must be X or O, got {raw_role!r}") from None
    player_id = env.get("CLOUDTTT_PLAYER_ID", "").strip()
    opponent_id = env.get("CLOUDTTT_OPPONENT_ID", "").strip()
    match_id = env.get("CLOUDTTT_MATCH_ID", "").strip()
    if not match_id and player_id and opponent_id:
        match_id = shared_match_id(player_id, opponent_id)
    return MatchSession(match_id, role, player_id, opponent_id)
