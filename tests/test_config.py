import pytest

from cloudttt.config import Settings, env_count, env_flag, env_seconds, load_settings
from cloudttt.errors import ConfigurationError
from cloudttt.game_logic import Role
from cloudttt.session import MatchSession, session_from_env, shared_match_id


def test_defaults_without_environment():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.poll_interval == 3.0
    assert settings.heartbeat_interval == 5.0
    assert settings.offline_threshold == 10.0
    assert settings.terminal_poll_limit == 20
    assert not settings.conditional_push
    assert settings.local_mode


def test_values_are_read_from_environment():
    settings = load_settings({
        "CLOUDTTT_STORE_URL": "https://store.example/api/ ",
        "CLOUDTTT_API_TOKEN": "secret",
        "CLOUDTTT_POLL_INTERVAL": "1.5",
        "CLOUDTTT_CONDITIONAL_PUSH": "yes",
        "CLOUDTTT_TERMINAL_POLL_LIMIT": "5",
        "CLOUDTTT_LOG_LEVEL": "debug",
    })
    assert settings.store_url == "https://store.example/api"
    assert settings.api_token == "secret"
    assert settings.poll_interval == 1.5
    assert settings.conditional_push
    assert settings.log_level == "DEBUG"
    assert settings.terminal_poll_limit == 5
    assert not settings.local_mode


@pytest.mark.parametrize("raw,expected", [
    ("1", True), ("TRUE", True), ("on", True),
    ("0", False), ("no", False), ("", False),
])
def test_env_flag(raw, expected):
    assert env_flag("FLAG", environ={"FLAG": raw}) is expected


def test_env_flag_default_when_unset():
    assert env_flag("FLAG", default=True, environ={}) is True


@pytest.mark.parametrize("raw", ["soon", "0", "-2"])
def test_bad_seconds_are_refused(raw):
    with pytest.raises(ConfigurationError):
        env_seconds("CLOUDTTT_POLL_INTERVAL", 3.0, {"CLOUDTTT_POLL_INTERVAL": raw})


def test_bad_interval_stops_settings_loading():
    with pytest.raises(ConfigurationError, match="CLOUDTTT_HEARTBEAT_INTERVAL"):
        load_settings({"CLOUDTTT_HEARTBEAT_INTERVAL": "often"})


def test_shared_match_id_is_order_independent():
    assert shared_match_id("bob", "alice") == "alice_bob"
    assert shared_match_id("alice", "bob") == "alice_bob"


def test_session_from_env_derives_match_id():
    session = session_from_env({
        "CLOUDTTT_ROLE": "o",
        "CLOUDTTT_PLAYER_ID": "bob",
        "CLOUDTTT_OPPONENT_ID": "alice",
    })
    assert session == MatchSession("alice_bob", Role.O, "bob", "alice")
    assert session.remote_role is Role.X
    assert session.role_assignment() == {"playerX": "alice", "playerO": "bob"}


def test_session_from_env_keeps_explicit_match_id():
    session = session_from_env({
        "CLOUDTTT_MATCH_ID": "room-7",
        "CLOUDTTT_ROLE": "X",
        "CLOUDTTT_PLAYER_ID": "alice",
        "CLOUDTTT_OPPONENT_ID": "bob",
    })
    assert session.match_id == "room-7"
    assert session.role_assignment() == {"playerX": "alice", "playerO": "bob"}


def test_session_from_env_refuses_unknown_role():
    with pytest.raises(ConfigurationError):
        session_from_env({"CLOUDTTT_ROLE": "Z"})


@pytest.mark.parametrize("session", [
    MatchSession("", Role.X, "alice", "bob"),
    MatchSession("   ", Role.X, "alice", "bob"),
    MatchSession("alice_bob", "X", "alice", "bob"),
    MatchSession("alice_bob", Role.O, "", "alice"),
])
def test_invalid_sessions(session):
    with pytest.raises(ConfigurationError):
        session.validate()


def test_valid_session_validates_to_itself():
    session = MatchSession("alice_bob", Role.X, "alice", "bob")
    assert session.validate() is session


@pytest.mark.parametrize("raw", ["2.5", "none", "0"])
def test_bad_counts_are_refused(raw):
    with pytest.raises(ConfigurationError):
        env_count("CLOUDTTT_TERMINAL_POLL_LIMIT", 20, {"CLOUDTTT_TERMINAL_POLL_LIMIT": raw})
