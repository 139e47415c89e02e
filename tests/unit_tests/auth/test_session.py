"""Unit tests for session persistence and token inspection."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError, jwt

from auth.jwt import is_token_expired, read_claims
from auth.schemas import Session
from auth.session import FileSessionStore, MemorySessionStore, SessionStore

SECRET = "test-secret"


def _token(**claims) -> str:
    return jwt.encode(claims, SECRET, algorithm="HS256")


def test_read_claims_without_secret():
    """Test: Claims are readable without the signing secret."""
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    token = _token(id=100, role="client", exp=int(exp.timestamp()))

    claims = read_claims(token)

    assert claims.id == "100"
    assert claims.role == "client"
    assert abs((claims.exp - exp).total_seconds()) < 1


def test_read_claims_malformed_token():
    """Test: A malformed token raises JWTError."""
    with pytest.raises(JWTError):
        read_claims("not-a-jwt")


def test_is_token_expired():
    """Test: Expiry follows the exp claim; missing exp never expires; garbage is expired."""
    now = datetime.now(timezone.utc)

    assert is_token_expired(_token(id=1, exp=int((now - timedelta(minutes=1)).timestamp()))) is True
    assert is_token_expired(_token(id=1, exp=int((now + timedelta(minutes=5)).timestamp()))) is False
    assert is_token_expired(_token(id=1)) is False
    assert is_token_expired("garbage") is True


def test_session_roles():
    """Test: Role helpers reflect the session role."""
    assert Session(id="1", role="client").is_client
    assert Session(id="2", role="expert").is_expert
    assert not Session(id="3", role="admin").is_client


def test_memory_session_store():
    """Test: The memory store saves, loads and clears."""
    store = MemorySessionStore()
    session = Session(id="100", token="t")

    store.save(session)
    assert store.load() == session

    store.clear()
    assert store.load() is None


def test_session_store_is_abstract():
    """Test: The base store cannot be used without an implementation."""
    with pytest.raises(TypeError):
        SessionStore()


def test_file_session_store_round_trip(tmp_path):
    """Test: A saved session is loaded back from disk, camelCase accepted."""
    path = tmp_path / "nested" / "session.json"
    store = FileSessionStore(path)
    token = _token(id=100, exp=int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()))

    store.save(Session(id="100", token=token, role="client", name="Ada", avatar_url="https://cdn/a.png"))
    loaded = store.load()

    assert loaded.id == "100"
    assert loaded.avatar_url == "https://cdn/a.png"

    path.write_text('{"id": 7, "token": null, "role": "expert", "avatarUrl": "x"}', encoding="utf-8")
    assert store.load() == Session(id="7", role="expert", avatar_url="x")


def test_file_session_store_drops_expired_session(tmp_path):
    """Test: An expired token is discarded and the file removed."""
    path = tmp_path / "session.json"
    store = FileSessionStore(path)
    expired = _token(id=100, exp=int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp()))
    store.save(Session(id="100", token=expired))

    assert store.load() is None
    assert not path.exists()


def test_file_session_store_ignores_unreadable_file(tmp_path):
    """Test: A corrupt session file is treated as signed out."""
    path = tmp_path / "session.json"
    path.write_text("{broken", encoding="utf-8")

    assert FileSessionStore(path).load() is None
    assert FileSessionStore(tmp_path / "missing.json").load() is None
