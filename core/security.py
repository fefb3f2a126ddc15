"""
Password hashing and cookie sessions.

Sessions live in Redis (`session:<token>`, expiring with the cookie) when it is
reachable, otherwise in the process-local `user_sessions` dict.
"""

import bcrypt
import secrets
import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from core import config
from core.redis_client import get_redis_client, is_redis_available

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"

# Fallback in-memory session storage (only used if Redis is unavailable)
user_sessions = {}


def hash_password(password: str) -> str:
    """Hash password using bcrypt with automatic salt generation."""
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Malformed or empty hashes never match."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def _redis():
    client = get_redis_client()
    if client and is_redis_available():
        return client
    return None


def create_session(user_id: int) -> str:
    """Open a session for `user_id` and return its token."""
    token = secrets.token_urlsafe(32)
    lifetime = timedelta(days=config.SESSION_EXPIRE_DAYS)
    now = datetime.utcnow()

    client = _redis()
    if client is not None:
        payload = {"user_id": user_id, "created_at": now.isoformat(), "expires_at": (now + lifetime).isoformat()}
        try:
            client.setex(SESSION_PREFIX + token, lifetime, json.dumps(payload))
            return token
        except Exception as e:
            logger.warning(f"⚠ Redis session storage failed: {e}, falling back to in-memory")

    user_sessions[token] = {"user_id": user_id, "created_at": now, "expires_at": now + lifetime}
    return token


def get_session(session_token: Optional[str]) -> Optional[dict]:
    if not session_token:
        return None

    client = _redis()
    if client is not None:
        try:
            raw = client.get(SESSION_PREFIX + session_token)
            return json.loads(raw) if raw else None
        except Exception as e:
            logger.warning(f"⚠ Redis session retrieval failed: {e}, checking in-memory")

    session = user_sessions.get(session_token)
    if session is None:
        return None
    if session["expires_at"] < datetime.utcnow():
        user_sessions.pop(session_token, None)
        return None
    return session


def delete_session(session_token: Optional[str]) -> None:
    if not session_token:
        return
    client = _redis()
    if client is not None:
        try:
            client.delete(SESSION_PREFIX + session_token)
        except Exception as e:
            logger.warning(f"⚠ Redis session deletion failed: {e}")
    user_sessions.pop(session_token, None)


def delete_user_sessions(user_id: int) -> int:
    """Log a user out everywhere. Returns the number of sessions removed."""
    removed = 0
    client = _redis()
    if client is not None:
        try:
            for key in client.scan_iter(match=SESSION_PREFIX + "*"):
                raw = client.get(key)
                if raw and json.loads(raw).get("user_id") == user_id:
                    client.delete(key)
                    removed += 1
        except Exception as e:
            logger.warning(f"⚠ Redis session cleanup failed for user {user_id}: {e}")

    tokens = [token for token, data in user_sessions.items() if data["user_id"] == user_id]
    for token in tokens:
        del user_sessions[token]
    return removed + len(tokens)
