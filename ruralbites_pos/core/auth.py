"""Staff sign-in and the time-boxed session shared by every floor device."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from .config_store import get_config_value
from .store import KeyValueStore

logger = logging.getLogger(__name__)

_DEFAULT_AUTH_KEY = "rural-bites-auth"


@dataclass(slots=True)
class User:
    username: str
    role: str = "staff"


@dataclass(frozen=True, slots=True)
class StaffSession:
    username: str
    issued_at: datetime

    def expires_at(self, ttl: timedelta) -> datetime:
        return self.issued_at + ttl

    def is_valid(self, now: Optional[datetime] = None, ttl: Optional[timedelta] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at(ttl or session_ttl())

    def to_payload(self) -> dict:
        return {"username": self.username, "timestamp": self.issued_at.isoformat()}

    @classmethod
    def from_payload(cls, payload: Mapping) -> "StaffSession":
        username = payload["username"]
        if not isinstance(username, str) or not username:
            raise ValueError("session has no username")
        issued_at = datetime.fromisoformat(str(payload["timestamp"]))
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        return cls(username=username, issued_at=issued_at)


def session_ttl() -> timedelta:
    try:
        hours = float(get_config_value("session_ttl_hours", 24))
    except (TypeError, ValueError):
        hours = 24.0
    return timedelta(hours=max(hours, 0.0))


def _auth_key() -> str:
    return str(get_config_value("auth_key", _DEFAULT_AUTH_KEY) or _DEFAULT_AUTH_KEY)


def authenticate(username: str, password: str, accounts: Optional[Mapping[str, str]] = None) -> Optional[User]:
    normalized_user = (username or "").strip().lower()
    normalized_password = (password or "").strip()
    if not normalized_user or not normalized_password:
        return None
    if accounts is None:
        accounts = get_config_value("staff_accounts", {}) or {}
    expected = accounts.get(normalized_user)
    if expected is None or str(expected) != normalized_password:
        return None
    return User(username=normalized_user)


def login(
    store: KeyValueStore,
    username: str,
    password: str,
    *,
    now: Optional[datetime] = None,
    accounts: Optional[Mapping[str, str]] = None,
) -> Optional[StaffSession]:
    user = authenticate(username, password, accounts)
    if user is None:
        logger.info("Rejected sign-in for %r", (username or "").strip().lower())
        return None
    session = StaffSession(username=user.username, issued_at=now or datetime.now(timezone.utc))
    store.set(_auth_key(), json.dumps(session.to_payload()))
    return session


def logout(store: KeyValueStore) -> None:
    store.delete(_auth_key())


def current_session(store: KeyValueStore, now: Optional[datetime] = None) -> Optional[StaffSession]:
    """Return the stored session if it has not expired.

    Expired or unreadable sessions are removed so the next check starts
    from a clean sign-in.
    """
    key = _auth_key()
    raw = store.get(key)
    if not raw:
        return None
    try:
        session = StaffSession.from_payload(json.loads(raw))
    except (ValueError, KeyError, TypeError):
        logger.warning("Discarding unreadable staff session")
        store.delete(key)
        return None
    if not session.is_valid(now):
        store.delete(key)
        return None
    return session


def is_session_valid(store: KeyValueStore, now: Optional[datetime] = None) -> bool:
    return current_session(store, now) is not None
