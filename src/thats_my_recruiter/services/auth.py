"""Session/auth provider with asynchronous sign-in and sign-out notifications."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import secrets
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from thats_my_recruiter.core.py_models import UserType, utc_now_iso
from thats_my_recruiter.paths import AUTH_DIR
from thats_my_recruiter.services.errors import AuthError
from thats_my_recruiter.services.profile_store import ProfileStore

LOGGER = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_PBKDF2_ITERATIONS = 120_000

_USERS_LOCK = threading.Lock()


class AuthEvent(str, Enum):
    initial_session = "INITIAL_SESSION"
    signed_in = "SIGNED_IN"
    signed_out = "SIGNED_OUT"


class Session(BaseModel):
    access_token: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    user_id: str
    email: str
    user_type: UserType
    created_at: str = Field(default_factory=utc_now_iso)


AuthListener = Callable[[AuthEvent, Optional[Session]], Awaitable[None]]


class AuthProvider:
    """Interface implemented by session/auth providers."""

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def _emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event, session)
            except Exception:
                LOGGER.exception("Auth listener failed while handling %s", event.value)

    async def restore_session(self) -> Optional[Session]:
        """Load a persisted session and notify listeners with ``INITIAL_SESSION``."""

        session = await self.get_session()
        await self._emit(AuthEvent.initial_session, session)
        return session

    async def get_session(self) -> Optional[Session]:  # pragma: no cover - abstract
        raise NotImplementedError

    async def sign_up(self, email: str, password: str, user_type: UserType) -> Optional[Session]:  # pragma: no cover - abstract
        raise NotImplementedError

    async def sign_in(self, email: str, password: str) -> Session:  # pragma: no cover - abstract
        raise NotImplementedError

    async def sign_out(self) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def discard_session_file(self) -> None:
        """Remove the persisted session without notifying listeners."""


def _hash_password(password: str, salt: str) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ITERATIONS)
    return digest.hex()


class LocalAuthProvider(AuthProvider):
    """File-backed credentials with a single persisted session.

    A profile record is created in ``profile_store`` for every new account,
    mirroring the user-profile trigger of a hosted auth platform. With
    ``require_confirmation`` set, new accounts must be confirmed through
    :meth:`confirm_email` before they can sign in. ``session_name`` selects the
    file holding the persisted session so several chat sessions can share one
    credentials file.

    Hashing and file access run in worker threads; the credentials file is
    guarded by a process-wide lock because every provider shares it.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        root: Optional[Path] = None,
        *,
        require_confirmation: bool = False,
        session_name: str = "session",
    ) -> None:
        super().__init__()
        self.profile_store = profile_store
        self.root = Path(root) if root is not None else AUTH_DIR
        self.root.mkdir(parents=True, exist_ok=True)
        self.require_confirmation = require_confirmation
        self._users_path = self.root / "users.json"
        self._session_path = self.root / f"{session_name}.json"

    @property
    def session_path(self) -> Path:
        return self._session_path

    def _read_users(self) -> Dict[str, Dict[str, Any]]:
        if not self._users_path.exists():
            return {}
        try:
            payload = json.loads(self._users_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Invalid JSON payload at %s; ignoring", self._users_path)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write_users(self, users: Dict[str, Dict[str, Any]]) -> None:
        self._users_path.write_text(json.dumps(users, indent=2, ensure_ascii=False), encoding="utf-8")

    def _store_session(self, session: Optional[Session]) -> None:
        if session is None:
            self._session_path.unlink(missing_ok=True)
            return
        self._session_path.write_text(session.model_dump_json(indent=2), encoding="utf-8")

    def _load_session(self) -> Optional[Session]:
        if not self._session_path.exists():
            return None
        try:
            return Session.model_validate_json(self._session_path.read_text(encoding="utf-8"))
        except ValueError:
            LOGGER.warning("Discarding unreadable session at %s", self._session_path)
            self._session_path.unlink(missing_ok=True)
            return None

    async def get_session(self) -> Optional[Session]:
        return await asyncio.to_thread(self._load_session)

    def _register(self, email_key: str, password: str, user_type: UserType) -> Dict[str, Any]:
        salt = secrets.token_hex(16)
        password_hash = _hash_password(password, salt)
        with _USERS_LOCK:
            users = self._read_users()
            if email_key in users:
                raise AuthError("User already registered")
            record = {
                "id": uuid4().hex,
                "salt": salt,
                "password_hash": password_hash,
                "user_type": user_type.value,
                "confirmed": not self.require_confirmation,
                "created_at": utc_now_iso(),
            }
            users[email_key] = record
            self._write_users(users)
        self.profile_store.create_profile(record["id"], email=email_key, user_type=user_type)
        LOGGER.info("Registered %s account %s", user_type.value, record["id"])
        return record

    async def sign_up(self, email: str, password: str, user_type: UserType) -> Optional[Session]:
        email_key = (email or "").strip().lower()
        if "@" not in email_key:
            raise AuthError("Unable to validate email address: invalid format")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        try:
            user_type = UserType(user_type)
        except ValueError as exc:
            raise AuthError(f"Unknown account type: {user_type}") from exc
        if user_type == UserType.guest:
            raise AuthError("Choose whether you are a candidate or a recruiter")

        record = await asyncio.to_thread(self._register, email_key, password, user_type)
        if self.require_confirmation:
            return None
        return await self._start_session(email_key, record)

    def confirm_email(self, email: str) -> None:
        email_key = (email or "").strip().lower()
        with _USERS_LOCK:
            users = self._read_users()
            if email_key not in users:
                raise AuthError("User not found")
            users[email_key]["confirmed"] = True
            self._write_users(users)

    def _verify(self, email_key: str, password: str) -> Dict[str, Any]:
        with _USERS_LOCK:
            record = self._read_users().get(email_key)
        if record is None or not hmac.compare_digest(
            record["password_hash"], _hash_password(password or "", record["salt"])
        ):
            raise AuthError("Invalid login credentials")
        if not record.get("confirmed", False):
            raise AuthError("Email not confirmed")
        return record

    async def sign_in(self, email: str, password: str) -> Session:
        email_key = (email or "").strip().lower()
        record = await asyncio.to_thread(self._verify, email_key, password)
        return await self._start_session(email_key, record)

    async def _start_session(self, email_key: str, record: Dict[str, Any]) -> Session:
        session = Session(user_id=record["id"], email=email_key, user_type=record["user_type"])
        await asyncio.to_thread(self._store_session, session)
        await self._emit(AuthEvent.signed_in, session)
        return session

    async def sign_out(self) -> None:
        await asyncio.to_thread(self._store_session, None)
        await self._emit(AuthEvent.signed_out, None)

    def discard_session_file(self) -> None:
        """Remove the persisted session without notifying listeners."""

        self._store_session(None)


__all__ = [
    "AuthEvent",
    "AuthListener",
    "AuthProvider",
    "LocalAuthProvider",
    "Session",
]
