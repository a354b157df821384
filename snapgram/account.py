"""
Account and session handling for Appwrite and an in-memory test
implementation.
"""

from __future__ import annotations

import copy
import hashlib
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol
from urllib.parse import urlencode

from appwrite.client import Client
from appwrite.id import ID
from appwrite.services.account import Account


class AccountService(Protocol):
    """
    Interface for account creation and sessions.

    ``get`` and ``delete_session("current")`` act as the session the service
    is bound to; ``with_session`` returns a view bound to another session
    without changing the service it was called on.
    """

    def create(
        self, email: str, password: str, name: str, user_id: str | None = None
    ) -> dict:
        ...

    def create_email_session(self, email: str, password: str) -> dict:
        ...

    def get(self) -> dict:
        ...

    def delete_session(self, session_id: str = "current") -> None:
        ...

    def get_initials_url(self, name: str) -> str:
        ...

    def with_session(self, secret: Optional[str]) -> AccountService:
        ...


class AccountError(Exception):
    def __init__(self, message: str, code: int = 401, type: str = "user_unauthorized"):
        self.code = code
        self.type = type
        super().__init__(message)


def _hash_password(password: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()


@dataclass
class InMemoryAccountService:
    """
    Test double for accounts. Views returned by ``with_session`` share the
    account and session tables but each track their own current session.
    """

    base_url: str = "https://example.test"
    accounts: Dict[str, dict] = field(default_factory=dict)
    sessions: Dict[str, dict] = field(default_factory=dict)
    current_session_id: Optional[str] = None
    _passwords: Dict[str, str] = field(default_factory=dict, repr=False)

    def reset(self) -> None:
        self.accounts.clear()
        self.sessions.clear()
        self._passwords.clear()
        self.current_session_id = None

    def _find_by_email(self, email: str) -> Optional[dict]:
        for account in self.accounts.values():
            if account["email"] == email:
                return account
        return None

    def create(
        self, email: str, password: str, name: str, user_id: str | None = None
    ) -> dict:
        if self._find_by_email(email):
            raise AccountError(
                "A user with the same email already exists.",
                code=409,
                type="user_already_exists",
            )
        if len(password) < 8:
            raise AccountError(
                "Password must be at least 8 characters.",
                code=400,
                type="general_argument_invalid",
            )
        user_id = user_id or uuid.uuid4().hex
        account = {"$id": user_id, "email": email, "name": name}
        self.accounts[user_id] = account
        self._passwords[user_id] = _hash_password(password, user_id)
        return dict(account)

    def create_email_session(self, email: str, password: str) -> dict:
        account = self._find_by_email(email)
        if not account or self._passwords[account["$id"]] != _hash_password(
            password, account["$id"]
        ):
            raise AccountError(
                "Invalid credentials. Please check the email and password.",
                type="user_invalid_credentials",
            )
        session = {
            "$id": uuid.uuid4().hex,
            "userId": account["$id"],
            "provider": "email",
            "current": True,
            "secret": uuid.uuid4().hex,
        }
        self.sessions[session["$id"]] = session
        self.current_session_id = session["$id"]
        return dict(session)

    def get(self) -> dict:
        session = self.sessions.get(self.current_session_id or "")
        if not session:
            raise AccountError("User (role: guests) missing scope (account)")
        return dict(self.accounts[session["userId"]])

    def delete_session(self, session_id: str = "current") -> None:
        if session_id == "current":
            if self.current_session_id not in self.sessions:
                raise AccountError("User (role: guests) missing scope (account)")
            session_id = self.current_session_id
        if self.sessions.pop(session_id, None) is None:
            raise AccountError("Session not found", code=404, type="user_session_not_found")
        if session_id == self.current_session_id:
            self.current_session_id = None

    def get_initials_url(self, name: str) -> str:
        return f"{self.base_url}/avatars/initials?{urlencode({'name': name})}"

    def with_session(self, secret: Optional[str]) -> InMemoryAccountService:
        session_id = None
        if secret:
            for session in self.sessions.values():
                if session["secret"] == secret:
                    session_id = session["$id"]
                    break
        return replace(self, current_session_id=session_id)


class AppwriteAccountService:
    """
    Appwrite accounts using the server-side rendering pattern: an API-key
    client creates accounts and sessions, and a second client carrying the
    session secret acts as the signed-in user.

    The API-key client is shared by every view from ``with_session``; each
    view owns its session client.
    """

    def __init__(self, admin_client: Client, endpoint: str, project_id: str):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self._admin = Account(admin_client)
        self._session_client: Optional[Client] = None

    def _client_for(self, secret: str) -> Client:
        return (
            Client()
            .set_endpoint(self.endpoint)
            .set_project(self.project_id)
            .set_session(secret)
        )

    def _session_account(self) -> Account:
        if self._session_client is None:
            raise AccountError("User (role: guests) missing scope (account)")
        return Account(self._session_client)

    def create(
        self, email: str, password: str, name: str, user_id: str | None = None
    ) -> dict:
        return self._admin.create(user_id or ID.unique(), email, password, name)

    def create_email_session(self, email: str, password: str) -> dict:
        session = self._admin.create_email_password_session(email, password)
        self._session_client = self._client_for(session["secret"])
        return session

    def with_session(self, secret: Optional[str]) -> AppwriteAccountService:
        view = copy.copy(self)
        view._session_client = self._client_for(secret) if secret else None
        return view

    def get(self) -> dict:
        return self._session_account().get()

    def delete_session(self, session_id: str = "current") -> None:
        self._session_account().delete_session(session_id)
        if session_id == "current":
            self._session_client = None

    def get_initials_url(self, name: str) -> str:
        params = urlencode({"name": name, "project": self.project_id})
        return f"{self.endpoint}/avatars/initials?{params}"
