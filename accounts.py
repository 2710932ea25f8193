"""
Signup, login, onboarding preferences and profile lookups.

The logged-in user is persisted through ``SessionStore`` so it survives
between runs.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from api_client import MarketplaceAPI
from errors import MarketplaceError, NetworkFailure, ServerRejection, ValidationError
from models import User
from session_store import SessionStore

logger = logging.getLogger(__name__)

GENERIC_AUTH_ERROR = "Authentication failed."


@dataclass
class AuthResult:
    user: Optional[User] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.user is not None


def is_email(identifier: str) -> bool:
    return "@" in identifier and "." in identifier


def normalize_phone(phone: str) -> str:
    """Drop spaces, hyphens, parentheses and plus signs."""
    return re.sub(r"[\s\-()+]", "", phone or "")


class AuthFlow:
    def __init__(self, api: MarketplaceAPI, store: SessionStore):
        self.api = api
        self.store = store
        self.current_user: Optional[User] = store.load()

    def signup(self, name: str, email: str, password: str, phone_number: str = "") -> AuthResult:
        try:
            _validate_signup(name, email, password, phone_number)
        except ValidationError as e:
            return AuthResult(error=e.message)
        return self._authenticate(
            lambda: self.api.signup(name.strip(), email.strip(), password, phone_number.strip())
        )

    def login(self, identifier: str, password: str) -> AuthResult:
        identifier = (identifier or "").strip()
        if not identifier:
            return AuthResult(error="Email or phone number is required")
        if not password:
            return AuthResult(error="Password is required")
        if is_email(identifier):
            return self._authenticate(lambda: self.api.login(password, email=identifier))
        return self._authenticate(
            lambda: self.api.login(password, phone_number=normalize_phone(identifier))
        )

    def _authenticate(self, call) -> AuthResult:
        try:
            user = call()
        except ServerRejection as e:
            logger.error(f"Authentication rejected: {e}")
            return AuthResult(error=e.message or GENERIC_AUTH_ERROR)
        except NetworkFailure as e:
            logger.error(f"Authentication request failed: {e}")
            return AuthResult(error="Network error")
        except ValueError as e:
            logger.error(f"Unexpected authentication response: {e}")
            return AuthResult(error=GENERIC_AUTH_ERROR)
        self.store.save(user)
        self.current_user = user
        logger.info(f"Logged in as {user.name} (uid {user.uid})")
        return AuthResult(user=user)

    def logout(self) -> None:
        self.store.clear()
        self.current_user = None

    def save_preferences(self, category_ids: Iterable[int]) -> bool:
        """Onboarding: record the categories the user is interested in."""
        if self.current_user is None:
            raise ValidationError("Log in before choosing preferences")
        ids = sorted(set(category_ids))
        try:
            saved = self.api.set_preferences(self.current_user.uid, ids)
        except MarketplaceError as e:
            logger.error(f"Error saving preferences: {e}")
            return False
        if saved:
            self.current_user.preferences = set(ids)
            self.store.save(self.current_user)
        return saved

    def load_profile(self, uid: Optional[int] = None) -> Optional[User]:
        if uid is None:
            if self.current_user is None:
                return None
            uid = self.current_user.uid
        try:
            return self.api.profile(uid)
        except (MarketplaceError, ValueError) as e:
            logger.error(f"Error fetching profile {uid}: {e}")
            return None


def _validate_signup(name: str, email: str, password: str, phone_number: str) -> None:
    if not (name or "").strip():
        raise ValidationError("Name is required")
    if not (email or "").strip() and not (phone_number or "").strip():
        raise ValidationError("Either email or phone number is required")
    if not (password or "").strip():
        raise ValidationError("Password is required")
