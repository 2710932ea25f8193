"""
Persisted login.

One serialized user record under a fixed key, kept in a small JSON file.
Read at startup, written after a successful signup/login, cleared on logout.
"""

import json
import logging
import os
from typing import Optional

from models import User

logger = logging.getLogger(__name__)

SESSION_KEY = "tungTungUser"


class SessionStore:
    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Optional[User]:
        record = self._read_all().get(SESSION_KEY)
        if not isinstance(record, dict):
            return None
        try:
            return User.from_api(record)
        except ValueError as e:
            logger.warning(f"Ignoring stored user record: {e}")
            return None

    def save(self, user: User) -> None:
        data = self._read_all()
        data[SESSION_KEY] = user.to_dict()
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def clear(self) -> None:
        data = self._read_all()
        if SESSION_KEY not in data:
            return
        del data[SESSION_KEY]
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
