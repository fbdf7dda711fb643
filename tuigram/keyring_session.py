"""Session pointer kept in the system keyring.

The hosted-backend variant has no local store file, so the id of the
logged-in account is persisted as a small keyring entry instead.
"""
import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import TransportError

SERVICE_NAME = "tuigram"
SESSION_KEY = "session_user_id"

logger = logging.getLogger("tuigram.keyring_session")


class KeyringSession:
    def __init__(self, service: str = SERVICE_NAME, key: str = SESSION_KEY):
        self.service = service
        self.key = key

    def get(self) -> Optional[str]:
        try:
            return keyring.get_password(self.service, self.key) or None
        except KeyringError as e:
            logger.exception("keyring_session: failed to read %s", self.key)
            raise TransportError(f"Could not read session from keyring: {e}") from e

    def set(self, user_id: Optional[str]) -> None:
        try:
            if user_id:
                keyring.set_password(self.service, self.key, user_id)
                logger.debug("keyring_session: stored session for %s", user_id)
                return
            try:
                keyring.delete_password(self.service, self.key)
            except PasswordDeleteError:
                # nothing stored
                pass
        except KeyringError as e:
            logger.exception("keyring_session: failed to write %s", self.key)
            raise TransportError(f"Could not write session to keyring: {e}") from e
