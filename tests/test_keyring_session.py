import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from tuigram.errors import TransportError
from tuigram.keyring_session import KeyringSession


class MemoryKeyring(KeyringBackend):
    priority = 1

    def __init__(self):
        super().__init__()
        self.entries = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        if (service, username) not in self.entries:
            raise PasswordDeleteError("not found")
        del self.entries[(service, username)]


class BrokenKeyring(MemoryKeyring):
    def get_password(self, service, username):
        raise KeyringError("locked")

    def set_password(self, service, username, password):
        raise KeyringError("locked")


@pytest.fixture
def memory_keyring():
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


def test_store_read_and_clear(memory_keyring):
    session = KeyringSession(service="tuigram-test")
    assert session.get() is None
    session.set("u1")
    assert memory_keyring.entries == {("tuigram-test", "session_user_id"): "u1"}
    assert session.get() == "u1"
    session.set(None)
    assert session.get() is None


def test_clearing_an_empty_session_is_fine(memory_keyring):
    KeyringSession().set(None)
    assert memory_keyring.entries == {}


def test_keyring_failures_become_transport_errors():
    previous = keyring.get_keyring()
    keyring.set_keyring(BrokenKeyring())
    try:
        with pytest.raises(TransportError):
            KeyringSession().get()
        with pytest.raises(TransportError):
            KeyringSession().set("u1")
    finally:
        keyring.set_keyring(previous)
