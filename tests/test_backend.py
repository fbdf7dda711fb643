import pytest
import requests

from tuigram.backend import LocalBackend, RemoteBackend, generate_id
from tuigram.errors import AuthError, TransportError
from tuigram.media import parse_data_uri
from tuigram.store import MemoryStore


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.calls = []
        self.responses = list(responses or [])
        self.error = error

    def request(self, method, url, timeout=None, **kwargs):
        if "data" in kwargs and not isinstance(kwargs["data"], (bytes, str)):
            kwargs["data"] = b"".join(kwargs["data"])
        self.calls.append((method, url, timeout, kwargs))
        if self.error:
            raise self.error
        return self.responses.pop(0)


class FakeSessionStore:
    def __init__(self):
        self.value = None

    def get(self):
        return self.value

    def set(self, user_id):
        self.value = user_id


def remote(*responses, error=None, token=None):
    session = FakeSession(responses, error=error)
    backend = RemoteBackend(
        "https://api.example.com/",
        token=token,
        timeout=3,
        session=session,
        session_store=FakeSessionStore(),
    )
    return backend, session


# --- local ---

def test_generate_id_shape():
    new_id = generate_id()
    assert new_id.startswith("_") and len(new_id) == 10
    assert generate_id() != new_id


def test_local_register_and_authenticate():
    store = MemoryStore({"users": [{"id": "u1", "email": "Ana@Gmail.com", "password": "pw"}]})
    backend = LocalBackend(store, id_factory=lambda: "_new")
    assert backend.register_account("ben@gmail.com", "pw") == "_new"
    with pytest.raises(AuthError):
        backend.register_account("ana@gmail.com", "pw")
    assert backend.authenticate("ANA@gmail.com", "pw") == "u1"
    with pytest.raises(AuthError):
        backend.authenticate("ana@gmail.com", "PW")


def test_local_batch_update_patches_and_creates():
    store = MemoryStore({"users": [{"id": "u1", "name": "Ana", "bio": "x"}]})
    backend = LocalBackend(store)
    backend.batch_update("users", {"u1": {"bio": "y"}, "u2": {"name": "Ben"}})
    assert store.get("users") == [
        {"id": "u1", "name": "Ana", "bio": "y"},
        {"id": "u2", "name": "Ben"},
    ]
    assert backend.fetch_document("users", "u2") == {"id": "u2", "name": "Ben"}
    assert backend.fetch_document("users", "u3") is None


def test_local_upload_blob_returns_data_uri():
    progress = []
    uri = LocalBackend(MemoryStore()).upload_blob(
        "posts/u1/p1", b"\x89PNG", "image/png", on_progress=lambda sent, total: progress.append((sent, total))
    )
    assert parse_data_uri(uri) == (b"\x89PNG", "image/png")
    assert progress == [(4, 4)]


# --- remote ---

def test_remote_sets_bearer_token():
    backend, session = remote(token="abc")
    assert session.headers["Authorization"] == "Bearer abc"


def test_remote_register_account():
    backend, session = remote(FakeResponse(201, {"id": "u9"}))
    assert backend.register_account("a@gmail.com", "pw") == "u9"
    method, url, timeout, kwargs = session.calls[0]
    assert (method, url, timeout) == ("POST", "https://api.example.com/accounts", 3)
    assert kwargs["json"] == {"email": "a@gmail.com", "password": "pw"}


def test_remote_register_conflict_uses_server_detail():
    backend, _ = remote(FakeResponse(409, {"detail": "taken"}))
    with pytest.raises(AuthError) as exc:
        backend.register_account("a@gmail.com", "pw")
    assert exc.value.message == "taken"


@pytest.mark.parametrize("status", [401, 403, 404])
def test_remote_authenticate_rejected(status):
    backend, _ = remote(FakeResponse(status))
    with pytest.raises(AuthError) as exc:
        backend.authenticate("a@gmail.com", "pw")
    assert exc.value.message == "Wrong username/email or password."


def test_remote_fetch_document():
    backend, session = remote(FakeResponse(200, {"id": "p1"}), FakeResponse(404))
    assert backend.fetch_document("posts", "p1") == {"id": "p1"}
    assert backend.fetch_document("posts", "p2") is None
    assert session.calls[1][1] == "https://api.example.com/posts/p2"


def test_remote_list_documents_must_be_a_list():
    backend, _ = remote(FakeResponse(200, [{"id": "u1"}]), FakeResponse(200, {"id": "u1"}))
    assert backend.list_documents("users") == [{"id": "u1"}]
    with pytest.raises(TransportError):
        backend.list_documents("users")


def test_remote_writes():
    backend, session = remote(FakeResponse(204), FakeResponse(200, {}))
    backend.update_document("users", "u1", {"bio": "hi"})
    backend.batch_update("users", {"u1": {"following": ["u2"]}, "u2": {"followers": ["u1"]}})
    assert session.calls[0][0:2] == ("PATCH", "https://api.example.com/users/u1")
    assert session.calls[0][3]["json"] == {"bio": "hi"}
    assert session.calls[1][0:2] == ("POST", "https://api.example.com/users/batch")
    assert session.calls[1][3]["json"] == {
        "patches": {"u1": {"following": ["u2"]}, "u2": {"followers": ["u1"]}}
    }


def test_remote_upload_blob_streams_chunks():
    data = b"x" * (64 * 1024 + 10)
    backend, session = remote(FakeResponse(200, {"url": "https://cdn.example.com/p1"}))
    progress = []
    url = backend.upload_blob(
        "posts/u1/p1", data, "image/png", on_progress=lambda sent, total: progress.append(sent)
    )
    assert url == "https://cdn.example.com/p1"
    method, target, _, kwargs = session.calls[0]
    assert (method, target) == ("PUT", "https://api.example.com/blobs/posts/u1/p1")
    assert kwargs["headers"] == {"Content-Type": "image/png"}
    assert kwargs["data"] == data
    assert progress == [64 * 1024, len(data)]


def test_remote_upload_without_url_fails():
    backend, _ = remote(FakeResponse(200, {}))
    with pytest.raises(TransportError):
        backend.upload_blob("posts/u1/p1", b"x", "image/png")


def test_remote_server_error_becomes_transport_error():
    backend, _ = remote(FakeResponse(500))
    with pytest.raises(TransportError) as exc:
        backend.list_documents("posts")
    assert "500" in exc.value.message


def test_remote_network_error_becomes_transport_error():
    backend, _ = remote(error=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as exc:
        backend.fetch_document("users", "u1")
    assert "Could not reach the server" in exc.value.message


def test_remote_non_json_body():
    backend, _ = remote(FakeResponse(200, None))
    with pytest.raises(TransportError):
        backend.authenticate("a@gmail.com", "pw")


def test_remote_session_pointer_uses_session_store():
    backend, session = remote()
    backend.set_session_user_id("u1")
    assert backend.get_session_user_id() == "u1"
    backend.set_session_user_id(None)
    assert backend.get_session_user_id() is None
    assert session.calls == []
