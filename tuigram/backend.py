"""
Backend collaborator layer for tuigram.
This module provides an abstraction between the controller and whatever
holds the data: local key-value storage or a hosted HTTP backend. The
controller only talks to ``Backend``, so either can be swapped in without
touching render or state logic.
"""
import logging
import threading
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests
from requests import Session

from .errors import AuthError, TransportError
from .keyring_session import KeyringSession
from .media import to_data_uri
from .store import Store

logger = logging.getLogger("tuigram.backend")

ProgressCallback = Callable[[int, int], None]

UPLOAD_CHUNK_SIZE = 64 * 1024


def generate_id() -> str:
    return "_" + uuid.uuid4().hex[:9]


class Backend:
    def register_account(self, email: str, password: str) -> str: ...
    def authenticate(self, identifier: str, password: str) -> str: ...
    def fetch_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...
    def list_documents(self, collection: str) -> List[Dict[str, Any]]: ...
    def update_document(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None: ...
    def batch_update(self, collection: str, patches: Dict[str, Dict[str, Any]]) -> None: ...
    def upload_blob(
        self,
        path: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str: ...
    def get_session_user_id(self) -> Optional[str]: ...
    def set_session_user_id(self, user_id: Optional[str]) -> None: ...


class LocalBackend(Backend):
    """Backend over a key-value ``Store``.

    Accounts are the user records themselves: credentials are compared in
    plaintext against the stored ``email``/``password`` fields.
    """

    def __init__(self, store: Store, id_factory: Optional[Callable[[], str]] = None):
        self.store = store
        self._new_id = id_factory or generate_id
        # Every write rewrites a whole collection; writers must not interleave.
        self._write_lock = threading.Lock()

    def _find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.lower()
        for record in self.list_documents("users"):
            if (record.get("email") or "").lower() == email:
                return record
        return None

    def register_account(self, email: str, password: str) -> str:
        if self._find_by_email(email):
            raise AuthError("This email is already registered.")
        # The profile document is written by the caller under this id.
        return self._new_id()

    def authenticate(self, identifier: str, password: str) -> str:
        record = self._find_by_email(identifier)
        if record is None or record.get("password") != password:
            raise AuthError("Wrong username/email or password.")
        return str(record["id"])

    def fetch_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        for record in self.list_documents(collection):
            if isinstance(record, dict) and record.get("id") == doc_id:
                return record
        return None

    def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        return list(self.store.get(collection) or [])

    def update_document(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        self.batch_update(collection, {doc_id: patch})

    def batch_update(self, collection: str, patches: Dict[str, Dict[str, Any]]) -> None:
        with self._write_lock:
            records = self.list_documents(collection)
            index = {r.get("id"): r for r in records if isinstance(r, dict)}
            for doc_id, patch in patches.items():
                if doc_id in index:
                    index[doc_id].update(patch)
                else:
                    record = dict(patch, id=doc_id)
                    records.append(record)
                    index[doc_id] = record
            self.store.set(collection, records)

    def upload_blob(
        self,
        path: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        uri = to_data_uri(data, content_type)
        if on_progress:
            on_progress(len(data), len(data))
        return uri

    def get_session_user_id(self) -> Optional[str]:
        return self.store.get_session_user_id()

    def set_session_user_id(self, user_id: Optional[str]) -> None:
        self.store.set_session_user_id(user_id)


class RemoteBackend(Backend):
    """Backend client that talks to an external HTTP service.

    It expects a base_url like https://api.example.com and optional
    bearer-token auth.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 5.0,
        session: Optional[Session] = None,
        session_store: Optional[KeyringSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session_store = session_store or KeyringSession()
        if token:
            self.set_token(token)

    # --- helpers ---
    def set_token(self, token: str) -> None:
        self.token = token
        self.session.headers.update({"Authorization": f"Bearer {self.token}"})

    def _request(self, method: str, path: str, allow=(), **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("backend: %s %s failed: %s", method, url, e)
            raise TransportError(f"Could not reach the server: {e}") from e
        if resp.status_code in allow:
            return resp
        if not resp.ok:
            logger.warning("backend: %s %s returned %s", method, url, resp.status_code)
            raise TransportError(f"Server returned {resp.status_code} for {method} {path}")
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError("Server sent a response that is not JSON.") from e

    def _detail(self, resp: requests.Response, default: str) -> str:
        try:
            body = resp.json()
        except ValueError:
            return default
        if isinstance(body, dict) and body.get("detail"):
            return str(body["detail"])
        return default

    def register_account(self, email: str, password: str) -> str:
        resp = self._request(
            "POST", "/accounts", allow=(409,), json={"email": email, "password": password}
        )
        if resp.status_code == 409:
            raise AuthError(self._detail(resp, "This email is already registered."))
        return str(self._json(resp)["id"])

    def authenticate(self, identifier: str, password: str) -> str:
        resp = self._request(
            "POST",
            "/sessions",
            allow=(401, 403, 404),
            json={"identifier": identifier, "password": password},
        )
        if resp.status_code in (401, 403, 404):
            raise AuthError(self._detail(resp, "Wrong username/email or password."))
        return str(self._json(resp)["id"])

    def fetch_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        resp = self._request("GET", f"/{collection}/{doc_id}", allow=(404,))
        if resp.status_code == 404:
            return None
        return self._json(resp)

    def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        data = self._json(self._request("GET", f"/{collection}"))
        if not isinstance(data, list):
            raise TransportError(f"Server sent an unexpected {collection} listing.")
        return data

    def update_document(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        self._request("PATCH", f"/{collection}/{doc_id}", json=patch)

    def batch_update(self, collection: str, patches: Dict[str, Dict[str, Any]]) -> None:
        self._request("POST", f"/{collection}/batch", json={"patches": patches})

    def upload_blob(
        self,
        path: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        total = len(data)

        def _chunks() -> Iterator[bytes]:
            sent = 0
            for start in range(0, total, UPLOAD_CHUNK_SIZE):
                chunk = data[start:start + UPLOAD_CHUNK_SIZE]
                sent += len(chunk)
                yield chunk
                if on_progress:
                    on_progress(sent, total)

        resp = self._request(
            "PUT",
            f"/blobs/{path.lstrip('/')}",
            data=_chunks(),
            headers={"Content-Type": content_type},
        )
        body = self._json(resp)
        if not isinstance(body, dict) or not body.get("url"):
            raise TransportError("Upload finished without a file URL.")
        return str(body["url"])

    def get_session_user_id(self) -> Optional[str]:
        return self.session_store.get()

    def set_session_user_id(self, user_id: Optional[str]) -> None:
        self.session_store.set(user_id)
