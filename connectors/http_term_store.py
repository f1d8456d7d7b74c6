"""
http_term_store.py
------------------
TermStore implementation talking to a directory_server daemon over REST.
"""

from typing import Any, Iterable

import httpx
from box import Box

from connectors.term_store_interface import TermStore
from media_directory.errors import TermStoreError
from media_directory.models import FieldDefinition, FlatTreeEntry, MediaType, Term, Vocabulary


##### Sessions #####
class DirectorySession:
    """
    A REST session against a directory_server daemon.

    Args:
        host_URL (str): The base URL of the daemon.
            Must include scheme (http:// or https://) and optionally port.
            Example: "http://127.0.0.1:8000"
        client (httpx.Client): Optional preconfigured client (used by tests
            to plug in a FastAPI TestClient).
    """
    def __init__(self, host_URL: str, client: httpx.Client | None = None, timeout: float = 5.0):
        self.base_URL = host_URL.rstrip("/")
        self._client = client or httpx.Client(base_url=self.base_URL, timeout=timeout)

    def request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request to the daemon.
        raise_for_status() is called on the response.

        example: session.request("GET", "/terms", params={"tids": "1,2"})
        """
        response = self._client.request(method, f"/{endpoint.lstrip('/')}", **kwargs)
        response.raise_for_status()
        return response

    @property
    def is_alive(self) -> bool:
        try:
            return self.request("GET", "/status", timeout=2).status_code == 200
        except httpx.HTTPError:
            return False

    def connect(self):
        if not self.is_alive:
            raise ConnectionError(f"Cannot connect to directory server at {self.base_URL}")

    def disconnect(self):
        self._client.close()

    def __enter__(self) -> "DirectorySession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()


def error_detail(exc: httpx.HTTPStatusError) -> str:
    try:
        return str(exc.response.json().get("detail", exc.response.text))
    except ValueError:
        return exc.response.text


##### Store #####
class HttpTermStore(TermStore):
    """Term store whose data lives in a remote directory_server daemon."""

    def __init__(self, session: DirectorySession):
        self.session = session
        self.request = self.session.request  # "alias" Now self.request(...) is the same as self.session.request(...)

    @property
    def info(self) -> Box:
        return Box({"type": "http", "hostURL": self.session.base_URL})

    def find_term(self, name: str, vid: str) -> int | None:
        try:
            r = self.request("GET", f"/vocabularies/{vid}/terms", params={"name": name})
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        matches = r.json()
        return matches[0]["tid"] if matches else None

    def load_terms(self, tids: Iterable[int]) -> dict[int, Term]:
        wanted = ",".join(str(tid) for tid in tids)
        if not wanted:
            return {}
        r = self.request("GET", "/terms", params={"tids": wanted})
        return {term.tid: term for term in (Term.model_validate(item) for item in r.json())}

    def create_term(self, name: str, parent: int | None, vid: str) -> Term:
        try:
            r = self.request("POST", "/terms", json={"name": name, "parent": parent, "vid": vid})
        except httpx.HTTPStatusError as exc:
            raise TermStoreError(error_detail(exc)) from exc
        return Term.model_validate(r.json())

    def tree_listing(self, vid: str) -> list[FlatTreeEntry]:
        try:
            r = self.request("GET", f"/vocabularies/{vid}/tree")
        except httpx.HTTPStatusError as exc:
            raise TermStoreError(error_detail(exc)) from exc
        return [FlatTreeEntry.model_validate(item) for item in r.json()]

    def list_vocabularies(self) -> list[Vocabulary]:
        r = self.request("GET", "/vocabularies")
        return [Vocabulary.model_validate(item) for item in r.json()]

    def get_vocabulary(self, vid: str) -> Vocabulary | None:
        return self._get_optional(f"/vocabularies/{vid}", Vocabulary)

    def list_media_types(self) -> list[MediaType]:
        r = self.request("GET", "/media-types")
        return [MediaType.model_validate(item) for item in r.json()]

    def get_media_type(self, type_id: str) -> MediaType | None:
        return self._get_optional(f"/media-types/{type_id}", MediaType)

    def get_field(self, bundle: str, field_name: str) -> FieldDefinition | None:
        return self._get_optional(f"/media-types/{bundle}/fields/{field_name}", FieldDefinition)

    def save_field(self, field: FieldDefinition) -> FieldDefinition:
        r = self.request("PUT", f"/media-types/{field.bundle}/fields/{field.field_name}", json=field.model_dump())
        return FieldDefinition.model_validate(r.json())

    def set_form_display(self, bundle: str, field_name: str, widget: str, weight: int = 0) -> None:
        self.request("PUT", f"/media-types/{bundle}/form-display/{field_name}", json={"type": widget, "weight": weight})

    def _get_optional(self, endpoint: str, model: Any):
        try:
            r = self.request("GET", endpoint)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        return model.model_validate(r.json())
