"""
HttpTermStore against the directory_server app, through FastAPI's TestClient
(no daemon process needed).
"""

import pytest
from fastapi.testclient import TestClient

from connectors.http_term_store import DirectorySession, HttpTermStore
from directory_server import daemon
from media_directory.errors import MisconfiguredVocabulary, TermStoreError
from media_directory.models import FieldDefinition
from media_directory.registry import WidgetRegistry
from media_directory.tree import resolve_branch
from media_directory.widget import DirectoryWidget


@pytest.fixture
def remote(store):
    daemon.configure(store)
    session = DirectorySession("http://testserver", client=TestClient(daemon.app))
    yield HttpTermStore(session)
    session.disconnect()


def test_session_is_alive(remote):
    assert remote.session.is_alive
    remote.session.connect()


def test_find_term(remote):
    assert remote.find_term("root", "media_tree") == 1
    assert remote.find_term("missing", "media_tree") is None
    assert remote.find_term("root", "ghost") is None


def test_widget_over_http_reports_missing_vocabulary(remote):
    widget = DirectoryWidget(remote, WidgetRegistry({"image": "ghost"}), "image")
    with pytest.raises(MisconfiguredVocabulary):
        widget.root_term_tid()


def test_load_terms(remote):
    terms = remote.load_terms([4, 3])
    assert {tid: t.name for tid, t in terms.items()} == {3: "Docs", 4: "2024"}
    assert remote.load_terms([]) == {}


def test_create_term(remote, store):
    term = remote.create_term("Music", 1, "media_tree")
    assert store.terms[term.tid].name == "Music"


def test_create_term_error(remote):
    with pytest.raises(TermStoreError) as excinfo:
        remote.create_term("Orphan", 42, "media_tree")
    assert "42" in str(excinfo.value)


def test_tree_listing(remote):
    assert [(e.tid, e.depth) for e in remote.tree_listing("media_tree")] == [(1, 0), (2, 1), (3, 1), (4, 2), (5, 1)]


def test_tree_listing_unknown_vocabulary(remote):
    with pytest.raises(TermStoreError) as excinfo:
        remote.tree_listing("ghost")
    assert "Vocabulary not found" in str(excinfo.value)


def test_vocabularies_and_media_types(remote):
    assert [v.vid for v in remote.list_vocabularies()] == ["media_tree", "tags"]
    assert remote.get_vocabulary("tags").label == "Tags"
    assert remote.get_vocabulary("nope") is None
    assert {m.id for m in remote.list_media_types()} == {"image", "document"}
    assert remote.get_media_type("video") is None


def test_fields_and_form_display(remote, store):
    assert remote.get_field("image", "media_directory") is None
    field = FieldDefinition(field_name="media_directory", bundle="image", target_bundles=["media_tree"])
    assert remote.save_field(field) == field
    assert remote.get_field("image", "media_directory") == field
    remote.set_form_display("image", "media_directory", "media_directory", 25)
    assert store.get_form_display("image")["media_directory"].weight == 25


def test_resolve_branch_over_http(remote):
    assert resolve_branch(remote, [4, 1, 3]) == [1, 3, 4]


def test_info(remote):
    assert remote.info.type == "http"
    assert remote.info.hostURL == "http://testserver"
