import pytest

from connectors.memory_term_store import InMemoryTermStore
from media_directory.registry import WidgetRegistry

# media_tree
# └── root (1)
#     ├── Photos (2)
#     ├── Docs (3)
#     │   └── 2024 (4)
#     └── Travel (5)
STORE_FIXTURE = """
vocabularies:
  - {vid: media_tree, label: Media tree}
  - {vid: tags, label: Tags}
terms:
  - {tid: 1, name: root, vid: media_tree}
  - {tid: 2, name: Photos, vid: media_tree, parent: 1}
  - {tid: 3, name: Docs, vid: media_tree, parent: 1}
  - {tid: 4, name: "2024", vid: media_tree, parent: 3}
  - {tid: 5, name: Travel, vid: media_tree, parent: 1}
media_types:
  - {id: image, label: Image}
  - {id: document, label: Document}
"""


@pytest.fixture(autouse=True)
def _log_to_tmp(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_DIRECTORY_LOGFILE", str(tmp_path / "log.txt"))


@pytest.fixture
def store():
    return InMemoryTermStore.from_fixture(STORE_FIXTURE)


@pytest.fixture
def registry():
    return WidgetRegistry({"image": "media_tree"})
