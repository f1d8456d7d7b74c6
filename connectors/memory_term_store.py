"""
memory_term_store.py
--------------------
In-memory implementation of the TermStore protocol.

Holds vocabularies, terms, media types, field definitions and form display
settings in plain dictionaries. Used directly by tests and as the backing
store of the directory_server daemon.
"""

import logging
from typing import Any, Iterable

from box import Box

from connectors.term_store_interface import TermStore
from media_directory.errors import TermStoreError
from media_directory.models import (
    ROOT_TERM_NAME,
    FieldDefinition,
    FlatTreeEntry,
    FormDisplayComponent,
    MediaType,
    StoreFixture,
    Term,
    Vocabulary,
    coerce_store_fixture,
)

logger = logging.getLogger(__name__)


class InMemoryTermStore(TermStore):
    """Dictionary backed term store. Term ids are assigned sequentially from 1."""

    def __init__(self):
        self.vocabularies: dict[str, Vocabulary] = {}
        self.terms: dict[int, Term] = {}
        self.media_types: dict[str, MediaType] = {}
        self.fields: dict[tuple[str, str], FieldDefinition] = {}
        self.form_displays: dict[str, dict[str, FormDisplayComponent]] = {}
        self._next_tid = 1

    @classmethod
    def from_fixture(cls, fixture: Any) -> "InMemoryTermStore":
        """Build a store from a StoreFixture, a mapping, YAML/JSON text or a Path."""
        data: StoreFixture = coerce_store_fixture(fixture)
        store = cls()
        for vocab in data.vocabularies:
            store.add_vocabulary(vocab.vid, vocab.label)
        # fixture terms keep their tids, parents first
        for term in sorted(data.terms, key=lambda t: t.tid):
            store._insert(term)
        for media_type in data.media_types:
            store.add_media_type(media_type.id, media_type.label)
        for field in data.fields:
            store.save_field(field)
        return store

    @property
    def info(self) -> Box:
        return Box({
            "type": "memory",
            "vocabularies": len(self.vocabularies),
            "terms": len(self.terms),
            "media_types": len(self.media_types),
        })

    # ---------------------------------------------------------------- vocabularies

    def add_vocabulary(self, vid: str, label: str = "", with_root: bool = False) -> Vocabulary:
        if vid in self.vocabularies:
            raise TermStoreError(f"Vocabulary {vid!r} already exists")
        vocab = Vocabulary(vid=vid, label=label)
        self.vocabularies[vid] = vocab
        logger.info(f"Created vocabulary: {vid!r}")
        if with_root:
            self.create_term(ROOT_TERM_NAME, None, vid)
        return vocab

    def list_vocabularies(self) -> list[Vocabulary]:
        return list(self.vocabularies.values())

    def get_vocabulary(self, vid: str) -> Vocabulary | None:
        return self.vocabularies.get(vid)

    # ----------------------------------------------------------------------- terms

    def find_term(self, name: str, vid: str) -> int | None:
        for term in self.terms.values():
            if term.vid == vid and term.name == name:
                return term.tid
        return None

    def load_terms(self, tids: Iterable[int]) -> dict[int, Term]:
        return {tid: self.terms[tid] for tid in tids if tid in self.terms}

    def create_term(self, name: str, parent: int | None, vid: str) -> Term:
        term = Term(tid=self._next_tid, name=name, parent=parent, vid=vid)
        self._insert(term)
        logger.info(f"Created term: {term}")
        return term

    def _insert(self, term: Term) -> None:
        if term.vid not in self.vocabularies:
            raise TermStoreError(f"Unknown vocabulary {term.vid!r}")
        if not term.name.strip():
            raise TermStoreError("Term name must not be empty")
        if term.tid in self.terms:
            raise TermStoreError(f"Term {term.tid} already exists")
        if term.parent is None:
            if any(t.vid == term.vid and t.is_root for t in self.terms.values()):
                raise TermStoreError(f"Vocabulary {term.vid!r} already has a root term")
        else:
            parent = self.terms.get(term.parent)
            if parent is None or parent.vid != term.vid:
                raise TermStoreError(f"Parent term {term.parent} does not exist in vocabulary {term.vid!r}")
        self.terms[term.tid] = term
        self._next_tid = max(self._next_tid, term.tid + 1)

    def tree_listing(self, vid: str) -> list[FlatTreeEntry]:
        if vid not in self.vocabularies:
            raise TermStoreError(f"Unknown vocabulary {vid!r}")
        children: dict[int | None, list[Term]] = {}
        for term in sorted(self.terms.values(), key=lambda t: t.tid):
            if term.vid == vid:
                children.setdefault(term.parent, []).append(term)
        listing: list[FlatTreeEntry] = []
        stack = [(term, 0) for term in reversed(children.get(None, []))]
        while stack:
            term, depth = stack.pop()
            listing.append(FlatTreeEntry(tid=term.tid, depth=depth, name=term.name))
            stack.extend((child, depth + 1) for child in reversed(children.get(term.tid, [])))
        return listing

    # ---------------------------------------------------------- media types/fields

    def add_media_type(self, type_id: str, label: str = "") -> MediaType:
        media_type = MediaType(id=type_id, label=label)
        self.media_types[type_id] = media_type
        logger.info(f"Created media type: {type_id!r}")
        return media_type

    def list_media_types(self) -> list[MediaType]:
        return list(self.media_types.values())

    def get_media_type(self, type_id: str) -> MediaType | None:
        return self.media_types.get(type_id)

    def get_field(self, bundle: str, field_name: str) -> FieldDefinition | None:
        return self.fields.get((bundle, field_name))

    def save_field(self, field: FieldDefinition) -> FieldDefinition:
        if field.bundle not in self.media_types:
            raise TermStoreError(f"Unknown media type {field.bundle!r}")
        self.fields[(field.bundle, field.field_name)] = field
        logger.info(f"Saved field {field.field_name!r} on {field.bundle!r}")
        return field

    def set_form_display(self, bundle: str, field_name: str, widget: str, weight: int = 0) -> None:
        display = self.form_displays.setdefault(bundle, {})
        display[field_name] = FormDisplayComponent(type=widget, weight=weight)

    def get_form_display(self, bundle: str) -> dict[str, FormDisplayComponent]:
        return dict(self.form_displays.get(bundle, {}))
