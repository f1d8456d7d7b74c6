"""The directory form widget: rendering the tree picker and processing its value."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Iterable

from box import Box

from .chain import SEPARATOR, ChainMaterializer, SubmissionContext
from .errors import MisconfiguredVocabulary
from .models import DIRECTORY_FIELD, ROOT_TERM_NAME, FlatTreeEntry
from .registry import WidgetRegistry
from .tree import resolve_branch, serialize_tree, tree_data

if TYPE_CHECKING:
    from connectors.term_store_interface import TermStore

logger = logging.getLogger(__name__)

CONTAINER_ID = "media-directory-container"
LIBRARY = "media_directory/directory_widget"


class DirectoryWidget:
    """Directory widget bound to one media type field."""

    def __init__(self, store: TermStore, registry: WidgetRegistry, media_type: str, field_name: str = DIRECTORY_FIELD):
        self.store = store
        self.registry = registry
        self.media_type = media_type
        self.field_name = field_name
        self.materializer = ChainMaterializer(store, self.vocabulary, field_name)

    def vocabulary(self) -> str:
        return self.registry.vocabulary_for(self.media_type)

    def root_term_tid(self) -> int:
        """The tid of the ``root`` term of the vocabulary mapped for this media type."""
        tid = self.store.find_term(ROOT_TERM_NAME, self.vocabulary())
        if tid is None:
            raise MisconfiguredVocabulary(
                f"Using media directory widget for type {self.media_type} with a misconfigured vocabulary.", log=True
            )
        return tid

    def prepare_default_value(self, items: Iterable[int]) -> str:
        """
        The field value for the stored items: their branch joined with ``|``,
        ancestors first, or just the root tid when nothing is stored yet.
        """
        tids = list(items)
        if not tids:
            return str(self.root_term_tid())
        return SEPARATOR.join(str(tid) for tid in resolve_branch(self.store, tids))

    def tree_settings(self, listing: list[FlatTreeEntry], leaf_tid: str) -> Box:
        return Box({
            "core": {
                "multiple": False,
                "themes": {"variant": "large"},
                "check_callback": True,
                "data": tree_data(serialize_tree(listing, leaf_tid)),
            },
            "plugins": ["contextmenu"],
        })

    def form_element(self, items: Iterable[int]) -> Box:
        default_value = self.prepare_default_value(items)
        listing = self.store.tree_listing(self.vocabulary())
        leaf_tid = default_value.split(SEPARATOR)[-1]
        settings = self.tree_settings(listing, leaf_tid)
        return Box({
            "value": {
                "type": "textfield",
                "default_value": default_value,
                "attributes": {"class": ["js-text-full", "text-full"]},
                # TODO: drop the tid listing once editors stop needing it to debug selections
                "description": "<br />".join(f"{entry.label} ({entry.tid})" for entry in listing),
            },
            "directory_container": {
                "type": "html_tag",
                "tag": "div",
                "attributes": {"id": CONTAINER_ID},
                "attached": {
                    "settings": {"media_directory": {"tree": json.dumps(settings.to_dict())}},
                    "library": [LIBRARY],
                },
            },
        })

    def massage_form_values(self, value: str, context: SubmissionContext) -> list[int]:
        """Chain of term ids to store for the submitted ``value``; creates typed names once per submission."""
        return self.materializer.materialize(value, context)


__all__ = ["CONTAINER_ID", "DirectoryWidget", "LIBRARY"]
