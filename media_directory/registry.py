"""Deciding which fields use the directory widget and with which vocabulary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from .errors import MisconfiguredVocabulary
from .models import FieldDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldBinding:
    """A field resolved to the vocabulary its directory tree is built from."""

    media_type: str
    field_name: str
    vid: str


class WidgetRegistry:
    """
    Media type to vocabulary lookup, built once from the settings.

    A field qualifies for the directory widget when it is a media field
    referencing taxonomy terms of exactly one vocabulary, and that vocabulary
    is the one mapped for the field's media type.
    """

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = {media_type: vid for media_type, vid in mapping.items() if vid}

    @classmethod
    def from_settings(cls, settings) -> WidgetRegistry:
        return cls(settings.mapping)

    @property
    def mapping(self) -> dict[str, str]:
        return dict(self._mapping)

    def vocabulary_for(self, media_type: str) -> str:
        vid = self._mapping.get(media_type)
        if not vid:
            raise MisconfiguredVocabulary(
                f"Using media directory widget for type {media_type} with a misconfigured vocabulary.", log=True
            )
        return vid

    def binding_for(self, field: FieldDefinition) -> FieldBinding | None:
        if field.entity_type != "media" or field.target_type != "taxonomy_term":
            return None
        vid = self._mapping.get(field.bundle)
        if len(field.target_bundles) != 1 or vid not in field.target_bundles:
            return None
        return FieldBinding(media_type=field.bundle, field_name=field.field_name, vid=vid)

    def is_applicable(self, field: FieldDefinition) -> bool:
        return self.binding_for(field) is not None


__all__ = ["FieldBinding", "WidgetRegistry"]
