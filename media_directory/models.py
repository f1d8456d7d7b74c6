"""Pydantic models that capture media directory domain concepts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

ROOT_TERM_NAME = "root"
ROOT_MARKER = "#"
DEPTH_MARKER = "-"
DIRECTORY_FIELD = "media_directory"
DIRECTORY_WIDGET = "media_directory"
UNLIMITED_CARDINALITY = -1


class Term(BaseModel):
    """A taxonomy term; ``parent`` is None only for the vocabulary root."""

    tid: int = Field(..., ge=1)
    name: str
    vid: str
    parent: int | None = None

    @property
    def is_root(self) -> bool:
        return self.parent is None


class Vocabulary(BaseModel):
    vid: str = Field(..., min_length=1)
    label: str = ""

    def display_label(self) -> str:
        return self.label or self.vid


class MediaType(BaseModel):
    id: str = Field(..., min_length=1)
    label: str = ""


class FieldDefinition(BaseModel):
    """Configuration of an entity reference field attached to a bundle."""

    field_name: str
    entity_type: str = "media"
    bundle: str
    field_type: str = "entity_reference"
    target_type: str = "taxonomy_term"
    cardinality: int = UNLIMITED_CARDINALITY
    required: bool = False
    label: str = ""
    handler: str = "default:taxonomy_term"
    target_bundles: list[str] = Field(default_factory=list)


class FormDisplayComponent(BaseModel):
    type: str
    weight: int = 0


class FlatTreeEntry(BaseModel):
    """One line of a pre-order tree listing."""

    tid: int
    depth: int = Field(..., ge=0)
    name: str

    @property
    def label(self) -> str:
        """Name prefixed with one depth marker per nesting level."""
        return DEPTH_MARKER * self.depth + self.name


class JsTreeState(BaseModel):
    opened: bool = False
    selected: bool = False


class JsTreeNode(BaseModel):
    """Record in the format consumed by the front-end tree widget."""

    id: str
    parent: str
    text: str
    state: JsTreeState = Field(default_factory=JsTreeState)


class StoreFixture(BaseModel):
    """Initial content used to seed an in-memory term store."""

    vocabularies: list[Vocabulary] = Field(default_factory=list)
    terms: list[Term] = Field(default_factory=list)
    media_types: list[MediaType] = Field(default_factory=list)
    fields: list[FieldDefinition] = Field(default_factory=list)
# ---------------------------------------------------------------------------
# helpers


def coerce_store_fixture(value: Any) -> StoreFixture:
    """Normalize supported inputs into a StoreFixture instance."""
    if isinstance(value, StoreFixture):
        return value
    payload: Mapping[str, Any]
    if isinstance(value, Mapping):
        payload = value
    elif isinstance(value, (str, bytes)):
        payload = load_text_payload(value)
    elif isinstance(value, Path):
        payload = load_text_payload(value.read_text())
    else:
        raise TypeError("Unsupported value for a store fixture")
    try:
        return StoreFixture.model_validate(payload)
    except ValidationError as exc:
        raise ValueError("Invalid store fixture payload") from exc


def load_text_payload(raw: str | bytes) -> dict[str, Any]:
    """Interpret raw text as YAML first, falling back to JSON."""
    text = raw.decode() if isinstance(raw, bytes) else raw
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError:
        return json.loads(text)


__all__ = [
    "DEPTH_MARKER",
    "DIRECTORY_FIELD",
    "DIRECTORY_WIDGET",
    "FieldDefinition",
    "FlatTreeEntry",
    "FormDisplayComponent",
    "JsTreeNode",
    "JsTreeState",
    "MediaType",
    "ROOT_MARKER",
    "ROOT_TERM_NAME",
    "StoreFixture",
    "Term",
    "Vocabulary",
    "coerce_store_fixture",
    "load_text_payload",
]
