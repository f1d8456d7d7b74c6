"""
Directory settings: which vocabulary each media type organizes its items with.

The mapping is stored as a list of ``"<media type>:<vocabulary>"`` entries in
a YAML file; an empty vocabulary means the media type has no directory.
Applying a new mapping also makes sure every mapped media type carries a
``media_directory`` field pointing at the right vocabulary and rendered with
the directory widget.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from .models import (
    DIRECTORY_FIELD,
    DIRECTORY_WIDGET,
    ROOT_TERM_NAME,
    UNLIMITED_CARDINALITY,
    FieldDefinition,
    Vocabulary,
)

if TYPE_CHECKING:
    from connectors.term_store_interface import TermStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.media_directory/settings.yaml"
WIDGET_WEIGHT = 25
LOG_LEVELS = {"status": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


def config_path() -> Path:
    return Path(os.getenv("MEDIA_DIRECTORY_CONFIG", DEFAULT_CONFIG_PATH)).expanduser()


class DirectorySettings(BaseModel):
    vocabulary_mapping: list[str] = Field(default_factory=list)

    @field_validator("vocabulary_mapping")
    @classmethod
    def _entries_have_separator(cls, value: list[str]) -> list[str]:
        for entry in value:
            if ":" not in entry:
                raise ValueError(f"Mapping entry {entry!r} must look like 'media_type:vocabulary'")
        return value

    @property
    def mapping(self) -> dict[str, str]:
        """Media type to vocabulary, leaving out unmapped types."""
        pairs = (entry.split(":", 1) for entry in self.vocabulary_mapping)
        return {media_type: vid for media_type, vid in pairs if vid}


class SettingsMessage(BaseModel):
    level: Literal["status", "warning", "error"]
    text: str


def load_settings(path: Path | str | None = None) -> DirectorySettings:
    """Read settings from YAML; a missing file yields empty settings."""
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        return DirectorySettings()
    return DirectorySettings.model_validate(yaml.safe_load(path.read_text()) or {})


def save_settings(settings: DirectorySettings, path: Path | str | None = None) -> Path:
    path = Path(path) if path is not None else config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(settings.model_dump(mode="python"), sort_keys=False))
    logger.info(f"Saved directory settings to {path}")
    return path


def eligible_vocabularies(store: TermStore) -> list[Vocabulary]:
    """Vocabularies that own a term named ``root``; only those can back a directory."""
    return [vocab for vocab in store.list_vocabularies() if store.find_term(ROOT_TERM_NAME, vocab.vid) is not None]


def configure_media_type_field(store: TermStore, type_name: str, vocab_name: str, messages: list[SettingsMessage]) -> bool:
    """
    Ensure ``type_name`` has a directory field referencing ``vocab_name``.

    Creates the field (and its widget on the form display) when missing, or
    retargets an existing one. Returns False when the media type or the
    vocabulary does not exist, or the existing field targets several
    vocabularies.
    """
    media_type = store.get_media_type(type_name)
    if media_type is None or store.get_vocabulary(vocab_name) is None:
        return False

    field = store.get_field(type_name, DIRECTORY_FIELD)
    if field is not None:
        if len(field.target_bundles) != 1:
            messages.append(SettingsMessage(
                level="error",
                text=f'A misconfigured "{DIRECTORY_FIELD}" field was detected on type {type_name}.',
            ))
            return False
        if vocab_name not in field.target_bundles:
            store.save_field(field.model_copy(update={"target_bundles": [vocab_name]}))
            messages.append(SettingsMessage(
                level="status",
                text=f'The field "{DIRECTORY_FIELD}" on type {media_type.label or type_name} '
                     f'was reconfigured to reference terms on the new vocabulary.',
            ))
        return True

    store.save_field(FieldDefinition(
        field_name=DIRECTORY_FIELD,
        bundle=type_name,
        cardinality=UNLIMITED_CARDINALITY,
        required=True,
        label="Directory tree",
        target_bundles=[vocab_name],
    ))
    store.set_form_display(type_name, DIRECTORY_FIELD, DIRECTORY_WIDGET, WIDGET_WEIGHT)
    return True


def apply_vocabulary_mapping(
    store: TermStore,
    settings: DirectorySettings,
    choices: Mapping[str, str | None],
) -> tuple[DirectorySettings, list[SettingsMessage]]:
    """Return the settings for ``choices`` (media type -> vocabulary or None) and user-facing messages."""
    previous = settings.mapping
    messages: list[SettingsMessage] = []
    entries: list[str] = []
    for type_name, vocab_name in choices.items():
        entries.append(f"{type_name}:{vocab_name or ''}")
        if vocab_name:
            if not configure_media_type_field(store, type_name, vocab_name, messages):
                messages.append(SettingsMessage(
                    level="error",
                    text=f'Could not configure the field "{DIRECTORY_FIELD}" on type {type_name}',
                ))
        elif previous.get(type_name):
            messages.append(SettingsMessage(
                level="warning",
                text=f'When removing the directory functionality from a media type, make sure you also '
                     f'remove the field "{DIRECTORY_FIELD}" from type {type_name}.',
            ))

    for message in messages:
        logger.log(LOG_LEVELS[message.level], message.text)
    return DirectorySettings(vocabulary_mapping=entries), messages


__all__ = [
    "DirectorySettings",
    "SettingsMessage",
    "apply_vocabulary_mapping",
    "config_path",
    "configure_media_type_field",
    "eligible_vocabularies",
    "load_settings",
    "save_settings",
]
