import pytest
from pydantic import ValidationError

from media_directory.models import FieldDefinition
from media_directory.registry import WidgetRegistry
from media_directory.settings import (
    DirectorySettings,
    apply_vocabulary_mapping,
    config_path,
    eligible_vocabularies,
    load_settings,
    save_settings,
)


def levels(messages):
    return [m.level for m in messages]


def test_mapping_skips_unmapped_types():
    settings = DirectorySettings(vocabulary_mapping=["image:media_tree", "document:"])
    assert settings.mapping == {"image": "media_tree"}
    assert WidgetRegistry.from_settings(settings).vocabulary_for("image") == "media_tree"


def test_mapping_entries_need_separator():
    with pytest.raises(ValidationError):
        DirectorySettings(vocabulary_mapping=["image"])


def test_load_missing_settings(tmp_path):
    assert load_settings(tmp_path / "missing.yaml").vocabulary_mapping == []


def test_save_then_load(tmp_path):
    path = tmp_path / "conf" / "settings.yaml"
    save_settings(DirectorySettings(vocabulary_mapping=["image:media_tree"]), path)
    assert load_settings(path).mapping == {"image": "media_tree"}


def test_config_path_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_DIRECTORY_CONFIG", str(tmp_path / "s.yaml"))
    assert config_path() == tmp_path / "s.yaml"


def test_eligible_vocabularies(store):
    assert [v.vid for v in eligible_vocabularies(store)] == ["media_tree"]


def test_apply_mapping_creates_field(store):
    settings, messages = apply_vocabulary_mapping(store, DirectorySettings(), {"image": "media_tree", "document": None})
    assert settings.vocabulary_mapping == ["image:media_tree", "document:"]
    assert messages == []
    field = store.get_field("image", "media_directory")
    assert field.required is True
    assert field.cardinality == -1
    assert field.target_bundles == ["media_tree"]
    display = store.get_form_display("image")["media_directory"]
    assert (display.type, display.weight) == ("media_directory", 25)
    assert store.get_field("document", "media_directory") is None


def test_apply_mapping_retargets_field(store):
    store.save_field(FieldDefinition(field_name="media_directory", bundle="image", target_bundles=["tags"]))
    _, messages = apply_vocabulary_mapping(store, DirectorySettings(), {"image": "media_tree"})
    assert levels(messages) == ["status"]
    assert store.get_field("image", "media_directory").target_bundles == ["media_tree"]


def test_apply_mapping_misconfigured_field(store):
    store.save_field(FieldDefinition(field_name="media_directory", bundle="image", target_bundles=["tags", "media_tree"]))
    _, messages = apply_vocabulary_mapping(store, DirectorySettings(), {"image": "media_tree"})
    assert levels(messages) == ["error", "error"]
    assert "misconfigured" in messages[0].text


def test_apply_mapping_unknown_media_type(store):
    settings, messages = apply_vocabulary_mapping(store, DirectorySettings(), {"video": "media_tree"})
    assert settings.vocabulary_mapping == ["video:media_tree"]
    assert levels(messages) == ["error"]


def test_apply_mapping_warns_when_unmapping(store):
    previous = DirectorySettings(vocabulary_mapping=["image:media_tree"])
    _, messages = apply_vocabulary_mapping(store, previous, {"image": None})
    assert levels(messages) == ["warning"]
