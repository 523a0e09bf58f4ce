"""
Unit tests for persistent preset storage.
"""

import json
import os
import threading

import pytest

from preset_engine.core.editing import set_template
from preset_engine.core.preset import PresetConfig, PresetStatus
from preset_engine.core.resolver import PresetNotPublishedError
from preset_engine.core.storage import (
    PresetNotFoundError,
    PresetStorage,
    StorageError,
    create_storage,
)
from preset_engine.core.versioning import PublishBlockedError


class TestStorageBasics:
    """Test creating, saving and loading presets."""

    def test_create_and_reload(self, storage, photo_booth_config):
        preset = storage.create("Booth", photo_booth_config)

        reopened = PresetStorage(storage.storage_dir)
        loaded = reopened.load_preset(preset.id)

        assert loaded == preset
        assert loaded.draft == photo_booth_config

    def test_file_layout(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        with open(storage.storage_file, encoding="utf-8") as f:
            data = json.load(f)

        assert data["version"] == PresetStorage.STORAGE_VERSION
        assert data["presets"][0]["id"] == preset.id
        assert data["presets"][0]["draft"]["template"] == "A @{var:mood} portrait"

    def test_missing_preset(self, storage):
        with pytest.raises(PresetNotFoundError) as exc_info:
            storage.load_preset("nope")
        assert exc_info.value.preset_id == "nope"

    def test_empty_store(self, storage):
        assert storage.load_all_presets() == []

    def test_factory(self, tmp_path):
        assert isinstance(create_storage(str(tmp_path)), PresetStorage)

    def test_invalid_json_file(self, storage):
        with open(storage.storage_file, "w", encoding="utf-8") as f:
            f.write("{not json")
        with pytest.raises(StorageError):
            storage.load_all_presets()

    def test_corrupted_document_skipped(self, storage, mood_config):
        good = storage.create("Good", mood_config)
        with open(storage.storage_file, encoding="utf-8") as f:
            data = json.load(f)
        data["presets"].append({"id": "bad", "name": "Bad", "status": "active", "draft": {"model": "dall-e"}, "draft_version": 1})
        with open(storage.storage_file, "w", encoding="utf-8") as f:
            json.dump(data, f)

        assert [preset.id for preset in storage.load_all_presets()] == [good.id]

    def test_corrupted_document_survives_other_writes(self, storage, mood_config):
        """Editing one preset stores an unreadable neighbor back unchanged."""
        good = storage.create("Good", mood_config)
        bad = {"id": "bad", "name": "Bad", "status": "active", "draft": {"model": "dall-e"}, "draft_version": 1}
        with open(storage.storage_file, encoding="utf-8") as f:
            data = json.load(f)
        data["presets"].append(bad)
        with open(storage.storage_file, "w", encoding="utf-8") as f:
            json.dump(data, f)

        storage.update_draft(good.id, lambda config: config)
        storage.publish(good.id)
        storage.create("Another", mood_config)

        with open(storage.storage_file, encoding="utf-8") as f:
            documents = json.load(f)["presets"]
        assert bad in documents
        assert len(documents) == 3
        assert storage.load_preset(good.id).published is not None
        assert storage.get_storage_info()["unreadable_count"] == 1

    def test_no_temp_files_left(self, storage, mood_config):
        storage.create("Booth", mood_config)
        storage.create("Booth 2", mood_config)
        leftovers = [name for name in os.listdir(storage.storage_dir) if name.endswith(".tmp")]
        assert leftovers == []


class TestStorageLifecycle:
    """Test transactional draft/publish operations."""

    def test_update_publish_resolve(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        storage.update_draft(preset.id, lambda config: set_template(config, "A @{var:mood} painting"))
        published = storage.publish(preset.id)

        assert published.published_version == 2
        assert storage.load_published_config(preset.id).template == "A @{var:mood} painting"
        assert storage.resolve(preset.id).prompt == "A joyful painting"

    def test_blocked_publish_writes_nothing(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        storage.publish(preset.id)
        storage.update_draft(preset.id, lambda config: set_template(config, "@{var:ghost}"))

        with pytest.raises(PublishBlockedError):
            storage.publish(preset.id)

        stored = storage.load_preset(preset.id)
        assert stored.published_version == 1
        assert stored.published.template == "A @{var:mood} portrait"

    def test_unpublished_preset_cannot_resolve(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        assert storage.load_published_config(preset.id) is None
        with pytest.raises(PresetNotPublishedError):
            storage.resolve(preset.id)

    def test_discard_draft(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        storage.publish(preset.id)
        storage.update_draft(preset.id, lambda config: set_template(config, "changed"))

        reverted = storage.discard_draft(preset.id)
        assert reverted.draft == mood_config
        assert storage.load_preset(preset.id).has_unpublished_changes is True

    def test_soft_delete(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        storage.publish(preset.id)
        storage.delete(preset.id)

        assert storage.load_all_presets() == []
        assert [p.status for p in storage.load_all_presets(include_deleted=True)] == [PresetStatus.DELETED]
        assert storage.load_published_config(preset.id) is None

    def test_operations_on_missing_preset(self, storage):
        with pytest.raises(PresetNotFoundError):
            storage.publish("missing")
        with pytest.raises(PresetNotFoundError):
            storage.update_draft("missing", lambda config: config)

    def test_concurrent_edits_are_serialized(self, storage):
        """Every concurrent edit lands; none overwrites another."""
        preset = storage.create("Booth", PresetConfig(template=""))

        def append(letter):
            storage.update_draft(preset.id, lambda config: set_template(config, config.template + letter))

        threads = [threading.Thread(target=append, args=(letter,)) for letter in "abcdefgh"]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stored = storage.load_preset(preset.id)
        assert stored.draft_version == 9
        assert sorted(stored.draft.template) == list("abcdefgh")

    def test_storage_info(self, storage, mood_config):
        preset = storage.create("Booth", mood_config)
        storage.create("Other", mood_config)
        storage.publish(preset.id)

        info = storage.get_storage_info()
        assert info["file_exists"] is True
        assert info["preset_count"] == 2
        assert info["unpublished_count"] == 1
