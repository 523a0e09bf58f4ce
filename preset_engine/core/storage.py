"""
Persistent JSON Storage for Presets

This module keeps preset documents in a single JSON file and provides the
transactional boundary the draft/publish lifecycle relies on.

Key Features:
- Thread-safe access through one re-entrant lock per store
- Read-modify-write operations (edit, publish, discard, delete) run entirely
  inside the lock, so a publish validates and copies the same draft
- Atomic file replacement; readers see either the old or the new document
- Schema validation of every stored document. Corrupted entries are skipped
  on load but written back untouched, so a later edit never destroys them
- Soft delete only: deleted presets stay on disk with status ``deleted``
"""

import os
import json
import shutil
import logging
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .preset import Preset, PresetConfig, PresetValidationError
from .resolver import ResolvedOutput, RuntimeValue, resolve_published
from .schema import SchemaError, validate_preset_document
from .versioning import ConfigMutator, create_preset, delete_preset, discard_draft, publish, update_draft

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations"""
    pass


class PresetNotFoundError(StorageError):
    """Raised when no preset has the requested id"""

    def __init__(self, preset_id: str):
        self.preset_id = preset_id
        super().__init__(f"Preset not found: {preset_id}")


class PresetStorage:
    """
    Persistent JSON storage manager for presets with thread-safe operations.

    All writes go through ``_apply`` or ``save_preset`` which hold the store
    lock for the whole load, change and write cycle. Two editors changing the
    same draft are therefore serialized instead of overwriting each other.
    """

    STORAGE_VERSION = "1.0"
    DEFAULT_FILENAME = "presets.json"

    def __init__(self, storage_path: Optional[str] = None):
        """
        Initialize PresetStorage.

        Args:
            storage_path: Storage directory. If None, uses the directory from
                the ``PRESET_ENGINE_STORAGE_DIR`` setting.

        Raises:
            StorageError: If the storage directory cannot be created
        """
        self._lock = threading.RLock()
        self._storage_dir = self._resolve_storage_directory(storage_path)
        self._storage_file = os.path.join(self._storage_dir, self.DEFAULT_FILENAME)
        self._ensure_directories()

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    @property
    def storage_file(self) -> str:
        return self._storage_file

    def _resolve_storage_directory(self, custom_path: Optional[str] = None) -> str:
        if custom_path:
            return os.path.abspath(custom_path)

        from ..settings import load_settings
        return load_settings().storage_dir

    def _ensure_directories(self) -> None:
        try:
            os.makedirs(self._storage_dir, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create storage directory: {e}")

    def _atomic_write(self, filepath: str, data: Dict[str, Any]) -> None:
        """
        Perform atomic file write using temporary file and move operation.

        Raises:
            StorageError: If write operation fails
        """
        temp_path = None
        try:
            # Same directory keeps the move on one filesystem.
            with tempfile.NamedTemporaryFile(
                mode='w',
                encoding='utf-8',
                dir=os.path.dirname(filepath),
                delete=False,
                suffix='.tmp'
            ) as temp_file:
                temp_path = temp_file.name
                json.dump(data, temp_file, indent=2, ensure_ascii=False)

            shutil.move(temp_path, filepath)

        except (OSError, TypeError, ValueError) as e:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as cleanup_error:
                    logger.warning(f"Failed to remove temporary file {temp_path}: {cleanup_error}")
            raise StorageError(f"Atomic write failed for {filepath}: {e}")

    def _create_storage_structure(self, documents: List[Any], created: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        return {
            "version": self.STORAGE_VERSION,
            "created": created or now,
            "updated": now,
            "presets": documents,
        }

    def _load_storage_data(self) -> Dict[str, Any]:
        """
        Load the raw storage document, or an empty structure if none exists.

        Raises:
            StorageError: If the file exists but cannot be read as JSON
        """
        if not os.path.exists(self._storage_file):
            return self._create_storage_structure([])

        try:
            with open(self._storage_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in storage file: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read storage file: {e}")

        if not isinstance(data, dict):
            logger.warning("Storage data is not a valid dictionary, starting from an empty structure")
            return self._create_storage_structure([])

        if data.get("version") != self.STORAGE_VERSION:
            logger.warning(f"Storage version mismatch: {data.get('version')} != {self.STORAGE_VERSION}")

        if not isinstance(data.get("presets"), list):
            logger.warning("'presets' field is missing or not a list, resetting to empty")
            data["presets"] = []

        return data

    def _load_documents(self) -> Tuple[List[Preset], List[Any]]:
        """
        Load every stored document.

        Returns:
            Tuple of (valid presets, raw documents that failed validation).
            The raw documents are kept so writes can store them back as-is.
        """
        presets = []
        unreadable = []
        for document in self._load_storage_data()["presets"]:
            preset_id = document.get("id", "unknown") if isinstance(document, dict) else "unknown"
            try:
                validate_preset_document(document)
                presets.append(Preset.from_dict(document))
            except (SchemaError, PresetValidationError) as e:
                logger.error(f"Skipping corrupted preset {preset_id}: {e}")
                unreadable.append(document)
        return presets, unreadable

    def _load_presets(self) -> List[Preset]:
        """Load every preset, skipping documents that fail validation"""
        presets, _ = self._load_documents()
        return presets

    def _save_presets(self, presets: List[Preset], unreadable: Optional[List[Any]] = None) -> None:
        created = None
        if os.path.exists(self._storage_file):
            try:
                created = self._load_storage_data().get("created")
            except StorageError as e:
                logger.warning(f"Could not read existing storage metadata: {e}")
        documents = [preset.to_dict() for preset in presets] + list(unreadable or [])
        self._atomic_write(self._storage_file, self._create_storage_structure(documents, created))

    def load_all_presets(self, include_deleted: bool = False) -> List[Preset]:
        """
        Load presets from storage.

        Args:
            include_deleted: Also return soft-deleted presets

        Raises:
            StorageError: If the storage file cannot be read
        """
        with self._lock:
            presets = self._load_presets()
        if include_deleted:
            return presets
        return [preset for preset in presets if not preset.is_deleted]

    def load_preset(self, preset_id: str) -> Preset:
        """
        Load one preset by id, including soft-deleted ones.

        Raises:
            PresetNotFoundError: If no preset has this id
        """
        with self._lock:
            for preset in self._load_presets():
                if preset.id == preset_id:
                    return preset
        raise PresetNotFoundError(preset_id)

    def save_preset(self, preset: Preset) -> Preset:
        """Insert or replace a preset by id"""
        with self._lock:
            presets, unreadable = self._load_documents()
            for index, existing in enumerate(presets):
                if existing.id == preset.id:
                    presets[index] = preset
                    break
            else:
                presets.append(preset)
            self._save_presets(presets, unreadable)
        return preset

    def _apply(self, preset_id: str, operation: Callable[[Preset], Preset]) -> Preset:
        """
        Run ``operation`` on the latest stored preset and persist the result.

        The load, the operation and the write all happen under the store
        lock. If the operation raises, nothing is written.
        """
        with self._lock:
            presets, unreadable = self._load_documents()
            for index, existing in enumerate(presets):
                if existing.id == preset_id:
                    updated = operation(existing)
                    presets[index] = updated
                    self._save_presets(presets, unreadable)
                    return updated
        raise PresetNotFoundError(preset_id)

    def create(self, name: str, config: Optional[PresetConfig] = None) -> Preset:
        """Create and persist a new preset with an unpublished draft"""
        return self.save_preset(create_preset(name, config))

    def update_draft(self, preset_id: str, mutator: ConfigMutator) -> Preset:
        """Apply a draft edit atomically against the latest stored preset"""
        return self._apply(preset_id, lambda preset: update_draft(preset, mutator))

    def publish(self, preset_id: str, now: Optional[str] = None) -> Preset:
        """
        Validate and publish the stored draft in one locked step.

        Raises:
            PublishBlockedError: If the draft has structural issues
            PresetNotFoundError: If no preset has this id
        """
        return self._apply(preset_id, lambda preset: publish(preset, now))

    def discard_draft(self, preset_id: str) -> Preset:
        return self._apply(preset_id, discard_draft)

    def delete(self, preset_id: str) -> Preset:
        """Soft-delete a preset"""
        return self._apply(preset_id, delete_preset)

    def load_published_config(self, preset_id: str) -> Optional[PresetConfig]:
        """Published configuration of an active preset, or None if there is none"""
        preset = self.load_preset(preset_id)
        if preset.is_deleted:
            return None
        return preset.published

    def resolve(self, preset_id: str, inputs: Optional[Dict[str, RuntimeValue]] = None) -> ResolvedOutput:
        """Resolve the published configuration of a stored preset"""
        return resolve_published(self.load_preset(preset_id), inputs)

    def get_storage_info(self) -> Dict[str, Any]:
        """Information about the storage location and contents"""
        info = {
            "storage_directory": self._storage_dir,
            "storage_file": self._storage_file,
            "version": self.STORAGE_VERSION,
            "file_exists": os.path.exists(self._storage_file),
        }
        if info["file_exists"]:
            try:
                with self._lock:
                    presets, unreadable = self._load_documents()
                info["preset_count"] = sum(1 for preset in presets if not preset.is_deleted)
                info["deleted_count"] = sum(1 for preset in presets if preset.is_deleted)
                info["unpublished_count"] = sum(
                    1 for preset in presets if not preset.is_deleted and preset.has_unpublished_changes
                )
                info["unreadable_count"] = len(unreadable)
            except StorageError as e:
                info["error"] = f"Failed to get file info: {e}"
        return info


def create_storage(storage_path: Optional[str] = None) -> PresetStorage:
    """Factory function to create a PresetStorage instance"""
    return PresetStorage(storage_path)
