"""
Draft/Publish Version Management

A preset holds two configuration slots: the working draft that editors
change freely, and the published snapshot that live generation runs read.
This module owns the version counters and the promotion of a draft to the
published slot. Every operation returns a new Preset; inputs are never
modified, so a reader holding the previous object always sees a consistent
pre- or post-operation state.

Callers that persist presets must run each operation inside their store's
transaction for that preset (see ``PresetStorage``), so the read, the
validity check and the write happen against the same latest state.
"""

import logging
from typing import Callable, List, Optional

from .preset import Preset, PresetConfig, PresetStatus, utc_now
from .validation import ValidationIssue, structural_issues, validate_config

logger = logging.getLogger(__name__)

ConfigMutator = Callable[[PresetConfig], PresetConfig]


class VersionError(Exception):
    """Base exception for draft/publish operations"""
    pass


class PresetStateError(VersionError):
    """Raised when an operation is not allowed in the preset's current state"""
    pass


class PublishBlockedError(VersionError):
    """
    Raised when the draft has structural validation issues.

    Carries the full issue list so every problem can be shown at once.
    """

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        summary = "; ".join(issue.message for issue in self.issues)
        super().__init__(f"Publish blocked by {len(self.issues)} issue(s): {summary}")


def create_preset(name: str, config: Optional[PresetConfig] = None, id: Optional[str] = None) -> Preset:
    """
    Create a new preset with its draft populated and nothing published.

    Example:
        >>> preset = create_preset("Retro booth")
        >>> (preset.draft_version, preset.published_version, preset.has_unpublished_changes)
        (1, None, True)
    """
    kwargs = {"name": name, "draft": config or PresetConfig()}
    if id:
        kwargs["id"] = id
    preset = Preset(**kwargs)
    logger.info(f"Created preset '{preset.name}' ({preset.id})")
    return preset


def _ensure_active(preset: Preset, action: str) -> None:
    if preset.status != PresetStatus.ACTIVE:
        raise PresetStateError(f"Cannot {action} preset '{preset.id}': preset is {preset.status.value}")


def update_draft(preset: Preset, mutator: ConfigMutator) -> Preset:
    """
    Apply an edit to the draft and bump the draft version.

    The published slot is left untouched. Any exception raised by the
    mutator propagates and nothing is committed.

    Args:
        preset: Latest observed preset
        mutator: Function returning the edited configuration

    Returns:
        New Preset with the edited draft and ``draft_version + 1``

    Raises:
        PresetStateError: If the preset is deleted
        VersionError: If the mutator does not return a PresetConfig
    """
    _ensure_active(preset, "edit")

    draft = mutator(preset.draft)
    if not isinstance(draft, PresetConfig):
        raise VersionError(f"Draft mutator must return a PresetConfig, got {type(draft).__name__}")

    return preset.replace(
        draft=draft,
        draft_version=preset.draft_version + 1,
        updated_at=utc_now(),
    )


def publish(preset: Preset, now: Optional[str] = None) -> Preset:
    """
    Promote the draft to the published slot.

    Args:
        preset: Latest observed preset
        now: Publish timestamp; defaults to the current UTC time

    Returns:
        New Preset whose published config is the draft, with
        ``published_version == draft_version``

    Raises:
        PresetStateError: If the preset is deleted
        PublishBlockedError: If the draft has structural issues; the
            preset is left exactly as it was
    """
    _ensure_active(preset, "publish")

    blocking = structural_issues(validate_config(preset.draft))
    if blocking:
        logger.info(f"Publish of preset '{preset.id}' blocked by {len(blocking)} issue(s)")
        raise PublishBlockedError(blocking)

    timestamp = now or utc_now()
    published = preset.replace(
        published=preset.draft,
        published_version=preset.draft_version,
        published_at=timestamp,
        updated_at=timestamp,
    )
    logger.info(f"Published preset '{preset.id}' at version {published.published_version}")
    return published


def discard_draft(preset: Preset) -> Preset:
    """
    Reset the draft to the published configuration.

    This is an edit like any other, so the draft version still increases.

    Raises:
        PresetStateError: If the preset is deleted or was never published
    """
    _ensure_active(preset, "discard changes of")
    if preset.published is None:
        raise PresetStateError(f"Preset '{preset.id}' has no published version to revert to")
    return update_draft(preset, lambda _draft: preset.published)


def delete_preset(preset: Preset) -> Preset:
    """Mark a preset as deleted. There is no restore."""
    if preset.is_deleted:
        return preset
    logger.info(f"Deleted preset '{preset.id}'")
    return preset.replace(status=PresetStatus.DELETED, updated_at=utc_now())


def has_unpublished_changes(preset: Preset) -> bool:
    return preset.has_unpublished_changes
