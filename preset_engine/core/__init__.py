"""
Core System Components for the Preset Prompt Engine

This package contains the data structures and operations behind AI presets:

- identifiers: Shared-namespace naming rule for variables and media
- template: Tokenizer, serializer and reference rewriting for prompt templates
- preset: Catalog types, configurations and the Preset record
- validation: Configuration cross-checks and cycle detection
- resolver: Final prompt and image list resolution, plus editor preview
- editing: Catalog edits that keep references consistent
- versioning: Draft/publish lifecycle
- storage: Persistent JSON storage with transactional updates

These components are used by the HTTP API and can be embedded directly by
any service that builds generation requests from presets.
"""

from .identifiers import (
    IDENTIFIER_PATTERN,
    IdentifierError,
    InvalidFormatError,
    DuplicateNameError,
    UnknownNameError,
    is_valid_identifier,
    validate_identifier
)

from .template import (
    VAR,
    MEDIA,
    Literal,
    Reference,
    Token,
    TemplateError,
    parse,
    serialize,
    extract_references,
    smart_paste,
    rename_references,
    remove_references
)

from .preset import (
    ModelName,
    AspectRatio,
    PresetStatus,
    ValueMapping,
    TextVariable,
    ImageVariable,
    MediaEntry,
    ImageInput,
    PresetConfig,
    Preset,
    PresetValidationError,
    parse_inputs
)

from .validation import (
    IssueKind,
    ValidationIssue,
    validate_config,
    validate_inputs,
    is_publishable
)

from .resolver import (
    ResolvedOutput,
    PreviewResult,
    ResolveError,
    DanglingReferenceError,
    CyclicReferenceError,
    MissingRequiredInputError,
    UnmappedInputValueError,
    InvalidInputTypeError,
    PresetNotPublishedError,
    resolve,
    resolve_published,
    render_preview
)

from .editing import (
    add_variable,
    add_media_entry,
    update_variable,
    rename_identifier,
    remove_identifier
)

from .versioning import (
    VersionError,
    PresetStateError,
    PublishBlockedError,
    create_preset,
    update_draft,
    publish,
    discard_draft,
    delete_preset,
    has_unpublished_changes
)

from .storage import (
    PresetStorage,
    StorageError,
    PresetNotFoundError,
    create_storage
)

__all__ = [
    # Identifiers
    "IDENTIFIER_PATTERN",
    "IdentifierError",
    "InvalidFormatError",
    "DuplicateNameError",
    "UnknownNameError",
    "is_valid_identifier",
    "validate_identifier",

    # Templates
    "VAR",
    "MEDIA",
    "Literal",
    "Reference",
    "Token",
    "TemplateError",
    "parse",
    "serialize",
    "extract_references",
    "smart_paste",
    "rename_references",
    "remove_references",

    # Data model
    "ModelName",
    "AspectRatio",
    "PresetStatus",
    "ValueMapping",
    "TextVariable",
    "ImageVariable",
    "MediaEntry",
    "ImageInput",
    "PresetConfig",
    "Preset",
    "PresetValidationError",
    "parse_inputs",

    # Validation
    "IssueKind",
    "ValidationIssue",
    "validate_config",
    "validate_inputs",
    "is_publishable",

    # Resolution
    "ResolvedOutput",
    "PreviewResult",
    "ResolveError",
    "DanglingReferenceError",
    "CyclicReferenceError",
    "MissingRequiredInputError",
    "UnmappedInputValueError",
    "InvalidInputTypeError",
    "PresetNotPublishedError",
    "resolve",
    "resolve_published",
    "render_preview",

    # Editing
    "add_variable",
    "add_media_entry",
    "update_variable",
    "rename_identifier",
    "remove_identifier",

    # Versioning
    "VersionError",
    "PresetStateError",
    "PublishBlockedError",
    "create_preset",
    "update_draft",
    "publish",
    "discard_draft",
    "delete_preset",
    "has_unpublished_changes",

    # Storage
    "PresetStorage",
    "StorageError",
    "PresetNotFoundError",
    "create_storage"
]
