"""
Preset Data Model

This module defines the configuration documents handled by the prompt
engine: the variable and media catalog, the prompt template, and the
Preset record that owns a working draft and a published snapshot.

All catalog types are frozen dataclasses. A published configuration is a
snapshot that is only ever replaced wholesale, never edited in place, so
nothing here exposes mutable state.
"""

import enum
import uuid
import logging
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

VALUE_MIN_LENGTH = 1
VALUE_MAX_LENGTH = 100


class PresetValidationError(Exception):
    """Raised when preset data cannot form a valid model object"""
    pass


class ModelName(str, enum.Enum):
    """Image generation models a preset can target"""
    GEMINI_25_FLASH_IMAGE = "gemini-2.5-flash-image"
    GEMINI_3_PRO_IMAGE_PREVIEW = "gemini-3-pro-image-preview"


class AspectRatio(str, enum.Enum):
    """Output aspect ratios accepted by the generation provider"""
    SQUARE = "1:1"
    LANDSCAPE = "3:2"
    PORTRAIT = "2:3"
    STORY = "9:16"
    WIDE = "16:9"


class PresetStatus(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string"""
    return datetime.now(timezone.utc).isoformat()


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise PresetValidationError(f"Invalid {field_name} {value!r}; expected one of: {allowed}")


def _require_str(data: Dict[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise PresetValidationError(f"{context}: field '{key}' must be a string")
    return value


@dataclass(frozen=True)
class ValueMapping:
    """
    One enumerated input value of a text variable and the prompt text it expands to.

    ``text`` is itself a template fragment and may contain references.
    """
    value: str
    text: str = ""

    def __post_init__(self):
        if not isinstance(self.value, str):
            raise PresetValidationError("Value mapping 'value' must be a string")
        if not VALUE_MIN_LENGTH <= len(self.value) <= VALUE_MAX_LENGTH:
            raise PresetValidationError(
                f"Value mapping value must be {VALUE_MIN_LENGTH}-{VALUE_MAX_LENGTH} characters, "
                f"got {len(self.value)}"
            )
        if not isinstance(self.text, str):
            raise PresetValidationError(f"Value mapping text for '{self.value}' must be a string")

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValueMapping":
        if not isinstance(data, dict):
            raise PresetValidationError("Value mapping must be an object")
        return cls(value=_require_str(data, "value", "Value mapping"), text=data.get("text") or "")


@dataclass(frozen=True)
class TextVariable:
    """
    A text input, either free text or restricted to the enumerated values
    of its value map.
    """
    name: str
    label: str = ""
    required: bool = False
    default_value: Optional[str] = None
    value_map: Tuple[ValueMapping, ...] = ()

    type = "text"

    def __post_init__(self):
        object.__setattr__(self, "value_map", tuple(self.value_map or ()))
        if not self.label:
            object.__setattr__(self, "label", self.name)

        seen = set()
        for mapping in self.value_map:
            if not isinstance(mapping, ValueMapping):
                raise PresetValidationError(f"Variable '{self.name}': value map entries must be ValueMapping objects")
            if mapping.value in seen:
                raise PresetValidationError(f"Variable '{self.name}': duplicate mapped value '{mapping.value}'")
            seen.add(mapping.value)

        if self.default_value is not None and not isinstance(self.default_value, str):
            raise PresetValidationError(f"Variable '{self.name}': default_value must be a string")

    def find_mapping(self, value: str) -> Optional[ValueMapping]:
        for mapping in self.value_map:
            if mapping.value == value:
                return mapping
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "label": self.label,
            "required": self.required,
            "default_value": self.default_value,
            "value_map": [mapping.to_dict() for mapping in self.value_map],
        }


@dataclass(frozen=True)
class ImageVariable:
    """An image supplied by the guest at run time"""
    name: str
    label: str = ""
    required: bool = False

    type = "image"

    def __post_init__(self):
        if not self.label:
            object.__setattr__(self, "label", self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "label": self.label,
            "required": self.required,
        }


Variable = Union[TextVariable, ImageVariable]


def variable_from_dict(data: Dict[str, Any]) -> Variable:
    """
    Build a TextVariable or ImageVariable from its stored form.

    Raises:
        PresetValidationError: If the type tag is unknown or fields are invalid
    """
    if not isinstance(data, dict):
        raise PresetValidationError("Variable must be an object")

    name = _require_str(data, "name", "Variable")
    var_type = data.get("type", "text")
    label = data.get("label") or ""
    required = bool(data.get("required", False))

    if var_type == "text":
        value_map = data.get("value_map") or []
        if not isinstance(value_map, list):
            raise PresetValidationError(f"Variable '{name}': value_map must be a list")
        return TextVariable(
            name=name,
            label=label,
            required=required,
            default_value=data.get("default_value"),
            value_map=tuple(ValueMapping.from_dict(item) for item in value_map),
        )
    if var_type == "image":
        return ImageVariable(name=name, label=label, required=required)

    raise PresetValidationError(f"Variable '{name}': unknown variable type {var_type!r}")


@dataclass(frozen=True)
class MediaEntry:
    """
    A named reference image stored with the preset.

    ``asset_ref`` is an opaque handle to the stored bytes; the engine only
    carries it forward to whoever builds the generation request.
    """
    name: str
    asset_ref: Any
    display_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "asset_ref": self.asset_ref, "display_url": self.display_url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaEntry":
        if not isinstance(data, dict):
            raise PresetValidationError("Media entry must be an object")
        name = _require_str(data, "name", "Media entry")
        if data.get("asset_ref") is None:
            raise PresetValidationError(f"Media entry '{name}': missing asset_ref")
        return cls(name=name, asset_ref=data["asset_ref"], display_url=data.get("display_url") or "")


@dataclass(frozen=True)
class ImageInput:
    """Runtime value for an image variable: an opaque handle to guest-supplied bytes"""
    asset_ref: Any
    url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageInput":
        if not isinstance(data, dict) or data.get("asset_ref") is None:
            raise PresetValidationError("Image input must be an object with an asset_ref")
        return cls(asset_ref=data["asset_ref"], url=data.get("url"))


RuntimeValue = Union[str, ImageInput]


@dataclass(frozen=True)
class PresetConfig:
    """
    One complete preset configuration: generation settings, catalog and template.

    Example:
        >>> config = PresetConfig(
        ...     variables=(TextVariable("mood", default_value="joyful"),),
        ...     template="A @{var:mood} portrait",
        ... )
        >>> config.names()
        ['mood']
    """
    model: ModelName = ModelName.GEMINI_25_FLASH_IMAGE
    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    media_registry: Tuple[MediaEntry, ...] = ()
    variables: Tuple[Variable, ...] = ()
    template: str = ""

    def __post_init__(self):
        object.__setattr__(self, "model", _coerce_enum(ModelName, self.model, "model"))
        object.__setattr__(self, "aspect_ratio", _coerce_enum(AspectRatio, self.aspect_ratio, "aspect_ratio"))
        object.__setattr__(self, "media_registry", tuple(self.media_registry or ()))
        object.__setattr__(self, "variables", tuple(self.variables or ()))
        if self.template is None:
            object.__setattr__(self, "template", "")
        elif not isinstance(self.template, str):
            raise PresetValidationError("Template must be a string")

    def names(self) -> List[str]:
        """All declared names, variables first, duplicates kept"""
        return [variable.name for variable in self.variables] + [entry.name for entry in self.media_registry]

    def variable_names(self) -> List[str]:
        return [variable.name for variable in self.variables]

    def media_names(self) -> List[str]:
        return [entry.name for entry in self.media_registry]

    def get_variable(self, name: str) -> Optional[Variable]:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None

    def get_media(self, name: str) -> Optional[MediaEntry]:
        for entry in self.media_registry:
            if entry.name == name:
                return entry
        return None

    def replace(self, **changes) -> "PresetConfig":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.value,
            "aspect_ratio": self.aspect_ratio.value,
            "media_registry": [entry.to_dict() for entry in self.media_registry],
            "variables": [variable.to_dict() for variable in self.variables],
            "template": self.template,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PresetConfig":
        """
        Create a PresetConfig from its stored form.

        Missing fields fall back to defaults; malformed entries raise.

        Raises:
            PresetValidationError: If any part of the document is invalid
        """
        if not isinstance(data, dict):
            raise PresetValidationError("Config must be an object")

        media = data.get("media_registry") or []
        variables = data.get("variables") or []
        if not isinstance(media, list) or not isinstance(variables, list):
            raise PresetValidationError("media_registry and variables must be lists")

        return cls(
            model=data.get("model") or ModelName.GEMINI_25_FLASH_IMAGE,
            aspect_ratio=data.get("aspect_ratio") or AspectRatio.SQUARE,
            media_registry=tuple(MediaEntry.from_dict(item) for item in media),
            variables=tuple(variable_from_dict(item) for item in variables),
            template=data.get("template") or "",
        )


@dataclass(frozen=True)
class Preset:
    """
    A named preset with a working draft and the last published snapshot.

    ``draft_version`` starts at 1 and grows with every committed draft edit.
    ``published_version`` is the draft version that was current at the last
    publish, or None if the preset was never published.
    """
    name: str
    draft: PresetConfig = field(default_factory=PresetConfig)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    published: Optional[PresetConfig] = None
    draft_version: int = 1
    published_version: Optional[int] = None
    published_at: Optional[str] = None
    status: PresetStatus = PresetStatus.ACTIVE
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise PresetValidationError("Preset name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())
        object.__setattr__(self, "status", _coerce_enum(PresetStatus, self.status, "status"))
        if not isinstance(self.draft_version, int) or self.draft_version < 1:
            raise PresetValidationError("draft_version must be a positive integer")
        if (self.published is None) != (self.published_version is None):
            raise PresetValidationError("published and published_version must be set together")

    @property
    def has_unpublished_changes(self) -> bool:
        return self.draft_version != self.published_version

    @property
    def is_deleted(self) -> bool:
        return self.status == PresetStatus.DELETED

    def replace(self, **changes) -> "Preset":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted document shape"""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "draft": self.draft.to_dict(),
            "published": self.published.to_dict() if self.published is not None else None,
            "draft_version": self.draft_version,
            "published_version": self.published_version,
            "published_at": self.published_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Preset":
        """
        Create a Preset from its persisted document.

        Raises:
            PresetValidationError: If required fields are missing or invalid
        """
        if not data or not isinstance(data, dict):
            raise PresetValidationError("Preset data must be a non-empty object")

        name = data.get("name")
        if not name:
            raise PresetValidationError("Missing required field: name")

        published = data.get("published")
        kwargs = {
            "name": name,
            "draft": PresetConfig.from_dict(data.get("draft") or {}),
            "published": PresetConfig.from_dict(published) if published is not None else None,
            "draft_version": data.get("draft_version", 1),
            "published_version": data.get("published_version"),
            "published_at": data.get("published_at"),
            "status": data.get("status") or PresetStatus.ACTIVE,
        }
        for key in ("id", "created_at", "updated_at"):
            if data.get(key):
                kwargs[key] = data[key]
        return cls(**kwargs)


def parse_inputs(raw_inputs: Optional[Dict[str, Any]]) -> Dict[str, RuntimeValue]:
    """
    Convert JSON-style inputs into runtime values.

    Strings stay text values, objects carrying an ``asset_ref`` become
    ImageInput, and ``None`` entries are dropped (absent input).

    Raises:
        PresetValidationError: If an input has an unsupported shape
    """
    inputs: Dict[str, RuntimeValue] = {}
    for name, value in (raw_inputs or {}).items():
        if value is None:
            continue
        if isinstance(value, (str, ImageInput)):
            inputs[name] = value
        elif isinstance(value, dict):
            inputs[name] = ImageInput.from_dict(value)
        else:
            raise PresetValidationError(f"Input '{name}' must be a string or an image object")
    return inputs
