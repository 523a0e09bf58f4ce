"""
Prompt Resolution

Turns a preset configuration plus guest-supplied inputs into the final
prompt text and the ordered list of images to send to the generation
model. Variable values can expand into template text that references
further variables and media, so resolution walks those expansions on an
explicit frame stack that doubles as the guard against cycles.

Resolution is a pure function of (config, inputs). It stops at the first
failure; a half-built prompt is never returned. The editor preview uses the
same walk in a lenient mode that substitutes readable placeholders instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .preset import (ImageInput, ImageVariable, Preset, PresetConfig,
                     RuntimeValue, TextVariable)
from .template import MEDIA, VAR, Literal, Reference, Token, parse

logger = logging.getLogger(__name__)


class ResolveError(Exception):
    """Base exception for resolution failures"""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)


class DanglingReferenceError(ResolveError):
    """Raised when a reference names a variable or media entry that does not exist"""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        super().__init__(name, f"Undefined {'variable' if kind == VAR else 'media entry'}: @{{{kind}:{name}}}")


class CyclicReferenceError(ResolveError):
    """Raised when a variable's expansion leads back to the variable itself"""

    def __init__(self, name: str, path: List[str]):
        self.path = list(path)
        super().__init__(name, f"Circular reference detected: {' -> '.join(self.path + [name])}")


class MissingRequiredInputError(ResolveError):
    """Raised when a required variable has neither an input nor a default"""

    def __init__(self, name: str):
        super().__init__(name, f"Value required for: {name}")


class UnmappedInputValueError(ResolveError):
    """Raised when a value-mapped variable receives a value outside its mappings"""

    def __init__(self, name: str, value: str):
        self.value = value
        super().__init__(name, f"Value '{value}' is not an allowed option for: {name}")


class InvalidInputTypeError(ResolveError):
    """Raised when a text value is given for an image variable or the reverse"""

    def __init__(self, name: str, expected: str):
        self.expected = expected
        super().__init__(name, f"Input for '{name}' must be {expected}")


class PresetNotPublishedError(ResolveError):
    """Raised when a live run targets a preset with no published configuration"""

    def __init__(self, preset_id: str, reason: str = "has not been published"):
        super().__init__(preset_id, f"Preset '{preset_id}' {reason}")


@dataclass
class ResolvedOutput:
    """Material handed to the image generation request"""
    prompt: str
    images: List[Any] = field(default_factory=list)
    model: str = ""
    aspect_ratio: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "images": list(self.images),
            "model": self.model,
            "aspect_ratio": self.aspect_ratio,
        }


@dataclass
class PreviewResult:
    """Editor preview of a resolution, with placeholders for anything unresolved"""
    text: str
    images: List[Any] = field(default_factory=list)
    unresolved: List[Reference] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def character_count(self) -> int:
        return len(self.text)

    @property
    def has_unresolved(self) -> bool:
        return bool(self.unresolved)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "character_count": self.character_count,
            "images": list(self.images),
            "has_unresolved": self.has_unresolved,
            "unresolved": [{"kind": ref.kind, "name": ref.name} for ref in self.unresolved],
            "errors": list(self.errors),
        }


def _is_absent(value: Optional[RuntimeValue]) -> bool:
    return value is None or value == ""


class _Resolution:
    """
    One walk over a configuration's template.

    Expansions are walked with an explicit frame stack rather than Python
    recursion, so nesting depth is bounded only by the catalog size. In
    strict mode every failure raises. In preview mode failures append a
    placeholder to the text and are recorded instead.
    """

    def __init__(self, config: PresetConfig, inputs: Dict[str, RuntimeValue], strict: bool = True):
        self.config = config
        self.inputs = inputs
        self.strict = strict
        self.parts: List[str] = []
        self.images: List[Any] = []
        self.unresolved: List[Reference] = []
        self.errors: List[str] = []
        self.stack: List[str] = []

    def run(self) -> None:
        self.walk(parse(self.config.template))

    def walk(self, tokens: List[Token]) -> None:
        # Each frame is (remaining tokens, variable whose expansion they are).
        frames: List[Tuple[Iterator[Token], Optional[str]]] = [(iter(tokens), None)]
        while frames:
            remaining, owner = frames[-1]
            token = next(remaining, None)
            if token is None:
                frames.pop()
                if owner is not None:
                    self.stack.pop()
                continue

            if isinstance(token, Literal):
                self.parts.append(token.text)
            elif token.kind == MEDIA:
                self._resolve_media(token)
            else:
                expansion = self._resolve_variable(token)
                if expansion is not None:
                    self.stack.append(token.name)
                    frames.append((iter(expansion), token.name))

    def _fail(self, error: ResolveError, placeholder: str) -> None:
        if self.strict:
            raise error
        self.parts.append(placeholder)
        self.errors.append(str(error))

    def _add_image(self, handle: Any) -> None:
        # First occurrence wins the position.
        if handle not in self.images:
            self.images.append(handle)

    def _resolve_media(self, reference: Reference) -> None:
        entry = self.config.get_media(reference.name)
        if entry is None:
            self.unresolved.append(reference)
            self._fail(DanglingReferenceError(MEDIA, reference.name), f"[Media: {reference.name} (missing)]")
            return
        if not self.strict:
            self.parts.append(f"[Media: {reference.name}]")
        self._add_image(entry.asset_ref)

    def _resolve_variable(self, reference: Reference) -> Optional[List[Token]]:
        """
        Handle one variable reference.

        Returns the tokens of a template expansion still to be walked, or
        None when the reference was fully handled here.
        """
        name = reference.name
        variable = self.config.get_variable(name)
        if variable is None:
            self.unresolved.append(reference)
            self._fail(DanglingReferenceError(VAR, name), f"[Undefined: {name}]")
            return None

        if name in self.stack:
            self._fail(CyclicReferenceError(name, self.stack), f"[Cycle: {name}]")
            return None

        if isinstance(variable, ImageVariable):
            self._resolve_image_variable(variable)
            return None
        return self._expand_text_variable(variable)

    def _resolve_image_variable(self, variable: ImageVariable) -> None:
        value = self.inputs.get(variable.name)
        if _is_absent(value):
            if variable.required:
                self._fail(MissingRequiredInputError(variable.name), f"[Image: {variable.name} (missing)]")
            return
        if not isinstance(value, ImageInput):
            self._fail(InvalidInputTypeError(variable.name, "an image"), f"[Invalid input: {variable.name}]")
            return
        if not self.strict:
            self.parts.append(f"[Image: {variable.name}]")
        self._add_image(value.asset_ref)

    def _expand_text_variable(self, variable: TextVariable) -> Optional[List[Token]]:
        value = self.inputs.get(variable.name)

        if _is_absent(value):
            if variable.default_value:
                return parse(variable.default_value)
            if variable.required:
                self._fail(MissingRequiredInputError(variable.name), f"[No value: {variable.name}]")
            return None

        if not isinstance(value, str):
            self._fail(InvalidInputTypeError(variable.name, "text"), f"[Invalid input: {variable.name}]")
            return None

        if not variable.value_map:
            # Guest free text is taken verbatim, never parsed for references.
            self.parts.append(value)
            return None

        mapping = variable.find_mapping(value)
        if mapping is None:
            self._fail(UnmappedInputValueError(variable.name, value), f"[No mapping: {variable.name}]")
            return None
        return parse(mapping.text)


def resolve(config: PresetConfig, inputs: Optional[Dict[str, RuntimeValue]] = None) -> ResolvedOutput:
    """
    Resolve a configuration into a final prompt and image list.

    Walks the template in order. Text is appended as-is, media references
    contribute their asset handle to the image list, and variable references
    expand to their effective value: a mapped text, the raw free-text input,
    the default value, or nothing for an optional variable left empty.
    Mapped texts and default values are themselves templates and are
    expanded in place, to any depth.

    Args:
        config: Configuration to resolve; live runs pass the published one
        inputs: Runtime values keyed by variable name; ``str`` for text
            variables, ImageInput for image variables

    Returns:
        ResolvedOutput with the prompt, images in first-occurrence order,
        and the model and aspect ratio passed through unchanged

    Raises:
        DanglingReferenceError: A reference names something undeclared
        CyclicReferenceError: An expansion references a variable already
            being expanded
        MissingRequiredInputError: A required variable has no input and no default
        UnmappedInputValueError: A value-mapped variable got an unknown value
        InvalidInputTypeError: An input has the wrong type for its variable

    Example:
        >>> from .preset import TextVariable
        >>> config = PresetConfig(
        ...     variables=(TextVariable("mood", default_value="joyful"),),
        ...     template="A @{var:mood} portrait",
        ... )
        >>> resolve(config).prompt
        'A joyful portrait'
    """
    resolution = _Resolution(config, dict(inputs or {}), strict=True)
    resolution.run()
    return ResolvedOutput(
        prompt="".join(resolution.parts),
        images=resolution.images,
        model=config.model.value,
        aspect_ratio=config.aspect_ratio.value,
    )


def resolve_published(preset: Preset, inputs: Optional[Dict[str, RuntimeValue]] = None) -> ResolvedOutput:
    """
    Resolve the published configuration of a preset for a live generation run.

    The draft is never consulted here, so in-progress edits cannot leak into
    a guest's run.

    Raises:
        PresetNotPublishedError: If the preset is deleted or was never published
        ResolveError: Any failure raised by ``resolve``
    """
    if preset.is_deleted:
        raise PresetNotPublishedError(preset.id, "has been deleted")
    if preset.published is None:
        raise PresetNotPublishedError(preset.id)

    output = resolve(preset.published, inputs)
    logger.debug(f"Resolved preset '{preset.id}' v{preset.published_version}: {len(output.images)} image(s)")
    return output


def render_preview(config: PresetConfig, inputs: Optional[Dict[str, RuntimeValue]] = None) -> PreviewResult:
    """
    Render a readable preview for the editor without ever failing.

    Media show as ``[Media: name]`` and supplied images as ``[Image: name]``;
    problems become placeholders such as ``[Undefined: name]`` or
    ``[No value: name]`` and are listed in the result.
    """
    resolution = _Resolution(config, dict(inputs or {}), strict=False)
    resolution.run()
    return PreviewResult(
        text="".join(resolution.parts),
        images=resolution.images,
        unresolved=resolution.unresolved,
        errors=resolution.errors,
    )
