"""
Prompt Template Tokenizer and Parser

Prompt templates are plain strings with embedded references of the form
``@{var:name}`` and ``@{media:name}``. This module converts between the raw
string (the persisted form) and an ordered token sequence (the editing and
resolution form).

Key Features:
- Single-pass, left-to-right tokenizer that never drops characters
- Lossless round trip: ``serialize(parse(s)) == s`` for every string
- Catalog-aware "smart paste" of informal ``@name`` shorthand
- Reference rewriting for rename and delete cascades
"""

import re
import logging
from dataclasses import dataclass
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

VAR = "var"
MEDIA = "media"
REFERENCE_KINDS = (VAR, MEDIA)

# Anchored at an '@' by the tokenizer; never searched across the buffer.
REFERENCE_PATTERN = re.compile(r"@\{(var|media):([A-Za-z_][A-Za-z0-9_]*)\}")
SHORTHAND_PATTERN = re.compile(r"(?<![A-Za-z0-9_])@([A-Za-z_][A-Za-z0-9_]*)")


class TemplateError(Exception):
    """Base exception for template operations"""
    pass


@dataclass(frozen=True)
class Literal:
    """A span of plain text"""
    text: str

    def to_raw(self) -> str:
        return self.text


@dataclass(frozen=True)
class Reference:
    """A typed reference to a variable or media entry"""
    kind: str
    name: str

    def __post_init__(self):
        if self.kind not in REFERENCE_KINDS:
            raise TemplateError(f"Unknown reference kind: {self.kind!r}")

    def to_raw(self) -> str:
        return f"@{{{self.kind}:{self.name}}}"

    def __str__(self) -> str:
        return self.to_raw()


Token = Union[Literal, Reference]


def _append_literal(tokens: List[Token], text: str) -> None:
    """Append text, merging with a preceding literal so spans stay canonical"""
    if not text:
        return
    if tokens and isinstance(tokens[-1], Literal):
        tokens[-1] = Literal(tokens[-1].text + text)
    else:
        tokens.append(Literal(text))


def parse(raw: str) -> List[Token]:
    """
    Split a raw template into literal and reference tokens.

    The scanner jumps from one '@' to the next and tries the reference
    grammar exactly there. A failed match emits the '@' as literal text and
    scanning resumes at the following character, so malformed references
    such as ``@{var:}`` or ``@{image:x}`` survive untouched.

    Args:
        raw: Raw template text

    Returns:
        Ordered token list; adjacent literals are merged

    Raises:
        TemplateError: If ``raw`` is not a string

    Example:
        >>> parse("A @{var:mood} portrait")
        [Literal(text='A '), Reference(kind='var', name='mood'), Literal(text=' portrait')]
    """
    if raw is None:
        return []
    if not isinstance(raw, str):
        raise TemplateError(f"Template must be a string, got {type(raw).__name__}")

    tokens: List[Token] = []
    pos = 0
    length = len(raw)

    while pos < length:
        at = raw.find("@", pos)
        if at < 0:
            _append_literal(tokens, raw[pos:])
            break

        _append_literal(tokens, raw[pos:at])
        match = REFERENCE_PATTERN.match(raw, at)
        if match:
            tokens.append(Reference(match.group(1), match.group(2)))
            pos = match.end()
        else:
            _append_literal(tokens, "@")
            pos = at + 1

    return tokens


def serialize(tokens: Iterable[Token]) -> str:
    """
    Join a token sequence back into its raw template string.

    Args:
        tokens: Literal and Reference tokens

    Returns:
        Raw template text

    Raises:
        TemplateError: If a token has an unsupported type
    """
    parts = []
    for token in tokens:
        if isinstance(token, (Literal, Reference)):
            parts.append(token.to_raw())
        else:
            raise TemplateError(f"Cannot serialize token of type {type(token).__name__}")
    return "".join(parts)


def extract_references(raw: str) -> List[Reference]:
    """Return every reference in ``raw`` in order of occurrence"""
    return [token for token in parse(raw) if isinstance(token, Reference)]


def smart_paste(text: str,
                variable_names: Iterable[str] = (),
                media_names: Iterable[str] = ()) -> List[Token]:
    """
    Convert pasted plain text into tokens, recognising ``@name`` shorthand.

    Strict ``@{kind:name}`` references are parsed as usual. Inside the
    remaining literal spans, ``@name`` becomes a variable reference when
    ``name`` is a declared variable, otherwise a media reference when it is
    a declared media entry. Unknown names and ``@`` signs glued to a
    preceding word (e-mail addresses) are kept as literal text.

    Args:
        text: Pasted text
        variable_names: Declared variable names
        media_names: Declared media entry names

    Returns:
        Token list ready to be spliced into the editor

    Example:
        >>> smart_paste("a @mood shot of @poster", ["mood"], ["poster"])
        [Literal(text='a '), Reference(kind='var', name='mood'), Literal(text=' shot of '), Reference(kind='media', name='poster')]
    """
    variables = set(variable_names)
    media = set(media_names)
    tokens: List[Token] = []

    for token in parse(text):
        if isinstance(token, Reference):
            tokens.append(token)
            continue

        last = 0
        for match in SHORTHAND_PATTERN.finditer(token.text):
            name = match.group(1)
            if name in variables:
                kind = VAR
            elif name in media:
                kind = MEDIA
            else:
                continue
            _append_literal(tokens, token.text[last:match.start()])
            tokens.append(Reference(kind, name))
            last = match.end()
        _append_literal(tokens, token.text[last:])

    return tokens


def rename_references(raw: str, kind: str, old_name: str, new_name: str) -> str:
    """
    Rewrite every ``@{kind:old_name}`` reference in ``raw`` to ``new_name``.

    Args:
        raw: Raw template text
        kind: Reference kind to rewrite
        old_name: Current name
        new_name: Replacement name

    Returns:
        Rewritten template text (unchanged when nothing matched)
    """
    tokens = parse(raw)
    rewritten: List[Token] = []
    for token in tokens:
        if isinstance(token, Reference) and token.kind == kind and token.name == old_name:
            rewritten.append(Reference(kind, new_name))
        else:
            rewritten.append(token)
    return serialize(rewritten)


def remove_references(raw: str, kind: str, name: str) -> str:
    """Drop every ``@{kind:name}`` reference from ``raw``, keeping the surrounding text"""
    kept: List[Token] = []
    for token in parse(raw):
        if isinstance(token, Reference) and token.kind == kind and token.name == name:
            continue
        if isinstance(token, Literal):
            _append_literal(kept, token.text)
        else:
            kept.append(token)
    return serialize(kept)


def references_of_kind(raw: str, kind: str) -> List[str]:
    """Names referenced with the given kind, first occurrence order, no repeats"""
    seen: List[str] = []
    for reference in extract_references(raw):
        if reference.kind == kind and reference.name not in seen:
            seen.append(reference.name)
    return seen

