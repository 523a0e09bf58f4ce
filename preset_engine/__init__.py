"""
Preset Prompt Engine

Reusable AI image-generation presets: a catalog of named variables and
reference images, a prompt template that references them, and a
draft/publish lifecycle so live generation runs only ever see a validated
configuration.

This package includes:
- Template parsing with typed ``@{var:name}`` / ``@{media:name}`` references
- Catalog validation, including cycle detection through value mappings
- Deterministic prompt and image-list resolution
- Draft/publish versioning with transactional JSON storage
- An aiohttp REST API for editors and generation services
"""

# =============================================================================
# Package Metadata
# =============================================================================

__version__ = "0.1.0"
__description__ = "Template resolution and draft/publish versioning for AI image presets"

# =============================================================================
# Local/Project Imports
# =============================================================================

from .core import (
    Preset,
    PresetConfig,
    ResolvedOutput,
    PresetStorage,
    parse,
    serialize,
    validate_config,
    resolve,
    resolve_published,
    render_preview,
    publish,
)

__all__ = [
    "Preset",
    "PresetConfig",
    "ResolvedOutput",
    "PresetStorage",
    "parse",
    "serialize",
    "validate_config",
    "resolve",
    "resolve_published",
    "render_preview",
    "publish",
]
