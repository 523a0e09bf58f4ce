"""
Catalog Editing Operations

Pure functions that return an edited copy of a PresetConfig. They are the
mutators handed to the version manager's ``update_draft``; each one gates
new names through the identifier validator and keeps template references in
step with renames and deletions.
"""

import logging
import dataclasses
from typing import Optional

from .identifiers import UnknownNameError, validate_identifier
from .preset import MediaEntry, PresetConfig, TextVariable, ValueMapping, Variable
from .template import MEDIA, VAR, remove_references, rename_references

logger = logging.getLogger(__name__)


def add_variable(config: PresetConfig, variable: Variable) -> PresetConfig:
    """
    Append a variable to the catalog.

    Raises:
        InvalidFormatError: If the name is not a valid identifier
        DuplicateNameError: If a variable or media entry already uses the name
    """
    validate_identifier(variable.name, set(config.names()))
    return config.replace(variables=config.variables + (variable,))


def add_media_entry(config: PresetConfig, entry: MediaEntry) -> PresetConfig:
    """
    Append a media entry to the registry.

    Raises:
        InvalidFormatError: If the name is not a valid identifier
        DuplicateNameError: If a variable or media entry already uses the name
    """
    validate_identifier(entry.name, set(config.names()))
    return config.replace(media_registry=config.media_registry + (entry,))


def update_variable(config: PresetConfig, variable: Variable) -> PresetConfig:
    """Replace the variable with the same name (label, default, value map, type)"""
    if config.get_variable(variable.name) is None:
        raise UnknownNameError(variable.name)
    variables = tuple(variable if v.name == variable.name else v for v in config.variables)
    return config.replace(variables=variables)


def set_template(config: PresetConfig, template: str) -> PresetConfig:
    return config.replace(template=template or "")


def set_generation_settings(config: PresetConfig, model=None, aspect_ratio=None) -> PresetConfig:
    changes = {}
    if model is not None:
        changes["model"] = model
    if aspect_ratio is not None:
        changes["aspect_ratio"] = aspect_ratio
    return config.replace(**changes)


def _rewrite_texts(config: PresetConfig, rewrite) -> PresetConfig:
    """Apply ``rewrite`` to the template and every text variable's templates"""
    variables = []
    for variable in config.variables:
        if isinstance(variable, TextVariable):
            value_map = tuple(
                ValueMapping(value=mapping.value, text=rewrite(mapping.text))
                for mapping in variable.value_map
            )
            default_value = rewrite(variable.default_value) if variable.default_value else variable.default_value
            variable = dataclasses.replace(variable, default_value=default_value, value_map=value_map)
        variables.append(variable)
    return config.replace(template=rewrite(config.template), variables=tuple(variables))


def rename_identifier(config: PresetConfig, old_name: str, new_name: str) -> PresetConfig:
    """
    Rename a variable or media entry and rewrite every reference to it.

    Args:
        config: Configuration to edit
        old_name: Current name
        new_name: Replacement name, checked against the rest of the namespace

    Raises:
        UnknownNameError: If ``old_name`` is not declared
        InvalidFormatError: If ``new_name`` is not a valid identifier
        DuplicateNameError: If ``new_name`` is already used elsewhere
    """
    if old_name == new_name:
        return config

    others = [name for name in config.names() if name != old_name]
    variable = config.get_variable(old_name)
    if variable is not None:
        validate_identifier(new_name, set(others))
        renamed = dataclasses.replace(variable, name=new_name, label=_relabel(variable.label, old_name, new_name))
        config = config.replace(variables=tuple(renamed if v.name == old_name else v for v in config.variables))
        kind = VAR
    else:
        entry = config.get_media(old_name)
        if entry is None:
            raise UnknownNameError(old_name)
        validate_identifier(new_name, set(others))
        renamed_entry = dataclasses.replace(entry, name=new_name)
        config = config.replace(media_registry=tuple(renamed_entry if m.name == old_name else m for m in config.media_registry))
        kind = MEDIA

    logger.info(f"Renamed {kind} '{old_name}' to '{new_name}'")
    return _rewrite_texts(config, lambda text: rename_references(text, kind, old_name, new_name))


def remove_identifier(config: PresetConfig, name: str, cascade: bool = True) -> PresetConfig:
    """
    Remove a variable or media entry.

    With ``cascade`` (the default) every reference to the removed name is
    dropped from the template and from mapping texts, so the draft stays
    free of dangling references.

    Raises:
        UnknownNameError: If ``name`` is not declared
    """
    if config.get_variable(name) is not None:
        config = config.replace(variables=tuple(v for v in config.variables if v.name != name))
        kind = VAR
    elif config.get_media(name) is not None:
        config = config.replace(media_registry=tuple(m for m in config.media_registry if m.name != name))
        kind = MEDIA
    else:
        raise UnknownNameError(name)

    if cascade:
        config = _rewrite_texts(config, lambda text: remove_references(text, kind, name))
        logger.info(f"Removed {kind} '{name}' and its references")
    return config


def _relabel(label: Optional[str], old_name: str, new_name: str) -> str:
    # Labels that were defaulted from the name follow the rename.
    return new_name if not label or label == old_name else label
