"""
JSON Schema checks for persisted preset documents.

The store and the HTTP layer validate raw documents here before building
model objects, so malformed JSON is rejected with a path to the bad field.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import jsonschema

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "preset-schema.json")

_schema: Optional[Dict[str, Any]] = None


class SchemaError(Exception):
    """Raised when a document does not match the preset schema"""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


def load_schema() -> Dict[str, Any]:
    global _schema
    if _schema is None:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as schema_file:
            _schema = json.load(schema_file)
    return _schema


def _validate(document: Any, schema: Dict[str, Any]) -> None:
    try:
        jsonschema.validate(document, schema)
    except jsonschema.ValidationError as e:
        path = ".".join(str(part) for part in e.absolute_path)
        raise SchemaError(e.message, path)


def validate_preset_document(document: Any) -> None:
    """
    Validate a full stored Preset document.

    Raises:
        SchemaError: If the document does not match the schema
    """
    _validate(document, load_schema())


def validate_config_document(document: Any) -> None:
    """
    Validate a single configuration (draft or published) document.

    Raises:
        SchemaError: If the document does not match the config definition
    """
    schema = load_schema()
    _validate(document, {"$ref": "#/definitions/config", "definitions": schema["definitions"]})
