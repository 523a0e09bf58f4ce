"""
Unit tests for JSON Schema validation of stored documents.
"""

import pytest

from preset_engine.core.preset import Preset
from preset_engine.core.schema import SchemaError, validate_config_document, validate_preset_document


class TestPresetDocuments:
    """Test full preset documents."""

    def test_serialized_preset_is_valid(self, photo_booth_config):
        preset = Preset(name="Booth", draft=photo_booth_config, published=photo_booth_config, published_version=1)
        validate_preset_document(preset.to_dict())

    def test_missing_required_field(self, mood_config):
        document = Preset(name="Booth", draft=mood_config).to_dict()
        del document["draft_version"]
        with pytest.raises(SchemaError):
            validate_preset_document(document)

    def test_error_path_points_at_field(self, mood_config):
        document = Preset(name="Booth", draft=mood_config).to_dict()
        document["draft"]["aspect_ratio"] = "4:3"
        with pytest.raises(SchemaError) as exc_info:
            validate_preset_document(document)
        assert exc_info.value.path == "draft.aspect_ratio"


class TestConfigDocuments:
    """Test standalone configuration documents."""

    def test_minimal_config(self):
        validate_config_document({"template": "hello"})

    def test_value_mapping_too_long(self):
        document = {
            "variables": [
                {"type": "text", "name": "era", "value_map": [{"value": "x" * 101, "text": ""}]},
            ],
        }
        with pytest.raises(SchemaError):
            validate_config_document(document)

    def test_malformed_names_pass_schema(self):
        """Name rules belong to the validator, so odd names still load."""
        validate_config_document({"variables": [{"type": "text", "name": "bad name"}]})

    def test_media_needs_asset_ref(self):
        with pytest.raises(SchemaError):
            validate_config_document({"media_registry": [{"name": "poster", "asset_ref": None}]})
