"""
Unit tests for catalog editing operations.
"""

import pytest

from preset_engine.core.editing import (
    add_media_entry,
    add_variable,
    remove_identifier,
    rename_identifier,
    set_generation_settings,
    set_template,
    update_variable,
)
from preset_engine.core.identifiers import DuplicateNameError, InvalidFormatError, UnknownNameError
from preset_engine.core.preset import (
    AspectRatio,
    ImageVariable,
    MediaEntry,
    PresetConfig,
    TextVariable,
    ValueMapping,
)
from preset_engine.core.validation import validate_config


class TestAddEntries:
    """Test declaring new variables and media entries."""

    def test_add_variable_and_media(self):
        config = add_variable(PresetConfig(), TextVariable("mood"))
        config = add_media_entry(config, MediaEntry("poster_ref", "assets/poster.png"))
        assert config.names() == ["mood", "poster_ref"]

    def test_namespace_shared_between_kinds(self):
        config = add_media_entry(PresetConfig(), MediaEntry("x", "assets/x.png"))
        with pytest.raises(DuplicateNameError):
            add_variable(config, TextVariable("x"))

    def test_invalid_name_rejected(self):
        with pytest.raises(InvalidFormatError):
            add_variable(PresetConfig(), ImageVariable("my photo"))

    def test_original_config_untouched(self):
        config = PresetConfig()
        add_variable(config, TextVariable("mood"))
        assert config.variables == ()


class TestUpdateEntries:
    """Test in-place style updates."""

    def test_update_variable(self, mood_config):
        config = update_variable(mood_config, TextVariable("mood", default_value="calm"))
        assert config.get_variable("mood").default_value == "calm"

    def test_update_unknown_variable(self, mood_config):
        with pytest.raises(UnknownNameError):
            update_variable(mood_config, TextVariable("ghost"))

    def test_set_template_and_settings(self, mood_config):
        config = set_template(mood_config, None)
        assert config.template == ""
        config = set_generation_settings(config, aspect_ratio="3:2")
        assert config.aspect_ratio is AspectRatio.LANDSCAPE
        assert config.model is mood_config.model


class TestRenameIdentifier:
    """Test renames rewrite every reference."""

    def test_rename_variable_everywhere(self):
        config = PresetConfig(
            variables=(
                TextVariable("mood", default_value="calm"),
                TextVariable("era", value_map=(ValueMapping("80s", "@{var:mood} synths"),)),
                TextVariable("tone", default_value="very @{var:mood}"),
            ),
            template="@{var:mood} / @{var:era}",
        )
        renamed = rename_identifier(config, "mood", "feeling")

        assert renamed.variable_names() == ["feeling", "era", "tone"]
        assert renamed.get_variable("feeling").label == "feeling"
        assert renamed.template == "@{var:feeling} / @{var:era}"
        assert renamed.get_variable("era").value_map[0].text == "@{var:feeling} synths"
        assert renamed.get_variable("tone").default_value == "very @{var:feeling}"
        assert validate_config(renamed) == []

    def test_rename_media_keeps_variable_refs(self):
        config = PresetConfig(
            media_registry=(MediaEntry("logo", "assets/logo.png"),),
            template="@{media:logo}",
        )
        renamed = rename_identifier(config, "logo", "brand")
        assert renamed.template == "@{media:brand}"
        assert renamed.get_media("brand").asset_ref == "assets/logo.png"

    def test_custom_label_survives(self):
        config = PresetConfig(variables=(TextVariable("mood", label="How do you feel?"),))
        assert rename_identifier(config, "mood", "feeling").get_variable("feeling").label == "How do you feel?"

    def test_rename_to_taken_name(self, photo_booth_config):
        with pytest.raises(DuplicateNameError):
            rename_identifier(photo_booth_config, "style", "poster_ref")

    def test_rename_unknown(self, mood_config):
        with pytest.raises(UnknownNameError):
            rename_identifier(mood_config, "ghost", "spirit")


class TestRemoveIdentifier:
    """Test removal with and without reference cleanup."""

    def test_cascade_removes_references(self, era_config):
        config = remove_identifier(era_config, "poster_ref")
        assert config.media_registry == ()
        assert config.get_variable("era").value_map[0].text == "retro synth colors, "
        assert validate_config(config) == []

    def test_without_cascade_leaves_dangling(self, era_config):
        config = remove_identifier(era_config, "poster_ref", cascade=False)
        issues = validate_config(config)
        assert [issue.name for issue in issues] == ["poster_ref"]

    def test_remove_unknown(self, mood_config):
        with pytest.raises(UnknownNameError):
            remove_identifier(mood_config, "ghost")
