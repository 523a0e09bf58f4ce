"""
Unit tests for configuration validation and cycle detection.
"""

from preset_engine.core.preset import (
    ImageInput,
    ImageVariable,
    MediaEntry,
    PresetConfig,
    TextVariable,
    ValueMapping,
)
from preset_engine.core.template import MEDIA, VAR
from preset_engine.core.validation import (
    IssueKind,
    detect_cyclic_references,
    is_publishable,
    validate_config,
    validate_inputs,
)


def kinds(issues):
    return [issue.kind for issue in issues]


class TestValidateConfig:
    """Test structural checks."""

    def test_valid_config_has_no_issues(self, photo_booth_config, era_config, mood_config):
        assert validate_config(photo_booth_config) == []
        assert validate_config(era_config) == []
        assert validate_config(mood_config) == []

    def test_dangling_reference_in_template(self):
        issues = validate_config(PresetConfig(template="Hello @{var:ghost} and @{var:ghost}"))
        assert len(issues) == 1
        issue = issues[0]
        assert issue.kind is IssueKind.DANGLING_REFERENCE
        assert (issue.ref_kind, issue.name, issue.location) == (VAR, "ghost", "template")
        assert issue.message == "Undefined variable: @{var:ghost}"

    def test_dangling_media_in_mapping_text(self):
        config = PresetConfig(
            variables=(TextVariable("era", value_map=(ValueMapping("80s", "@{media:missing}"),)),),
            template="@{var:era}",
        )
        issues = validate_config(config)
        assert kinds(issues) == [IssueKind.DANGLING_REFERENCE]
        assert issues[0].ref_kind == MEDIA
        assert issues[0].location == "variables.era.value_map[80s]"

    def test_kind_mismatch_is_dangling(self):
        """A media entry cannot be referenced as a variable."""
        config = PresetConfig(
            media_registry=(MediaEntry("logo", "assets/logo.png"),),
            template="@{var:logo}",
        )
        assert kinds(validate_config(config)) == [IssueKind.DANGLING_REFERENCE]

    def test_duplicate_identifier_across_kinds(self):
        config = PresetConfig(
            media_registry=(MediaEntry("x", "assets/x.png"),),
            variables=(TextVariable("x"),),
        )
        issues = validate_config(config)
        assert kinds(issues) == [IssueKind.DUPLICATE_IDENTIFIER]
        assert issues[0].name == "x"

    def test_malformed_identifier_written_out_of_band(self):
        config = PresetConfig(variables=(TextVariable("bad name"),))
        assert kinds(validate_config(config)) == [IssueKind.MALFORMED_IDENTIFIER]

    def test_name_with_trailing_newline_is_malformed(self):
        config = PresetConfig(variables=(TextVariable("mood\n"),))
        assert kinds(validate_config(config)) == [IssueKind.MALFORMED_IDENTIFIER]

    def test_issue_order_is_stable(self):
        config = PresetConfig(
            media_registry=(MediaEntry("dup", "a"),),
            variables=(TextVariable("dup"), TextVariable("9lives")),
            template="@{var:ghost}",
        )
        assert kinds(validate_config(config)) == [
            IssueKind.DUPLICATE_IDENTIFIER,
            IssueKind.MALFORMED_IDENTIFIER,
            IssueKind.DANGLING_REFERENCE,
        ]

    def test_structural_issues_block_publishing(self):
        assert is_publishable(validate_config(PresetConfig(template="@{media:ghost}"))) is False
        assert is_publishable([]) is True


class TestCycleDetection:
    """Test advisory cycle detection through mapping texts."""

    def test_self_reference(self):
        config = PresetConfig(
            variables=(TextVariable("a", value_map=(ValueMapping("loop", "@{var:a}"),)),),
            template="@{var:a}",
        )
        issues = validate_config(config)
        assert kinds(issues) == [IssueKind.CYCLIC_REFERENCE]
        assert issues[0].message == "Circular reference detected: a -> a"

    def test_indirect_cycle_reported_once(self):
        config = PresetConfig(
            variables=(
                TextVariable("a", value_map=(ValueMapping("x", "@{var:b}"),)),
                TextVariable("b", default_value="@{var:a}"),
            ),
        )
        issues = detect_cyclic_references(config)
        assert len(issues) == 1
        assert issues[0].message == "Circular reference detected: a -> b -> a"

    def test_cycles_do_not_block_publishing(self):
        config = PresetConfig(
            variables=(TextVariable("a", value_map=(ValueMapping("loop", "@{var:a}"),)),),
        )
        assert is_publishable(validate_config(config)) is True

    def test_long_chain_without_cycle(self):
        depth = 2000
        variables = tuple(
            TextVariable(f"v{i}", default_value=f"@{{var:v{i + 1}}}") for i in range(depth)
        ) + (TextVariable(f"v{depth}", default_value="end"),)
        assert validate_config(PresetConfig(variables=variables, template="@{var:v0}")) == []

    def test_cycle_at_end_of_long_chain(self):
        depth = 2000
        variables = tuple(
            TextVariable(f"v{i}", default_value=f"@{{var:v{i + 1}}}") for i in range(depth)
        ) + (TextVariable(f"v{depth}", default_value=f"@{{var:v{depth - 1}}}"),)
        issues = detect_cyclic_references(PresetConfig(variables=variables))
        assert len(issues) == 1
        assert issues[0].message.endswith(f"v{depth - 1} -> v{depth} -> v{depth - 1}")


class TestValidateInputs:
    """Test resolution-time required input checks."""

    def test_missing_required_inputs(self, photo_booth_config, era_config):
        assert [issue.name for issue in validate_inputs(photo_booth_config, {})] == ["selfie"]
        assert [issue.name for issue in validate_inputs(era_config, {"era": ""})] == ["era"]

    def test_satisfied_inputs(self, photo_booth_config):
        assert validate_inputs(photo_booth_config, {"selfie": ImageInput("uploads/me.png")}) == []

    def test_default_satisfies_required_text(self):
        config = PresetConfig(variables=(TextVariable("mood", required=True, default_value="calm"),))
        assert validate_inputs(config) == []

    def test_text_value_does_not_satisfy_image(self):
        config = PresetConfig(variables=(ImageVariable("selfie", required=True),))
        issues = validate_inputs(config, {"selfie": "not an image"})
        assert kinds(issues) == [IssueKind.UNMAPPED_REQUIRED_VARIABLE]
