"""
Test configuration and fixtures for the preset prompt engine tests.
"""
import pytest

from preset_engine.core.preset import (
    ImageVariable,
    MediaEntry,
    PresetConfig,
    TextVariable,
    ValueMapping,
)
from preset_engine.core.storage import PresetStorage


@pytest.fixture
def poster_ref():
    """Fixture providing the media entry used across scenarios."""
    return MediaEntry(name="poster_ref", asset_ref="assets/poster.png", display_url="https://cdn.example/poster.png")


@pytest.fixture
def mood_config():
    """Fixture providing a config with one defaulted free-text variable."""
    return PresetConfig(
        variables=(TextVariable("mood", default_value="joyful"),),
        template="A @{var:mood} portrait",
    )


@pytest.fixture
def era_config(poster_ref):
    """Fixture providing a config whose mapping text references a media entry."""
    return PresetConfig(
        media_registry=(poster_ref,),
        variables=(
            TextVariable(
                "era",
                required=True,
                value_map=(ValueMapping("80s", "retro synth colors, @{media:poster_ref}"),),
            ),
        ),
        template="@{var:era}",
    )


@pytest.fixture
def photo_booth_config(poster_ref):
    """Fixture providing a config that mixes media, image and text variables."""
    return PresetConfig(
        model="gemini-3-pro-image-preview",
        aspect_ratio="9:16",
        media_registry=(poster_ref,),
        variables=(
            ImageVariable("selfie", required=True),
            TextVariable(
                "style",
                value_map=(
                    ValueMapping("neon", "neon lights over @{media:poster_ref}"),
                    ValueMapping("plain", "a plain studio backdrop"),
                ),
                default_value="soft daylight",
            ),
            TextVariable("caption"),
        ),
        template="Portrait of @{var:selfie} with @{var:style}. @{var:caption}",
    )


@pytest.fixture
def storage(tmp_path):
    """Fixture providing a storage instance in a temporary directory."""
    return PresetStorage(str(tmp_path / "store"))
