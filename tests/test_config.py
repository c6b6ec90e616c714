from pydantic import ValidationError
import pytest

from asciiplayer.config import DEFAULT_CHARS, PlayerConfig, default_threshold


def test_defaults():
    config = PlayerConfig()
    assert config.chars == DEFAULT_CHARS
    assert config.step == 2
    assert config.invert is False
    assert config.luminance == "red"
    assert config.resolved_threshold == 229


def test_threshold_default_follows_palette():
    assert PlayerConfig(chars="@ ").resolved_threshold == 127
    assert default_threshold("@%# ") == 191


def test_explicit_threshold_wins():
    assert PlayerConfig(chars="@ ", threshold=255).resolved_threshold == 255


@pytest.mark.parametrize(
    "options",
    [{"step": 0}, {"chars": "@"}, {"threshold": 300}, {"luminance": "blue"}, {"chars": "@\n "}],
)
def test_invalid_values_rejected(options):
    with pytest.raises(ValidationError):
        PlayerConfig(**options)


def test_with_updates_validates():
    config = PlayerConfig()
    assert config.with_updates(step=5).step == 5
    with pytest.raises(ValidationError):
        config.with_updates(step=-1)


def test_from_yaml(tmp_path):
    path = tmp_path / "player.yaml"
    path.write_text("AsciiPlayer:\n  step: 4\n  chars: '#. '\n  invert: true\n", encoding="utf-8")

    config = PlayerConfig.from_yaml(path)

    assert config.step == 4
    assert config.chars == "#. "
    assert config.invert is True
    assert config.resolved_threshold == default_threshold("#. ")


def test_from_yaml_nested_keys(tmp_path):
    path = tmp_path / "app.yaml"
    path.write_text("app:\n  render:\n    step: 3\n", encoding="utf-8")

    assert PlayerConfig.from_yaml(path, ("app", "render")).step == 3


def test_from_yaml_missing_section(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("Other: {}\n", encoding="utf-8")
    with pytest.raises(KeyError):
        PlayerConfig.from_yaml(path)
