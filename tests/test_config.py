import pytest

from config import DEFAULT_MODEL, Settings, load_settings
from errors import ConfigurationError


def test_defaults():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.model == DEFAULT_MODEL
    assert settings.max_width == 1600
    assert settings.jpeg_quality == 80
    assert not settings.has_api_key


def test_values_from_env():
    settings = load_settings({
        "OPENAI_API_KEY": " sk-abc ",
        "BIZCARD_MODEL": "gpt-4o",
        "BIZCARD_MAX_WIDTH": "1200",
        "BIZCARD_JPEG_QUALITY": "70",
        "BIZCARD_TIMEOUT": "12.5",
        "BIZCARD_LOG_LEVEL": "debug",
    })
    assert settings.api_key == "sk-abc"
    assert settings.model == "gpt-4o"
    assert (settings.max_width, settings.jpeg_quality, settings.timeout) == (1200, 70, 12.5)
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"BIZCARD_MAX_WIDTH": "wide"},
        {"BIZCARD_MAX_WIDTH": "0"},
        {"BIZCARD_JPEG_QUALITY": "150"},
        {"BIZCARD_TIMEOUT": "-1"},
    ],
)
def test_bad_numbers_are_rejected(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


def test_with_api_key():
    settings = load_settings({})
    assert settings.with_api_key(" sk-new ").api_key == "sk-new"
    assert settings.with_api_key("   ").api_key is None
    assert settings.api_key is None
