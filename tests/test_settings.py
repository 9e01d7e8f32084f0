import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from item_collections.settings import CollectionSettings


@pytest.fixture(autouse=True)
def clear_test_env():
    """Clear all item collection environment variables before each test."""
    with patch.dict(os.environ, {}, clear=False):
        for key in [key for key in os.environ if key.startswith("ITEMCOL_")]:
            del os.environ[key]
        yield


def test_defaults():
    config = CollectionSettings(_env_file=None)

    assert config.api_base_url == "https://api.dailymotion.com"
    assert config.access_token is None
    assert config.page_size == 25
    assert config.delivery == "immediate"
    assert "playlist/videos" in config.reorderable_connections
    assert "user/favorites" in config.editable_connections


def test_environment_overrides():
    env = {
        "ITEMCOL_API_BASE_URL": "http://localhost:8080",
        "ITEMCOL_PAGE_SIZE": "50",
        "ITEMCOL_EDITABLE_CONNECTIONS": '["user/watchlater"]',
        "ITEMCOL_DELIVERY": "loop",
    }
    with patch.dict(os.environ, env):
        config = CollectionSettings(_env_file=None)

    assert config.api_base_url == "http://localhost:8080"
    assert config.page_size == 50
    assert config.editable_connections == ["user/watchlater"]
    assert config.delivery == "loop"


def test_dotenv_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("ITEMCOL_ACCESS_TOKEN=secret\nITEMCOL_FIELD_CACHE_TTL=0\n")

    config = CollectionSettings(_env_file=env_file)

    assert config.access_token == "secret"
    assert config.field_cache_ttl == 0


def test_invalid_page_size_rejected():
    with patch.dict(os.environ, {"ITEMCOL_PAGE_SIZE": "500"}):
        with pytest.raises(ValidationError):
            CollectionSettings(_env_file=None)
