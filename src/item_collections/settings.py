"""Configuration management using Pydantic Settings."""

from importlib.metadata import version as _pkg_version
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_version() -> str:
    try:
        return _pkg_version("item-collections")
    except Exception:
        return "0.0.0"


class CollectionSettings(BaseSettings):
    """Item collection settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ITEMCOL_",
        extra="ignore",
    )

    version: str = Field(default_factory=_get_version)

    # Remote API
    api_base_url: str = Field(default="https://api.dailymotion.com")
    access_token: str | None = Field(default=None)
    request_timeout: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)

    # Paging and caching
    page_size: int = Field(default=25, ge=1, le=100)
    field_cache_ttl: int = Field(default=300, ge=0)

    # Connection policy table, keyed "<owner_type>/<connection>"
    editable_connections: list[str] = Field(
        default_factory=lambda: [
            "user/favorites",
            "user/playlists",
            "user/videos",
            "playlist/videos",
        ]
    )
    reorderable_connections: list[str] = Field(
        default_factory=lambda: ["playlist/videos"]
    )

    # Callback delivery context
    delivery: Literal["immediate", "loop"] = Field(default="immediate")


settings = CollectionSettings()
