"""
Pydantic models describing where a collection's items come from.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from item_collections.settings import settings


class SourceKind(str, Enum):
    """Backing store of a collection."""

    LOCAL = "local"
    QUERY = "query"
    CONNECTION = "connection"


class ItemRef(BaseModel):
    """Reference to a single remote item."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    type: str = Field(..., min_length=1, description="Item type name (video, user, playlist)")
    id: str = Field(..., min_length=1, description="Item identifier")


class SourceDescriptor(BaseModel):
    """
    Immutable description of a collection's backing source.

    ``params`` carries the filter/sort parameters forwarded verbatim to the
    remote API; their meaning is up to the remote side.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: SourceKind
    params: dict[str, Any] = Field(default_factory=dict)
    connection: str | None = Field(
        default=None, description="Connection name (videos, playlists, favorites)"
    )
    owner_type: str | None = Field(default=None, description="Type of the owning item")
    owner_id: str | None = Field(default=None, description="Identifier of the owning item")

    @model_validator(mode="after")
    def _check_connection_fields(self) -> "SourceDescriptor":
        has_connection = bool(self.connection and self.owner_type and self.owner_id)
        if self.kind == SourceKind.CONNECTION and not has_connection:
            raise ValueError("connection sources need connection, owner_type and owner_id")
        if self.kind != SourceKind.CONNECTION and (
            self.connection or self.owner_type or self.owner_id
        ):
            raise ValueError(f"{self.kind.value} sources cannot name a connection")
        return self

    @classmethod
    def local(cls) -> "SourceDescriptor":
        return cls(kind=SourceKind.LOCAL)

    @classmethod
    def query(cls, params: dict[str, Any] | None = None) -> "SourceDescriptor":
        return cls(kind=SourceKind.QUERY, params=dict(params or {}))

    @classmethod
    def for_connection(
        cls,
        connection: str,
        owner: ItemRef,
        params: dict[str, Any] | None = None,
    ) -> "SourceDescriptor":
        return cls(
            kind=SourceKind.CONNECTION,
            params=dict(params or {}),
            connection=connection,
            owner_type=owner.type,
            owner_id=owner.id,
        )

    @property
    def is_remote(self) -> bool:
        return self.kind != SourceKind.LOCAL

    @property
    def connection_key(self) -> str | None:
        """Policy table key, ``"<owner_type>/<connection>"``."""
        if self.kind != SourceKind.CONNECTION:
            return None
        return f"{self.owner_type}/{self.connection}"


class Page(BaseModel):
    """One page of identifiers returned by a remote source."""

    identifiers: list[str] = Field(default_factory=list)
    total_estimate: int = Field(default=0, ge=0)
    has_more: bool = False


class ConnectionPolicy(BaseModel):
    """
    Which connections accept edits and reordering.

    Keys are ``"<owner_type>/<connection>"``. A reorderable connection that is
    not also editable is treated as read-only.
    """

    model_config = ConfigDict(frozen=True)

    editable: frozenset[str] = Field(default_factory=frozenset)
    reorderable: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def from_settings(cls) -> "ConnectionPolicy":
        return cls(
            editable=frozenset(settings.editable_connections),
            reorderable=frozenset(settings.reorderable_connections),
        )

    def can_edit(self, source: SourceDescriptor) -> bool:
        if source.kind == SourceKind.LOCAL:
            return True
        return source.connection_key in self.editable

    def can_reorder(self, source: SourceDescriptor) -> bool:
        if source.kind == SourceKind.LOCAL:
            return True
        return self.can_edit(source) and source.connection_key in self.reorderable
