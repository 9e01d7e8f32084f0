"""
Versioned on-disk archive of an item collection.

The archive is a plain data representation, decoupled from the live
collection object: it is read and written whole, never patched.
"""

from datetime import datetime
import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from item_collections.models.source import SourceDescriptor, SourceKind
from item_collections.utils.errors import PersistenceError

ARCHIVE_FORMAT = "item-collection"
ARCHIVE_VERSION = 1


class CollectionArchive(BaseModel):
    """Snapshot of a collection's identity and cached window."""

    format: str = Field(default=ARCHIVE_FORMAT)
    version: int = Field(default=ARCHIVE_VERSION)
    type: str
    source: SourceDescriptor
    ids: list[str] = Field(default_factory=list)
    count_limit: int = Field(default=0, ge=0)
    estimated_total: int | None = Field(default=None, ge=0)
    editable: bool = False
    reorderable: bool = False
    next_offset: int = Field(default=0, ge=0)
    exhausted: bool = False
    saved_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    @model_validator(mode="after")
    def _check_capabilities(self) -> "CollectionArchive":
        if self.source.kind == SourceKind.QUERY and (self.editable or self.reorderable):
            raise ValueError("Query collections are read-only")
        return self

    def to_bytes(self) -> bytes:
        """Encode the archive as a UTF-8 JSON blob."""
        return self.model_dump_json(indent=2).encode("utf-8")

    @classmethod
    def from_bytes(cls, blob: bytes) -> "CollectionArchive":
        """
        Decode an archive blob.

        Raises:
            PersistenceError: If the blob is not an archive or has an
                incompatible version
        """
        try:
            data = json.loads(blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Archive is not valid JSON: {e}") from e

        if not isinstance(data, dict) or data.get("format") != ARCHIVE_FORMAT:
            raise PersistenceError("Blob is not an item collection archive")

        version = data.get("version")
        if version != ARCHIVE_VERSION:
            raise PersistenceError(
                f"Incompatible archive version: {version}",
                f"Expected version {ARCHIVE_VERSION}",
            )

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Malformed archive: {e}") from e

    def save(self, path: str | Path) -> None:
        """
        Write the archive to ``path`` atomically.

        Raises:
            PersistenceError: On I/O failure
        """
        target = Path(path)
        tmp_path = target.with_name(f".{target.name}.tmp")
        try:
            blob = self.to_bytes()
        except ValueError as e:
            raise PersistenceError(f"Cannot serialize archive: {e}") from e
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(blob)
            os.replace(tmp_path, target)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Cannot write archive {target}: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> "CollectionArchive":
        """
        Read an archive from ``path``.

        Raises:
            PersistenceError: If the file is missing, unreadable or not a
                compatible archive
        """
        source = Path(path)
        if not source.is_file():
            raise PersistenceError(f"Archive not found: {source}")
        try:
            blob = source.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Cannot read archive {source}: {e}") from e
        return cls.from_bytes(blob)
