from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
)

from .memory import CacheEntry

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class PersistedRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    data: bytes
    timestamp: float
    ttl: float = Field(ge=0)

    @field_validator("data", mode="before")
    @classmethod
    def decode_data(cls, value: object) -> bytes:
        if isinstance(value, bytes):
            return value
        if not isinstance(value, str):
            raise ValueError("data must be a base64 string")
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError("data is not valid base64") from exc

    @field_serializer("data")
    def encode_data(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> PersistedRecord:
        return cls(key=entry.key, data=entry.payload, timestamp=entry.stored_at, ttl=entry.ttl)

    def to_entry(self) -> CacheEntry:
        return CacheEntry(key=self.key, payload=self.data, stored_at=self.timestamp, ttl=self.ttl)


class DiskStore:
    """One JSON record per key, named by the SHA-256 of the key.

    Methods raise ``OSError`` on I/O failure and ``ValueError`` on unreadable
    records; the response cache decides how to degrade.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def read(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None

        record = self._parse(raw, path=path)
        if record.key != key:
            # Only reachable on a digest collision.
            logger.warning("disk_store key mismatch file=%s", path.name)
            return None
        return record.to_entry()

    def write(self, entry: CacheEntry) -> None:
        body = PersistedRecord.from_entry(entry).model_dump_json().encode("utf-8")
        path = self.path_for(entry.key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=RECORD_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(body)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def clear(self) -> int:
        removed = 0
        for path in self._record_paths():
            path.unlink(missing_ok=True)
            removed += 1
        return removed

    def sweep(self, now: float) -> int:
        removed = 0
        for path in self._record_paths():
            try:
                record = self._parse(path.read_bytes(), path=path)
            except FileNotFoundError:
                continue
            except ValueError:
                logger.warning("disk_store removing unreadable record file=%s", path.name)
                path.unlink(missing_ok=True)
                removed += 1
                continue

            if now - record.timestamp > record.ttl:
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    def path_for(self, key: str) -> Path:
        return self.directory / f"{self.digest(key)}{RECORD_SUFFIX}"

    @staticmethod
    def digest(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def _record_paths(self) -> list[Path]:
        return [
            path
            for path in self.directory.glob(f"*{RECORD_SUFFIX}")
            if not path.name.startswith(".")
        ]

    @staticmethod
    def _parse(raw: bytes, *, path: Path) -> PersistedRecord:
        try:
            return PersistedRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise ValueError(f"invalid cache record {path.name}") from exc
