# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Secondary (fallback) tier for the customer record store.

A synchronous, always-available key/value text storage with a hard size
quota, holding every record as one JSON list under a single well-known key.
When a write overflows the quota the record's heavy payload is dropped and
the write is retried exactly once.
"""

import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..errors import QuotaExceeded, ReadFailure, SerializationFailure, StoreError, WriteFailure
from ..models.customer import PAYLOAD_DROPPED_MARKER, CustomerRecord

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "fwp_crm_backup_data"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


def _entry_size(key: str, value_bytes: int) -> int:
    return len(key.encode("utf-8")) + value_bytes


class BlobStorage(ABC):
    """
    Quota-bounded key/value text storage.

    The quota covers the UTF-8 size of every stored key and value. A write
    that would take the total past the quota raises QuotaExceeded and leaves
    the previous value in place.
    """

    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        if quota_bytes <= 0:
            raise ValueError(f"quota_bytes must be positive, got {quota_bytes}")
        self.quota_bytes = quota_bytes

    @abstractmethod
    def keys(self) -> List[str]:
        pass

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def _delete(self, key: str) -> None:
        pass

    def _size(self, key: str) -> Optional[int]:
        value = self._read(key)
        return None if value is None else len(value.encode("utf-8"))

    def get_item(self, key: str) -> Optional[str]:
        return self._read(key)

    def set_item(self, key: str, value: str) -> None:
        current = self._size(key)
        used_by_others = self.usage_bytes() - (_entry_size(key, current) if current is not None else 0)
        required = used_by_others + _entry_size(key, len(value.encode("utf-8")))
        if required > self.quota_bytes:
            raise QuotaExceeded(
                f"Writing {key!r} needs {required} bytes, quota is {self.quota_bytes}",
                required_bytes=required,
                quota_bytes=self.quota_bytes,
            )
        self._write(key, value)

    def remove_item(self, key: str) -> None:
        self._delete(key)

    def usage_bytes(self) -> int:
        total = 0
        for key in self.keys():
            size = self._size(key)
            if size is not None:
                total += _entry_size(key, size)
        return total


class MemoryBlobStorage(BlobStorage):
    """In-process blob storage, lost when the process exits."""

    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self._items: Dict[str, str] = {}

    def keys(self) -> List[str]:
        return list(self._items)

    def _read(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def _write(self, key: str, value: str) -> None:
        self._items[key] = value

    def _delete(self, key: str) -> None:
        self._items.pop(key, None)


class FileBlobStorage(BlobStorage):
    """Blob storage keeping one UTF-8 file per key in a directory."""

    SUFFIX = ".blob"

    def __init__(self, directory: str, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> str:
        if not _VALID_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.directory, key + self.SUFFIX)

    def keys(self) -> List[str]:
        try:
            names = sorted(os.listdir(self.directory))
        except OSError as e:
            raise ReadFailure(f"Failed to list {self.directory}: {e}") from e
        return [name[: -len(self.SUFFIX)] for name in names if name.endswith(self.SUFFIX)]

    def _read(self, key: str) -> Optional[str]:
        try:
            with open(self._path(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise SerializationFailure(f"Blob {key!r} in {self.directory} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise ReadFailure(f"Failed to read {key!r} from {self.directory}: {e}") from e

    def _size(self, key: str) -> Optional[int]:
        # Blobs are written as UTF-8, so the file size is the value's byte size
        try:
            return os.path.getsize(self._path(key))
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ReadFailure(f"Failed to stat {key!r} in {self.directory}: {e}") from e

    def _write(self, key: str, value: str) -> None:
        # Write to a temp file first so a crash never leaves a half-written blob
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_path, self._path(key))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise WriteFailure(f"Failed to write {key!r} to {self.directory}: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise WriteFailure(f"Failed to remove {key!r} from {self.directory}: {e}") from e


class FallbackCustomerStore:
    """
    Secondary tier adapter.

    Reads never raise: a corrupt or unreadable blob is logged and treated as
    an empty list, because the primary tier may still hold good data.
    """

    def __init__(
        self,
        blob_storage: BlobStorage,
        storage_key: str = DEFAULT_STORAGE_KEY,
        marker: str = PAYLOAD_DROPPED_MARKER,
    ):
        self.blob_storage = blob_storage
        self.storage_key = storage_key
        self.marker = marker

    def _decode(self, raw: str) -> List[CustomerRecord]:
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise SerializationFailure(f"Fallback blob is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise SerializationFailure(f"Fallback blob is not a list: {type(data).__name__}")

        records: List[CustomerRecord] = []
        for position, entry in enumerate(data):
            try:
                records.append(CustomerRecord.from_wire(entry))
            except SerializationFailure as e:
                logger.warning(f"Skipping malformed fallback entry at position {position}: {e}")
        return records

    def _encode(self, records: List[CustomerRecord]) -> str:
        return json.dumps([r.to_wire() for r in records], ensure_ascii=False, separators=(",", ":"))

    def _persist(self, records: List[CustomerRecord]) -> None:
        self.blob_storage.set_item(self.storage_key, self._encode(records))

    @staticmethod
    def _index_of(records: List[CustomerRecord], record_id: str) -> Optional[int]:
        for index, record in enumerate(records):
            if record.id == record_id:
                return index
        return None

    def get_all(self) -> List[CustomerRecord]:
        """Return every record in the fallback blob, or [] if it is unreadable."""
        try:
            raw = self.blob_storage.get_item(self.storage_key)
            if not raw:
                return []
            return self._decode(raw)
        except SerializationFailure as e:
            logger.error(f"Fallback storage read error, treating as empty: {e}")
            return []
        except StoreError as e:
            logger.error(f"Fallback storage unreadable, treating as empty: {e}")
            return []

    def save(self, record: CustomerRecord) -> CustomerRecord:
        """
        Upsert a record by id and return the version actually persisted.

        On QuotaExceeded the record is replaced by a copy without its heavy
        payload and the write is retried once. If that also fails, or there
        is no payload to drop, QuotaExceeded propagates.
        """
        records = self.get_all()
        index = self._index_of(records, record.id)
        if index is None:
            records.append(record)
        else:
            record = record.preserving_created_at(records[index].created_at)
            records[index] = record

        try:
            self._persist(records)
            return record
        except QuotaExceeded as e:
            if not record.has_heavy_payload:
                logger.error(f"Fallback quota exceeded for {record.id} with no payload to drop: {e}")
                raise
            logger.warning(
                f"Fallback quota exceeded for {record.id}; dropping heavy payload to keep the record: {e}"
            )

        reduced = record.without_heavy_payload(self.marker)
        records[self._index_of(records, record.id)] = reduced
        try:
            self._persist(records)
        except QuotaExceeded as e:
            logger.error(f"Fallback quota still exceeded for {record.id} after dropping payload: {e}")
            raise
        logger.info(f"Stored {record.id} in fallback storage without its heavy payload")
        return reduced

    def delete(self, record_id: str) -> bool:
        """Remove a record. Returns False (and writes nothing) if it was absent."""
        records = self.get_all()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        self._persist(remaining)
        return True

    def clear(self) -> None:
        self.blob_storage.remove_item(self.storage_key)

    def stats(self) -> Dict[str, Any]:
        records = self.get_all()
        try:
            used = self.blob_storage.usage_bytes()
        except StoreError as e:
            logger.warning(f"Could not measure fallback storage usage: {e}")
            used = None
        return {
            "backend": "fallback",
            "total_customers": len(records),
            "degraded_customers": sum(1 for r in records if r.has_marker(self.marker)),
            "used_bytes": used,
            "quota_bytes": self.blob_storage.quota_bytes,
        }
