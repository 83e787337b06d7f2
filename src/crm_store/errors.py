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
Error taxonomy for the customer record store.

Tier adapters raise these; the hybrid store decides per operation whether
a failure is absorbed (fallback to the other tier) or surfaced to the caller.
"""


class StoreError(Exception):
    """Base class for all storage tier errors."""

    pass


class StoreUnavailable(StoreError):
    """The primary tier connection could not be opened."""

    pass


class ReadFailure(StoreError):
    """A primary tier read failed after the connection was established."""

    pass


class WriteFailure(StoreError):
    """A primary tier write failed after the connection was established."""

    pass


class DuplicateRecord(WriteFailure):
    """Insert-only add hit an id that already exists."""

    def __init__(self, record_id: str):
        super().__init__(f"Record already exists: {record_id}")
        self.record_id = record_id


class QuotaExceeded(StoreError):
    """The secondary tier hit its capacity quota."""

    def __init__(self, message: str, required_bytes: int | None = None, quota_bytes: int | None = None):
        super().__init__(message)
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes


class SerializationFailure(StoreError):
    """Persisted state could not be decoded into customer records."""

    pass


class PersistenceFailure(WriteFailure):
    """
    Both tiers refused a write.

    Raised by the hybrid store when the primary attempt and the secondary
    fallback have both failed, so the record was not persisted anywhere.
    """

    def __init__(self, record_id: str, primary_error: StoreError, secondary_error: StoreError):
        super().__init__(
            f"Could not persist record {record_id}: "
            f"primary: {primary_error}; secondary: {secondary_error}"
        )
        self.record_id = record_id
        self.primary_error = primary_error
        self.secondary_error = secondary_error


__all__ = [
    "StoreError",
    "StoreUnavailable",
    "ReadFailure",
    "WriteFailure",
    "DuplicateRecord",
    "QuotaExceeded",
    "SerializationFailure",
    "PersistenceFailure",
]
