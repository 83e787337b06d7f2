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
Hybrid customer record store.

Single logical store backed by two independent tiers:
- SQLite as primary storage (larger capacity, asynchronous, may be unavailable)
- Quota-bounded key/value blob as secondary storage (synchronous, always there)
- Writes go to the primary first and fall back to the secondary on failure
- Reads always consult both tiers and merge them, primary copy winning
"""

import logging
from typing import Any, Dict, List

from ..errors import PersistenceFailure, StoreError
from ..models.customer import CustomerRecord
from .base import CustomerStorage
from .fallback import FallbackCustomerStore
from .reconcile import reconcile

logger = logging.getLogger(__name__)


class HybridCustomerStore:
    """
    Customer record store routing every mutation primary-first.

    Only the failure of the last available option for an operation reaches
    the caller:
    - reads never raise, a failing primary contributes nothing
    - add/update raise PersistenceFailure only when both tiers refused
    - delete/clear are attempted on both tiers and never raise StoreError

    Within one call the primary attempt always completes before the
    secondary is touched. Calls are not queued or serialized against each
    other; callers must not overlap writes.
    """

    def __init__(self, primary: CustomerStorage, secondary: FallbackCustomerStore):
        self.primary = primary
        self.secondary = secondary

    async def get_all_customers(self) -> List[CustomerRecord]:
        """Return every visible record, newest first. Never raises StoreError."""
        primary_records: List[CustomerRecord] = []
        try:
            primary_records = await self.primary.get_all()
        except StoreError as e:
            logger.warning(f"Primary read failed, relying on fallback storage: {e}")

        secondary_records = self.secondary.get_all()
        return reconcile(secondary_records, primary_records)

    async def add_customer(self, record: CustomerRecord) -> None:
        """
        Add a new record.

        The fallback tier is only written when the primary insert fails; a
        successful primary insert is authoritative on its own.
        """
        try:
            await self.primary.add(record)
            logger.debug(f"Added {record.id} to primary storage")
            return
        except StoreError as e:
            logger.error(f"Primary add failed for {record.id}, falling back: {e}")
            primary_error = e

        self._save_to_secondary(record, primary_error)

    async def update_customer(self, record: CustomerRecord) -> None:
        """Insert or replace a record, e.g. after attaching shipping details."""
        try:
            await self.primary.update(record)
            logger.debug(f"Updated {record.id} in primary storage")
            return
        except StoreError as e:
            logger.error(f"Primary update failed for {record.id}, falling back: {e}")
            primary_error = e

        self._save_to_secondary(record, primary_error)

    def _save_to_secondary(self, record: CustomerRecord, primary_error: StoreError) -> None:
        try:
            stored = self.secondary.save(record)
        except StoreError as e:
            logger.error(f"Fallback save failed for {record.id}; record was not persisted: {e}")
            raise PersistenceFailure(record.id, primary_error, e) from e

        if record.has_heavy_payload and not stored.has_heavy_payload:
            logger.warning(f"Record {record.id} saved to fallback storage without its heavy payload")
        else:
            logger.info(f"Record {record.id} saved to fallback storage")

    async def delete_customer(self, record_id: str) -> None:
        """
        Delete a record from both tiers.

        Both tiers are always attempted so neither keeps a ghost copy.
        Deleting an unknown id is a no-op.
        """
        try:
            await self.primary.delete(record_id)
        except StoreError as e:
            logger.warning(f"Primary delete failed for {record_id}: {e}")

        try:
            self.secondary.delete(record_id)
        except StoreError as e:
            logger.warning(f"Fallback delete failed for {record_id}: {e}")

    async def clear_all(self) -> None:
        """Wipe both tiers, best effort. Administrative use only."""
        try:
            await self.primary.clear()
        except StoreError as e:
            logger.warning(f"Primary clear failed: {e}")

        try:
            self.secondary.clear()
        except StoreError as e:
            logger.warning(f"Fallback clear failed: {e}")

        logger.info("Customer store cleared")

    async def get_stats(self) -> Dict[str, Any]:
        """Per-tier availability and usage."""
        primary_stats: Dict[str, Any] = {"backend": type(self.primary).__name__}
        try:
            primary_stats["total_customers"] = await self.primary.count()
            primary_stats["available"] = True
        except StoreError as e:
            primary_stats["available"] = False
            primary_stats["error"] = str(e)

        visible = await self.get_all_customers()
        return {
            "backend": "hybrid",
            "total_customers": len(visible),
            "completed_customers": sum(1 for r in visible if r.is_completed),
            "primary": primary_stats,
            "secondary": self.secondary.stats(),
        }
