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
Storage Factory for the customer record store.

Builds the hybrid store from configuration.
"""

import logging
from typing import TYPE_CHECKING, Optional

from .fallback import FallbackCustomerStore, FileBlobStorage
from .hybrid import HybridCustomerStore
from .sqlite_store import SqliteCustomerStore

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


def create_store_instance(settings: Optional["Settings"] = None) -> HybridCustomerStore:
    """
    Create a hybrid store based on configuration.

    Nothing is opened here: the primary connection is opened lazily by the
    first operation that needs it.

    Args:
        settings: Explicit settings; the process-wide settings when omitted

    Returns:
        A HybridCustomerStore over SQLite and file-backed fallback storage
    """
    if settings is None:
        from ..config import get_settings
        settings = get_settings()

    primary = SqliteCustomerStore(
        db_path=settings.paths.sqlite_path,
        open_timeout=settings.primary.open_timeout,
        enabled=settings.primary.enabled,
    )
    if not settings.primary.enabled:
        logger.warning("Primary storage disabled, running on fallback storage only")

    secondary = FallbackCustomerStore(
        FileBlobStorage(settings.paths.fallback_dir, quota_bytes=settings.secondary.quota_bytes),
        storage_key=settings.secondary.storage_key,
        marker=settings.secondary.degradation_marker,
    )

    logger.info(f"Created hybrid customer store (primary={settings.paths.sqlite_path})")
    return HybridCustomerStore(primary, secondary)
