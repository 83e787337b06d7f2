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
Storage tiers for the customer record store.

Provides:
- CustomerStorage: ABC for the asynchronous primary tier
- SqliteCustomerStore: SQLite primary tier
- FallbackCustomerStore: quota-bounded synchronous secondary tier
- HybridCustomerStore: the caller-facing store combining both
- reconcile: merge of the two tiers' record lists
"""

from .base import CustomerStorage
from .fallback import BlobStorage, FallbackCustomerStore, FileBlobStorage, MemoryBlobStorage
from .hybrid import HybridCustomerStore
from .reconcile import reconcile
from .sqlite_store import SqliteCustomerStore

# Export factory function
from .factory import create_store_instance  # noqa: E402

__all__ = [
    "BlobStorage",
    "CustomerStorage",
    "FallbackCustomerStore",
    "FileBlobStorage",
    "HybridCustomerStore",
    "MemoryBlobStorage",
    "SqliteCustomerStore",
    "create_store_instance",
    "reconcile",
]
