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

"""Customer record store: dual-tier resilient local persistence."""

__version__ = "1.0.0"

from .errors import (  # noqa: E402
    DuplicateRecord,
    PersistenceFailure,
    QuotaExceeded,
    ReadFailure,
    SerializationFailure,
    StoreError,
    StoreUnavailable,
    WriteFailure,
)
from .models import PAYLOAD_DROPPED_MARKER, CustomerRecord, ShippingDetails  # noqa: E402
from .storage import HybridCustomerStore, create_store_instance, reconcile  # noqa: E402

__all__ = [
    "PAYLOAD_DROPPED_MARKER",
    "CustomerRecord",
    "DuplicateRecord",
    "HybridCustomerStore",
    "PersistenceFailure",
    "QuotaExceeded",
    "ReadFailure",
    "SerializationFailure",
    "ShippingDetails",
    "StoreError",
    "StoreUnavailable",
    "WriteFailure",
    "create_store_instance",
    "reconcile",
]
