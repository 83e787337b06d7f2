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
Interface of the asynchronous primary tier.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..models.customer import CustomerRecord


class CustomerStorage(ABC):
    """
    Abstract base class for the asynchronous primary tier.

    Every operation may raise StoreUnavailable (no connection), ReadFailure
    or WriteFailure. Callers are expected to treat these as routing signals.
    """

    @abstractmethod
    async def open(self) -> Any:
        """Open the connection on first use and return it. Idempotent."""
        pass

    @abstractmethod
    async def get_all(self) -> list[CustomerRecord]:
        """Return every stored record."""
        pass

    @abstractmethod
    async def add(self, record: CustomerRecord) -> None:
        """Insert a record. Raises DuplicateRecord if the id already exists."""
        pass

    @abstractmethod
    async def update(self, record: CustomerRecord) -> None:
        """Insert or replace a record by id."""
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a record by id. Returns False if nothing was deleted."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every record."""
        pass

    async def count(self) -> int:
        """Count stored records. Backends may override with a cheaper query."""
        return len(await self.get_all())

    async def close(self) -> None:
        """Release the connection. Only needed at process shutdown."""
        pass
