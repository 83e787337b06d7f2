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
Merge the two tiers' record lists into the single view callers see.
"""

from typing import Dict, Iterable, List

from ..models.customer import CustomerRecord


def reconcile(secondary: Iterable[CustomerRecord], primary: Iterable[CustomerRecord]) -> List[CustomerRecord]:
    """
    Combine per-tier record lists into one deduplicated, newest-first list.

    For an id present in both inputs the primary copy always wins, whatever
    the timestamps or contents: the primary tier never drops heavy payloads,
    so its copy is at least as complete as the secondary one.

    Ordering is by created_at descending. Records with equal timestamps keep
    a deterministic relative order (primary records first, then
    secondary-only records, each in input order) because the sort is stable.

    Args:
        secondary: Records read from the fallback tier
        primary: Records read from the primary tier

    Returns:
        A new list; the inputs are not modified.
    """
    merged: Dict[str, CustomerRecord] = {}
    for record in primary:
        merged.setdefault(record.id, record)
    for record in secondary:
        merged.setdefault(record.id, record)

    return sorted(merged.values(), key=lambda r: r.created_at, reverse=True)
