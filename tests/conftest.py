import os
import shutil
import sys
import tempfile

import pytest
import pytest_asyncio

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from crm_store.models.customer import CrystalAnalysis, CustomerRecord  # noqa: E402
from crm_store.storage.fallback import FallbackCustomerStore, MemoryBlobStorage  # noqa: E402
from crm_store.storage.hybrid import HybridCustomerStore  # noqa: E402
from crm_store.storage.sqlite_store import SqliteCustomerStore  # noqa: E402

IMAGE_PREFIX = "data:image/png;base64,"


def make_record(record_id: str = "a", created_at: int = 1000, **fields) -> CustomerRecord:
    """Build a customer record with a name derived from its id."""
    fields.setdefault("name", f"Customer {record_id}")
    return CustomerRecord(id=record_id, created_at=created_at, **fields)


def make_heavy_record(record_id: str = "a", created_at: int = 1000, payload_size: int = 5000, **fields) -> CustomerRecord:
    """Build a record carrying an image payload of roughly payload_size bytes."""
    fields.setdefault("analysis", CrystalAnalysis(element="Fire", visual_description="Rose quartz bracelet"))
    return make_record(
        record_id,
        created_at,
        generated_image_url=IMAGE_PREFIX + "A" * payload_size,
        **fields,
    )


@pytest.fixture
def temp_db_path():
    """Create a temporary directory for store files."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    # Clean up after test
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def blob_storage():
    return MemoryBlobStorage(quota_bytes=1024 * 1024)


@pytest.fixture
def fallback_store(blob_storage):
    return FallbackCustomerStore(blob_storage)


@pytest_asyncio.fixture
async def sqlite_store(temp_db_path):
    """A real SQLite primary tier in a temp directory."""
    store = SqliteCustomerStore(os.path.join(temp_db_path, "customers.db"))
    yield store
    await store.close()


@pytest_asyncio.fixture
async def unavailable_store(temp_db_path):
    """A primary tier whose open() always fails: its path sits under a regular file."""
    blocker = os.path.join(temp_db_path, "blocker")
    with open(blocker, "w") as f:
        f.write("not a directory")
    store = SqliteCustomerStore(os.path.join(blocker, "customers.db"))
    yield store
    await store.close()


@pytest.fixture
def hybrid_store(sqlite_store, fallback_store):
    return HybridCustomerStore(sqlite_store, fallback_store)


@pytest.fixture(name="make_record")
def make_record_fixture():
    return make_record


@pytest.fixture(name="make_heavy_record")
def make_heavy_record_fixture():
    return make_heavy_record
