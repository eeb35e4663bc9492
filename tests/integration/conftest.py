"""
Fixtures for tests against the Firestore emulator.

Set ``FIRESTORE_EMULATOR_HOST=localhost:8080`` (e.g. ``gcloud emulators
firestore start``) to run them; without it every test here is skipped.
"""

import logging
import os
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from firestore_threads import FirestoreDB, ThreadTreeService, init_firestore_threads

logger = logging.getLogger(__name__)

EMULATOR_HOST = os.environ.get("FIRESTORE_EMULATOR_HOST", "").strip()
PROJECT_ID = os.environ.get("GOOGLE_CLOUD_PROJECT") or "test-project"
DATABASE = os.environ.get("DATABASE") or None

IS_EMULATOR = bool(EMULATOR_HOST)
HERE = Path(__file__).resolve().parent


def pytest_collection_modifyitems(config, items):
    if IS_EMULATOR:
        return
    skip = pytest.mark.skip(reason="FIRESTORE_EMULATOR_HOST is not set")
    for item in items:
        if HERE in Path(str(item.fspath)).resolve().parents:
            item.add_marker(skip)


@pytest.fixture()
def firestore_db():
    """Function-scoped so each test gets an AsyncClient bound to its event loop."""
    return FirestoreDB(project_id=PROJECT_ID, database=DATABASE, emulator_host=EMULATOR_HOST)


@pytest.fixture()
def raw_client(firestore_db):
    return firestore_db.client


@pytest_asyncio.fixture(autouse=True)
async def clean_emulator():
    """Wipe the emulator before and after each test."""
    await _wipe()
    yield
    await _wipe()


async def _wipe():
    db_name = DATABASE or "(default)"
    url = (
        f"http://{EMULATOR_HOST}/emulator/v1/projects/"
        f"{PROJECT_ID}/databases/{db_name}/documents"
    )
    async with httpx.AsyncClient() as client:
        response = await client.delete(url)
    logger.debug(f"Emulator wipe: {response.status_code}")


@pytest.fixture()
def initialized_models(firestore_db):
    init_firestore_threads(firestore_db)


@pytest.fixture()
def service(initialized_models):
    return ThreadTreeService(detach_from_parent=False)
