from datetime import datetime, timedelta, timezone

import pytest

from firestore_threads import (
    Community,
    FirestoreDB,
    Thread,
    ThreadTreeService,
    User,
    init_firestore_threads,
)

from .fake_firestore import FakeAsyncClient

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def fake_client():
    return FakeAsyncClient()


@pytest.fixture
def firestore_db(fake_client):
    """FirestoreDB wired to the in-memory client, bypassing credentials."""
    db = FirestoreDB.__new__(FirestoreDB)
    db.project_id = "test-project"
    db.database = None
    db.credentials = None
    db._emulator_host = None
    db.client = fake_client
    return db


@pytest.fixture
def initialized_models(firestore_db):
    init_firestore_threads(firestore_db)
    return {"Thread": Thread, "User": User, "Community": Community}


@pytest.fixture
def service(initialized_models):
    return ThreadTreeService()


async def make_user(name="Alice", image=None) -> User:
    user = User(name=name, username=name.lower(), image=image or f"https://img.test/{name}.png")
    return await user.save()


async def make_community(external_id="org_science", name="Science") -> Community:
    community = Community(external_id=external_id, name=name, image="https://img.test/c.png")
    return await community.save()


async def make_post(author: User, text="hello", minutes=0, community=None) -> Thread:
    """Insert a post directly, with a controlled creation time."""
    post = Thread(
        text=text,
        author=author.id,
        community=community.id if community else None,
        created_at=EPOCH + timedelta(minutes=minutes),
    )
    await post.save()
    await User.update_many([author.id], push={User.threads: [post.id]})
    if community:
        await Community.update_many([community.id], push={Community.threads: [post.id]})
    return post
