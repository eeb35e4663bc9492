"""
Documents of the forum: threads and the users and communities they
reference.

Relations are plain id strings.  A Thread points at its author, its
optional community and its parent; the reverse direction is kept as id
lists (``Thread.children``, ``User.threads``, ``Community.threads``) that
the service maintains with paired writes.
"""

from datetime import datetime, timezone
from typing import List, Optional

from .model import BaseFirestoreModel
from .pydantic_compat import Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseFirestoreModel):
    class Settings:
        name = "users"

    name: str
    username: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    threads: List[str] = Field(default_factory=list)


class Community(BaseFirestoreModel):
    class Settings:
        name = "communities"

    # Identifier callers know the community by; ``id`` is the document id.
    external_id: str = Field(alias="externalId")
    name: str
    image: Optional[str] = None
    bio: Optional[str] = None
    threads: List[str] = Field(default_factory=list)


class Thread(BaseFirestoreModel):
    """A post (no ``parent_id``) or a comment replying to another Thread."""

    class Settings:
        name = "threads"

    text: str = Field(min_length=1)
    author: str
    community: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    children: List[str] = Field(default_factory=list)

    @property
    def is_comment(self) -> bool:
        return self.parent_id is not None


DOCUMENT_MODELS = [Thread, User, Community]
