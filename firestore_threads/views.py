"""
Read shapes returned by the service.

Referenced users and communities come in two projections: the summary
(:class:`AuthorSummary`, :class:`CommunitySummary`) or the full document
(:class:`~firestore_threads.documents.User`,
:class:`~firestore_threads.documents.Community`).  A reference that could
not be resolved, or that sits below the resolved depth, stays a raw id.
"""

from datetime import datetime
from typing import List, Optional, Union

from .documents import Community, Thread, User
from .pydantic_compat import BaseModel, Field, model_construct_compat, rebuild_model


class AuthorSummary(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None


class CommunitySummary(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None


AuthorRef = Union[User, AuthorSummary, str]
CommunityRef = Union[Community, CommunitySummary, str]


class ThreadView(BaseModel):
    id: str
    text: str
    author: AuthorRef
    community: Optional[CommunityRef] = None
    created_at: datetime
    parent_id: Optional[str] = None
    children: List[Union["ThreadView", str]] = Field(default_factory=list)

    @classmethod
    def from_thread(
        cls,
        thread: Thread,
        author: Optional[AuthorRef] = None,
        community: Optional[CommunityRef] = None,
        children: Optional[List[Union["ThreadView", str]]] = None,
    ) -> "ThreadView":
        """
        Wrap a stored thread, substituting whichever references were
        resolved.  Arguments left as ``None`` keep the stored ids.
        """
        # Parts are already validated models; skip re-validation so each
        # reference keeps its concrete projection type.
        return model_construct_compat(
            cls,
            id=thread.id,
            text=thread.text,
            author=author if author is not None else thread.author,
            community=community if community is not None else thread.community,
            created_at=thread.created_at,
            parent_id=thread.parent_id,
            children=list(children) if children is not None else list(thread.children),
        )


rebuild_model(ThreadView)


class PostsPage(BaseModel):
    posts: List[ThreadView] = Field(default_factory=list)
    has_next: bool = False
    total: int = 0
    page: int = 1
    page_size: int = 20
