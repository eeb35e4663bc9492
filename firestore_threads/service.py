"""
Thread tree operations over the ``threads``, ``users`` and ``communities``
collections.

Multi-step mutations are ordered sequences of independent writes: there is
no transaction, no retry and no rollback.  When one of them fails the
operation error reports which steps had already committed.
"""

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Type, Union

from .documents import Community, Thread, User
from .enums import OrderByDirection, Projection
from .errors import (
    CommentError,
    CreateError,
    DeleteError,
    FetchError,
    NotFound,
    OperationError,
    PartialFailure,
    ValidationError,
)
from .populate import fetch_children, resolve_references, resolved
from .pydantic_compat import PydanticValidationError
from .views import PostsPage, ThreadView

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

RevalidateHook = Callable[[str], Union[None, Awaitable[None]]]


def _distinct(values) -> List[str]:
    return list(dict.fromkeys(v for v in values if v))


class ThreadTreeService:
    """
    Create, list, fetch and cascade-delete threads.

    Parameters
    ----------
    revalidate :
        Called with ``path`` after a successful create, comment or delete
        (when a path is given) so the caller can invalidate cached views.
        May be a plain function or a coroutine function.
    detach_from_parent :
        When deleting a comment whose parent survives, also pull the
        comment's id from the parent's ``children``.  Off by default, which
        leaves the id dangling in the parent.
    default_page_size :
        Page size used by :meth:`fetch_posts` when none is given.
    """

    def __init__(
        self,
        revalidate: Optional[RevalidateHook] = None,
        detach_from_parent: bool = False,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.revalidate = revalidate
        self.detach_from_parent = detach_from_parent
        self.default_page_size = default_page_size

    # ------------------------------------------------------------------ #
    # Feed                                                               #
    # ------------------------------------------------------------------ #

    async def fetch_posts(self, page: int = 1, page_size: Optional[int] = None) -> PostsPage:
        """
        One page of top-level posts, newest first.

        Authors and communities are resolved to full documents, direct
        replies are embedded with their authors summarised; anything deeper
        stays as ids.  ``has_next`` comes from a separate count query and is
        not guaranteed consistent with the page under concurrent writes.
        """
        page_size = self.default_page_size if page_size is None else page_size
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}")
        if page_size <= 0:
            raise ValidationError(f"page_size must be > 0, got {page_size}")
        skip = (page - 1) * page_size

        top_level = [Thread.parent_id.is_null()]
        try:
            posts = [
                post
                async for post in Thread.find(
                    filters=top_level,
                    order_by=(Thread.created_at, OrderByDirection.DESCENDING),
                    offset=skip,
                    limit=page_size,
                )
            ]
            total = await Thread.count(top_level)
            children = await fetch_children(posts)
            authors = await resolve_references(
                User, (p.author for p in posts), Projection.DETAIL
            )
            communities = await resolve_references(
                Community, (p.community for p in posts), Projection.DETAIL
            )
            child_authors = await resolve_references(
                User, (c.author for c in children.values()), Projection.SUMMARY
            )
        except Exception as exc:
            raise FetchError(exc, operation="fetch posts") from exc

        views = []
        for post in posts:
            replies = [
                ThreadView.from_thread(
                    children[child_id],
                    author=resolved(child_authors, children[child_id].author),
                )
                if child_id in children
                else child_id
                for child_id in post.children
            ]
            views.append(
                ThreadView.from_thread(
                    post,
                    author=resolved(authors, post.author),
                    community=resolved(communities, post.community),
                    children=replies,
                )
            )

        return PostsPage(
            posts=views,
            has_next=total > skip + len(posts),
            total=total,
            page=page,
            page_size=page_size,
        )

    # ------------------------------------------------------------------ #
    # Writes                                                             #
    # ------------------------------------------------------------------ #

    async def create_thread(
        self,
        text: str,
        author: str,
        community_id: Optional[str] = None,
        path: Optional[str] = None,
    ) -> Thread:
        """
        Create a top-level post.

        ``community_id`` is the community's external identifier; when it
        matches no community the post is created as a personal post.  The
        author's (and community's) ``threads`` lists receive the new id.
        """
        completed: List[str] = []
        try:
            if not await User.exists(author):
                raise NotFound("User", author)

            community = None
            if community_id:
                community = await Community.find_one([Community.external_id == community_id])
                if community is None:
                    logger.info(f"Community {community_id} not found, creating personal post")

            thread = Thread(
                text=text,
                author=author,
                community=community.id if community else None,
            )
            await thread.save()
            completed.append("thread")

            await User.update_many([author], push={User.threads: [thread.id]})
            completed.append("author")

            if community:
                await Community.update_many([community.id], push={Community.threads: [thread.id]})
                completed.append("community")

            await self._revalidate(path)
        except Exception as exc:
            error, chained = self._failure(CreateError, exc, completed)
            raise error from chained

        logger.info(f"Created thread {thread.id} by {author}")
        return thread

    async def add_comment_to_thread(
        self,
        thread_id: str,
        comment_text: str,
        user_id: str,
        path: Optional[str] = None,
    ) -> Thread:
        """
        Reply to ``thread_id``: create the comment, then append its id to the
        parent's ``children``.
        """
        try:
            parent = await Thread.get(thread_id)
        except Exception as exc:
            raise CommentError(exc) from exc
        if parent is None:
            raise NotFound("Thread", thread_id)

        completed: List[str] = []
        try:
            comment = Thread(text=comment_text, author=user_id, parent_id=parent.id)
            await comment.save()
            completed.append("comment")

            await Thread.update_many([parent.id], push={Thread.children: [comment.id]})
            completed.append("parent")

            await self._revalidate(path)
        except Exception as exc:
            error, chained = self._failure(CommentError, exc, completed)
            raise error from chained

        logger.info(f"Added comment {comment.id} to thread {parent.id}")
        return comment

    async def delete_thread(self, thread_id: str, path: Optional[str] = None) -> int:
        """
        Delete a thread with its whole reply subtree and scrub the deleted
        ids from every referencing user's and community's ``threads``.

        Returns the number of threads deleted.
        """
        try:
            main_thread = await Thread.get(thread_id)
        except Exception as exc:
            raise DeleteError(exc) from exc
        if main_thread is None:
            raise NotFound("Thread", thread_id)

        completed: List[str] = []
        try:
            descendants = await self._fetch_all_child_threads(main_thread.id)
            family = [main_thread, *descendants]

            thread_ids = [t.id for t in family]
            author_ids = _distinct(t.author for t in family)
            community_ids = _distinct(t.community for t in family)

            deleted = await Thread.delete_many(thread_ids)
            completed.append("threads")

            await User.update_many(author_ids, pull={User.threads: thread_ids})
            completed.append("authors")

            await Community.update_many(community_ids, pull={Community.threads: thread_ids})
            completed.append("communities")

            parent_id = main_thread.parent_id
            if parent_id and self.detach_from_parent:
                await Thread.update_many([parent_id], pull={Thread.children: [main_thread.id]})
                completed.append("parent")

            await self._revalidate(path)
        except Exception as exc:
            error, chained = self._failure(DeleteError, exc, completed)
            raise error from chained

        logger.info(f"Deleted thread {thread_id} and {len(descendants)} descendant(s)")
        return deleted

    # ------------------------------------------------------------------ #
    # Tree fetch                                                         #
    # ------------------------------------------------------------------ #

    async def fetch_thread_by_id(self, thread_id: str) -> ThreadView:
        """
        A thread with its author, community and two levels of replies.

        Replies and replies-to-replies are embedded with summarised authors.
        The replies of the second level are left as ids: callers needing a
        deeper tree fetch those threads in turn.
        """
        try:
            thread = await Thread.get(thread_id)
            if thread is None:
                raise NotFound("Thread", thread_id)

            replies = await fetch_children([thread])
            nested = await fetch_children(replies.values())
            authors = await resolve_references(
                User,
                (t.author for t in [thread, *replies.values(), *nested.values()]),
                Projection.SUMMARY,
            )
            communities = await resolve_references(
                Community, [thread.community], Projection.SUMMARY
            )
        except NotFound:
            raise
        except Exception as exc:
            raise FetchError(exc) from exc

        nested_views = {
            t.id: ThreadView.from_thread(t, author=resolved(authors, t.author))
            for t in nested.values()
        }
        reply_views = {
            t.id: ThreadView.from_thread(
                t,
                author=resolved(authors, t.author),
                children=[nested_views.get(cid, cid) for cid in t.children],
            )
            for t in replies.values()
        }
        return ThreadView.from_thread(
            thread,
            author=resolved(authors, thread.author),
            community=resolved(communities, thread.community),
            children=[reply_views.get(cid, cid) for cid in thread.children],
        )

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    async def _fetch_all_child_threads(self, thread_id: str) -> List[Thread]:
        """
        Every descendant of ``thread_id``, discovered one ``parentId`` query
        per visited thread.  A thread always precedes its own replies.
        """
        descendants: List[Thread] = []
        visited = {thread_id}
        pending = [thread_id]
        while pending:
            parent_id = pending.pop()
            async for child in Thread.find(filters=[Thread.parent_id == parent_id]):
                if child.id in visited:
                    logger.warning(f"Thread {child.id} reached twice, reply graph has a cycle")
                    continue
                visited.add(child.id)
                descendants.append(child)
                pending.append(child.id)
        return descendants

    async def _revalidate(self, path: Optional[str]) -> None:
        if path is None or self.revalidate is None:
            return
        result = self.revalidate(path)
        if inspect.isawaitable(result):
            await result

    @staticmethod
    def _failure(
        error_cls: Type[OperationError],
        exc: Exception,
        completed: Sequence[str],
    ):
        """Build the operation error for ``exc`` and the exception it chains to."""
        cause: Exception = exc
        if isinstance(exc, PydanticValidationError):
            cause = ValidationError(str(exc))
            cause.__cause__ = exc
        chained: Exception = cause
        if completed:
            chained = PartialFailure(str(cause), completed)
            chained.__cause__ = cause
            logger.warning(
                f"{error_cls.operation} failed after committing {', '.join(completed)}: {cause}"
            )
        return error_cls(cause, completed), chained
