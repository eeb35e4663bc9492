"""
Reference population: turn stored id references into embedded documents.

Every call resolves one relation for a whole set of documents with a single
batched read, instead of one lookup per reference.
"""

import logging
from itertools import chain
from typing import Dict, Iterable, List, Optional, Type, Union

from .documents import Community, Thread, User
from .enums import Projection
from .model import BaseFirestoreModel
from .pydantic_compat import BaseModel
from .views import AuthorSummary, CommunitySummary

logger = logging.getLogger(__name__)

SUMMARY_PROJECTIONS: Dict[Type[BaseFirestoreModel], Type[BaseModel]] = {
    User: AuthorSummary,
    Community: CommunitySummary,
}


async def resolve_references(
    model_cls: Type[BaseFirestoreModel],
    doc_ids: Iterable[Optional[str]],
    projection: Projection = Projection.SUMMARY,
) -> Dict[str, Union[BaseFirestoreModel, BaseModel]]:
    """Map each resolvable id to its document in the requested projection."""
    shape = SUMMARY_PROJECTIONS[model_cls] if projection is Projection.SUMMARY else None
    documents = await model_cls.get_many(doc_ids, projection=shape)
    return {doc.id: doc for doc in documents}


async def fetch_children(threads: Iterable[Thread]) -> Dict[str, Thread]:
    """Load the direct replies of ``threads``, keyed by id."""
    threads = list(threads)
    child_ids: List[str] = list(chain.from_iterable(t.children for t in threads))
    children = await Thread.get_many(child_ids)
    if len(children) < len(set(child_ids)):
        logger.warning(
            f"{len(set(child_ids)) - len(children)} child reference(s) point at missing threads"
        )
    return {child.id: child for child in children}


def resolved(references: Dict[str, object], doc_id: Optional[str]):
    """The populated document for ``doc_id``, or the id itself when unresolved."""
    if doc_id is None:
        return None
    return references.get(doc_id, doc_id)
