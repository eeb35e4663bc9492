from typing import List, Optional, Type

from .client import FirestoreDB
from .documents import DOCUMENT_MODELS, Community, Thread, User
from .enums import FirestoreOperators, OrderByDirection, Projection
from .errors import (
    CommentError,
    CreateError,
    DeleteError,
    FetchError,
    NotFound,
    OperationError,
    PartialFailure,
    StoreError,
    ThreadTreeError,
    ValidationError,
)
from .fields import FirestoreField
from .model import BaseFirestoreModel
from .service import ThreadTreeService
from .views import AuthorSummary, CommunitySummary, PostsPage, ThreadView


def init_firestore_threads(
    database: FirestoreDB,
    document_models: Optional[List[Type[BaseFirestoreModel]]] = None,
):
    """Bind the document models to ``database`` and install their query fields."""
    for model in document_models or DOCUMENT_MODELS:
        model.initialize_db(database)
        model.initialize_fields()


__all__ = [
    "AuthorSummary",
    "BaseFirestoreModel",
    "CommentError",
    "Community",
    "CommunitySummary",
    "CreateError",
    "DeleteError",
    "FetchError",
    "FirestoreDB",
    "FirestoreField",
    "FirestoreOperators",
    "NotFound",
    "OperationError",
    "OrderByDirection",
    "PartialFailure",
    "PostsPage",
    "Projection",
    "StoreError",
    "Thread",
    "ThreadTreeError",
    "ThreadTreeService",
    "ThreadView",
    "User",
    "ValidationError",
    "init_firestore_threads",
]
