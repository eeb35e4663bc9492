import logging
from typing import (
    Any,
    AsyncGenerator,
    ClassVar,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

from google.cloud.firestore_v1 import ArrayRemove, ArrayUnion, AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from .client import FirestoreDB
from .enums import FirestoreOperators, OrderByDirection
from .errors import StoreError
from .fields import FirestoreField
from .pydantic_compat import (
    BaseModel,
    ConfigDict,
    Field,
    PydanticVersion,
    field_alias,
    get_model_config,
    get_model_fields,
    model_dump_compat,
)

FieldType = Union[str, FirestoreField]
FieldOrderType = Tuple[FieldType, OrderByDirection]
FilterType = Tuple[FieldType, Union[FirestoreOperators, str], Any]

# Firestore caps a write batch at 500 operations.
MAX_BATCH_WRITES = 500
GET_ALL_CHUNK = 100

logger = logging.getLogger(__name__)


def _chunks(items: Sequence[Any], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _distinct_ids(doc_ids: Iterable[Optional[str]]) -> List[str]:
    """Drop empty ids and duplicates, keeping first-seen order."""
    return list(dict.fromkeys(doc_id for doc_id in doc_ids if doc_id))


class BaseFirestoreModel(BaseModel):
    """
    Async document model backed by one Firestore collection.

    Subclasses name their collection in an inner ``Settings`` class and are
    bound to a :class:`FirestoreDB` by ``init_firestore_threads``.
    """

    id: Optional[str] = Field(default=None)

    _db: ClassVar[Optional[FirestoreDB]] = None

    class Settings:
        name: str = "BaseCollection"

    if PydanticVersion >= 2:
        model_config = ConfigDict(**get_model_config())
    else:
        class Config:
            allow_population_by_field_name = True

    # --------------------------------------------------------------------------
    # Wiring
    # --------------------------------------------------------------------------
    @classmethod
    def initialize_db(cls, db: FirestoreDB):
        cls._db = db

    @classmethod
    def initialize_fields(cls) -> None:
        """Expose every field on the class as a :class:`FirestoreField`."""
        for field_name in get_model_fields(cls):
            stored_name = (
                FieldPath.document_id() if field_name == "id"
                else field_alias(cls, field_name)
            )
            setattr(cls, field_name, FirestoreField(stored_name))

    @classmethod
    def get_collection_name(cls) -> str:
        settings = getattr(cls, "Settings", None)
        return getattr(settings, "name", None) or cls.__name__

    @property
    def collection_name(self) -> str:
        return self.get_collection_name()

    @classmethod
    def _client(cls) -> AsyncClient:
        if not cls._db:
            raise StoreError("Database must be initialized before using the model.")
        return cls._db.client

    @classmethod
    def _from_snapshot(cls, snapshot, projection: Optional[Type[BaseModel]] = None):
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        constructor = cls if projection is None else projection
        return constructor(**data)

    @classmethod
    def _projection_paths(cls, projection: Type[BaseModel]) -> List[str]:
        return [
            field_alias(projection, name)
            for name in get_model_fields(projection)
            if name != "id"
        ]

    # --------------------------------------------------------------------------
    # Single-document writes
    # --------------------------------------------------------------------------
    async def save(self, exclude_none: bool = False, by_alias: bool = True) -> "BaseFirestoreModel":
        """
        Create the document, assigning a generated id when none is set.

        ``None`` values are written as explicit nulls by default so that
        ``field == None`` queries match the new document.
        """
        collection_ref = self._client().collection(self.collection_name)
        data = model_dump_compat(
            self,
            exclude={"id"},
            exclude_none=exclude_none,
            by_alias=by_alias,
        )

        if not self.id:
            doc_ref = collection_ref.document()
            self.id = doc_ref.id
        else:
            doc_ref = collection_ref.document(self.id)
            if (await doc_ref.get()).exists:
                raise StoreError(
                    f"Cannot create {self.collection_name}/{self.id}: the ID already exists."
                )

        logger.debug(f"Create: {self.collection_name} - id={self.id}")
        await doc_ref.set(data)
        return self

    async def update(
        self,
        include: Optional[set] = None,
        exclude_none: bool = True,
        by_alias: bool = True,
        exclude_unset: bool = True,
    ) -> "BaseFirestoreModel":
        """Write the (optionally restricted) set fields of this instance."""
        if not self.id:
            raise ValueError("Cannot update a document without an ID.")
        doc_ref = self._client().collection(self.collection_name).document(self.id)

        updates = model_dump_compat(
            self,
            exclude={"id"},
            include=include,
            exclude_unset=exclude_unset,
            exclude_none=exclude_none,
            by_alias=by_alias,
        )
        logger.debug(f"Update: {self.collection_name} - id={self.id}, updates={updates}")
        if updates:
            await doc_ref.update(updates)
        return self

    async def delete(self) -> None:
        if not self.id:
            raise ValueError("Cannot delete a document without an ID.")
        doc_ref = self._client().collection(self.collection_name).document(self.id)
        await doc_ref.delete()

    # --------------------------------------------------------------------------
    # Reads by id
    # --------------------------------------------------------------------------
    @classmethod
    async def get(cls, doc_id: str) -> Optional["BaseFirestoreModel"]:
        """Return the document with this id, or ``None``."""
        doc_ref = cls._client().collection(cls.get_collection_name()).document(doc_id)
        snapshot = await doc_ref.get()
        if snapshot.exists:
            return cls._from_snapshot(snapshot)
        return None

    @classmethod
    async def exists(cls, doc_id: str) -> bool:
        doc_ref = cls._client().collection(cls.get_collection_name()).document(doc_id)
        return (await doc_ref.get()).exists

    @classmethod
    async def get_many(
        cls,
        doc_ids: Iterable[Optional[str]],
        projection: Optional[Type[BaseModel]] = None,
    ) -> List[Union["BaseFirestoreModel", BaseModel]]:
        """
        Batch-read documents by id.

        Results follow the order of ``doc_ids`` (duplicates and empty ids
        dropped); ids without a document are skipped.  With a
        ``projection`` only its fields are read and instances of the
        projection are returned.
        """
        ids = _distinct_ids(doc_ids)
        if not ids:
            return []
        client = cls._client()
        collection_ref = client.collection(cls.get_collection_name())
        field_paths = cls._projection_paths(projection) if projection else None

        found: Dict[str, Any] = {}
        for chunk in _chunks(ids, GET_ALL_CHUNK):
            refs = [collection_ref.document(doc_id) for doc_id in chunk]
            async for snapshot in client.get_all(refs, field_paths=field_paths):
                if snapshot.exists:
                    found[snapshot.id] = cls._from_snapshot(snapshot, projection)

        missing = len(ids) - len(found)
        if missing:
            logger.debug(f"Get many: {cls.get_collection_name()} - {missing} id(s) not found")
        return [found[doc_id] for doc_id in ids if doc_id in found]

    # --------------------------------------------------------------------------
    # Bulk writes
    # --------------------------------------------------------------------------
    @classmethod
    async def update_many(
        cls,
        doc_ids: Iterable[Optional[str]],
        push: Optional[Dict[FieldType, Sequence[Any]]] = None,
        pull: Optional[Dict[FieldType, Sequence[Any]]] = None,
    ) -> int:
        """
        Append (``push``) or remove (``pull``) values on list fields of every
        existing document in ``doc_ids``.

        Pushes use ``ArrayUnion`` so a value already present is not added
        twice; pulls use ``ArrayRemove`` and drop every occurrence.  Ids with
        no document are skipped.  Returns the number of documents updated.
        """
        updates: Dict[str, Any] = {}
        for field, values in (push or {}).items():
            updates[str(field)] = ArrayUnion(list(values))
        for field, values in (pull or {}).items():
            if str(field) in updates:
                raise ValueError(f"Cannot push and pull '{field}' in the same update.")
            updates[str(field)] = ArrayRemove(list(values))

        ids = _distinct_ids(doc_ids)
        if not updates or not ids:
            return 0

        client = cls._client()
        collection_ref = client.collection(cls.get_collection_name())
        existing = [doc.id for doc in await cls.get_many(ids)]

        for chunk in _chunks(existing, MAX_BATCH_WRITES):
            batch = client.batch()
            for doc_id in chunk:
                batch.update(collection_ref.document(doc_id), updates)
            await batch.commit()

        logger.debug(
            f"Update many: {cls.get_collection_name()} - {len(existing)}/{len(ids)} "
            f"document(s), fields={sorted(updates)}"
        )
        return len(existing)

    @classmethod
    async def delete_many(cls, doc_ids: Iterable[Optional[str]]) -> int:
        """Delete every document in ``doc_ids``; returns the number of deletes issued."""
        ids = _distinct_ids(doc_ids)
        if not ids:
            return 0
        client = cls._client()
        collection_ref = client.collection(cls.get_collection_name())

        for chunk in _chunks(ids, MAX_BATCH_WRITES):
            batch = client.batch()
            for doc_id in chunk:
                batch.delete(collection_ref.document(doc_id))
            await batch.commit()

        logger.debug(f"Delete many: {cls.get_collection_name()} - {len(ids)} document(s)")
        return len(ids)

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------
    @classmethod
    async def count(cls, filters: Optional[List[FilterType]] = None) -> int:
        """
        Number of documents matching ``filters``.

        Falls back to a field-less select when the SDK has no aggregation
        support.
        """
        query = cls._build_query(cls._client(), filters=filters or [])
        try:
            count_snapshot = await query.count().get()
            return count_snapshot[0][0].value
        except AttributeError:
            logger.warning("Firestore: Performing count by fetching all items with empty select")
            docs = await query.select([]).get()
            return len(docs)

    @classmethod
    async def find(
        cls,
        filters: Optional[List[FilterType]] = None,
        projection: Optional[Type[BaseModel]] = None,
        order_by: Optional[
            Union[List[Union[FieldType, FieldOrderType]], Union[FieldType, FieldOrderType]]
        ] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> AsyncGenerator[Union["BaseFirestoreModel", BaseModel], None]:
        """Stream the documents matching ``filters`` as model instances."""
        query = cls._build_query(cls._client(), filters=filters or [], projection=projection)

        if order_by:
            if not isinstance(order_by, list):
                order_by = [order_by]
            for order_by_field in order_by:
                if isinstance(order_by_field, tuple):
                    field, direction = order_by_field
                    query = query.order_by(str(field), direction=str(direction))
                else:
                    query = query.order_by(str(order_by_field))

        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        async for snapshot in query.stream():
            yield cls._from_snapshot(snapshot, projection)

    @classmethod
    async def find_one(
        cls,
        filters: List[FilterType],
        projection: Optional[Type[BaseModel]] = None,
        order_by: Optional[Union[FieldType, FieldOrderType]] = None,
    ) -> Optional[Union["BaseFirestoreModel", BaseModel]]:
        async for obj in cls.find(
            filters=filters, projection=projection, order_by=order_by, limit=1
        ):
            return obj
        return None

    @classmethod
    def _build_query(
        cls,
        db_client: AsyncClient,
        filters: List[FilterType],
        projection: Optional[Type[BaseModel]] = None,
    ):
        query = db_client.collection(cls.get_collection_name())

        for field, op, value in filters:
            op_string = op.value if isinstance(op, FirestoreOperators) else op
            query = query.where(filter=FieldFilter(str(field), op_string, value))

        if projection:
            select_fields = cls._projection_paths(projection)
            logger.debug(f"Build Query: select fields: {select_fields}")
            query = query.select(select_fields)

        return query
