from typing import Any, List, Tuple

from .enums import FirestoreOperators

FilterTuple = Tuple[str, FirestoreOperators, Any]


class FirestoreField:
    """
    Class-level stand-in for a document field, used to build query filters.

    Once :func:`firestore_threads.init_firestore_threads` has run, every
    model field is replaced on the class by one of these, keyed by its
    *stored* name (the Pydantic alias when there is one)::

        >>> Thread.parent_id == None
        ('parentId', FirestoreOperators.EQ, None)
        >>> User.id.in_(["u1", "u2"])
        ('__name__', FirestoreOperators.IN, ['u1', 'u2'])

    Instances keep their real values: the descriptor only defines
    ``__get__``, so the instance ``__dict__`` wins on attribute lookup.
    """

    def __init__(self, field_name: str):
        self.field_name = field_name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return getattr(instance, self.field_name, None)

    def __str__(self) -> str:
        return self.field_name

    __repr__ = __str__

    def __hash__(self) -> int:
        return hash(self.field_name)

    # Comparisons build (field, operator, value) tuples instead of booleans.

    def __eq__(self, other) -> FilterTuple:  # type: ignore[override]
        return (self.field_name, FirestoreOperators.EQ, other)

    def __ne__(self, other) -> FilterTuple:  # type: ignore[override]
        return (self.field_name, FirestoreOperators.NE, other)

    def __lt__(self, other) -> FilterTuple:
        return (self.field_name, FirestoreOperators.LT, other)

    def __le__(self, other) -> FilterTuple:
        return (self.field_name, FirestoreOperators.LTE, other)

    def __gt__(self, other) -> FilterTuple:
        return (self.field_name, FirestoreOperators.GT, other)

    def __ge__(self, other) -> FilterTuple:
        return (self.field_name, FirestoreOperators.GTE, other)

    def is_null(self) -> FilterTuple:
        """Match documents whose field is stored as ``null``.

        Firestore does not match documents where the field is *missing*,
        so models that query on this must persist explicit nulls.
        """
        return (self.field_name, FirestoreOperators.EQ, None)

    def in_(self, values: List[Any]) -> FilterTuple:
        return (self.field_name, FirestoreOperators.IN, values)

    def not_in_(self, values: List[Any]) -> FilterTuple:
        return (self.field_name, FirestoreOperators.NOT_IN, values)

    def array_contains(self, value: Any) -> FilterTuple:
        return (self.field_name, FirestoreOperators.ARRAY_CONTAINS, value)

    def array_contains_any(self, values: List[Any]) -> FilterTuple:
        return (self.field_name, FirestoreOperators.ARRAY_CONTAINS_ANY, values)
