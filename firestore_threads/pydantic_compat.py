import logging

import pydantic
from packaging.version import parse
from pydantic.version import VERSION

logger = logging.getLogger(__name__)

version_parsed = parse(str(VERSION))

if version_parsed.major >= 2:
    PydanticVersion = 2
else:
    PydanticVersion = 1
PYDANTIC_V2_11_PLUS = PydanticVersion >= 2 and (version_parsed.major, version_parsed.minor) >= (2, 11)
logger.debug(f"Running on Pydantic {VERSION} (compat level {PydanticVersion})")


BaseModel: type = pydantic.BaseModel
Field: type = pydantic.Field
PydanticValidationError: type = pydantic.ValidationError
# Only exists on V2; models fall back to an inner ``Config`` class on V1.
ConfigDict = getattr(pydantic, "ConfigDict", None)


# Pydantic V1: __fields__; Pydantic V2: model_fields
def get_model_fields(cls: type) -> dict:
    if PydanticVersion == 1:
        return getattr(cls, "__fields__", {})
    return getattr(cls, "model_fields", {})  # type: ignore[attr-defined]


def get_model_config() -> dict:
    """Config letting document models be built from field names as well as aliases."""
    if PYDANTIC_V2_11_PLUS:
        return {"validate_by_name": True, "validate_by_alias": True}
    return {"populate_by_name": True}


def field_alias(cls: type, field_name: str) -> str:
    """Return the stored (aliased) name of ``field_name`` on ``cls``."""
    field_info = get_model_fields(cls).get(field_name)
    if field_info is None:
        return field_name
    return getattr(field_info, "alias", None) or field_name


def model_dump_compat(instance, **kwargs) -> dict:
    """``model_dump()`` on V2, ``dict()`` on V1, same keyword arguments."""
    if PydanticVersion >= 2:
        return instance.model_dump(**kwargs)
    return instance.dict(**kwargs)


def model_construct_compat(cls: type, **values):
    """Build an instance without validation (``model_construct`` / ``construct``)."""
    if PydanticVersion >= 2:
        return cls.model_construct(**values)
    return cls.construct(**values)


def rebuild_model(cls: type) -> None:
    """Resolve forward references of self-referencing models."""
    if PydanticVersion >= 2:
        cls.model_rebuild()
    else:
        cls.update_forward_refs()


__all__ = [
    "BaseModel",
    "ConfigDict",
    "Field",
    "PydanticValidationError",
    "PYDANTIC_V2_11_PLUS",
    "PydanticVersion",
    "field_alias",
    "get_model_config",
    "get_model_fields",
    "model_construct_compat",
    "model_dump_compat",
    "rebuild_model",
]
