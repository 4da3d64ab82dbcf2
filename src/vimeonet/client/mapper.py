"""Mapping raw JSON responses to typed models.

The engine only depends on the :class:`ModelMapper` protocol: given the
raw response dictionary, a dotted key path and the expected type, return
a model or raise :class:`~vimeonet.exceptions.MappingError`. Mappers must
be deterministic and free of side effects, because the engine calls them
on cached data as well as on fresh network responses.

:class:`PydanticModelMapper` is the default implementation. It validates
with a :class:`pydantic.TypeAdapter`, so any type pydantic understands can
be requested: ``BaseModel`` subclasses, ``list[Video]``, ``dict``, ``Any``.
"""

from __future__ import annotations

import functools
from typing import Any, Mapping, Protocol

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from vimeonet.exceptions import MappingError


class ModelMapper(Protocol):
    """Contract for turning a raw response into the requested model."""

    def map(self, raw: Mapping[str, Any], key_path: str, model_type: Any) -> Any:
        """Return the model found at *key_path* in *raw*.

        Raises:
            MappingError: If the key path is missing or the value does not
                validate as *model_type*.
        """
        ...


def value_at_key_path(raw: Mapping[str, Any], key_path: str) -> Any:
    """Walk a dotted *key_path* into *raw*. An empty path returns *raw* itself.

    Raises:
        MappingError: If a segment is missing or an intermediate value is
            not a mapping.
    """
    value: Any = raw
    if not key_path:
        return value
    for segment in key_path.split("."):
        if not isinstance(value, Mapping) or segment not in value:
            raise MappingError(f"Key path '{key_path}' not found in response", key_path)
        value = value[segment]
    return value


@functools.lru_cache(maxsize=256)
def _adapter(model_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model_type)


def _type_name(model_type: Any) -> str:
    return getattr(model_type, "__name__", None) or repr(model_type)


class PydanticModelMapper:
    """Default :class:`ModelMapper` backed by pydantic validation."""

    def map(self, raw: Mapping[str, Any], key_path: str, model_type: Any) -> Any:
        value = value_at_key_path(raw, key_path)
        try:
            adapter = self._adapter_for(model_type)
        except PydanticSchemaGenerationError as exc:
            raise MappingError(
                f"{_type_name(model_type)} is not a mappable model type: {exc}", key_path
            ) from exc
        try:
            return adapter.validate_python(value)
        except ValidationError as exc:
            where = f"'{key_path}'" if key_path else "response"
            raise MappingError(
                f"Cannot map {where} to {_type_name(model_type)}: "
                f"{exc.error_count()} validation error(s)",
                key_path,
            ) from exc

    @staticmethod
    def _adapter_for(model_type: Any) -> TypeAdapter[Any]:
        try:
            hash(model_type)
        except TypeError:
            return TypeAdapter(model_type)
        return _adapter(model_type)
