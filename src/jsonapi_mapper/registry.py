"""Resource-type registry.

Maps JSON:API resource-type names to the entity classes that decode
them. The codec consults it when resolving relationship targets and
``included`` members; the query builder consults it when translating
nested include paths and sparse fieldsets to wire names.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from jsonapi_mapper.exceptions import UnregisteredTypeError

if TYPE_CHECKING:
    from jsonapi_mapper.entity import Entity

logger = logging.getLogger(__name__)


class TypeRegistry:
    """Append-only mapping of resource-type name to entity class.

    Registration is expected to happen once, while resource classes are
    being defined. Lookups happen on every decode and param build.
    """

    def __init__(self) -> None:
        self._types: dict[str, type[Entity]] = {}

    def register(self, type_name: str, entity_cls: type[Entity]) -> None:
        """Register an entity class under a resource-type name.

        A subclass of the registered class replaces it, so that
        ``class Article(define_resource("articles", schema))`` decodes
        into ``Article``.

        Raises:
            ValueError: If an unrelated class is already registered for
                ``type_name``.
        """
        existing = self._types.get(type_name)
        if existing is entity_cls:
            return
        if existing is not None and not issubclass(entity_cls, existing):
            raise ValueError(
                f"Resource type '{type_name}' is already registered "
                f"to {existing.__qualname__}"
            )
        self._types[type_name] = entity_cls
        logger.debug("Registered resource type '%s' -> %s", type_name, entity_cls.__qualname__)

    def get(self, type_name: str) -> type[Entity]:
        """Return the entity class for ``type_name``.

        Raises:
            UnregisteredTypeError: If nothing is registered under that name.
        """
        try:
            return self._types[type_name]
        except KeyError:
            raise UnregisteredTypeError(type_name) from None

    def lookup(self, type_name: str | None) -> type[Entity] | None:
        """Return the entity class for ``type_name``, or None."""
        if type_name is None:
            return None
        return self._types.get(type_name)

    def types(self) -> list[str]:
        return list(self._types)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __len__(self) -> int:
        return len(self._types)


@lru_cache
def get_registry() -> TypeRegistry:
    """Return the process-wide registry used when none is injected."""
    return TypeRegistry()
