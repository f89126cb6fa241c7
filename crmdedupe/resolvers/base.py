"""
Resolver contract and registry.

A resolver removes one kind of merge-blocking conflict before the CRM's
merge primitive runs. Resolvers are registered by name and instantiated by
the orchestrator in the order the caller configured them.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, List, Sequence, Set, Type

from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..merge import Merge


class Resolver(ABC):
    """
    Base class of all resolvers.

    A resolver only talks to the CRM through the Merge that created it:
    `merge.get_contact()` / `merge.unload_contact()` for cached attributes,
    `merge.store` for writes. Any contact written to must be unloaded before
    `resolve` returns.
    """

    def __init__(self, merge: "Merge"):
        self.merge = merge

    def required_attributes(self) -> Set[str]:
        """Contact attributes `resolve` reads through the cache."""
        return set()

    @abstractmethod
    def resolve(self, main_contact_id: int, other_contact_ids: Sequence[int]) -> bool:
        """
        Resolve the conflicts between main and the other contacts.

        Returns:
            True if anything was changed

        Raises:
            ResolverFailure: if the conflict couldn't be resolved
        """

    @abstractmethod
    def get_name(self) -> str:
        ...

    @abstractmethod
    def get_help(self) -> str:
        ...

    def add_merge_detail(self, message: str) -> None:
        """Add a line to the run's merge log."""
        self.merge.log(message)


RESOLVERS: Dict[str, Type[Resolver]] = {}


def register_resolver(name: str) -> Callable[[Type[Resolver]], Type[Resolver]]:
    """Class decorator adding a resolver to the registry under `name`."""

    def decorator(cls: Type[Resolver]) -> Type[Resolver]:
        if name in RESOLVERS and RESOLVERS[name] is not cls:
            raise ConfigurationError(f"Resolver '{name}' registered twice")
        RESOLVERS[name] = cls
        return cls

    return decorator


def create_resolver(name: str, merge: "Merge") -> Resolver:
    cls = RESOLVERS.get(name)
    if cls is None:
        raise ConfigurationError(f"Resolver '{name}' not found!")
    return cls(merge)


def available_resolvers() -> List[str]:
    return sorted(RESOLVERS)
