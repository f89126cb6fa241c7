"""
Merge orchestration.

Drives the merge of duplicate tuples: loads the contacts, checks that they
can be merged, runs the configured resolvers in order and finally calls the
CRM's merge primitive. Failures only ever abort the pair they happened in;
they end up in the run statistics and the merge log.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .cache import ContactCache, MANDATORY_FIELDS
from .config import parse_resolver_list
from .errors import (
    ConfigurationError,
    MergePrimitiveFailure,
    PreconditionViolation,
    ResolverFailure,
    StoreError,
)
from .interfaces import ContactStore
from .logger import StructuredLogger, get_logger
from .resolvers import Resolver, create_resolver
from .runlog import EventKind, MergeLog, RunStatistics


class MergeOutcome(Enum):
    MERGED = "merged"
    REJECTED = "rejected"  # precondition failed, nothing was touched
    FAILED = "failed"  # a resolver or the merge primitive failed


def _is_deleted(contact: Dict[str, Any]) -> bool:
    value = contact.get("is_deleted")
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false")
    return bool(value)


class Merge:
    """
    One merge run: its resolvers, contact cache, statistics and merge log.

    Args:
        store: the CRM to read from, write to and merge in
        resolvers: resolver names, as list or comma-separated string. Order
            matters, each resolver sees the changes of the previous ones.
        force_merge: use the merge primitive's force mode instead of safe mode
        merge_log: file the merge log is appended to (default: temp file)
    """

    def __init__(
        self,
        store: ContactStore,
        resolvers: Union[str, Sequence[str], None] = None,
        force_merge: bool = False,
        merge_log: Optional[Path] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.force_merge = bool(force_merge)
        self.logger = logger or get_logger()
        self.merge_log = MergeLog(Path(merge_log) if merge_log else None, logger=self.logger)

        if isinstance(resolvers, str):
            names = parse_resolver_list(resolvers)
        else:
            names = [name.strip() for name in resolvers or [] if name and name.strip()]

        self.resolvers: List[Resolver] = []
        required_attributes = set(MANDATORY_FIELDS)
        for name in names:
            try:
                resolver = create_resolver(name, self)
            except ConfigurationError as e:
                self.log_error(str(e))
                continue
            self.resolvers.append(resolver)
            required_attributes |= resolver.required_attributes()

        self.cache = ContactCache(store, required_attributes)

    def __enter__(self) -> "Merge":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.merge_log.close()

    # Logging

    def log(self, message: str) -> None:
        self.merge_log.log(message)

    def log_error(self, message: str) -> None:
        self.merge_log.log_error(message)

    @property
    def stats(self) -> RunStatistics:
        return self.merge_log.stats.copy()

    @property
    def log_text(self) -> str:
        return self.merge_log.text

    @property
    def merge_log_path(self) -> Path:
        return self.merge_log.path

    # Contact cache access, also used by the resolvers

    def load_contacts(self, contact_ids: Iterable[int]) -> List[int]:
        return self.cache.load(contact_ids)

    def get_contact(self, contact_id: int) -> Optional[Dict[str, Any]]:
        return self.cache.get(contact_id)

    def unload_contact(self, contact_id: int) -> None:
        self.cache.invalidate(contact_id)

    # Merging

    def run(self, tuples: Iterable[Tuple[int, Sequence[int]]]) -> RunStatistics:
        """Merge every (main, others) tuple and return the run's statistics."""
        for main_contact_id, other_contact_ids in tuples:
            self.multi_merge(main_contact_id, other_contact_ids)
        return self.stats

    def multi_merge(self, main_contact_id: int, other_contact_ids: Sequence[int]) -> bool:
        """
        Merge all other contacts into the main contact, one by one.

        Returns:
            True if every other contact was merged
        """
        other_contact_ids = list(other_contact_ids)
        try:
            self.load_contacts([main_contact_id, *other_contact_ids])
        except StoreError as e:
            self.log_error(f"Couldn't load tuple [{main_contact_id}] <- {other_contact_ids}: {e}")
            return False

        main_contact = self.get_contact(main_contact_id)
        if main_contact is None:
            self.log_error(f"Main contact [{main_contact_id}] doesn't exist.")
            return False
        if _is_deleted(main_contact):
            self.log_error(f"Main contact [{main_contact_id}] is deleted. This is wrong!")
            return False

        outcomes = [self.merge(main_contact_id, other_id) for other_id in other_contact_ids]
        merged = bool(outcomes) and all(o is MergeOutcome.MERGED for o in outcomes)
        if merged:
            self.merge_log.emit(
                EventKind.TUPLE_MERGED,
                f"Tuple [{main_contact_id}] <- {other_contact_ids} merged.",
                main_id=main_contact_id,
            )
        return merged

    def merge(self, main_contact_id: int, other_contact_id: int) -> MergeOutcome:
        """
        Merge the other contact into the main contact, after running the resolvers.

        Both contacts are unloaded from the cache afterwards, whatever the outcome.
        """
        try:
            self.load_contacts([main_contact_id, other_contact_id])
            self._check_preconditions(main_contact_id, other_contact_id)
            self._run_resolvers(main_contact_id, other_contact_id)
            mode = self._run_merge_primitive(main_contact_id, other_contact_id)
        except PreconditionViolation as e:
            self._record_failure(main_contact_id, other_contact_id, str(e))
            return MergeOutcome.REJECTED
        except (ResolverFailure, MergePrimitiveFailure) as e:
            self._record_failure(main_contact_id, other_contact_id, str(e))
            return MergeOutcome.FAILED
        except StoreError as e:
            self._record_failure(
                main_contact_id,
                other_contact_id,
                f"Couldn't load contacts [{main_contact_id}] and [{other_contact_id}]: {e}",
            )
            return MergeOutcome.FAILED
        finally:
            self.unload_contact(main_contact_id)
            self.unload_contact(other_contact_id)

        self.merge_log.emit(
            EventKind.CONTACT_MERGED,
            f"Merged contact [{other_contact_id}] into [{main_contact_id}] ({mode} mode).",
            main_id=main_contact_id,
            other_id=other_contact_id,
        )
        return MergeOutcome.MERGED

    def _check_preconditions(self, main_contact_id: int, other_contact_id: int) -> None:
        if main_contact_id == other_contact_id:
            raise PreconditionViolation(f"Contact [{main_contact_id}] cannot be merged into itself.")
        for label, contact_id in (("Main", main_contact_id), ("Other", other_contact_id)):
            contact = self.get_contact(contact_id)
            if contact is None:
                raise PreconditionViolation(f"{label} contact [{contact_id}] doesn't exist.")
            if _is_deleted(contact):
                raise PreconditionViolation(f"{label} contact [{contact_id}] is deleted. This is wrong!")

    def _run_resolvers(self, main_contact_id: int, other_contact_id: int) -> None:
        for resolver in self.resolvers:
            try:
                changes = resolver.resolve(main_contact_id, [other_contact_id])
            except ResolverFailure as e:
                raise ResolverFailure(
                    f"{resolver.get_name()} failed on [{main_contact_id}] <- [{other_contact_id}]: {e}"
                ) from e
            except Exception as e:
                raise ResolverFailure(
                    f"{resolver.get_name()} failed on [{main_contact_id}] <- [{other_contact_id}]: "
                    f"{type(e).__name__}: {e}"
                ) from e
            if changes:
                self.merge_log.emit(EventKind.CONFLICT_RESOLVED, main_id=main_contact_id, other_id=other_contact_id)
                self.unload_contact(main_contact_id)

    def _run_merge_primitive(self, main_contact_id: int, other_contact_id: int) -> str:
        mode = "force" if self.force_merge else "safe"
        try:
            merged = self.store.merge_contacts(main_contact_id, other_contact_id, mode)
        except Exception as e:
            raise MergePrimitiveFailure(
                f"Merging contact [{other_contact_id}] into [{main_contact_id}] failed: {type(e).__name__}: {e}"
            ) from e
        if not merged:
            raise MergePrimitiveFailure(
                f"Merging contact [{other_contact_id}] into [{main_contact_id}] was refused ({mode} mode)."
            )
        return mode

    def _record_failure(self, main_contact_id: int, other_contact_id: int, message: str) -> None:
        self.merge_log.emit(EventKind.PAIR_FAILED, message, main_id=main_contact_id, other_id=other_contact_id)
