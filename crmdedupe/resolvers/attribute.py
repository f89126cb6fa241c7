"""
Resolvers for scalar contact attributes.

`SimpleAttributeResolver` makes all contacts agree on one value,
`UniqueAttributeResolver` makes sure only the main contact keeps it.
In both the surviving value is the main contact's, or else the first
non-empty value among the others in increasing ID order.
"""

from typing import Any, Optional, Sequence, Set

from ..errors import ResolverFailure, StoreError
from .base import Resolver, register_resolver


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


class SimpleAttributeResolver(Resolver):
    """Gives every contact the surviving value so the merge sees no conflict."""

    attribute_name: str = ""

    def required_attributes(self) -> Set[str]:
        return {self.attribute_name}

    def resolve(self, main_contact_id: int, other_contact_ids: Sequence[int]) -> bool:
        value = self.get_value_from_contacts([main_contact_id])
        if value is None:
            value = self.get_value_from_contacts(other_contact_ids)
        if value is None:
            return False
        return self.set_value_for_contacts([main_contact_id, *other_contact_ids], value)

    def get_value_from_contacts(self, contact_ids: Sequence[int]) -> Optional[Any]:
        """First non-empty value among the contacts, in increasing ID order."""
        for contact_id in sorted(contact_ids):
            contact = self.merge.get_contact(contact_id)
            if contact is None:
                continue
            value = contact.get(self.attribute_name)
            if not _is_empty(value):
                return value
        return None

    def set_value_for_contacts(self, contact_ids: Sequence[int], value: Any) -> bool:
        """
        Write `value` to every contact that doesn't have it yet.

        Returns:
            True if at least one contact was written
        """
        change = False
        for contact_id in contact_ids:
            contact = self.merge.get_contact(contact_id) or {}
            current_value = contact.get(self.attribute_name)
            if self.is_value_equal(current_value, value):
                continue

            try:
                written = self.merge.store.update(contact_id, self.attribute_name, value)
            except StoreError as e:
                raise ResolverFailure(
                    f"Couldn't set '{self.attribute_name}' of contact [{contact_id}]: {e}"
                ) from e
            finally:
                self.merge.unload_contact(contact_id)
            if not written:
                raise ResolverFailure(f"Couldn't set '{self.attribute_name}' of contact [{contact_id}]")

            change = True
            self.add_merge_detail(
                f"Changed '{self.attribute_name}' from '{_display(current_value)}' to "
                f"'{_display(value)}' in contact [{contact_id}] to avoid merge conflicts"
            )
        return change

    def unset_value_for_contacts(self, contact_ids: Sequence[int]) -> bool:
        return self.set_value_for_contacts(contact_ids, "")

    def is_value_equal(self, value1: Any, value2: Any) -> bool:
        """Override for type-specific normalisation. Missing and empty are the same."""
        return _display(value1) == _display(value2)

    def get_name(self) -> str:
        return f"Select '{self.attribute_name}'"

    def get_help(self) -> str:
        return (
            f"Will give all contacts the same '{self.attribute_name}', taking the value in the "
            f"following order: main contact, other contacts in increasing ID"
        )


class UniqueAttributeResolver(SimpleAttributeResolver):
    """For attributes that must stay unique across contacts (e.g. external IDs)."""

    def resolve(self, main_contact_id: int, other_contact_ids: Sequence[int]) -> bool:
        main_contact = self.merge.get_contact(main_contact_id) or {}
        if _is_empty(main_contact.get(self.attribute_name)):
            value = self.get_value_from_contacts(other_contact_ids)
            if value is None:
                # nobody has a value => no conflict
                return False
            self.unset_value_for_contacts(other_contact_ids)
            self.set_value_for_contacts([main_contact_id], value)
            return True

        return self.unset_value_for_contacts(other_contact_ids)

    def get_help(self) -> str:
        return (
            f"Will resolve the '{self.attribute_name}' attribute by simply taking the value in the "
            f"following order: main contact, other contacts in increasing ID"
        )


def _display(value: Any) -> str:
    return "" if value is None else str(value)


@register_resolver("external_identifier")
class ExternalIdentifierResolver(UniqueAttributeResolver):
    attribute_name = "external_identifier"

    def is_value_equal(self, value1: Any, value2: Any) -> bool:
        raw1, raw2 = _display(value1), _display(value2)
        if raw1 == "" or raw2 == "":
            # a whitespace-only identifier still has to be cleared
            return raw1 == raw2
        return raw1.strip() == raw2.strip()


@register_resolver("preferred_language")
class PreferredLanguageResolver(SimpleAttributeResolver):
    attribute_name = "preferred_language"
