"""
Resolvers moving detail records (emails, phones, IM handles).

Every detail of the other contacts is compared with the details already on
the main contact. Duplicates are dropped, everything else is re-owned by
the main contact, so the merge never has to reconcile them.
"""

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ResolverFailure, StoreError
from .base import Resolver, register_resolver


class DetailMover(Resolver):
    """Base class for moving one detail entity to the main contact."""

    entity: str = ""
    fields: Tuple[str, ...] = ()

    def __init__(self, merge):
        super().__init__(merge)
        self._location_types: Optional[Dict[int, str]] = None

    def details_equal(self, detail1: Dict[str, Any], detail2: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def get_one_liner(self, detail: Dict[str, Any]) -> str:
        raise NotImplementedError

    def resolve(self, main_contact_id: int, other_contact_ids: Sequence[int]) -> bool:
        store = self.merge.store
        try:
            details = store.get_details(self.entity, [main_contact_id, *other_contact_ids], self.fields)
        except StoreError as e:
            raise ResolverFailure(f"Couldn't load {self.entity} details: {e}") from e

        main_details: List[Dict[str, Any]] = [d for d in details if d["contact_id"] == main_contact_id]
        touched = set()

        for other_contact_id in sorted(other_contact_ids):
            for detail in details:
                if detail["contact_id"] != other_contact_id:
                    continue
                one_liner = self.get_one_liner(detail)
                touched.add(other_contact_id)
                try:
                    if any(self.details_equal(detail, existing) for existing in main_details):
                        store.delete_detail(self.entity, detail["id"])
                        self.add_merge_detail(
                            f"Dropped duplicate {self.entity} '{one_liner}' of contact [{other_contact_id}]"
                        )
                    else:
                        store.move_detail(self.entity, detail["id"], main_contact_id)
                        main_details.append(dict(detail, contact_id=main_contact_id))
                        self.add_merge_detail(
                            f"Moved {self.entity} '{one_liner}' from contact [{other_contact_id}] "
                            f"to [{main_contact_id}]"
                        )
                except StoreError as e:
                    self._unload(main_contact_id, touched)
                    raise ResolverFailure(
                        f"Couldn't move {self.entity} [{detail['id']}] of contact [{other_contact_id}]: {e}"
                    ) from e

        if not touched:
            return False
        self._unload(main_contact_id, touched)
        return True

    def _unload(self, main_contact_id: int, other_contact_ids) -> None:
        self.merge.unload_contact(main_contact_id)
        for contact_id in other_contact_ids:
            self.merge.unload_contact(contact_id)

    def location_label(self, location_type_id: Any) -> str:
        if self._location_types is None:
            self._location_types = self.merge.store.location_types()
        try:
            return self._location_types.get(int(location_type_id), str(location_type_id))
        except (TypeError, ValueError):
            return str(location_type_id)

    def get_help(self) -> str:
        return f"Move {self.entity} details to the main contact, unless they're duplicates"


@register_resolver("email_mover")
class EmailMover(DetailMover):
    entity = "Email"
    fields = ("email", "location_type_id")

    def get_name(self) -> str:
        return "Email Mover"

    def get_help(self) -> str:
        return "Move emails to the main contact, unless they're duplicates"

    def get_one_liner(self, detail):
        return f"{detail['email']} ({self.location_label(detail['location_type_id'])})"

    def details_equal(self, detail1, detail2):
        return (detail1["email"] or "").strip().lower() == (detail2["email"] or "").strip().lower()


@register_resolver("phone_mover")
class PhoneMover(DetailMover):
    entity = "Phone"
    fields = ("phone", "phone_type_id", "location_type_id")

    def get_name(self) -> str:
        return "Phone Mover"

    def get_help(self) -> str:
        return "Move phone numbers to the main contact, unless they're duplicates"

    def get_one_liner(self, detail):
        return f"{detail['phone']} ({self.location_label(detail['location_type_id'])})"

    def details_equal(self, detail1, detail2):
        return _digits(detail1["phone"]) == _digits(detail2["phone"])


@register_resolver("im_mover")
class IMMover(DetailMover):
    entity = "Im"
    fields = ("name", "provider_id", "location_type_id")

    def get_name(self) -> str:
        return "IM Mover"

    def get_help(self) -> str:
        return "Move instant messenger contacts to the main contact, unless they're duplicates"

    def get_one_liner(self, detail):
        return f"{detail['name']} ({self.location_label(detail['location_type_id'])})"

    def details_equal(self, detail1, detail2):
        # location type is not part of the identity
        return detail1["name"] == detail2["name"] and detail1["provider_id"] == detail2["provider_id"]


def _digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")
