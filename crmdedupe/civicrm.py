"""
CiviCRM APIv3 REST client implementing the ContactStore contract.

All calls go through `<base_url>/civicrm/ajax/rest` as form posts carrying
`entity`, `action`, `json`, `api_key` and `key`. Timeouts, dropped
connections and retryable HTTP statuses are retried with backoff; API-level
errors (`is_error`) are not.
"""

import json
from typing import Any, Collection, Dict, List, Optional

import requests

from .errors import StoreError
from .interfaces import MERGE_MODES
from .logger import get_logger
from .retry import RetryError, TransientHTTPError, exponential_backoff, should_retry_http_status

logger = get_logger()

REST_PATH = "/civicrm/ajax/rest"


class CiviCrmClient:
    """ContactStore backed by a remote CiviCRM instance."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        site_key: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = base_url.rstrip("/") + REST_PATH
        self.api_key = api_key
        self.site_key = site_key
        self.timeout = timeout
        self.http = session or requests.Session()
        self._location_types: Optional[Dict[int, str]] = None

    @exponential_backoff(
        max_retries=3,
        base_delay=1.0,
        exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, TransientHTTPError),
    )
    def _post(self, data: Dict[str, str]) -> requests.Response:
        resp = self.http.post(self.endpoint, data=data, timeout=self.timeout)
        if should_retry_http_status(resp.status_code):
            raise TransientHTTPError(resp.status_code, self.endpoint)
        return resp

    def call(self, entity: str, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one APIv3 call and return the decoded reply.

        Raises:
            StoreError: on HTTP failure, exhausted retries, undecodable
                replies, or an `is_error` reply
        """
        data = {
            "entity": entity,
            "action": action,
            "api_key": self.api_key,
            "key": self.site_key,
            "json": json.dumps(params),
        }
        logger.record_api_call()
        try:
            resp = self._post(data)
            resp.raise_for_status()
            reply = resp.json()
        except RetryError as e:
            logger.record_api_failure("RetryError")
            logger.error("CiviCRM call failed after retries", entity=entity, action=action, error=str(e))
            raise StoreError(f"{entity}.{action} failed: {e}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            logger.record_api_failure(f"HTTPError_{status}")
            logger.error("CiviCRM request failed", entity=entity, action=action, status=status)
            raise StoreError(f"{entity}.{action} request failed ({status})") from e
        except requests.exceptions.RequestException as e:
            logger.record_api_failure("RequestException")
            logger.error("CiviCRM request error", entity=entity, action=action, error=str(e))
            raise StoreError(f"{entity}.{action} request error: {e}") from e
        except ValueError as e:
            logger.record_api_failure("InvalidJSON")
            raise StoreError(f"{entity}.{action} returned invalid JSON") from e

        if reply.get("is_error"):
            message = reply.get("error_message", "unknown error")
            logger.record_api_failure("APIError")
            logger.warning("CiviCRM API error", entity=entity, action=action, error=message)
            raise StoreError(f"{entity}.{action}: {message}")
        return reply

    def read(self, ids: Collection[int], fields: Collection[str]) -> Dict[int, Dict[str, Any]]:
        if not ids:
            return {}
        reply = self.call("Contact", "get", {
            "id": {"IN": sorted(ids)},
            "options": {"limit": 0},
            "return": ",".join(sorted(set(fields) | {"id"})),
            "sequential": 0,
        })
        contacts = {}
        for contact in reply.get("values", {}).values():
            contact_id = int(contact["id"])
            snapshot = {"id": contact_id}
            for f in fields:
                snapshot[f] = contact.get(f)
            if "is_deleted" in snapshot and snapshot["is_deleted"] is not None:
                snapshot["is_deleted"] = str(snapshot["is_deleted"]) not in ("", "0")
            contacts[contact_id] = snapshot
        return contacts

    def update(self, contact_id: int, field: str, value: Any) -> bool:
        # APIv3 clears a field with an empty string, not null
        reply = self.call("Contact", "create", {"id": contact_id, field: "" if value is None else value})
        return bool(reply.get("count", 1))

    def merge_contacts(self, keep_id: int, remove_id: int, mode: str = "safe") -> bool:
        if mode not in MERGE_MODES:
            raise StoreError(f"Unknown merge mode '{mode}'")
        reply = self.call("Contact", "merge", {
            "to_keep_id": keep_id,
            "to_remove_id": remove_id,
            "mode": "safe" if mode == "safe" else "",
        })
        values = reply.get("values") or {}
        merged = values.get("merged") or []
        if merged:
            return True
        logger.info("CiviCRM skipped merge", keep_id=keep_id, remove_id=remove_id, skipped=values.get("skipped"))
        return False

    def get_details(
        self, entity: str, contact_ids: Collection[int], fields: Collection[str]
    ) -> List[Dict[str, Any]]:
        if not contact_ids:
            return []
        reply = self.call(entity, "get", {
            "contact_id": {"IN": sorted(contact_ids)},
            "options": {"limit": 0, "sort": "id ASC"},
            "return": ",".join(sorted(set(fields) | {"id", "contact_id"})),
            "sequential": 1,
        })
        details = []
        for record in reply.get("values", []):
            detail = {"id": int(record["id"]), "contact_id": int(record["contact_id"])}
            for f in fields:
                detail[f] = record.get(f)
            details.append(detail)
        return details

    def move_detail(self, entity: str, detail_id: int, contact_id: int) -> None:
        self.call(entity, "create", {"id": detail_id, "contact_id": contact_id})

    def delete_detail(self, entity: str, detail_id: int) -> None:
        self.call(entity, "delete", {"id": detail_id})

    def location_types(self) -> Dict[int, str]:
        if self._location_types is None:
            reply = self.call("LocationType", "get", {
                "options": {"limit": 0},
                "return": "id,name,display_name",
                "sequential": 1,
            })
            self._location_types = {
                int(lt["id"]): lt.get("display_name") or lt.get("name", "")
                for lt in reply.get("values", [])
            }
        return self._location_types
