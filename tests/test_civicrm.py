"""
Tests for the CiviCRM REST client (HTTP mocked).
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from crmdedupe.civicrm import CiviCrmClient
from crmdedupe.errors import StoreError


def _response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(http):
    return CiviCrmClient("https://crm.example.org/", "api-key", "site-key", session=http)


def _sent(http, call=-1):
    data = http.post.call_args_list[call].kwargs["data"]
    return data["entity"], data["action"], json.loads(data["json"])


class TestCall:
    """Test the raw API call."""

    def test_posts_to_rest_endpoint(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": {}})

        client.call("Contact", "get", {"id": 1})

        args, kwargs = http.post.call_args
        assert args[0] == "https://crm.example.org/civicrm/ajax/rest"
        assert kwargs["data"]["api_key"] == "api-key"
        assert kwargs["data"]["key"] == "site-key"

    def test_api_error_raises(self, client, http):
        http.post.return_value = _response({"is_error": 1, "error_message": "DB Error"})

        with pytest.raises(StoreError, match="DB Error"):
            client.call("Contact", "get", {})

    def test_http_error_raises(self, client, http):
        http.post.return_value = _response({}, status_code=403)

        with pytest.raises(StoreError, match="403"):
            client.call("Contact", "get", {})

    def test_transient_errors_are_retried(self, client, http):
        http.post.side_effect = [
            requests.exceptions.ConnectionError("connection reset"),
            _response({"is_error": 0, "values": {}}),
        ]

        with patch("crmdedupe.retry.time.sleep"):
            client.call("Contact", "get", {})

        assert http.post.call_count == 2

    def test_retryable_status_is_retried(self, client, http):
        http.post.side_effect = [
            _response({}, status_code=503),
            _response({"is_error": 0, "values": {}}),
        ]

        with patch("crmdedupe.retry.time.sleep"):
            client.call("Contact", "get", {})

        assert http.post.call_count == 2

    def test_exhausted_retries_raise_store_error(self, client, http):
        http.post.side_effect = requests.exceptions.Timeout("read timed out")

        with patch("crmdedupe.retry.time.sleep"):
            with pytest.raises(StoreError):
                client.call("Contact", "get", {})

        assert http.post.call_count == 4


class TestContactStore:
    """Test the ContactStore methods."""

    def test_read(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": {
            "7": {"id": "7", "is_deleted": "0", "contact_type": "Individual"},
            "9": {"id": "9", "is_deleted": "1", "contact_type": "Individual"},
        }})

        result = client.read([9, 7], ["is_deleted", "contact_type"])

        assert result == {
            7: {"id": 7, "is_deleted": False, "contact_type": "Individual"},
            9: {"id": 9, "is_deleted": True, "contact_type": "Individual"},
        }
        entity, action, params = _sent(http)
        assert (entity, action) == ("Contact", "get")
        assert params["id"] == {"IN": [7, 9]}
        assert params["options"] == {"limit": 0}

    def test_update_clears_with_empty_string(self, client, http):
        http.post.return_value = _response({"is_error": 0, "count": 1, "values": {}})

        assert client.update(7, "external_identifier", None) is True
        assert _sent(http)[2] == {"id": 7, "external_identifier": ""}

    def test_merge_safe_mode(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": {"merged": [{"main_id": 1, "other_id": 2}], "skipped": []}})

        assert client.merge_contacts(1, 2, "safe") is True
        assert _sent(http)[2] == {"to_keep_id": 1, "to_remove_id": 2, "mode": "safe"}

    def test_merge_force_mode_sends_empty_mode(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": {"merged": [{"main_id": 1, "other_id": 2}]}})

        client.merge_contacts(1, 2, "force")

        assert _sent(http)[2]["mode"] == ""

    def test_merge_skipped_is_failure(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": {"merged": [], "skipped": [{"main_id": 1, "other_id": 2}]}})

        assert client.merge_contacts(1, 2, "safe") is False

    def test_get_details(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": [
            {"id": "3", "contact_id": "2", "name": "bob", "provider_id": "1", "location_type_id": "1"},
        ]})

        details = client.get_details("Im", [1, 2], ["name", "provider_id", "location_type_id"])

        assert details == [{"id": 3, "contact_id": 2, "name": "bob", "provider_id": "1", "location_type_id": "1"}]
        assert _sent(http)[0] == "Im"

    def test_move_and_delete_detail(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": {}})

        client.move_detail("Email", 5, 1)
        client.delete_detail("Email", 6)

        assert _sent(http, 0) == ("Email", "create", {"id": 5, "contact_id": 1})
        assert _sent(http, 1) == ("Email", "delete", {"id": 6})

    def test_location_types_are_cached(self, client, http):
        http.post.return_value = _response({"is_error": 0, "values": [
            {"id": "1", "name": "Home", "display_name": "Home"},
            {"id": "2", "name": "Work", "display_name": ""},
        ]})

        assert client.location_types() == {1: "Home", 2: "Work"}
        client.location_types()
        assert http.post.call_count == 1
