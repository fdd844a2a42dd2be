"""Unit tests for the reference lookup HTTP client"""

import httpx
import pytest
from installment_ledger.domain.exceptions import ReferenceLookupError
from installment_ledger.infrastructure.clients.reference import HttpReferenceLookup

RECORDS = {
    "/files/F-1": {"id": "F-1", "memberId": "M-1", "plotId": "P-1", "isDeleted": False},
    "/members/M-1": {"id": "M-1", "isActive": True, "isDeleted": False},
    "/members/M-9": {"id": "M-9", "isActive": False},
    "/plots/P-1": {"id": "P-1"},
    "/installment-categories/CAT-DP": {"id": "CAT-DP", "name": "Down Payment", "isActive": True},
    "/files/F-BROKEN": {"id": "F-BROKEN"},
}


def _client(handler) -> HttpReferenceLookup:
    return HttpReferenceLookup(base_url="http://reference.test", timeout=1.0, transport=httpx.MockTransport(handler))


def _serve_records(request: httpx.Request) -> httpx.Response:
    record = RECORDS.get(request.url.path)
    if record is None:
        return httpx.Response(404, json={"detail": "not found"})
    return httpx.Response(200, json=record)


def test_get_file():
    record = _client(_serve_records).get_file("F-1")
    assert record.id == "F-1"
    assert record.member_id == "M-1"
    assert record.plot_id == "P-1"
    assert record.is_deleted is False


def test_get_member_and_plot_defaults():
    lookup = _client(_serve_records)
    assert lookup.get_member("M-1").is_active is True
    assert lookup.get_member("M-9").is_active is False
    assert lookup.get_plot("P-1").is_deleted is False


def test_get_category():
    category = _client(_serve_records).get_category("CAT-DP")
    assert category.name == "Down Payment"
    assert category.is_active is True


def test_missing_record_returns_none():
    lookup = _client(_serve_records)
    assert lookup.get_file("F-404") is None
    assert lookup.get_category("CAT-404") is None


def test_server_error_raises():
    lookup = _client(lambda request: httpx.Response(500))
    with pytest.raises(ReferenceLookupError):
        lookup.get_member("M-1")


def test_timeout_raises():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ReferenceLookupError, match="timeout"):
        _client(handler).get_plot("P-1")


def test_connection_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ReferenceLookupError, match="unreachable"):
        _client(handler).get_file("F-1")


def test_invalid_json_raises():
    lookup = _client(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(ReferenceLookupError):
        lookup.get_member("M-1")


def test_missing_keys_raise():
    with pytest.raises(ReferenceLookupError):
        _client(_serve_records).get_file("F-BROKEN")
