"""
Unit tests for BatchSender.

Coverage goals:
- 2xx classified as Delivered
- non-2xx classified as Rejected, with transient detection for 5xx
- timeouts and connection errors classified as TransportFailure
- payload shape, API key header, single request per batch
"""

import json
from unittest.mock import Mock

import httpx
import pytest
import respx

from dispense_sync.core.models import Batch, BatchKey, DispenseRecord
from dispense_sync.delivery import BatchSender, Delivered, Rejected, TransportFailure

API_URL = "https://middleware.example.com/api/dispense"


def _batch(count: int = 3, number: int = 1) -> Batch:
    records = [
        DispenseRecord(f_prescriptionno=f"RX{i}", f_prescriptiondate="20250102", f_seq=i, f_hn="  ")
        for i in range(count)
    ]
    keys = [BatchKey(record_identifier=f"RX{i}", record_date="20250102") for i in range(count)]
    return Batch(number=number, records=records, keys=keys)


@pytest.fixture
def mock_metrics():
    """Create mock MetricsCollector."""
    return Mock()


@pytest.mark.unit
@respx.mock
def test_2xx_is_delivered(mock_metrics):
    route = respx.post(API_URL).mock(return_value=httpx.Response(200, json={"status": "ok"}))
    sender = BatchSender(API_URL, metrics=mock_metrics)

    outcome = sender.send(_batch())

    assert isinstance(outcome, Delivered)
    assert outcome.ok
    assert outcome.status_code == 200
    assert route.call_count == 1
    mock_metrics.record_batch_sent.assert_called_once()
    assert mock_metrics.record_batch_sent.call_args[0][:2] == ("delivered", 3)


@pytest.mark.unit
@respx.mock
def test_other_2xx_codes_are_delivered(mock_metrics):
    respx.post(API_URL).mock(return_value=httpx.Response(202))
    outcome = BatchSender(API_URL, metrics=mock_metrics).send(_batch())

    assert isinstance(outcome, Delivered)


@pytest.mark.unit
@respx.mock
def test_payload_is_wrapped_records_without_keys(mock_metrics):
    route = respx.post(API_URL).mock(return_value=httpx.Response(200))
    sender = BatchSender(API_URL, payload_field="data", metrics=mock_metrics)

    sender.send(_batch(2))

    request = route.calls.last.request
    body = json.loads(request.content)
    assert list(body) == ["data"]
    assert [r["f_prescriptionno"] for r in body["data"]] == ["RX0", "RX1"]
    assert body["data"][0]["f_seq"] == 0
    assert body["data"][0]["f_hn"] is None
    assert "record_identifier" not in body["data"][0]
    assert request.headers["content-type"] == "application/json"


@pytest.mark.unit
@respx.mock
def test_api_key_header(mock_metrics):
    route = respx.post(API_URL).mock(return_value=httpx.Response(200))
    BatchSender(API_URL, api_key="secret-key", metrics=mock_metrics).send(_batch(1))

    assert route.calls.last.request.headers["X-API-Key"] == "secret-key"


@pytest.mark.unit
@respx.mock
def test_no_api_key_header_by_default(mock_metrics):
    route = respx.post(API_URL).mock(return_value=httpx.Response(200))
    BatchSender(API_URL, metrics=mock_metrics).send(_batch(1))

    assert "X-API-Key" not in route.calls.last.request.headers


@pytest.mark.unit
@respx.mock
def test_5xx_is_rejected_and_transient(mock_metrics):
    respx.post(API_URL).mock(return_value=httpx.Response(500, text="Internal Server Error"))
    outcome = BatchSender(API_URL, metrics=mock_metrics).send(_batch())

    assert isinstance(outcome, Rejected)
    assert not outcome.ok
    assert outcome.status_code == 500
    assert outcome.is_transient
    assert "Internal Server Error" in outcome.describe()
    assert mock_metrics.record_batch_sent.call_args[0][0] == "rejected"


@pytest.mark.unit
@respx.mock
def test_4xx_is_rejected_and_not_transient(mock_metrics):
    respx.post(API_URL).mock(return_value=httpx.Response(422, json={"error": "bad field"}))
    outcome = BatchSender(API_URL, metrics=mock_metrics).send(_batch())

    assert isinstance(outcome, Rejected)
    assert not outcome.is_transient


@pytest.mark.unit
@respx.mock
def test_redirect_is_rejected(mock_metrics):
    respx.post(API_URL).mock(return_value=httpx.Response(302, headers={"location": "https://elsewhere"}))
    outcome = BatchSender(API_URL, metrics=mock_metrics).send(_batch())

    assert isinstance(outcome, Rejected)
    assert outcome.status_code == 302


@pytest.mark.unit
@respx.mock
@pytest.mark.parametrize("error", [
    httpx.ConnectTimeout("timed out"),
    httpx.ReadTimeout("timed out"),
    httpx.ConnectError("connection refused"),
])
def test_transport_errors(mock_metrics, error):
    route = respx.post(API_URL).mock(side_effect=error)
    outcome = BatchSender(API_URL, metrics=mock_metrics).send(_batch())

    assert isinstance(outcome, TransportFailure)
    assert not outcome.ok
    assert outcome.is_transient
    assert outcome.error_type == type(error).__name__
    # No internal retry
    assert route.call_count == 1
    assert mock_metrics.record_batch_sent.call_args[0][0] == "transport_failure"


@pytest.mark.unit
def test_supplied_client_gets_headers_and_is_not_closed(mock_metrics):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with BatchSender(API_URL, api_key="k", client=client, metrics=mock_metrics) as sender:
        outcome = sender.send(_batch(1))

    assert isinstance(outcome, Delivered)
    assert client.headers["X-API-Key"] == "k"
    assert not client.is_closed
    client.close()


@pytest.mark.unit
@respx.mock
@pytest.mark.parametrize("error", [
    httpx.TooManyRedirects("Exceeded maximum allowed redirects."),
    httpx.DecodingError("invalid gzip stream"),
])
def test_protocol_errors_are_permanent_failures(mock_metrics, error):
    route = respx.post(API_URL).mock(side_effect=error)
    outcome = BatchSender(API_URL, metrics=mock_metrics).send(_batch())

    assert isinstance(outcome, TransportFailure)
    assert not outcome.ok
    assert not outcome.is_transient
    assert outcome.error_type == type(error).__name__
    assert route.call_count == 1
    mock_metrics.record_batch_sent.assert_called_once()
