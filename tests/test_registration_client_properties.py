"""Tests for the registration service client.

HTTP traffic is faked with a mocked ``requests.Session`` returning real
``requests.Response`` objects.
"""

import io
from unittest.mock import MagicMock

import pytest
import requests
import structlog
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ticketsync.registration.client import RegistrationClient
from ticketsync.registration.errors import RemoteUnavailableError, UnrecognizedResponseError

from conftest import BASE_URL

log = structlog.stdlib.get_logger()


class BrokenStream(io.BytesIO):
    """Raw body that breaks off after the first read."""

    def read(self, *args, **kwargs):
        if self.tell() > 0:
            raise requests.exceptions.ChunkedEncodingError("connection reset")
        return super().read(4)


def make_response(status: int, body: bytes = b"", raw: io.BytesIO | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "Test"
    response.url = BASE_URL
    response.raw = raw if raw is not None else io.BytesIO(body)
    return response


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session: MagicMock) -> RegistrationClient:
    return RegistrationClient(BASE_URL + "/", "API-KEY", timeout=5, max_retries=2, session=session)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    waits: list[float] = []
    monkeypatch.setattr("ticketsync.utils.retry.time.sleep", waits.append)
    return waits


class TestLocators:
    def test_locators(self, client: RegistrationClient) -> None:
        assert client.ticket_summary_uri() == f"{BASE_URL}/rest/ticket/summary"
        assert client.ticket_summary_uri("20230002") == f"{BASE_URL}/rest/ticket/20230002/summary"
        assert client.ticket_uri("20230002") == f"{BASE_URL}/rest/ticket/20230002"
        assert client.ticket_message_uri("1", "9") == f"{BASE_URL}/rest/ticket/1/message/9"
        assert client.ticket_attachment_uri("1", "9", "4") == f"{BASE_URL}/rest/ticket/1/message/9/attachment/4"

    @given(st.text(min_size=1, max_size=20))
    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_identifiers_cannot_escape_their_segment(self, ticket_no: str) -> None:
        client = RegistrationClient(BASE_URL, "API-KEY", session=MagicMock())

        locator = client.ticket_uri(ticket_no)

        assert locator.startswith(f"{BASE_URL}/rest/ticket/")
        assert "/" not in locator[len(f"{BASE_URL}/rest/ticket/") :]


class TestFetchData:
    def test_api_key_travels_as_query_parameter(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.return_value = make_response(200, b"<ticket><ticketNo>1</ticketNo></ticket>")

        element = client.fetch_data(client.ticket_uri("1"))

        assert element.tag == "ticket"
        args, kwargs = session.get.call_args
        assert args[0] == f"{BASE_URL}/rest/ticket/1"
        assert kwargs["params"] == {"apikey": "API-KEY"}
        assert kwargs["timeout"] == 5

    def test_not_found_is_none(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.return_value = make_response(404)

        assert client.fetch_data(client.ticket_uri("1")) is None
        assert client.fetch_summary("1") is None
        assert session.get.call_count == 2

    def test_client_errors_are_not_retried(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.return_value = make_response(401)

        with pytest.raises(RemoteUnavailableError, match="401"):
            client.fetch_data(client.ticket_uri("1"))

        assert session.get.call_count == 1

    def test_server_errors_are_retried(
        self, client: RegistrationClient, session: MagicMock, no_backoff: list[float]
    ) -> None:
        session.get.side_effect = [
            make_response(503),
            make_response(500),
            make_response(200, b"<collection/>"),
        ]

        element = client.fetch_summary()

        assert element.tag == "collection"
        assert session.get.call_count == 3
        assert no_backoff == [1.0, 2.0]

    def test_retries_exhausted(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(RemoteUnavailableError, match="Unable to reach"):
            client.fetch_summary()

        assert session.get.call_count == 3

    def test_body_that_is_not_xml(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.return_value = make_response(200, b"<html><body>maintenance")

        with pytest.raises(UnrecognizedResponseError):
            client.fetch_data(client.ticket_uri("1"))


class TestStreaming:
    def test_body_is_copied_to_sink(self, client: RegistrationClient, session: MagicMock) -> None:
        payload = bytes(range(256)) * 1024
        session.get.return_value = make_response(200, payload)
        sink = io.BytesIO()

        assert client.fetch_data_as_stream(client.ticket_attachment_uri("1", "2", "3"), sink) is True

        assert sink.getvalue() == payload
        assert session.get.call_args.kwargs["stream"] is True

    def test_missing_attachment_writes_nothing(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.return_value = make_response(404)
        sink = io.BytesIO()

        assert client.fetch_data_as_stream(client.ticket_attachment_uri("1", "2", "3"), sink) is False
        assert sink.getvalue() == b""

    def test_interrupted_transfer(self, client: RegistrationClient, session: MagicMock) -> None:
        session.get.return_value = make_response(200, raw=BrokenStream(b"0123456789"))
        sink = io.BytesIO()

        with pytest.raises(RemoteUnavailableError, match="failed"):
            client.fetch_data_as_stream(client.ticket_attachment_uri("1", "2", "3"), sink)

        assert sink.getvalue() == b"0123"
