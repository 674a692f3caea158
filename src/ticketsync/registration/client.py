"""Client for the Registration RESTful Web Service (Reg-RWS)."""

import xml.etree.ElementTree as ET
from typing import BinaryIO
from urllib.parse import quote

import requests
import structlog
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout

from ticketsync.registration.errors import RemoteUnavailableError
from ticketsync.registration.payload import parse_document
from ticketsync.utils.retry import exponential_backoff_retry

log = structlog.stdlib.get_logger()

STREAM_CHUNK_SIZE = 64 * 1024


class RegistrationClient:
    """Fetches ticket documents from the registration service.

    Locators built by this client identify a remote resource and never contain
    the API key, which is added as the ``apikey`` query parameter per request.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        session: requests.Session | None = None,
    ):
        """
        Initialize the registration client.

        Args:
            base_url: Base URL of the service, e.g. https://reg.arin.net
            api_key: API key used to authenticate every request
            timeout: Per request timeout in seconds
            max_retries: Retries for connection failures and 5xx answers
            session: Optional requests session to reuse
        """
        self._base_url = str(base_url).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or requests.Session()
        self._send = exponential_backoff_retry(
            max_retries=max_retries,
            base_delay=1.0,
            max_delay=30.0,
            exceptions=(ConnectionError, Timeout, HTTPError),
        )(self._send_once)
        log.info("registration_client_initialized", base_url=self._base_url)

    def ticket_summary_uri(self, ticket_no: str | None = None) -> str:
        if ticket_no:
            return f"{self.ticket_uri(ticket_no)}/summary"
        return f"{self._base_url}/rest/ticket/summary"

    def ticket_uri(self, ticket_no: str) -> str:
        return f"{self._base_url}/rest/ticket/{quote(ticket_no, safe='')}"

    def ticket_message_uri(self, ticket_no: str, message_id: str) -> str:
        return f"{self.ticket_uri(ticket_no)}/message/{quote(message_id, safe='')}"

    def ticket_attachment_uri(self, ticket_no: str, message_id: str, attachment_id: str) -> str:
        return (
            f"{self.ticket_message_uri(ticket_no, message_id)}"
            f"/attachment/{quote(attachment_id, safe='')}"
        )

    def fetch_summary(self, ticket_no: str | None = None) -> ET.Element | None:
        """
        Get the summary of one ticket, or of all tickets when none is given.

        Returns:
            A ``ticket`` or ``collection`` element, or None if not found

        Raises:
            RemoteUnavailableError: If the service cannot be reached
            UnrecognizedResponseError: If the answer is not XML
        """
        return self.fetch_data(self.ticket_summary_uri(ticket_no))

    def fetch_data(self, locator: str) -> ET.Element | None:
        """
        Get the document at ``locator``.

        Returns:
            The root element, or None if the resource does not exist

        Raises:
            RemoteUnavailableError: If the service cannot be reached
            UnrecognizedResponseError: If the answer is not XML
        """
        log.debug("fetching_data", locator=locator)
        response = self._get(locator, stream=False)
        if response is None:
            return None
        return parse_document(response.content)

    def fetch_data_as_stream(self, locator: str, sink: BinaryIO) -> bool:
        """
        Copy the body at ``locator`` into ``sink`` chunk by chunk.

        Returns:
            True if a body was written, False if the resource does not exist

        Raises:
            RemoteUnavailableError: If the service cannot be reached or the
                transfer breaks off
        """
        log.debug("streaming_data", locator=locator)
        response = self._get(locator, stream=True)
        if response is None:
            return False

        written = 0
        try:
            with response:
                for chunk in response.iter_content(chunk_size=STREAM_CHUNK_SIZE):
                    sink.write(chunk)
                    written += len(chunk)
        except RequestException as e:
            log.error("stream_interrupted", locator=locator, bytes_written=written, error=str(e))
            raise RemoteUnavailableError(f"Transfer of {locator} failed: {e}") from e

        log.debug("stream_complete", locator=locator, bytes_written=written)
        return True

    def _get(self, locator: str, stream: bool) -> requests.Response | None:
        try:
            response = self._send(locator, stream)
        except RequestException as e:
            log.error("registration_request_failed", locator=locator, error=str(e))
            raise RemoteUnavailableError(f"Unable to reach {locator}: {e}") from e

        if response.status_code == 404:
            response.close()
            log.info("resource_not_found", locator=locator)
            return None
        if response.status_code >= 400:
            response.close()
            log.error("registration_request_rejected", locator=locator, status=response.status_code)
            raise RemoteUnavailableError(
                f"Service answered {response.status_code} for {locator}"
            )
        return response

    def _send_once(self, locator: str, stream: bool) -> requests.Response:
        response = self._session.get(
            locator,
            params={"apikey": self._api_key},
            timeout=self._timeout,
            stream=stream,
        )
        if response.status_code >= 500:
            response.close()
            response.raise_for_status()
        return response
