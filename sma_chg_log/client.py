"""HTTP client for the device's customer message API."""

from __future__ import annotations

import json
import logging
import warnings
from collections.abc import Iterator
from datetime import datetime
from urllib.parse import urlencode, urlsplit

import requests

from .logconfig import TRACE
from .models import TIME_MAX, TIME_ZERO, Message, SearchRequest, messages_from_json

SEARCH_PATH = "/api/v1/customermessages/search"
TOKEN_PATH = "/api/v1/token"
COMPONENT_ID = "IGULD:SELF"

_log = logging.getLogger(__name__)


class ClientError(Exception):
    """Raised when talking to the device API fails."""


class Client:
    """Fetches customer messages, handling bearer token authentication."""

    def __init__(self, base_url: str, username: str, password: str) -> None:
        self.base_url = base_url
        self.username = username
        self._password = password
        self._token = ""
        self._session = requests.Session()
        _log.debug("initializing client url=%s username=%s", base_url, username)

    def _send(self, method: str, path: str, body: str | bytes, headers: dict[str, str]) -> requests.Response:
        request = requests.Request(method, self.base_url + path, data=body, headers=headers)
        prepared = self._session.prepare_request(request)
        tracing = _log.isEnabledFor(TRACE)
        if tracing:
            self._log_request(prepared)
        # The device serves a self-signed certificate.
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message="Unverified HTTPS request")
            response = self._session.send(prepared, verify=False)
        if tracing:
            self._log_response(response)
        return response

    @staticmethod
    def _log_request(prepared: requests.PreparedRequest) -> None:
        headers = {
            key: "[REDACTED]" if key.lower() == "authorization" else value
            for key, value in prepared.headers.items()
        }
        body = prepared.body
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        _log.log(
            TRACE,
            "request method=%s path=%s url=%s headers=%s payload=%s",
            prepared.method,
            urlsplit(prepared.url or "").path,
            prepared.url,
            headers,
            body or "",
        )

    @staticmethod
    def _log_response(response: requests.Response) -> None:
        _log.log(
            TRACE,
            "response status=%s path=%s headers=%s payload=%s",
            response.status_code,
            urlsplit(response.url or "").path,
            dict(response.headers),
            response.text,
        )

    def fetch_token(self) -> str:
        """Obtain a new bearer token and remember it."""
        _log.debug("fetching new token")
        form = {"grant_type": "password", "username": self.username, "password": self._password}
        try:
            response = self._send(
                "POST",
                TOKEN_PATH,
                urlencode(sorted(form.items())),
                {"Content-Type": "application/x-www-form-urlencoded"},
            )
        except requests.RequestException as exc:
            raise ClientError(f"failed to fetch token: {exc}") from exc

        if response.status_code != 200:
            raise ClientError(f"token request failed with status: {response.status_code}")

        try:
            data = json.loads(response.content)
            if not isinstance(data, dict):
                raise ValueError("token response is not a JSON object")
            token = data.get("access_token") or ""
            if not isinstance(token, str):
                raise ValueError("access_token is not a string")
        except ValueError as exc:
            raise ClientError(f"failed to decode token response: {exc}") from exc

        if not token:
            raise ClientError("received empty access token")
        self._token = token
        return token

    def _get_token(self) -> str:
        if not self._token:
            try:
                self.fetch_token()
            except ClientError as exc:
                raise ClientError(f"failed to refresh token: {exc}") from exc
        return self._token

    def search_messages(self, marker: str, offset: int) -> list[Message]:
        """Fetch one page of messages, newest first, starting at marker and offset.

        An expired token is renewed once when the device answers 401.
        """
        request = SearchRequest(component_id=COMPONENT_ID, marker=marker, offset=offset)
        body = json.dumps(request.to_dict(), separators=(",", ":")).encode()

        retry = True
        while True:
            headers = {
                "Content-Type": "application/json",
                "Authorization": "Bearer " + self._get_token(),
            }
            try:
                response = self._send("POST", SEARCH_PATH, body, headers)
            except requests.RequestException as exc:
                raise ClientError(f"failed to execute request: {exc}") from exc
            if response.status_code == 401 and retry:
                self._token = ""
                retry = False
                continue
            break

        if response.status_code != 200:
            raise ClientError(f"request failed with status: {response.status_code}")

        try:
            messages = messages_from_json(response.content)
        except ValueError as exc:
            raise ClientError(f"failed to decode response: {exc}") from exc

        _log.debug("fetched messages count=%d marker=%s offset=%d", len(messages), marker, offset)
        return messages

    def fetch_all_messages(
        self, start: datetime | None, until: datetime | None
    ) -> Iterator[list[Message]]:
        """Yield batches of messages with start <= timestamp < until, newest first.

        Paging stops once a page reaches past start or comes back empty;
        leaving the loop early stops fetching. None means no bound.
        """
        lower = start if start is not None else TIME_ZERO
        upper = until if until is not None else TIME_MAX
        marker = ""
        offset = 0

        while True:
            try:
                messages = self.search_messages(marker, offset)
            except ClientError as exc:
                raise ClientError(f"failed to fetch messages: {exc}") from exc

            if not messages:
                return

            in_range = [msg for msg in messages if lower <= msg.timestamp < upper]
            if in_range:
                yield in_range

            last = messages[-1]
            if last.timestamp < lower:
                return

            offset += len(messages)
            marker = last.marker