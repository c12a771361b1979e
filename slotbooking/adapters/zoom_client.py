"""
Zoom REST API client for meeting rooms (server-to-server OAuth).
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Callable, NamedTuple, Optional, Tuple

import requests
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, ConferenceAPIError
from ..domain.models import ConferenceRef

logger = logging.getLogger(__name__)

RECORDING_MODES = {True: "cloud", False: "none"}

# Refresh slightly before Zoom's stated expiry
EXPIRY_MARGIN_SECONDS = 60


class AccessToken(NamedTuple):
    value: str
    expires_at: float


class AccessTokenCache:
    """
    Single-assignment holder for a bearer token.

    The token is replaced only as a whole: either by a fetch after expiry or
    invalidation, never field by field.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, fetch: Callable[[], Tuple[str, float]]) -> str:
        """
        Return the cached token, calling ``fetch`` for a new one when needed.

        ``fetch`` returns the token and its lifetime in seconds.
        """
        token = self._token
        if token is not None and token.expires_at > self._clock():
            return token.value

        with self._lock:
            token = self._token
            if token is None or token.expires_at <= self._clock():
                value, lifetime = fetch()
                token = AccessToken(
                    value=value,
                    expires_at=self._clock() + max(lifetime - EXPIRY_MARGIN_SECONDS, 0),
                )
                self._token = token
            return token.value

    def invalidate(self, value: str) -> None:
        """Drop the cached token if it is still ``value``."""
        with self._lock:
            if self._token is not None and self._token.value == value:
                self._token = None


class ZoomClient:
    """
    Creates and deletes Zoom meetings for bookings.

    One instance is shared by all requests; it owns its token cache and is
    injected wherever meetings are needed.
    """

    BASE_URL = "https://api.zoom.us/v2"
    TOKEN_URL = "https://zoom.us/oauth/token"

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        timezone: str = "UTC",
        base_url: str = BASE_URL,
        token_url: str = TOKEN_URL,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        token_cache: Optional[AccessTokenCache] = None,
    ):
        self.account_id = account_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.timezone = timezone
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._tokens = token_cache or AccessTokenCache()

    def _fetch_token(self) -> Tuple[str, float]:
        try:
            response = self._session.post(
                self.token_url,
                params={"grant_type": "account_credentials", "account_id": self.account_id},
                auth=(self.client_id, self._client_secret),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Failed to authenticate with Zoom API: {e}") from e

        if "access_token" not in data:
            raise AuthenticationError("Zoom token response did not contain an access token")

        expires_in = float(data.get("expires_in", 3600))
        logger.debug("Obtained Zoom access token valid for %ss", expires_in)
        return data["access_token"], expires_in

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        token = self._tokens.get(self._fetch_token)

        try:
            response = self._session.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout_seconds,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            raise ConferenceAPIError(f"Zoom API {method} {path} failed: {e}") from e

        if response.status_code == 401:
            self._tokens.invalidate(token)
            raise AuthenticationError("Zoom rejected the access token")

        if not response.ok:
            raise ConferenceAPIError(
                f"Zoom API {method} {path} failed with {response.status_code}: {_error_message(response)}"
            )

        return response

    def create_meeting(
        self,
        topic: str,
        start: DateTime,
        duration_minutes: int,
        recording: bool,
    ) -> ConferenceRef:
        """
        Schedule a meeting.

        Raises:
            AuthenticationError: If no valid token can be obtained
            ConferenceAPIError: If Zoom rejects the request
        """
        payload = {
            "topic": topic,
            "type": 2,  # scheduled meeting
            "start_time": start.in_timezone("UTC").format("YYYY-MM-DDTHH:mm:ss[Z]"),
            "duration": duration_minutes,
            "timezone": self.timezone,
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": False,
                "mute_upon_entry": True,
                "use_pmi": False,
                "approval_type": 0,
                "audio": "both",
                "auto_recording": RECORDING_MODES[bool(recording)],
            },
        }

        data = self._request("POST", "/users/me/meetings", json=payload).json()

        try:
            return ConferenceRef(
                id=str(data["id"]),
                join_url=data["join_url"],
                password=data.get("password"),
            )
        except KeyError as e:
            raise ConferenceAPIError(f"Zoom meeting response missing {e}") from e

    def delete_meeting(self, meeting_id: str) -> None:
        self._request("DELETE", f"/meetings/{meeting_id}")
        logger.info("Deleted Zoom meeting %s", meeting_id)

    async def create_room(
        self,
        topic: str,
        start: DateTime,
        duration_minutes: int,
        recording: bool,
    ) -> ConferenceRef:
        return await asyncio.to_thread(
            self.create_meeting, topic, start, duration_minutes, recording
        )

    async def delete_room(self, room_id: str) -> None:
        await asyncio.to_thread(self.delete_meeting, room_id)


def _error_message(response: requests.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except ValueError:
        return response.text
