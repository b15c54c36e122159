"""
HTTPClient module for dispatching API requests with transient-failure retry logic
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import requests


class RequestCancelledError(Exception):
    """Raised when the caller's cancellation signal is set before a request completes"""
    pass


@dataclass
class APIRequest:
    """A fully assembled request, ready to be sent"""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    allow_redirects: bool = True
    signal: Any = None

    def to_fetch_config(self) -> Dict[str, Any]:
        """Fetch parameters as reported by pretend mode"""
        return {
            'method': self.method,
            'headers': dict(self.headers),
            'body': self.body,
            'redirect': 'follow' if self.allow_redirects else 'manual',
        }


@dataclass
class DispatchResult:
    """Terminal response of a dispatched request"""
    response: requests.Response
    retry_count: int = 0


class HTTPClient:
    """
    HTTP client issuing requests with retry and backoff

    Calls run in asyncio's worker threads. requests.Session is not
    thread-safe, so unless a session is injected each worker thread gets
    its own, created on first use. An injected session is shared by every
    thread and must tolerate concurrent use.
    """

    INITIAL_BACKOFF_SECONDS = 1.0

    def __init__(self, session: Optional[requests.Session] = None, backoff_factor: float = 2.0):
        self.backoff_factor = backoff_factor
        self.session: Optional[requests.Session] = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def is_transient(status_code: int) -> bool:
        """408 and every 5xx status are worth retrying"""
        return status_code == 408 or status_code >= 500

    @staticmethod
    def check_signal(signal: Any) -> None:
        """
        Raise if the caller's cancellation signal is set

        Args:
            signal: asyncio.Event, threading.Event or any object exposing is_set()

        Raises:
            RequestCancelledError: If the signal is set
        """
        if signal is not None and signal.is_set():
            raise RequestCancelledError("Request cancelled by caller")

    def _get_session(self) -> requests.Session:
        """Injected session, else the calling thread's own session"""
        if self.session is not None:
            return self.session

        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _request(self, request: APIRequest) -> requests.Response:
        return self._get_session().request(
            request.method,
            request.url,
            headers=request.headers,
            data=request.body,
            allow_redirects=request.allow_redirects,
        )

    async def send(self, request: APIRequest) -> requests.Response:
        """
        Perform a single HTTP call in a worker thread

        Args:
            request: APIRequest to send

        Returns:
            requests.Response, whatever its status

        Raises:
            RequestCancelledError: If the request's signal is already set
            requests.exceptions.RequestException: For network-level failures
        """
        self.check_signal(request.signal)
        self.logger.debug(f"{request.method} {request.url}")

        response = await asyncio.to_thread(self._request, request)

        self.logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return response

    async def dispatch(
        self,
        request: APIRequest,
        retry: int = 0,
        retry_delay: Optional[float] = None,
    ) -> DispatchResult:
        """
        Send a request, retrying transient failures

        Waits retry_delay seconds between attempts when given, otherwise backs
        off exponentially starting at one second. The last response observed
        is returned whether it succeeded or not.

        Args:
            request: APIRequest to send
            retry: Number of retries allowed after the first attempt
            retry_delay: Fixed delay in seconds, or None for exponential backoff

        Returns:
            DispatchResult with the terminal response and number of retries made

        Raises:
            RequestCancelledError: If the request's signal is set
        """
        remaining = max(int(retry or 0), 0)
        retry_count = 0
        backoff = self.INITIAL_BACKOFF_SECONDS

        while True:
            response = await self.send(request)

            if not self.is_transient(response.status_code) or remaining <= 0:
                return DispatchResult(
                    response=response,
                    retry_count=retry_count,
                )

            if retry_delay is not None:
                delay = float(retry_delay)
            else:
                delay = backoff
                backoff *= self.backoff_factor

            remaining -= 1
            retry_count += 1
            self.logger.warning(
                f"Transient {response.status_code} from {request.method} {request.url}, "
                f"retry {retry_count} in {delay}s ({remaining} left)"
            )

            self.check_signal(request.signal)
            await asyncio.sleep(delay)

    def close_connection(self) -> None:
        """
        Close HTTP sessions and release resources
        """
        if self.session:
            self.session.close()
            self.session = None

        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    async def __aenter__(self) -> "HTTPClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close_connection()
