"""
Remote session service client.

Same contract as the SQLite store's session half (SessionBackend), against an
HTTP service:

    GET    {base}/api/sessions               -> list of session summaries
    GET    {base}/api/sessions/{identity}    -> session document (404 if none)
    PUT    {base}/api/sessions/{identity}    -> store document
    DELETE {base}/api/sessions/{identity}    -> remove (404 if none)
"""

import logging
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import PersistenceError, SessionBackendError, SessionConnectionError
from ..state_store.base import SessionSummary

logger = logging.getLogger(__name__)


class RemoteSessionClient:
    """
    Client for a remote session service.

    Features:
    - Bearer token authentication
    - Automatic retry with backoff on transient failures
    - Typed errors (SessionConnectionError / SessionBackendError)
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize the session client.

        Args:
            base_url: Service URL (e.g., "https://audit.example.com")
            token: Bearer token (optional)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "PUT", "DELETE"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _session_path(self, identity: str) -> str:
        return f"/api/sessions/{quote(identity, safe='')}"

    def _request(
        self,
        method: str,
        endpoint: str,
        json_data: dict | None = None,
        allow_not_found: bool = False,
    ) -> requests.Response | None:
        """Make a request; returns None on 404 when allow_not_found is set."""
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"Session API request: {method} {url}")

        try:
            response = self.session.request(
                method=method, url=url, json=json_data, timeout=self.timeout
            )
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error to {url}: {e}")
            raise SessionConnectionError(
                f"Failed to connect to session service at {self.base_url}: {e}"
            ) from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout for {url}: {e}")
            raise SessionConnectionError(f"Request to session service timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {url}: {e}")
            raise SessionBackendError(f"Request failed: {e}") from e

        if response.status_code == 404 and allow_not_found:
            return None

        if not response.ok:
            try:
                message = response.json().get("message", response.reason)
            except ValueError:
                message = response.reason
            logger.error(f"Session API error {response.status_code}: {message}")
            raise SessionBackendError(
                f"Session service error {response.status_code}: {message}",
                status_code=response.status_code,
            )

        return response

    def test_connection(self) -> bool:
        """Check that the service answers."""
        try:
            self._request("GET", "/api/sessions")
            return True
        except PersistenceError:
            return False

    def session_exists(self, identity: str) -> bool:
        return self._request("GET", self._session_path(identity), allow_not_found=True) is not None

    def load_session(self, identity: str) -> dict | None:
        response = self._request("GET", self._session_path(identity), allow_not_found=True)
        if response is None:
            return None
        try:
            document = response.json()
        except ValueError as e:
            raise SessionBackendError(f"Session service returned invalid JSON: {e}") from e
        # Some deployments wrap the document
        if isinstance(document, dict) and isinstance(document.get("data"), dict):
            return document["data"]
        return document

    def save_session(self, identity: str, document: dict) -> None:
        self._request("PUT", self._session_path(identity), json_data=document)
        logger.debug(f"Saved remote session for {identity}")

    def delete_session(self, identity: str) -> bool:
        return (
            self._request("DELETE", self._session_path(identity), allow_not_found=True)
            is not None
        )

    def list_sessions(self) -> list[SessionSummary]:
        response = self._request("GET", "/api/sessions")
        try:
            payload = response.json()
        except ValueError as e:
            raise SessionBackendError(f"Session service returned invalid JSON: {e}") from e
        items = payload.get("sessions", []) if isinstance(payload, dict) else payload
        return [SessionSummary.from_dict(item) for item in items or []]
