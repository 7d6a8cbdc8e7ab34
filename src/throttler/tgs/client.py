"""TGSClient - Talks to the tgstation-server REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from throttler.logging import sanitize_for_log, truncate_output
from throttler.tgs.exceptions import AuthenticationError, TGSError, TGSRequestError
from throttler.tgs.models import RepositoryState, TestMerge

logger = logging.getLogger("throttler.tgs")

DEFAULT_API_VERSION = "Tgstation.Server.Api/9.2.0"


class TGSClient:
    """Client for the tgstation-server build-orchestration API.

    Handles login, identity lookup, repository updates and deployments.
    Instance-scoped calls carry the instance ID in the ``Instance`` header.
    """

    def __init__(
        self,
        base_url: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
    ) -> None:
        """Initialize TGS client.

        Args:
            base_url: Server URL including the port (e.g. "http://localhost:5000")
            api_version: Value sent in the ``Api`` header
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self._token: str | None = None
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client for the API."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={
                    "Api": self.api_version,
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    @property
    def authenticated(self) -> bool:
        """Whether a bearer token has been obtained."""
        return self._token is not None

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> TGSClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        instance_id: int | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and check the response status.

        Raises:
            TGSRequestError: If the server answers with a non-2xx status
            TGSError: If the request could not be sent
        """
        headers: dict[str, str] = kwargs.pop("headers", {})
        if instance_id is not None:
            headers["Instance"] = str(instance_id)

        try:
            response = self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TGSError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            body = sanitize_for_log(truncate_output(response.text))
            raise TGSRequestError(
                f"{method} {path} failed: {response.status_code} - {body}",
                status_code=response.status_code,
            )
        return response

    def _request_json(
        self,
        method: str,
        path: str,
        instance_id: int | None = None,
        **kwargs: Any,
    ) -> Any:
        """Send a request and decode the JSON response body.

        Raises:
            TGSRequestError: If the server answers with a non-2xx status
            TGSError: If the request could not be sent or the body is not JSON
        """
        response = self._request(method, path, instance_id=instance_id, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            body = sanitize_for_log(truncate_output(response.text, max_length=200))
            raise TGSError(f"{method} {path} returned invalid JSON: {body}") from e

    def login(self, username: str, password: str) -> None:
        """Log in and attach the bearer token to subsequent requests.

        Args:
            username: TGS user name
            password: TGS password

        Raises:
            AuthenticationError: If the credentials are rejected
            TGSError: If the server cannot be reached
        """
        logger.debug("Logging in to %s as %s", self.base_url, username)
        try:
            response = self._request("POST", "/", auth=(username, password))
        except TGSRequestError as e:
            raise AuthenticationError(f"Login as '{username}' rejected: {e}") from e

        try:
            token = response.json().get("bearer")
        except (AttributeError, ValueError) as e:
            raise AuthenticationError("Login response was not valid JSON") from e
        if not token:
            raise AuthenticationError("Login response did not contain a bearer token")

        self._token = token
        self.client.headers["Authorization"] = f"Bearer {token}"
        logger.info("Logged in to %s as %s", self.base_url, username)

    def _require_session(self) -> None:
        if not self.authenticated:
            raise AuthenticationError("Not logged in")

    def get_user_id(self) -> int:
        """Get the ID of the logged in user.

        Returns:
            The user ID jobs started through this session are attributed to
        """
        self._require_session()
        data = self._request_json("GET", "/User")
        try:
            return int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise TGSError(f"GET /User returned no usable user ID: {e!r}") from e

    def get_repository(self, instance_id: int) -> RepositoryState:
        """Get the repository state of an instance.

        Args:
            instance_id: The instance's ID

        Returns:
            RepositoryState with the tracked reference and active test merges
        """
        self._require_session()
        data = self._request_json("GET", "/Repository", instance_id=instance_id)
        try:
            return RepositoryState.from_response(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TGSError(
                f"Unexpected repository state for instance {instance_id}: {e!r}"
            ) from e

    def update_repository(
        self,
        instance_id: int,
        reference: str,
        test_merges: list[TestMerge] | None = None,
    ) -> None:
        """Update an instance's repository from its origin.

        Test merges are re-applied on top of the updated reference; pass the
        instance's active test merges or they are dropped by the update.

        Args:
            instance_id: The instance's ID
            reference: Branch to check out and update
            test_merges: Test merges to apply after the update
        """
        self._require_session()
        payload: dict[str, Any] = {
            "updateFromOrigin": True,
            "reference": reference,
        }
        if test_merges:
            payload["newTestMerges"] = [tm.to_request() for tm in test_merges]

        logger.info(
            "Updating repository of instance %d to %s with %d test merge(s)",
            instance_id,
            reference,
            len(test_merges or []),
        )
        self._request("POST", "/Repository", instance_id=instance_id, json=payload)

    def deploy(self, instance_id: int) -> None:
        """Compile and deploy an instance's repository.

        Args:
            instance_id: The instance's ID
        """
        self._require_session()
        logger.info("Deploying instance %d", instance_id)
        self._request("PUT", "/DreamMaker", instance_id=instance_id)
