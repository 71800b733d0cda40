import logging
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx
from pydantic import ValidationError

from device_link.exceptions import TransientNetworkFailure, UpstreamUnavailable

from .._config import DEFAULT_CONFIG
from ..models.device_token_response import (
    DeviceAuthorizationResponse,
    DeviceTokenEndpointResponse,
    TokenErrorResponse,
    TokenResponse,
)

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_TIMEOUT = DEFAULT_CONFIG["request_timeout_seconds"]


@dataclass(frozen=True)
class TokenSuccess:
    access_token: str
    # Empty when the token response carried no scope
    scopes: list[str]

    def __repr__(self) -> str:
        return f"TokenSuccess(scopes={self.scopes!r})"


@dataclass(frozen=True)
class TokenPending:
    pass


@dataclass(frozen=True)
class TokenSlowDown:
    pass


@dataclass(frozen=True)
class TokenExpired:
    pass


@dataclass(frozen=True)
class TokenDenied:
    pass


@dataclass(frozen=True)
class TokenOtherError:
    error: str
    error_description: str | None = None


TokenResult = (
    TokenSuccess
    | TokenPending
    | TokenSlowDown
    | TokenExpired
    | TokenDenied
    | TokenOtherError
)

_KNOWN_ERRORS: dict[str, TokenResult] = {
    "authorization_pending": TokenPending(),
    "slow_down": TokenSlowDown(),
    "expired_token": TokenExpired(),
    "access_denied": TokenDenied(),
}


class DeviceFlowProvider:
    """Client for an authorization server's device authorization endpoints.

    Subclasses describe one upstream integration through class attributes.
    The client never retries, poll cadence is up to the caller.
    """

    id: ClassVar[str]
    client_id: ClassVar[str]
    device_authorization_endpoint: ClassVar[str]
    token_endpoint: ClassVar[str]
    scopes: ClassVar[list[str]]

    def build_device_code_params(self, scopes: list[str]) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "scope": " ".join(scopes),
        }

    def build_token_params(self, device_code: str) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "device_code": device_code,
            "grant_type": DEVICE_CODE_GRANT_TYPE,
        }

    async def send_request(
        self, url: str, data: dict[str, Any], timeout: float
    ) -> httpx.Response:
        """Send a form encoded POST to the authorization server.

        Override this method to customize how requests are sent.
        """
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
            return await client.post(
                url,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data=data,
            )

    async def request_device_code(
        self, scopes: list[str] | None = None, timeout: float = DEFAULT_TIMEOUT
    ) -> DeviceAuthorizationResponse:
        """Ask the authorization server for a device code and user code.

        Raises:
            UpstreamUnavailable: If the request fails or the response is unusable
        """
        params = self.build_device_code_params(
            self.scopes if scopes is None else scopes
        )

        try:
            response = await self.send_request(
                self.device_authorization_endpoint, params, timeout
            )
            response.raise_for_status()

            return DeviceAuthorizationResponse.model_validate_json(response.text)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Device code request to {self.id} failed: "
                f"{e.response.status_code} - {e.response.text}"
            )
            raise UpstreamUnavailable(
                f"Failed to initiate device flow: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Device code request to {self.id} failed: {e!r}")
            raise UpstreamUnavailable("Failed to reach authorization server") from e
        except ValidationError as e:
            logger.error(f"Invalid device code response from {self.id}: {e}")
            raise UpstreamUnavailable("Invalid device code response") from e

    def parse_token_response(self, response: httpx.Response) -> TokenResult | None:
        """Map a token endpoint response to a TokenResult.

        Error bodies are accepted whatever the status code, GitHub sends them
        with 200 while RFC 8628 servers use 400. Returns None when the body
        is not a token response at all.
        """
        try:
            token_response = DeviceTokenEndpointResponse.model_validate_json(
                response.text
            )
        except ValidationError as e:
            logger.warning(f"Failed to parse token response from {self.id}: {e}")
            return None

        if token_response.is_error():
            assert isinstance(token_response.root, TokenErrorResponse)
            error = token_response.root

            return _KNOWN_ERRORS.get(
                error.error,
                TokenOtherError(
                    error=error.error, error_description=error.error_description
                ),
            )

        assert isinstance(token_response.root, TokenResponse)

        return TokenSuccess(
            access_token=token_response.root.access_token,
            scopes=token_response.root.scopes,
        )

    async def exchange_token(
        self, device_code: str, timeout: float = DEFAULT_TIMEOUT
    ) -> TokenResult:
        """Poll the token endpoint once.

        Raises:
            TransientNetworkFailure: If the server could not be reached or sent
                something that is not a token endpoint response
        """
        try:
            response = await self.send_request(
                self.token_endpoint, self.build_token_params(device_code), timeout
            )
        except httpx.RequestError as e:
            logger.warning(f"Token request to {self.id} failed: {e!r}")
            raise TransientNetworkFailure("Network error") from e

        result = self.parse_token_response(response)

        if result is None:
            raise TransientNetworkFailure(
                f"Unexpected token response ({response.status_code})"
            )

        return result
