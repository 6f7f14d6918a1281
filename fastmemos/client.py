"""
FastMemos Client - Memos REST API client.

Two operations, both single-attempt coroutines that return an ApiResult
instead of raising:

- validate_token: GET /api/v1/auth/status, falling back to /api/v1/user/me
- create_memo: POST /api/v1/memos
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

from .errors import MemosError, ErrorCode, server_error, handle_connection_error, unexpected_error
from .logging import get_logger, redact
from .models import CreateMemoRequest, Visibility

logger = get_logger(__name__)

AUTH_STATUS_PATH = "/api/v1/auth/status"
CURRENT_USER_PATH = "/api/v1/user/me"
MEMOS_PATH = "/api/v1/memos"

REQUEST_TIMEOUT = 30.0
RESOURCE_TIMEOUT = 60.0

# Statuses that mean the token itself was rejected
VALIDATE_AUTH_STATUSES = (401, 403)
CREATE_AUTH_STATUSES = (401,)


@dataclass
class ApiResult:
    """Outcome of one client operation."""
    success: bool
    error: Optional[MemosError] = None
    username: Optional[str] = None

    @classmethod
    def ok(cls, username: Optional[str] = None) -> "ApiResult":
        return cls(success=True, username=username)

    @classmethod
    def fail(cls, error: MemosError) -> "ApiResult":
        return cls(success=False, error=error)


def _extract_username(response: httpx.Response) -> Optional[str]:
    """Pull a username out of a user payload, if the body has one."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    # Some server versions wrap the user object
    if isinstance(data.get("user"), dict):
        data = data["user"]
    name = data.get("username") or data.get("name")
    return name if isinstance(name, str) and name else None


class MemoClient:
    """
    Stateless client for a Memos server.

    The server URL and token are passed per call; the client keeps no
    session. ``transport`` exists so tests can plug in httpx.MockTransport.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        resource_timeout: float = RESOURCE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._resource_timeout = resource_timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        token: str,
        json: Optional[dict] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        if json is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s (token %s)", method, url, redact(token))
        response = await asyncio.wait_for(
            client.request(method, url, headers=headers, json=json),
            timeout=self._resource_timeout,
        )
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    @staticmethod
    def _check(response: httpx.Response, auth_statuses: tuple[int, ...]) -> ApiResult:
        if response.status_code in auth_statuses:
            return ApiResult.fail(MemosError(ErrorCode.AUTH_FAILED))
        if not response.is_success:
            return ApiResult.fail(server_error(response))
        return ApiResult.ok()

    async def validate_token(self, server_url: str, token: str) -> ApiResult:
        """
        Check that the server accepts the token.

        A 404 from the status endpoint falls back to the current-user
        endpoint. A 404 from both is accepted: the server exposes neither
        endpoint, so the token is only really checked on the first memo.
        """
        base = server_url.rstrip("/")
        try:
            async with self._client() as client:
                response = await self._send(client, "GET", f"{base}{AUTH_STATUS_PATH}", token)

                if response.status_code == 404:
                    logger.info("%s not found on %s, trying %s", AUTH_STATUS_PATH, base, CURRENT_USER_PATH)
                    response = await self._send(client, "GET", f"{base}{CURRENT_USER_PATH}", token)

                    if response.status_code == 404:
                        logger.warning(
                            "No token validation endpoint on %s; accepting token until first memo", base
                        )
                        return ApiResult.ok()

                result = self._check(response, VALIDATE_AUTH_STATUSES)
                if result.success:
                    result.username = _extract_username(response)
                return result

        except asyncio.TimeoutError as e:
            return ApiResult.fail(MemosError(
                ErrorCode.NETWORK_ERROR, cause=e, detail=f"Request to {base} timed out",
            ))
        except httpx.InvalidURL as e:
            return ApiResult.fail(MemosError(ErrorCode.INVALID_URL, cause=e))
        except httpx.HTTPError as e:
            return ApiResult.fail(handle_connection_error(e, base))
        except Exception as e:
            logger.exception("Unexpected failure talking to %s", base)
            return ApiResult.fail(unexpected_error(e))

    async def create_memo(
        self,
        server_url: str,
        token: str,
        content: str,
        visibility: Visibility,
    ) -> ApiResult:
        """Post one memo. A single attempt; the caller decides on resubmission."""
        base = server_url.rstrip("/")
        payload = CreateMemoRequest(
            content=content,
            visibility=Visibility.parse(visibility).value,
        ).to_dict()

        try:
            async with self._client() as client:
                response = await self._send(client, "POST", f"{base}{MEMOS_PATH}", token, json=payload)
            result = self._check(response, CREATE_AUTH_STATUSES)
            if result.success:
                logger.info("Created %s memo on %s", payload["visibility"].lower(), base)
            return result

        except asyncio.TimeoutError as e:
            return ApiResult.fail(MemosError(
                ErrorCode.NETWORK_ERROR, cause=e, detail=f"Request to {base} timed out",
            ))
        except httpx.InvalidURL as e:
            return ApiResult.fail(MemosError(ErrorCode.INVALID_URL, cause=e))
        except httpx.HTTPError as e:
            return ApiResult.fail(handle_connection_error(e, base))
        except Exception as e:
            logger.exception("Unexpected failure talking to %s", base)
            return ApiResult.fail(unexpected_error(e))
