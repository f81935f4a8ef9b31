"""Async HTTP client for the matching and messaging API."""

import logging
from typing import Any

import httpx

from ..config import API_BASE_URL, API_TIMEOUT_SECONDS
from ..errors import AlreadyActedError, ApiError, MatchCoreError, NotAllowedError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS: dict[int, type[MatchCoreError]] = {
    400: ValidationFailed,
    403: NotAllowedError,
    404: NotFoundError,
}


class MatchApiClient:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = API_BASE_URL,
        timeout: float = API_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {token.strip()}"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "MatchApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- matches -------------------------------------------------------

    async def record_action(self, target_user_id: str, action: str) -> dict[str, Any]:
        return await self._request("POST", "/matches", json={"targetUserId": target_user_id, "action": action})

    async def list_matches(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/matches")
        return data.get("matches", [])

    async def mark_seen(self, match_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/matches/{match_id}/seen")

    async def unmatch(self, match_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/matches/{match_id}")

    # -- conversations and messages --------------------------------------

    async def list_conversations(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/conversations")
        return data.get("conversations", [])

    async def send_message(
        self,
        receiver_id: str,
        content: str,
        message_type: str = "text",
        match_id: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"receiverId": receiver_id, "content": content, "messageType": message_type}
        if match_id:
            body["matchId"] = match_id
        return await self._request("POST", "/messages/send", json=body)

    async def get_messages(self, match_id: str, page: int = 1, limit: int | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"page": page}
        if limit is not None:
            params["limit"] = limit
        return await self._request("GET", f"/messages/{match_id}", params=params)

    async def unread_count(self) -> int:
        data = await self._request("GET", "/messages/unread")
        return int(data.get("unreadCount") or 0)

    # -- signals ---------------------------------------------------------

    async def send_typing(self, match_id: str, receiver_id: str, is_typing: bool) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/typing",
            json={"matchId": match_id, "receiverId": receiver_id, "isTyping": is_typing},
        )

    async def send_read_receipt(self, match_id: str) -> dict[str, Any]:
        return await self._request("POST", "/read-receipt", json={"matchId": match_id})

    async def touch_activity(self) -> dict[str, Any]:
        return await self._request("POST", "/users/me/activity")

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"[api] {method} {url} failed: {exc}")
            raise ApiError(f"{method} {url} failed: {exc}", status_code=503) from exc

        if response.is_success:
            return response.json()

        detail, code = _error_fields(response)
        logger.info(f"[api] {method} {url} -> {response.status_code} code={code} detail={detail}")
        if response.status_code == 400 and code == AlreadyActedError.code:
            raise AlreadyActedError(detail)
        error_cls = _ERRORS_BY_STATUS.get(response.status_code)
        if error_cls is not None:
            raise error_cls(detail)
        raise ApiError(detail, status_code=response.status_code)


def _error_fields(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None, None
    if not isinstance(body, dict):
        return None, None
    detail = body.get("detail")
    if isinstance(detail, dict):
        return detail.get("message"), detail.get("code")
    if not isinstance(detail, str):
        detail = None
    return detail, body.get("code")
