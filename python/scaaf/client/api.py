"""HTTP client for the Scaaf API.

A thin wrapper over httpx: every method maps to one route, unwraps the
{"ok", "data"} envelope and raises ScaafApiError when ok is false.
Paged reads return a Page with the items and the next cursor.

Any httpx.Client works as transport, including fastapi's TestClient.
"""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx

DEFAULT_TIMEOUT = 10.0


class ScaafApiError(Exception):
    """An error envelope (or a non-JSON failure) returned by the API."""

    def __init__(self, status_code: int, message: str, code: str | None = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(f"{status_code} {code or 'error'}: {message}")


@dataclass
class Page:
    """One page of a cursor-paged feed."""

    items: list[dict[str, Any]]
    next_cursor: str | None


class ScaafClient:
    """Synchronous API client.

    Args:
        base_url: API origin, e.g. "https://scaaf.day". Ignored when
            http_client is given (the client carries its own base URL).
        token: Supabase access token sent as a bearer header.
        http_client: Optional preconfigured httpx.Client.
    """

    def __init__(
        self,
        base_url: str = "",
        token: str | None = None,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self.token = token

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "ScaafClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Send a request and return the decoded envelope (None for 204)."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        response = self._http.request(
            method, f"/api{path}", json=json, params=params or None, headers=self._headers()
        )
        if response.status_code == 204:
            return None

        try:
            body = response.json()
        except ValueError:
            raise ScaafApiError(response.status_code, response.text or response.reason_phrase)

        if not isinstance(body, dict) or not body.get("ok"):
            error = body if isinstance(body, dict) else {}
            raise ScaafApiError(
                response.status_code,
                str(error.get("error") or "Request failed"),
                error.get("code"),
            )
        return body

    def _data(self, method: str, path: str, **kwargs) -> Any:
        body = self._request(method, path, **kwargs)
        return body["data"] if body else None

    def _page(self, path: str, cursor: str | None, limit: int | None) -> Page:
        body = self._request("GET", path, params={"cursor": cursor, "limit": limit})
        return Page(items=body["data"], next_cursor=body["page"]["next_cursor"])

    # -------------------------------------------------------------------------
    # Circles
    # -------------------------------------------------------------------------

    def list_circles(self, limit: int | None = None) -> list[dict[str, Any]]:
        return self._data("GET", "/circles", params={"limit": limit})

    def create_circle(self, name: str, description: str | None = None) -> dict[str, Any]:
        return self._data("POST", "/circles", json={"name": name, "description": description})

    def get_circle(self, circle_id: UUID | str) -> dict[str, Any]:
        return self._data("GET", f"/circles/{circle_id}")

    def create_invite(
        self,
        circle_id: UUID | str,
        expires_in_days: int | None = None,
        max_uses: int | None = None,
    ) -> dict[str, Any]:
        return self._data(
            "POST",
            f"/circles/{circle_id}/invite",
            json={"expires_in_days": expires_in_days, "max_uses": max_uses},
        )

    def join_circle(self, code: str) -> dict[str, Any]:
        return self._data("POST", "/circles/join", json={"code": code})

    def share_to_circle(
        self,
        circle_id: UUID | str,
        email_id: UUID | str,
        highlight_id: UUID | str | None = None,
        is_shared: bool = True,
    ) -> dict[str, Any]:
        return self._data(
            "POST",
            "/circles/share",
            json={
                "circle_id": str(circle_id),
                "email_id": str(email_id),
                "highlight_id": str(highlight_id) if highlight_id else None,
                "is_shared": is_shared,
            },
        )

    def get_circle_feed(
        self, circle_id: UUID | str, cursor: str | None = None, limit: int | None = None
    ) -> Page:
        return self._page(f"/circles/{circle_id}/feed", cursor, limit)

    def get_viewer_feed(self, cursor: str | None = None, limit: int | None = None) -> Page:
        return self._page("/circles/feed", cursor, limit)

    def list_circle_highlights(
        self, circle_id: UUID | str, cursor: str | None = None, limit: int | None = None
    ) -> Page:
        return self._page(f"/circles/{circle_id}/highlights", cursor, limit)

    # -------------------------------------------------------------------------
    # Inbox, highlights, comments
    # -------------------------------------------------------------------------

    def list_inbox(self, cursor: str | None = None, limit: int | None = None) -> Page:
        return self._page("/inbox-emails", cursor, limit)

    def get_email(self, email_id: UUID | str) -> dict[str, Any]:
        return self._data("GET", f"/inbox-emails/{email_id}")

    def list_email_highlights(self, email_id: UUID | str) -> list[dict[str, Any]]:
        return self._data("GET", f"/inbox-emails/{email_id}/highlights")

    def create_highlight(
        self, email_id: UUID | str, quote: str, memo: str | None = None
    ) -> dict[str, Any]:
        return self._data(
            "POST", f"/inbox-emails/{email_id}/highlights", json={"quote": quote, "memo": memo}
        )

    def list_viewer_highlights(
        self, email_id: UUID | str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[dict[str, Any]]:
        return self._data(
            "GET",
            "/email-highlights",
            params={"email_id": email_id, "limit": limit, "offset": offset},
        )

    def update_highlight(self, highlight_id: UUID | str, **changes: Any) -> dict[str, Any]:
        """PATCH only the given fields (is_shared and/or memo)."""
        return self._data("PATCH", f"/email-highlights/{highlight_id}", json=changes)

    def delete_highlight(self, highlight_id: UUID | str) -> None:
        self._request("DELETE", f"/email-highlights/{highlight_id}")

    def list_comments(self, email_id: UUID | str) -> list[dict[str, Any]]:
        return self._data("GET", f"/inbox-emails/{email_id}/comments")

    def create_comment(self, email_id: UUID | str, text: str) -> dict[str, Any]:
        return self._data("POST", f"/inbox-emails/{email_id}/comments", json={"text": text})

    def delete_comment(self, comment_id: UUID | str) -> None:
        self._request("DELETE", f"/email-comments/{comment_id}")

    def toggle_reaction(self, comment_id: UUID | str, emoji: str) -> list[dict[str, Any]]:
        return self._data("POST", f"/email-comments/{comment_id}/reactions", json={"emoji": emoji})

    # -------------------------------------------------------------------------
    # Addresses
    # -------------------------------------------------------------------------

    def create_address(
        self, local_part: str | None = None, domain: str | None = None
    ) -> dict[str, Any]:
        return self._data(
            "POST", "/addresses/create", json={"local_part": local_part, "domain": domain}
        )

    def get_my_address(self) -> dict[str, Any]:
        return self._data("GET", "/addresses/me")

    def claim_address(self, claim_token: str) -> dict[str, Any]:
        return self._data("POST", "/addresses/claim", json={"claim_token": claim_token})
