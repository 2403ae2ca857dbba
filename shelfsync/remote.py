"""Remote spreadsheet mirror backed by a Microsoft Graph workbook."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

import httpx

from .exceptions import AuthError, SyncError
from .exporter import EXPORT_HEADERS, WORKSHEET_TITLE, row_values, rows_to_xlsx

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

TokenProvider = Callable[[], Optional[str]]


class RemoteMirror(Protocol):
    """What the sync orchestrator needs from a remote mirror."""

    def is_authenticated(self) -> bool:
        ...

    def login(self) -> None:
        ...

    def push_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        ...


def _column_letter(index: int) -> str:
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def range_address(row_count: int, column_count: int = len(EXPORT_HEADERS)) -> str:
    """Cell range below the header row sized to ``row_count`` rows."""

    return f"A2:{_column_letter(column_count)}{row_count + 1}"


class GraphWorkbookMirror:
    """Pushes export rows into a OneDrive workbook through Microsoft Graph.

    Acquiring tokens is delegated to ``token_provider``; the mirror only holds
    the resulting bearer token. Each push replaces the rows below the header.
    """

    def __init__(
        self,
        *,
        token_provider: Optional[TokenProvider] = None,
        access_token: Optional[str] = None,
        workbook_name: str = "inventory.xlsx",
        worksheet: str = WORKSHEET_TITLE,
        base_url: str = GRAPH_BASE_URL,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self._token_provider = token_provider
        self._access_token = access_token or None
        self.workbook_name = workbook_name
        self.worksheet = worksheet
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def is_authenticated(self) -> bool:
        return bool(self._access_token)

    def login(self) -> None:
        if self._token_provider is None:
            raise AuthError("No token provider configured for the remote workbook")
        try:
            token = self._token_provider()
        except AuthError:
            raise
        except Exception as exc:
            raise AuthError(f"Login failed: {exc}") from exc
        if not token:
            raise AuthError("Login cancelled")
        self._access_token = token
        logger.info("Authenticated against the remote workbook")

    def logout(self) -> None:
        self._access_token = None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------
    def push_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        if not self.is_authenticated():
            raise AuthError("Not signed in to the remote workbook")
        workbook_id = self.ensure_workbook()
        values = row_values(rows)
        if not values:
            return
        address = range_address(len(values))
        path = (
            f"/me/drive/items/{workbook_id}/workbook/worksheets/"
            f"{self.worksheet}/range(address='{address}')"
        )
        self._request("PATCH", path, json={"values": values})
        logger.info("Pushed %d row(s) to %s!%s", len(values), self.workbook_name, address)

    def ensure_workbook(self) -> str:
        """Return the drive item id of the workbook, creating it if missing."""

        response = self._request(
            "GET", f"/me/drive/root:/{self.workbook_name}", allow_not_found=True
        )
        if response is not None:
            return self._item_id(response)
        logger.info("Creating remote workbook %s", self.workbook_name)
        created = self._request(
            "PUT",
            f"/me/drive/root:/{self.workbook_name}:/content",
            content=rows_to_xlsx([]),
            headers={
                "Content-Type": (
                    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
                )
            },
        )
        return self._item_id(created)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _item_id(response: httpx.Response) -> str:
        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise SyncError("Unexpected response from the remote workbook") from exc
        item_id = payload.get("id") if isinstance(payload, dict) else None
        if not item_id:
            raise SyncError("Remote workbook response is missing an id")
        return str(item_id)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return response.reason_phrase or f"HTTP {response.status_code}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        allow_not_found: bool = False,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> Optional[httpx.Response]:
        request_headers = {"Authorization": f"Bearer {self._access_token}"}
        if headers:
            request_headers.update(headers)
        try:
            response = self._client.request(method, path, headers=request_headers, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SyncError(f"Could not reach the remote workbook: {exc}") from exc
        if response.status_code == 401:
            self._access_token = None
            raise AuthError("Remote session expired; sign in again")
        if response.status_code == 404 and allow_not_found:
            return None
        if response.is_error:
            message = self._error_message(response)
            logger.warning("%s %s failed: %s", method, path, message)
            raise SyncError(f"Remote workbook request failed ({response.status_code}): {message}")
        return response


__all__: List[str] = [
    "GRAPH_BASE_URL",
    "GraphWorkbookMirror",
    "RemoteMirror",
    "range_address",
]
