"""OneDrive client - Microsoft Graph drive operations for the firm account.

Folder provisioning, uploads (simple or resumable), downloads, moves and
deletes. Every call goes through ``fetch_with_retry``; failures come back as
result objects with ``success=False`` rather than exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.services.http_service import ApiError, describe_error, fetch_with_retry, parse_iso_datetime
from portal.services.oauth_service import TokenService

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"

SMALL_FILE_LIMIT = 4 * 1024 * 1024
UPLOAD_CHUNK_SIZE = 320 * 1024 * 10

NOT_AUTHENTICATED = "Not authenticated"


# =============================================================================
# Types
# =============================================================================

@dataclass
class FolderResult:
    success: bool
    folder_id: str | None = None
    folder_path: str | None = None
    web_url: str | None = None
    error: str | None = None


@dataclass
class UploadResult:
    success: bool
    file_id: str | None = None
    web_url: str | None = None
    download_url: str | None = None
    last_modified: datetime | None = None
    error: str | None = None


@dataclass
class DownloadResult:
    success: bool
    content: bytes | None = None
    mime_type: str | None = None
    file_name: str | None = None
    error: str | None = None


@dataclass
class OperationResult:
    success: bool
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


def _encode_path(path: str) -> str:
    normalized = path if path.startswith("/") else f"/{path}"
    return quote(normalized, safe="/")


def item_last_modified(item: dict[str, Any]) -> datetime | None:
    return parse_iso_datetime(item.get("lastModifiedDateTime"))


# =============================================================================
# Client
# =============================================================================

class OneDriveClient:
    """Graph drive client bound to one session and the firm-wide token."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        tokens: TokenService,
        db: Session,
        retry_options: dict | None = None,
    ):
        self.http = http
        self.tokens = tokens
        self.db = db
        self.retry_options = retry_options

    async def _headers(self) -> dict[str, str] | None:
        access_token = await self.tokens.get_valid_access_token(self.db)
        if not access_token:
            return None
        return {"Authorization": f"Bearer {access_token}"}

    async def _request(self, method: str, url: str, headers: dict | None, **kwargs) -> httpx.Response:
        if not url.startswith("http"):
            url = f"{GRAPH_API_BASE}{url}"
        return await fetch_with_retry(
            self.http,
            method,
            url,
            headers=headers,
            retry_options=self.retry_options,
            **kwargs,
        )

    async def is_ready(self) -> bool:
        return await self._headers() is not None

    async def check_health(self) -> dict[str, Any]:
        """Drive quota probe (``GET /me/drive``)."""
        headers = await self._headers()
        if not headers:
            return {"healthy": False, "error": NOT_AUTHENTICATED}
        try:
            response = await self._request("GET", "/me/drive", headers)
        except ApiError as exc:
            return {"healthy": False, "error": f"HTTP {exc.status_code}"}
        except httpx.HTTPError as exc:
            return {"healthy": False, "error": describe_error(exc)}
        quota = response.json().get("quota") or {}
        return {"healthy": True, "quota": {"used": quota.get("used"), "total": quota.get("total")}}

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def get_item(self, item_id: str | None = None) -> dict[str, Any] | None:
        headers = await self._headers()
        if not headers:
            return None
        url = f"/me/drive/items/{item_id}" if item_id else "/me/drive/root"
        try:
            response = await self._request("GET", url, headers)
        except (ApiError, httpx.HTTPError) as exc:
            if not (isinstance(exc, ApiError) and exc.is_not_found):
                logger.error("Failed to get drive item %s: %s", item_id, describe_error(exc))
            return None
        return response.json()

    async def get_item_by_path(self, path: str) -> dict[str, Any] | None:
        headers = await self._headers()
        if not headers:
            return None
        try:
            response = await self._request("GET", f"/me/drive/root:{_encode_path(path)}", headers)
        except (ApiError, httpx.HTTPError):
            return None
        return response.json()

    async def list_folder(self, folder_id: str | None = None) -> list[dict[str, Any]]:
        return await self.list_children(folder_id) or []

    async def list_children(self, folder_id: str | None = None) -> list[dict[str, Any]] | None:
        """
        All children of a folder (root when ``folder_id`` is None).

        Follows ``@odata.nextLink``. Returns None when any page fails, so a
        failed listing is never mistaken for an empty folder.
        """
        headers = await self._headers()
        if not headers:
            return None
        url = f"/me/drive/items/{folder_id}/children" if folder_id else "/me/drive/root/children"
        items: list[dict[str, Any]] = []
        while url:
            try:
                response = await self._request("GET", url, headers)
            except (ApiError, httpx.HTTPError) as exc:
                logger.error("Failed to list folder %s: %s", folder_id, describe_error(exc))
                return None
            data = response.json()
            items.extend(data.get("value") or [])
            url = data.get("@odata.nextLink")
        return items

    # -------------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------------

    async def get_or_create_root_folder(self, root_folder_name: str | None = None) -> FolderResult:
        name = root_folder_name or settings.ONEDRIVE_ROOT_FOLDER
        headers = await self._headers()
        if not headers:
            return FolderResult(success=False, error=NOT_AUTHENTICATED)

        for item in await self.list_folder():
            if item.get("folder") is not None and item.get("name", "").lower() == name.lower():
                return FolderResult(
                    success=True,
                    folder_id=item["id"],
                    folder_path=f"/{name}",
                    web_url=item.get("webUrl"),
                )

        try:
            response = await self._request(
                "POST",
                "/me/drive/root/children",
                headers,
                json={"name": name, "folder": {}, "@microsoft.graph.conflictBehavior": "rename"},
            )
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to create root folder: %s", describe_error(exc))
            return FolderResult(success=False, error=describe_error(exc))
        folder = response.json()
        return FolderResult(
            success=True, folder_id=folder["id"], folder_path=f"/{name}", web_url=folder.get("webUrl")
        )

    async def create_folder(self, parent_folder_id: str, folder_name: str) -> FolderResult:
        """Create a child folder, reusing an existing one with the same name."""
        headers = await self._headers()
        if not headers:
            return FolderResult(success=False, error=NOT_AUTHENTICATED)

        for item in await self.list_folder(parent_folder_id):
            if item.get("folder") is not None and item.get("name", "").lower() == folder_name.lower():
                return FolderResult(success=True, folder_id=item["id"], web_url=item.get("webUrl"))

        try:
            response = await self._request(
                "POST",
                f"/me/drive/items/{parent_folder_id}/children",
                headers,
                json={"name": folder_name, "folder": {}, "@microsoft.graph.conflictBehavior": "rename"},
            )
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to create folder %s: %s", folder_name, describe_error(exc))
            return FolderResult(success=False, error=describe_error(exc))
        folder = response.json()
        return FolderResult(success=True, folder_id=folder["id"], web_url=folder.get("webUrl"))

    async def create_folder_by_path(self, path: str) -> FolderResult:
        """
        Ensure a folder exists at ``path``, creating intermediate folders.

        Tries a single PUT on the path first. A 409 means it already exists;
        any other failure falls back to walking the segments one by one.
        """
        headers = await self._headers()
        if not headers:
            return FolderResult(success=False, error=NOT_AUTHENTICATED)

        normalized = path if path.startswith("/") else f"/{path}"
        try:
            response = await self._request(
                "PUT",
                f"/me/drive/root:{_encode_path(normalized)}",
                headers,
                json={"folder": {}, "@microsoft.graph.conflictBehavior": "rename"},
            )
            folder = response.json()
            return FolderResult(
                success=True, folder_id=folder["id"], folder_path=normalized, web_url=folder.get("webUrl")
            )
        except ApiError as exc:
            if exc.status_code == 409:
                existing = await self.get_item_by_path(normalized)
                if existing:
                    return FolderResult(
                        success=True,
                        folder_id=existing["id"],
                        folder_path=normalized,
                        web_url=existing.get("webUrl"),
                    )
        except httpx.HTTPError as exc:
            logger.warning("Direct folder creation failed for %s: %s", normalized, exc)

        return await self._create_path_segments(normalized, headers)

    async def _create_path_segments(self, normalized: str, headers: dict) -> FolderResult:
        current_path = ""
        last_folder: dict[str, Any] | None = None
        for part in [p for p in normalized.split("/") if p]:
            current_path += f"/{part}"
            existing = await self.get_item_by_path(current_path)
            if existing:
                last_folder = existing
                continue
            parent_url = (
                f"/me/drive/items/{last_folder['id']}/children"
                if last_folder
                else "/me/drive/root/children"
            )
            try:
                response = await self._request(
                    "POST",
                    parent_url,
                    headers,
                    json={"name": part, "folder": {}, "@microsoft.graph.conflictBehavior": "fail"},
                )
            except (ApiError, httpx.HTTPError) as exc:
                logger.error("Failed to create folder %s: %s", part, describe_error(exc))
                return FolderResult(success=False, error=describe_error(exc))
            last_folder = response.json()

        if not last_folder:
            return FolderResult(success=False, error="Empty folder path")
        return FolderResult(
            success=True,
            folder_id=last_folder["id"],
            folder_path=normalized,
            web_url=last_folder.get("webUrl"),
        )

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    async def upload_file(
        self, parent_folder_id: str, file_name: str, content: bytes, mime_type: str
    ) -> UploadResult:
        """Simple upload below 4 MiB, resumable upload session above."""
        if len(content) < SMALL_FILE_LIMIT:
            return await self._upload_small_file(parent_folder_id, file_name, content, mime_type)
        return await self._upload_large_file(parent_folder_id, file_name, content)

    @staticmethod
    def _upload_result(item: dict[str, Any]) -> UploadResult:
        return UploadResult(
            success=True,
            file_id=item.get("id"),
            web_url=item.get("webUrl"),
            download_url=item.get("@microsoft.graph.downloadUrl"),
            last_modified=item_last_modified(item),
        )

    async def _upload_small_file(
        self, parent_folder_id: str, file_name: str, content: bytes, mime_type: str
    ) -> UploadResult:
        headers = await self._headers()
        if not headers:
            return UploadResult(success=False, error=NOT_AUTHENTICATED)
        try:
            response = await self._request(
                "PUT",
                f"/me/drive/items/{parent_folder_id}:/{quote(file_name, safe='')}:/content",
                {**headers, "Content-Type": mime_type or "application/octet-stream"},
                content=content,
            )
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to upload %s: %s", file_name, describe_error(exc))
            return UploadResult(success=False, error=describe_error(exc))
        return self._upload_result(response.json())

    async def _upload_large_file(
        self, parent_folder_id: str, file_name: str, content: bytes
    ) -> UploadResult:
        headers = await self._headers()
        if not headers:
            return UploadResult(success=False, error=NOT_AUTHENTICATED)
        try:
            response = await self._request(
                "POST",
                f"/me/drive/items/{parent_folder_id}:/{quote(file_name, safe='')}:/createUploadSession",
                headers,
                json={"item": {"@microsoft.graph.conflictBehavior": "rename"}},
            )
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to create upload session for %s: %s", file_name, describe_error(exc))
            return UploadResult(success=False, error="Failed to create upload session")
        upload_url = response.json()["uploadUrl"]

        total = len(content)
        start = 0
        while start < total:
            end = min(start + UPLOAD_CHUNK_SIZE, total)
            try:
                chunk_response = await self._request(
                    "PUT",
                    upload_url,
                    {
                        "Content-Length": str(end - start),
                        "Content-Range": f"bytes {start}-{end - 1}/{total}",
                    },
                    content=content[start:end],
                )
            except (ApiError, httpx.HTTPError) as exc:
                logger.error("Failed to upload chunk of %s: %s", file_name, describe_error(exc))
                return UploadResult(success=False, error=describe_error(exc))
            if chunk_response.status_code in (200, 201):
                return self._upload_result(chunk_response.json())
            start = end

        return UploadResult(success=False, error="Upload did not complete")

    async def download_file(self, file_id: str) -> DownloadResult:
        headers = await self._headers()
        if not headers:
            return DownloadResult(success=False, error=NOT_AUTHENTICATED)
        info = await self.get_item(file_id)
        if not info:
            return DownloadResult(success=False, error="File not found")
        download_url = info.get("@microsoft.graph.downloadUrl")
        if not download_url:
            return DownloadResult(success=False, error="No download URL available")
        try:
            response = await self._request("GET", download_url, None)
        except (ApiError, httpx.HTTPError):
            return DownloadResult(success=False, error="Failed to download file")
        return DownloadResult(
            success=True,
            content=response.content,
            mime_type=(info.get("file") or {}).get("mimeType"),
            file_name=info.get("name"),
        )

    async def delete_item(self, item_id: str) -> OperationResult:
        """Delete a file or folder. An already-missing item counts as deleted."""
        headers = await self._headers()
        if not headers:
            return OperationResult(success=False, error=NOT_AUTHENTICATED)
        try:
            await self._request("DELETE", f"/me/drive/items/{item_id}", headers)
        except ApiError as exc:
            if exc.is_not_found:
                return OperationResult(success=True)
            return OperationResult(success=False, error=describe_error(exc))
        except httpx.HTTPError as exc:
            return OperationResult(success=False, error=describe_error(exc))
        return OperationResult(success=True)

    async def move_item(
        self, item_id: str, new_parent_folder_id: str, new_name: str | None = None
    ) -> OperationResult:
        headers = await self._headers()
        if not headers:
            return OperationResult(success=False, error=NOT_AUTHENTICATED)
        body: dict[str, Any] = {"parentReference": {"id": new_parent_folder_id}}
        if new_name:
            body["name"] = new_name
        try:
            response = await self._request("PATCH", f"/me/drive/items/{item_id}", headers, json=body)
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to move drive item %s: %s", item_id, describe_error(exc))
            return OperationResult(success=False, error=describe_error(exc))
        return OperationResult(success=True, data=response.json())

    async def rename_item(self, item_id: str, new_name: str) -> OperationResult:
        headers = await self._headers()
        if not headers:
            return OperationResult(success=False, error=NOT_AUTHENTICATED)
        try:
            response = await self._request(
                "PATCH", f"/me/drive/items/{item_id}", headers, json={"name": new_name}
            )
        except (ApiError, httpx.HTTPError) as exc:
            logger.error("Failed to rename drive item %s: %s", item_id, describe_error(exc))
            return OperationResult(success=False, error=describe_error(exc))
        return OperationResult(success=True, data=response.json())

    async def get_thumbnails(self, file_id: str) -> dict[str, str | None] | None:
        headers = await self._headers()
        if not headers:
            return None
        try:
            response = await self._request("GET", f"/me/drive/items/{file_id}/thumbnails", headers)
        except (ApiError, httpx.HTTPError):
            return None
        sets = response.json().get("value") or []
        if not sets:
            return None
        first = sets[0]
        return {
            size: (first.get(size) or {}).get("url")
            for size in ("small", "medium", "large")
        }
