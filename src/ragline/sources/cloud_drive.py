"""Document source walking folders on a cloud drive (Microsoft Graph / OneDrive)."""

from __future__ import annotations

import asyncio
import io
import logging
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from ragline.config import settings
from ragline.documents.types import get_document_type
from ragline.errors import RaglineError, classify_provider_error
from ragline.resilience import is_cancelled
from ragline.sources.base import DocumentInfo, DocumentSource
from ragline.sources.specs import PathProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriveItem:
    id: str
    name: str
    is_folder: bool = False
    parent_path: str = ""

    @property
    def path(self) -> str:
        if not self.parent_path:
            return self.name
        return f"{self.parent_path.rstrip('/')}/{self.name}"


@dataclass
class DriveItemPage:
    items: list[DriveItem] = field(default_factory=list)
    next_link: str | None = None


class DriveClient(Protocol):
    """Minimal remote-drive API the walker relies on."""

    async def get_owner_name(self) -> str | None: ...

    async def get_item_by_path(self, path: str) -> DriveItem | None: ...

    async def list_children(self, item_id: str, next_link: str | None = None) -> DriveItemPage: ...

    async def download(self, item_id: str) -> bytes: ...


def _to_drive_item(payload: dict[str, Any]) -> DriveItem:
    parent_path = payload.get("parentReference", {}).get("path", "") or ""
    # Graph returns "/drive/root:/Folder"; keep only the part after the colon.
    _, sep, tail = parent_path.partition(":")
    return DriveItem(
        id=payload["id"],
        name=payload.get("name", ""),
        is_folder="folder" in payload,
        parent_path=tail if sep else parent_path,
    )


class GraphDriveClient:
    """:class:`DriveClient` backed by the Microsoft Graph REST API.

    Parameters
    ----------
    access_token:
        Bearer token with ``Files.Read`` for the signed-in user.
    base_url:
        Graph endpoint, ``https://graph.microsoft.com/v1.0`` by default.
    client:
        Optional pre-built client (tests pass one with a mock transport).
    """

    def __init__(
        self,
        access_token: str | None = settings.graph_access_token,
        *,
        base_url: str = settings.graph_base_url,
        timeout: float = settings.http_timeout_seconds,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
        )

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise classify_provider_error(exc)
        return response

    async def get_owner_name(self) -> str | None:
        response = await self._get("/me")
        return response.json().get("displayName")

    async def get_item_by_path(self, path: str) -> DriveItem | None:
        encoded = quote(path.strip("/"))
        try:
            response = await self._client.get(f"/me/drive/root:/{encoded}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise classify_provider_error(exc)
        return _to_drive_item(response.json())

    async def list_children(self, item_id: str, next_link: str | None = None) -> DriveItemPage:
        response = await self._get(next_link or f"/me/drive/items/{item_id}/children")
        body = response.json()
        return DriveItemPage(
            items=[_to_drive_item(entry) for entry in body.get("value", [])],
            next_link=body.get("@odata.nextLink"),
        )

    async def download(self, item_id: str) -> bytes:
        response = await self._get(f"/me/drive/items/{item_id}/content")
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()


class CloudDriveSource(DocumentSource):
    """Walks each folder listed in ``CloudDrive.json`` with an explicit work queue.

    Folders are expanded page by page; files are downloaded one at a time
    as the consumer pulls them, so stopping early leaves the rest untouched.
    A configured root the drive reports as missing is skipped.  Files of an
    unsupported type are yielded without being downloaded; a file or folder
    page that fails to load is logged and skipped.
    """

    description = "Cloud Drive"
    config_file = "CloudDrive.json"

    def __init__(self, path_provider: PathProvider, client: DriveClient, *, owner: str | None = None) -> None:
        self._path_provider = path_provider
        self._client = client
        self._owner = owner
        self._prefix = f"{owner or 'unknown'}:CloudDrive"

    @property
    def prefix(self) -> str:
        return self._prefix

    async def _resolve_prefix(self) -> None:
        if self._owner:
            return
        owner = await self._client.get_owner_name()
        if owner:
            self._owner = owner
            self._prefix = f"{owner}:CloudDrive"

    async def get_documents(self, cancel: asyncio.Event | None = None) -> AsyncIterator[DocumentInfo]:
        specs = self._path_provider.get_paths(self.config_file)
        if not any(spec.path for spec in specs):
            return

        await self._resolve_prefix()

        for spec in specs:
            if not spec.path:
                continue

            try:
                root = await self._client.get_item_by_path(spec.path)
            except (httpx.HTTPError, RaglineError) as exc:
                logger.warning("Unable to look up cloud drive path %s (%s)", spec.path, exc)
                continue
            if root is None:
                logger.info("Cloud drive path %s not found; nothing to ingest", spec.path)
                continue

            async for document in self._walk(root, spec.description, cancel):
                yield document

            if is_cancelled(cancel):
                break

    async def _walk(
        self,
        root: DriveItem,
        spec_description: str,
        cancel: asyncio.Event | None,
    ) -> AsyncIterator[DocumentInfo]:
        pending: deque[DriveItem] = deque([root])

        while pending and not is_cancelled(cancel):
            item = pending.popleft()

            if not item.is_folder:
                document_type = get_document_type(item.name)
                content = b""
                if document_type.can_process:
                    try:
                        content = await self._client.download(item.id)
                    except (httpx.HTTPError, RaglineError) as exc:
                        logger.warning("Unable to download %s (%s)", item.path, exc)
                        continue
                yield DocumentInfo(
                    source_prefix=self.prefix,
                    content=io.BytesIO(content),
                    document_type=document_type,
                    path=item.path,
                    source_description=spec_description,
                )
                continue

            next_link: str | None = None
            while not is_cancelled(cancel):
                try:
                    page = await self._client.list_children(item.id, next_link)
                except (httpx.HTTPError, RaglineError) as exc:
                    logger.warning("Unable to list folder %s (%s)", item.path, exc)
                    break
                pending.extend(page.items)
                next_link = page.next_link
                if not next_link:
                    break
