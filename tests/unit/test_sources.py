"""Unit tests for document sources and their JSON location files."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from ragline.documents.types import Html, Markdown, Text, Unknown
from ragline.errors import AuthorizationError, TransientServiceError
from ragline.sources.base import DocumentInfo
from ragline.sources.cloud_drive import CloudDriveSource, DriveItem, DriveItemPage, GraphDriveClient
from ragline.sources.filesystem import FileSystemSource
from ragline.sources.specs import PathProvider, PathSpec, WebSpec
from ragline.sources.website import WebsiteSource, extract_links


async def collect(source, cancel: asyncio.Event | None = None) -> list[DocumentInfo]:  # noqa: ANN001
    documents = []
    async for document in source.get_documents(cancel):
        documents.append(document)
        document.content.close()
    return documents


def write_config(config_dir: Path, file_name: str, entries: list[dict[str, str]]) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / file_name).write_text(json.dumps(entries), encoding="utf-8")


# ── DocumentInfo ────────────────────────────────────────────────────────


def test_document_reference_joins_prefix_and_path() -> None:
    info = DocumentInfo("host:FileSystem", None, Text(), "/docs/a.txt")  # type: ignore[arg-type]
    assert info.document_reference == "host:FileSystem@/docs/a.txt"


# ── PathProvider ────────────────────────────────────────────────────────


class TestPathProvider:
    def test_missing_file_is_created_empty(self, tmp_path: Path) -> None:
        provider = PathProvider(tmp_path / "cfg")
        assert provider.get_paths("FileSystem.json") == []
        assert (tmp_path / "cfg" / "FileSystem.json").read_text(encoding="utf-8") == "[]"

    def test_reads_path_and_web_specs(self, tmp_path: Path) -> None:
        write_config(tmp_path, "FileSystem.json", [{"description": "Docs", "path": "/srv/docs"}])
        write_config(tmp_path, "Website.json", [{"description": "Site", "url": "https://example.com/"}])
        provider = PathProvider(tmp_path)

        assert provider.get_paths("FileSystem.json") == [PathSpec(description="Docs", path="/srv/docs")]
        assert provider.get_web_specs("Website.json") == [WebSpec(description="Site", url="https://example.com/")]

    def test_write_specs_round_trips(self, tmp_path: Path) -> None:
        provider = PathProvider(tmp_path)
        provider.write_specs([PathSpec(description="One", path="/one")], "FileSystem.json")
        assert provider.get_paths("FileSystem.json") == [PathSpec(description="One", path="/one")]

    def test_empty_file_name_is_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            PathProvider(tmp_path).get_paths("  ")

    def test_excluded_paths(self, tmp_path: Path) -> None:
        provider = PathProvider(tmp_path, excluded_paths=["bin", ".git"])
        assert provider.is_path_excluded("src/bin/Debug")
        assert provider.is_path_excluded(".git")
        assert not provider.is_path_excluded("src/binary")


# ── File system ─────────────────────────────────────────────────────────


@pytest.fixture()
def docs_tree(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    (root / "guide").mkdir(parents=True)
    (root / "bin").mkdir()
    (root / "guide" / ".git").mkdir()
    (root / "readme.md").write_text("# Read me", encoding="utf-8")
    (root / "guide" / "intro.txt").write_text("intro", encoding="utf-8")
    (root / "guide" / "logo.png").write_bytes(b"\x89PNG")
    (root / "bin" / "tool.txt").write_text("skip me", encoding="utf-8")
    (root / "guide" / ".git" / "HEAD.txt").write_text("skip me too", encoding="utf-8")
    return root


class TestFileSystemSource:
    @pytest.mark.asyncio
    async def test_walks_breadth_first_and_skips_excluded(self, tmp_path: Path, docs_tree: Path) -> None:
        config_dir = tmp_path / "cfg"
        write_config(config_dir, "FileSystem.json", [{"description": "Docs", "path": str(docs_tree)}])
        source = FileSystemSource(PathProvider(config_dir, ["bin", ".git"]), prefix="test:FileSystem")

        documents = await collect(source)

        paths = [Path(d.path).relative_to(docs_tree.resolve()).as_posix() for d in documents]
        assert paths == ["readme.md", "guide/intro.txt", "guide/logo.png"]
        assert isinstance(documents[0].document_type, Markdown)
        assert isinstance(documents[2].document_type, Unknown)
        assert documents[0].source_description == "Docs"
        assert documents[0].document_reference.startswith("test:FileSystem@")

    @pytest.mark.asyncio
    async def test_missing_root_is_skipped(self, tmp_path: Path) -> None:
        write_config(tmp_path, "FileSystem.json", [{"path": str(tmp_path / "nope")}])
        source = FileSystemSource(PathProvider(tmp_path))
        assert await collect(source) == []

    @pytest.mark.asyncio
    async def test_cancellation_stops_enumeration(self, tmp_path: Path, docs_tree: Path) -> None:
        config_dir = tmp_path / "cfg"
        write_config(config_dir, "FileSystem.json", [{"path": str(docs_tree)}])
        source = FileSystemSource(PathProvider(config_dir, ["bin", ".git"]))
        cancel = asyncio.Event()

        documents = []
        async for document in source.get_documents(cancel):
            documents.append(document)
            document.content.close()
            cancel.set()

        assert len(documents) == 1

    def test_default_prefix_names_the_source(self, tmp_path: Path) -> None:
        assert FileSystemSource(PathProvider(tmp_path)).prefix.endswith(":FileSystem")


# ── Website ─────────────────────────────────────────────────────────────

PAGES = {
    "https://example.com/docs/": (
        '<a href="intro">Intro</a> <a href="/docs/faq#top">FAQ</a> '
        '<a href="https://other.org/">Elsewhere</a> <a href="/blog/">Blog</a>'
    ),
    "https://example.com/docs/intro": '<p>Intro</p><a href="/docs/">Home</a><a href="broken">Broken</a>',
    "https://example.com/docs/faq": "<p>FAQ</p>",
}


def site_handler(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if url in PAGES:
        return httpx.Response(200, text=PAGES[url], headers={"content-type": "text/html"})
    return httpx.Response(404)


class TestWebsiteSource:
    def test_extract_links_keeps_same_prefix_without_fragments(self) -> None:
        links = extract_links(PAGES["https://example.com/docs/"], "https://example.com/docs/", "https://example.com/docs/")
        assert links == ["https://example.com/docs/intro", "https://example.com/docs/faq"]

    @pytest.mark.asyncio
    async def test_crawls_each_page_once(self, tmp_path: Path) -> None:
        write_config(tmp_path, "Website.json", [{"description": "Docs", "url": "https://example.com/docs/"}])
        async with httpx.AsyncClient(transport=httpx.MockTransport(site_handler)) as client:
            source = WebsiteSource(PathProvider(tmp_path), client=client, prefix="test:Website")
            documents = await collect(source)

        assert [d.path for d in documents] == [
            "https://example.com/docs/",
            "https://example.com/docs/intro",
            "https://example.com/docs/faq",
        ]
        assert all(isinstance(d.document_type, Html) for d in documents)
        assert documents[0].document_reference == "test:Website@https://example.com/docs/"

    @pytest.mark.asyncio
    async def test_max_pages_bounds_the_crawl(self, tmp_path: Path) -> None:
        write_config(tmp_path, "Website.json", [{"url": "https://example.com/docs/"}])
        async with httpx.AsyncClient(transport=httpx.MockTransport(site_handler)) as client:
            source = WebsiteSource(PathProvider(tmp_path), client=client, max_pages=2)
            documents = await collect(source)

        assert len(documents) == 2

    @pytest.mark.asyncio
    async def test_network_errors_are_skipped(self, tmp_path: Path) -> None:
        write_config(tmp_path, "Website.json", [{"url": "https://down.example.com/"}])

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            source = WebsiteSource(PathProvider(tmp_path), client=client)
            assert await collect(source) == []

    @pytest.mark.asyncio
    async def test_extracted_text_comes_from_html(self, tmp_path: Path) -> None:
        write_config(tmp_path, "Website.json", [{"url": "https://example.com/docs/faq"}])
        async with httpx.AsyncClient(transport=httpx.MockTransport(site_handler)) as client:
            source = WebsiteSource(PathProvider(tmp_path), client=client)
            async for document in source.get_documents():
                text = await document.document_type.extract_text(document.content, document.path)
                assert text == "FAQ"


# ── Cloud drive ─────────────────────────────────────────────────────────


class FakeDriveClient:
    """Folder tree keyed by item id; children served two per page."""

    def __init__(self) -> None:
        self.tree: dict[str, list[DriveItem]] = {
            "root": [
                DriveItem("f1", "a.txt", parent_path="/Docs"),
                DriveItem("d1", "sub", is_folder=True, parent_path="/Docs"),
                DriveItem("f2", "b.md", parent_path="/Docs"),
            ],
            "d1": [DriveItem("f3", "c.txt", parent_path="/Docs/sub")],
        }
        self.downloads: list[str] = []
        self.broken: dict[str, Exception] = {}

    async def get_owner_name(self) -> str | None:
        return "Ada"

    async def get_item_by_path(self, path: str) -> DriveItem | None:
        if path == "/Docs":
            return DriveItem("root", "Docs", is_folder=True)
        return None

    async def list_children(self, item_id: str, next_link: str | None = None) -> DriveItemPage:
        if item_id in self.broken:
            raise self.broken[item_id]
        start = int(next_link or 0)
        children = self.tree.get(item_id, [])
        end = start + 2
        return DriveItemPage(children[start:end], str(end) if end < len(children) else None)

    async def download(self, item_id: str) -> bytes:
        self.downloads.append(item_id)
        if item_id in self.broken:
            raise self.broken[item_id]
        return f"content of {item_id}".encode()


class TestCloudDriveSource:
    @pytest.mark.asyncio
    async def test_walks_folders_across_pages(self, tmp_path: Path) -> None:
        write_config(tmp_path, "CloudDrive.json", [{"description": "Drive", "path": "/Docs"}])
        client = FakeDriveClient()
        source = CloudDriveSource(PathProvider(tmp_path), client)

        documents = await collect(source)

        assert [d.path for d in documents] == ["/Docs/a.txt", "/Docs/b.md", "/Docs/sub/c.txt"]
        assert source.prefix == "Ada:CloudDrive"
        assert documents[0].document_reference == "Ada:CloudDrive@/Docs/a.txt"
        assert client.downloads == ["f1", "f2", "f3"]

    @pytest.mark.asyncio
    async def test_missing_root_is_nothing_to_do(self, tmp_path: Path) -> None:
        write_config(tmp_path, "CloudDrive.json", [{"path": "/Missing"}])
        assert await collect(CloudDriveSource(PathProvider(tmp_path), FakeDriveClient())) == []

    @pytest.mark.asyncio
    async def test_cancellation_stops_downloads(self, tmp_path: Path) -> None:
        write_config(tmp_path, "CloudDrive.json", [{"path": "/Docs"}])
        client = FakeDriveClient()
        source = CloudDriveSource(PathProvider(tmp_path), client)
        cancel = asyncio.Event()

        async for document in source.get_documents(cancel):
            document.content.close()
            cancel.set()

        assert client.downloads == ["f1"]

    @pytest.mark.asyncio
    async def test_failed_download_skips_only_that_file(self, tmp_path: Path) -> None:
        write_config(tmp_path, "CloudDrive.json", [{"path": "/Docs"}])
        client = FakeDriveClient()
        client.broken["f1"] = httpx.ConnectError("connection reset")

        documents = await collect(CloudDriveSource(PathProvider(tmp_path), client))

        assert [d.path for d in documents] == ["/Docs/b.md", "/Docs/sub/c.txt"]

    @pytest.mark.asyncio
    async def test_failed_folder_listing_skips_that_folder(self, tmp_path: Path) -> None:
        write_config(tmp_path, "CloudDrive.json", [{"path": "/Docs"}])
        client = FakeDriveClient()
        client.broken["d1"] = TransientServiceError("HTTP 503")

        documents = await collect(CloudDriveSource(PathProvider(tmp_path), client))

        assert [d.path for d in documents] == ["/Docs/a.txt", "/Docs/b.md"]

    @pytest.mark.asyncio
    async def test_unsupported_files_are_not_downloaded(self, tmp_path: Path) -> None:
        write_config(tmp_path, "CloudDrive.json", [{"path": "/Docs"}])
        client = FakeDriveClient()
        client.tree["d1"].append(DriveItem("f4", "movie.mp4", parent_path="/Docs/sub"))

        documents = await collect(CloudDriveSource(PathProvider(tmp_path), client))

        movie = documents[-1]
        assert movie.path == "/Docs/sub/movie.mp4"
        assert isinstance(movie.document_type, Unknown)
        assert "f4" not in client.downloads


def graph_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/v1.0/me":
        return httpx.Response(200, json={"displayName": "Ada"})
    if path == "/v1.0/me/drive/root:/Docs":
        return httpx.Response(200, json={"id": "root", "name": "Docs", "folder": {"childCount": 1}})
    if path == "/v1.0/me/drive/root:/Missing":
        return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
    if path == "/v1.0/me/drive/items/root/children":
        return httpx.Response(
            200,
            json={
                "value": [
                    {"id": "f1", "name": "a.txt", "file": {}, "parentReference": {"path": "/drive/root:/Docs"}}
                ]
            },
        )
    if path == "/v1.0/me/drive/items/f1/content":
        return httpx.Response(200, content=b"hello")
    if path == "/v1.0/me/drive/items/locked/children":
        return httpx.Response(401)
    return httpx.Response(500)


class TestGraphDriveClient:
    def make_client(self) -> GraphDriveClient:
        http = httpx.AsyncClient(
            base_url="https://graph.microsoft.com/v1.0",
            transport=httpx.MockTransport(graph_handler),
        )
        return GraphDriveClient(client=http)

    @pytest.mark.asyncio
    async def test_resolves_items_and_downloads(self) -> None:
        client = self.make_client()
        try:
            assert await client.get_owner_name() == "Ada"
            root = await client.get_item_by_path("/Docs")
            assert root == DriveItem("root", "Docs", is_folder=True)
            page = await client.list_children("root")
            assert page.items == [DriveItem("f1", "a.txt", parent_path="/Docs")]
            assert page.next_link is None
            assert await client.download("f1") == b"hello"
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_not_found_root_is_none(self) -> None:
        client = self.make_client()
        try:
            assert await client.get_item_by_path("/Missing") is None
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_unauthorized_is_classified(self) -> None:
        client = self.make_client()
        try:
            with pytest.raises(AuthorizationError):
                await client.list_children("locked")
        finally:
            await client.aclose()
