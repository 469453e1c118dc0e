"""
Sources: lazy, cancellable streams of documents from where they live.

Public surface
--------------
- :class:`DocumentSource` / :class:`DocumentInfo`: the contract every source follows.
- :class:`FileSystemSource`: local directory trees.
- :class:`WebsiteSource`: prefix-bounded website crawl.
- :class:`CloudDriveSource`: folders on a cloud drive, via a :class:`DriveClient`.
- :class:`PathProvider`: reads the per-source JSON location files.
"""

from ragline.sources.base import DocumentInfo, DocumentSource
from ragline.sources.cloud_drive import CloudDriveSource, DriveClient, DriveItem, DriveItemPage, GraphDriveClient
from ragline.sources.filesystem import FileSystemSource
from ragline.sources.specs import PathProvider, PathSpec, WebSpec
from ragline.sources.website import WebsiteSource

__all__ = [
    "CloudDriveSource",
    "DocumentInfo",
    "DocumentSource",
    "DriveClient",
    "DriveItem",
    "DriveItemPage",
    "FileSystemSource",
    "GraphDriveClient",
    "PathProvider",
    "PathSpec",
    "WebSpec",
    "WebsiteSource",
]
