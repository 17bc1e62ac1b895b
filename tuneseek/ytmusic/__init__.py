"""
YouTube Music package
Catalog search, album reconstruction and downloads
"""

from .models import AlbumItem, CatalogItem, ItemKind, PlaylistItem, Track
from .searcher import CatalogClient, get_catalog_client, reset_catalog_client
from .resolver import AlbumQuery, AlbumResolver, ResolutionResult, resolve_album_tracks
from .downloader import AlbumDownloadSummary, DownloadResult, TrackDownloader

__all__ = [
    'AlbumItem',
    'CatalogItem',
    'ItemKind',
    'PlaylistItem',
    'Track',
    'CatalogClient',
    'get_catalog_client',
    'reset_catalog_client',
    'AlbumQuery',
    'AlbumResolver',
    'ResolutionResult',
    'resolve_album_tracks',
    'AlbumDownloadSummary',
    'DownloadResult',
    'TrackDownloader',
]
