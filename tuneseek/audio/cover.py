"""
Cover art fetching
"""

from typing import Optional

import requests

from ..config.settings import get_settings
from ..exceptions import ThumbnailError


def fetch_thumbnail(url: str, timeout: Optional[float] = None,
                    session: Optional[requests.Session] = None) -> bytes:
    """
    Download a thumbnail image

    Args:
        url: Image URL
        timeout: Request timeout, defaults to catalog.request_timeout
        session: Optional session to reuse

    Returns:
        Raw image bytes

    Raises:
        ThumbnailError: If the URL is empty or the download fails
    """
    if not url:
        raise ThumbnailError("No thumbnail URL")

    settings = get_settings()
    http = session or requests
    try:
        response = http.get(
            url,
            timeout=timeout or settings.catalog.request_timeout,
            headers={'User-Agent': settings.playback.user_agent},
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise ThumbnailError(f"Thumbnail download failed: {e}", details={'url': url})

    if not response.content:
        raise ThumbnailError("Thumbnail is empty", details={'url': url})
    return response.content
