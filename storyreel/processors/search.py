"""
Stock media search.

The editor only needs a selected item's resolved URL and kind; providers
implement ``search(query, orientation, kind)``.
"""

from typing import Literal, Protocol

import requests
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config.settings import Settings, get_settings
from storyreel.exceptions import ServiceError
from storyreel.models import MediaType
from storyreel.utils.retry import retry

Orientation = Literal["landscape", "portrait", "square"]


class StockMedia(BaseModel):
    """One stock search hit."""

    id: str
    preview_url: str = Field(alias="previewUrl")
    full_res_url: str = Field(alias="fullResUrl")
    kind: MediaType
    author: str = ""

    model_config = ConfigDict(populate_by_name=True)


class MediaSearchProvider(Protocol):
    def search(
        self, query: str, orientation: Orientation = "landscape", kind: MediaType = MediaType.IMAGE
    ) -> list[StockMedia]: ...


class PexelsClient:
    """Search photos and videos on Pexels."""

    BASE_URL = "https://api.pexels.com"

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        if not self.settings.pexels.api_key:
            logger.warning("PEXELS_API_KEY not set, searches will fail")

    @retry(attempts=3, min_wait=1.0, max_wait=8.0, exceptions=(requests.ConnectionError, requests.Timeout))
    def _get(self, path: str, params: dict) -> dict:
        response = self.session.get(
            f"{self.BASE_URL}{path}",
            params=params,
            headers={"Authorization": self.settings.pexels.api_key},
            timeout=self.settings.assets.timeout,
        )
        response.raise_for_status()
        return response.json()

    def search(
        self,
        query: str,
        orientation: Orientation = "landscape",
        kind: MediaType = MediaType.IMAGE,
    ) -> list[StockMedia]:
        """
        Search Pexels.

        Raises:
            ServiceError: if the API key is missing or the request fails
        """
        if not self.settings.pexels.api_key:
            raise ServiceError("Pexels API key is not configured (PEXELS_API_KEY)")

        params = {"query": query, "orientation": orientation, "per_page": self.settings.pexels.per_page}
        try:
            if kind == MediaType.VIDEO:
                data = self._get("/videos/search", params)
                return [item for item in map(parse_video, data.get("videos", [])) if item]
            data = self._get("/v1/search", params)
            return [parse_photo(photo) for photo in data.get("photos", [])]
        except requests.RequestException as e:
            raise ServiceError(f"Pexels search failed for '{query}': {e}") from e


def parse_photo(photo: dict) -> StockMedia:
    src = photo.get("src", {})
    return StockMedia(
        id=str(photo["id"]),
        preview_url=src.get("medium") or src.get("original", ""),
        full_res_url=src.get("large2x") or src.get("original", ""),
        kind=MediaType.IMAGE,
        author=photo.get("photographer", ""),
    )


def parse_video(video: dict) -> StockMedia | None:
    """Prefer the HD rendition; videos without files are dropped."""
    files = video.get("video_files") or []
    if not files:
        return None
    chosen = next((f for f in files if f.get("quality") == "hd"), files[0])
    return StockMedia(
        id=str(video["id"]),
        preview_url=video.get("image") or files[0]["link"],
        full_res_url=chosen["link"],
        kind=MediaType.VIDEO,
        author=(video.get("user") or {}).get("name", ""),
    )
