"""Tests for the Pexels search client."""

import pytest
import requests

from config.settings import PexelsSettings
from storyreel.exceptions import ServiceError
from storyreel.models import MediaType
from storyreel.processors.search import PexelsClient, StockMedia, parse_photo, parse_video


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append((url, params, headers))
        return self.response


PHOTO = {
    "id": 42,
    "photographer": "Ann",
    "src": {"medium": "https://p/m.jpg", "large2x": "https://p/l.jpg", "original": "https://p/o.jpg"},
}
VIDEO = {
    "id": 7,
    "image": "https://v/thumb.jpg",
    "user": {"name": "Bo"},
    "video_files": [
        {"quality": "sd", "link": "https://v/sd.mp4"},
        {"quality": "hd", "link": "https://v/hd.mp4"},
    ],
}


class TestParsing:
    def test_photo(self):
        item = parse_photo(PHOTO)
        assert item == StockMedia(
            id="42",
            preview_url="https://p/m.jpg",
            full_res_url="https://p/l.jpg",
            kind=MediaType.IMAGE,
            author="Ann",
        )

    def test_video_prefers_hd(self):
        item = parse_video(VIDEO)
        assert item.full_res_url == "https://v/hd.mp4"
        assert item.preview_url == "https://v/thumb.jpg"
        assert item.kind == MediaType.VIDEO

    def test_video_without_files(self):
        assert parse_video({"id": 1, "video_files": []}) is None

    def test_camel_case_dump(self):
        dumped = parse_photo(PHOTO).model_dump(by_alias=True)
        assert dumped["fullResUrl"] == "https://p/l.jpg"


class TestClient:
    def test_missing_key(self, settings):
        settings.pexels = PexelsSettings(api_key="")
        with pytest.raises(ServiceError, match="PEXELS_API_KEY"):
            PexelsClient(settings, FakeSession(FakeResponse({}))).search("cats")

    def test_photo_search(self, settings):
        settings.pexels = PexelsSettings(api_key="secret", per_page=5)
        session = FakeSession(FakeResponse({"photos": [PHOTO]}))
        results = PexelsClient(settings, session).search("cats", "portrait")
        assert [r.id for r in results] == ["42"]
        url, params, headers = session.requests[0]
        assert url.endswith("/v1/search")
        assert params == {"query": "cats", "orientation": "portrait", "per_page": 5}
        assert headers == {"Authorization": "secret"}

    def test_video_search(self, settings):
        settings.pexels = PexelsSettings(api_key="secret")
        session = FakeSession(FakeResponse({"videos": [VIDEO, {"id": 8, "video_files": []}]}))
        results = PexelsClient(settings, session).search("sea", kind=MediaType.VIDEO)
        assert [r.id for r in results] == ["7"]
        assert session.requests[0][0].endswith("/videos/search")

    def test_http_error(self, settings):
        settings.pexels = PexelsSettings(api_key="secret")
        session = FakeSession(FakeResponse({}, status=500))
        with pytest.raises(ServiceError, match="Pexels search failed"):
            PexelsClient(settings, session).search("cats")
