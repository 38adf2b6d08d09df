"""
Asset loading for renders.

Downloads (or decodes) every clip and audio URL of a project into a job
directory with bounded parallelism and a fixed number of attempts.
"""

import base64
import binascii
import mimetypes
import re
import shutil
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests
from loguru import logger

from config.settings import Settings, get_settings
from storyreel.exceptions import AssetError, ExportCancelled
from storyreel.models import Project
from storyreel.utils.retry import retry
from storyreel.video.cancel import CancelToken

_DATA_URL_RE = re.compile(r"^data:([\w.+/-]+)?(;[\w=.-]+)*;base64,(.*)$", re.DOTALL)
_DEFAULT_EXT = {"image": ".jpg", "video": ".mp4", "audio": ".mp3"}


def project_asset_urls(project: Project) -> dict[str, str]:
    """Every distinct asset URL of a project mapped to its kind."""
    urls: dict[str, str] = {}
    for segment in project.segments:
        for clip in segment.media:
            urls.setdefault(clip.url, clip.type.value)
        if segment.audio_url:
            urls.setdefault(segment.audio_url, "audio")
    for track in project.audio_tracks:
        urls.setdefault(track.url, "audio")
    return urls


def local_path_for(url: str) -> Path | None:
    """Resolve ``file://`` URLs and plain paths to an existing local file."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
    elif not parsed.scheme or len(parsed.scheme) == 1:
        path = Path(url)
    else:
        return None
    return path if path.is_file() else None


class AssetStore:
    """Fetch assets into a job directory, one local file per URL."""

    def __init__(
        self,
        job_dir: Path,
        settings: Settings | None = None,
        cancel: CancelToken | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or get_settings()
        self.job_dir = Path(job_dir)
        self.job_dir.mkdir(parents=True, exist_ok=True)
        self.cancel = cancel or CancelToken()
        self.session = session or requests.Session()
        self._paths: dict[str, Path] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def path(self, url: str) -> Path:
        """Local file of an already fetched URL."""
        try:
            return self._paths[url]
        except KeyError:
            raise AssetError(url, "asset was not loaded") from None

    def get(self, url: str) -> Path | None:
        return self._paths.get(url)

    def fetch(self, url: str, kind: str = "image") -> Path:
        """
        Fetch one asset, retrying a bounded number of times.

        Raises:
            AssetError: once every attempt failed
        """
        if url in self._paths:
            return self._paths[url]

        local = local_path_for(url)
        if local is not None:
            self._paths[url] = local
            return local

        if url.startswith("data:"):
            path = self._decode_data_url(url, kind)
        elif urlparse(url).scheme in ("http", "https"):
            fetch = retry(
                attempts=self.settings.assets.attempts,
                min_wait=0.5,
                max_wait=5.0,
                exceptions=(requests.RequestException,),
            )(self._download)
            try:
                path = fetch(url, kind)
            except requests.RequestException as e:
                raise AssetError(url, str(e)) from e
        else:
            raise AssetError(url, "unsupported URL scheme or missing file")

        self._paths[url] = path
        return path

    def fetch_all(self, urls: dict[str, str]) -> dict[str, Path]:
        """
        Fetch many assets concurrently (bounded by ``assets.max_workers``).

        Cancellation is checked as each download completes; pending
        downloads are dropped when it fires or when any asset fails.
        """
        if not urls:
            return {}
        logger.info(f"Loading {len(urls)} assets")
        executor = ThreadPoolExecutor(max_workers=max(1, self.settings.assets.max_workers))
        futures = {executor.submit(self.fetch, url, kind): url for url, kind in urls.items()}
        pending = set(futures)
        try:
            while pending:
                done, pending = wait(pending, timeout=0.25, return_when=FIRST_COMPLETED)
                self.cancel.raise_if_cancelled()
                for future in done:
                    future.result()
        except (AssetError, ExportCancelled):
            for future in pending:
                future.cancel()
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return {url: self._paths[url] for url in urls}

    def _next_path(self, url: str, kind: str, mime: str | None = None) -> Path:
        with self._lock:
            self._counter += 1
            number = self._counter
        ext = None
        if mime:
            ext = mimetypes.guess_extension(mime)
        if not ext:
            ext = Path(urlparse(url).path).suffix if not url.startswith("data:") else ""
        if not ext or len(ext) > 6:
            ext = _DEFAULT_EXT.get(kind, ".bin")
        return self.job_dir / f"asset_{number:04d}{ext}"

    def _decode_data_url(self, url: str, kind: str) -> Path:
        match = _DATA_URL_RE.match(url)
        if not match:
            raise AssetError(url, "invalid data URL")
        try:
            payload = base64.b64decode(match.group(3), validate=False)
        except (binascii.Error, ValueError) as e:
            raise AssetError(url, f"invalid base64 payload: {e}") from e
        path = self._next_path(url, kind, match.group(1))
        path.write_bytes(payload)
        return path

    def _download(self, url: str, kind: str) -> Path:
        self.cancel.raise_if_cancelled()
        with self.session.get(url, stream=True, timeout=self.settings.assets.timeout) as response:
            response.raise_for_status()
            mime = response.headers.get("Content-Type", "").split(";")[0] or None
            path = self._next_path(url, kind, mime)
            with open(path, "wb") as f:
                for chunk in response.iter_content(chunk_size=1 << 16):
                    if self.cancel.cancelled:
                        break
                    f.write(chunk)
        self.cancel.raise_if_cancelled()
        logger.debug(f"Downloaded {url} -> {path.name}")
        return path

    def cleanup(self) -> None:
        """Delete the job directory and everything fetched into it."""
        shutil.rmtree(self.job_dir, ignore_errors=True)


def media_duration(path: Path) -> float:
    """Duration in seconds of an audio or video file."""
    from moviepy import AudioFileClip

    with AudioFileClip(str(path)) as clip:
        return float(clip.duration)
