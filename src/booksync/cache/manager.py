"""Working cache for in-progress book synchronization."""

import logging
import re
import shutil
import threading
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from booksync.cache.models import CacheManifest, CacheState
from booksync.models.chapter import CachedChapter, ChapterIdentity, ChapterStatus
from booksync.models.source import SourceProfile

log = logging.getLogger(__name__)


class CacheNotInitializedError(RuntimeError):
    """Raised when the cache is written to before ``initialize``."""

    def __init__(self, cache_root: Path):
        self.cache_root = cache_root
        super().__init__(f"Cache not initialized: {cache_root}")


class CacheManager:
    """Directory-backed cache of one book's chapters and images.

    Layout::

        <temp>/<namespace>_<book>/manifest.json
        <temp>/<namespace>_<book>/chapters/<identity>.json
        <temp>/<namespace>_<book>/images/<image id>

    Chapter saves may run concurrently for different chapters; the manifest
    read-modify-write is serialized by an instance lock.
    """

    MANIFEST_FILE = "manifest.json"
    CHAPTERS_DIR = "chapters"
    IMAGES_DIR = "images"

    def __init__(self, temp_directory: Path, book_identity: str, profile: SourceProfile):
        self.book_identity = book_identity
        self.profile = profile
        self.cache_root = Path(temp_directory) / profile.cache_dir_name(book_identity)
        self.manifest_path = self.cache_root / self.MANIFEST_FILE
        self.chapters_dir = self.cache_root / self.CHAPTERS_DIR
        self.images_dir = self.cache_root / self.IMAGES_DIR
        self._lock = threading.Lock()

    def initialize(
        self,
        toc_hash: str,
        title: str | None = None,
        descriptors: dict[str, str] | None = None,
    ) -> CacheManifest:
        """Create the cache tree and write a fresh manifest."""
        self.chapters_dir.mkdir(parents=True, exist_ok=True)
        self.images_dir.mkdir(parents=True, exist_ok=True)

        now = datetime.now()
        manifest = CacheManifest(
            book_identity=self.book_identity,
            title=title,
            descriptors=dict(descriptors or {}),
            toc_hash=toc_hash,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._write_manifest(manifest)
        log.debug("Initialized cache %s (toc hash %s)", self.cache_root, toc_hash)
        return manifest

    def exists(self) -> bool:
        """Check that both the cache root and its manifest are present."""
        return self.cache_root.is_dir() and self.manifest_path.is_file()

    def load_manifest(self) -> CacheManifest | None:
        """Load the manifest, or None if missing or unreadable."""
        with self._lock:
            return self._read_manifest()

    def save_manifest(self, manifest: CacheManifest) -> None:
        """Replace the manifest file as a whole."""
        self._require_initialized()
        with self._lock:
            self._write_manifest(manifest)

    def save_chapter(self, chapter: CachedChapter) -> None:
        """Write a chapter file and record its status in the manifest."""
        self._require_initialized()

        chapter_path = self._chapter_path(chapter.identity)
        chapter_path.write_text(chapter.model_dump_json(indent=2), encoding="utf-8")

        with self._lock:
            manifest = self._read_manifest()
            if manifest is None:
                log.warning(
                    "Manifest unreadable, chapter %s not recorded", chapter.identity
                )
                return

            identity = chapter.identity
            if chapter.status.is_cached:
                _discard(manifest.failed_chapter_ids, identity)
                _discard(manifest.locked_chapter_ids, identity)
                _add(manifest.cached_chapter_ids, identity)
            elif chapter.status == ChapterStatus.FAILED:
                _add(manifest.failed_chapter_ids, identity)
            elif chapter.status == ChapterStatus.LOCKED:
                _discard(manifest.failed_chapter_ids, identity)
                _add(manifest.locked_chapter_ids, identity)

            manifest.updated_at = datetime.now()
            self._write_manifest(manifest)

    def load_chapter(self, identity: ChapterIdentity) -> CachedChapter | None:
        """Read one chapter file, or None if missing or unreadable."""
        chapter_path = self._chapter_path(identity)
        if not chapter_path.exists():
            return None
        return self._read_chapter(chapter_path)

    def load_all_chapters(self) -> list[CachedChapter]:
        """Read every readable chapter file; broken files are skipped."""
        if not self.chapters_dir.is_dir():
            return []

        chapters = []
        for path in sorted(self.chapters_dir.glob("*.json")):
            chapter = self._read_chapter(path)
            if chapter is not None:
                chapters.append(chapter)
        return chapters

    def save_image(self, image_id: str, data: bytes) -> Path:
        """Persist image bytes under a filename-safe id."""
        self._require_initialized()
        image_path = self.images_dir / self.sanitize_image_id(image_id)
        image_path.write_bytes(data)
        return image_path

    def load_image(self, image_id: str) -> bytes | None:
        image_path = self.images_dir / self.sanitize_image_id(image_id)
        try:
            return image_path.read_bytes()
        except OSError:
            return None

    def image_exists(self, image_id: str) -> bool:
        return (self.images_dir / self.sanitize_image_id(image_id)).is_file()

    def list_image_ids(self) -> list[str]:
        """List ids of all cached images."""
        if not self.images_dir.is_dir():
            return []
        return sorted(p.name for p in self.images_dir.iterdir() if p.is_file())

    def cleanup(self) -> bool:
        """Delete the whole cache root. Failures are logged, not raised."""
        if not self.cache_root.exists():
            return False
        try:
            shutil.rmtree(self.cache_root)
        except OSError as e:
            log.warning("Could not remove cache %s: %s", self.cache_root, e)
            return False
        return True

    def get_state(self) -> CacheState | None:
        """Snapshot of the manifest, or None if there is none."""
        manifest = self.load_manifest()
        if manifest is None:
            return None
        return CacheState.from_manifest(manifest)

    @staticmethod
    def sanitize_image_id(image_id: str) -> str:
        """Make an image id safe to use as a file name."""
        sanitized = re.sub(r'[\\/:*?"<>|\x00-\x1f]', "_", image_id).strip()
        if sanitized in ("", ".", ".."):
            raise ValueError(f"Invalid image id: {image_id!r}")
        return sanitized

    def _chapter_path(self, identity: ChapterIdentity) -> Path:
        name = re.sub(r'[\\/:*?"<>|\x00-\x1f]', "_", str(identity))
        return self.chapters_dir / f"{name}.json"

    def _require_initialized(self) -> None:
        if not self.exists():
            raise CacheNotInitializedError(self.cache_root)

    def _read_manifest(self) -> CacheManifest | None:
        """Read the manifest file. Caller holds the lock."""
        try:
            return CacheManifest.model_validate_json(
                self.manifest_path.read_text(encoding="utf-8")
            )
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as e:
            log.debug("Ignoring unreadable manifest %s: %s", self.manifest_path, e)
            return None

    def _write_manifest(self, manifest: CacheManifest) -> None:
        """Write the manifest via a temp file swap. Caller holds the lock."""
        tmp_path = self.manifest_path.with_suffix(".json.tmp")
        tmp_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(self.manifest_path)

    def _read_chapter(self, path: Path) -> CachedChapter | None:
        try:
            return CachedChapter.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            log.debug("Skipping unreadable chapter file %s: %s", path, e)
            return None


def _add(ids: list[ChapterIdentity], identity: ChapterIdentity) -> None:
    if identity not in ids:
        ids.append(identity)


def _discard(ids: list[ChapterIdentity], identity: ChapterIdentity) -> None:
    while identity in ids:
        ids.remove(identity)
