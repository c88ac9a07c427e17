"""Content source profiles.

Each supported content source embeds the same marker scheme under its own
namespace. A profile captures what differs between them: the namespace, how
chapters are identified, the closed set of statuses the source can produce
and the metadata keys written into output files.
"""

import hashlib
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

from booksync.models.chapter import ChapterIdentity, ChapterStatus


class SourceProfile(BaseModel):
    """Marker/metadata conventions for one content source."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    identity_kind: Literal["id", "index"]
    statuses: frozenset[ChapterStatus]
    book_key: str = "book-id"
    descriptor_keys: tuple[str, ...] = ()
    hash_book_identity: bool = False

    @property
    def identity_key(self) -> str:
        """Marker key carrying the chapter identity."""
        return "chapter-id" if self.identity_kind == "id" else "chapter-index"

    @property
    def identifier_prefix(self) -> str:
        """Prefix used on the generic book identifier (e.g. ``legado-``)."""
        return f"{self.namespace}-"

    def meta_name(self, key: str) -> str:
        """Namespaced metadata/marker name, e.g. ``legado:toc-hash``."""
        return f"{self.namespace}:{key}"

    def attr(self, key: str) -> str:
        """Namespaced data attribute, e.g. ``data-legado-status``."""
        return f"data-{self.namespace}-{key}"

    def supports(self, status: ChapterStatus) -> bool:
        return status in self.statuses

    def resolve_status(self, value: str | None) -> ChapterStatus:
        """Map a marker value onto this source's closed status set."""
        status = ChapterStatus.parse(value)
        return status if status in self.statuses else ChapterStatus.PENDING

    def coerce_identity(self, raw: str | int | None) -> ChapterIdentity | None:
        """Convert a decoded marker value into this source's identity type."""
        if raw is None:
            return None
        if self.identity_kind == "index":
            try:
                return int(str(raw).strip())
            except ValueError:
                return None
        value = str(raw).strip()
        return value or None

    def cache_dir_name(self, book_identity: str) -> str:
        """Folder name of a book's working cache below the temp directory."""
        if self.hash_book_identity:
            digest = hashlib.sha256(book_identity.encode("utf-8")).hexdigest()
            return f"{self.namespace}_{digest[:32]}"
        safe = re.sub(r"[^\w.-]", "_", book_identity)
        return f"{self.namespace}_{safe}"


FANQIE = SourceProfile(
    namespace="fanqie",
    identity_kind="id",
    statuses=frozenset(
        {ChapterStatus.DOWNLOADED, ChapterStatus.FAILED, ChapterStatus.LOCKED}
    ),
    book_key="book-id",
)

LEGADO = SourceProfile(
    namespace="legado",
    identity_kind="index",
    statuses=frozenset(
        {ChapterStatus.DOWNLOADED, ChapterStatus.FAILED, ChapterStatus.VOLUME}
    ),
    book_key="book-url",
    descriptor_keys=("book-source", "server-url"),
    hash_book_identity=True,
)

PROFILES: dict[str, SourceProfile] = {
    FANQIE.namespace: FANQIE,
    LEGADO.namespace: LEGADO,
}


def get_profile(name: str) -> SourceProfile:
    """Look up a profile by namespace."""
    try:
        return PROFILES[name.lower()]
    except KeyError:
        supported = ", ".join(sorted(PROFILES))
        raise ValueError(
            f"Unknown source: {name}. Supported sources: {supported}"
        ) from None
