"""TOC fingerprinting for change detection."""

import hashlib
from collections.abc import Iterable

from booksync.models.chapter import TocChapter

SEPARATOR = "\n"
HASH_LENGTH = 16

TocEntryLike = TocChapter | tuple[int, str]


def fingerprint_key(chapter: TocChapter) -> str:
    """Identity value used for hashing.

    Index-identified chapters are only stable within one TOC shape, so their
    source URL is hashed instead when one is known.
    """
    if isinstance(chapter.identity, int) and chapter.url:
        return chapter.url
    return str(chapter.identity)


def compute_toc_hash(entries: Iterable[TocEntryLike]) -> str:
    """Hash an ordered TOC into a short hex fingerprint.

    Entries are ``TocChapter`` objects or ``(position, identity)`` pairs.
    They are sorted by position before hashing, so only the position to
    identity assignment matters, not input order. Titles and volume flags
    do not contribute.
    """
    pairs: list[tuple[int, str]] = []
    for entry in entries:
        if isinstance(entry, TocChapter):
            pairs.append((entry.index, fingerprint_key(entry)))
        else:
            position, identity = entry
            pairs.append((position, str(identity)))

    pairs.sort(key=lambda pair: pair[0])
    return compute_identity_hash(identity for _, identity in pairs)


def compute_identity_hash(identities: Iterable[str]) -> str:
    """Hash identities in the given order."""
    joined = SEPARATOR.join(str(identity) for identity in identities)
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return digest[:HASH_LENGTH]
