"""
nocopy_check/classifier.py
══════════════════════════

The shared "is this type tagged non-copyable" predicate.

A type is NonCopy iff it is a struct and one of its tags equals, or
ends with, a recognised marker name.  Both ``NoCopy`` and
``NoCopyAttribute`` are recognised by default so a tag written with or
without the conventional ``Attribute`` suffix matches.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from nocopy_check.model import SemType, TypeKind

DEFAULT_MARKERS: Tuple[str, ...] = ("NoCopy", "NoCopyAttribute")


def is_non_copy_tag(name: Optional[str], markers: Iterable[str] = DEFAULT_MARKERS) -> bool:
    """True if the tag ``name`` is (or ends with) one of ``markers``.

    Empty marker names are ignored; they would match every tag.
    """
    if not name:
        return False
    return any(marker and name.endswith(marker) for marker in markers)


def is_non_copy(
    sem_type: Optional[SemType],
    attributes: Optional[Iterable[str]] = None,
    markers: Iterable[str] = DEFAULT_MARKERS,
) -> bool:
    """
    Decide whether ``sem_type`` is a non-copyable struct.

    ``attributes`` is the tag set as answered by the provider's type
    registry; when omitted the tags carried by the descriptor are used.
    Never raises: an unknown type or an empty tag set is simply false.
    """
    if sem_type is None or sem_type.kind is not TypeKind.STRUCT:
        return False
    tags = sem_type.tags if attributes is None else attributes
    markers = tuple(markers)
    return any(is_non_copy_tag(tag, markers) for tag in tags)


__all__ = ["DEFAULT_MARKERS", "is_non_copy", "is_non_copy_tag"]
