"""Canonical paths for categories and memories.

Every hierarchical reference goes through here before it touches storage:

    normalize_path(" //standards//typescript/ ")  -> "/standards/typescript"
    CategoryPath.parse("Standards/Type Script")   -> standards/type-script
    MemoryPath.parse("standards/style_guide")     -> standards/style-guide

Nothing in this module does I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cortex.errors import CategoryError, MemoryRecordError
from cortex.result import Err, Ok, Result

SEPARATOR = "/"

_SEPARATOR_RUN = re.compile(r"/+")
_SPACE_RUN = re.compile(r"[\s_]+")
_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUN = re.compile(r"-+")
_CANONICAL_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(raw: str) -> str:
    """Lowercase, hyphenate whitespace/underscores, drop everything else.

    May return an empty string (e.g. for ``"!!!"``); callers decide whether
    that is an error.
    """
    slug = raw.strip().lower()
    slug = _SPACE_RUN.sub("-", slug)
    slug = _INVALID_CHARS.sub("", slug)
    slug = _HYPHEN_RUN.sub("-", slug)
    return slug.strip("-")


def is_canonical_slug(name: str) -> bool:
    """True if ``name`` is already its own slug."""
    return bool(_CANONICAL_SLUG.match(name))


def normalize_path(raw: str) -> str:
    """Display form of a path: single leading slash, no trailing slash.

    Total and idempotent; empty or whitespace input is the root ``/``.
    """
    path = raw.strip() if raw else ""
    if not path:
        return SEPARATOR
    path = _SEPARATOR_RUN.sub(SEPARATOR, path)
    if not path.startswith(SEPARATOR):
        path = SEPARATOR + path
    if len(path) > 1 and path.endswith(SEPARATOR):
        path = path[:-1]
    return path


@dataclass(frozen=True)
class Slug:
    """A non-empty, normalized identifier."""

    value: str

    @classmethod
    def parse(cls, raw: str) -> Result[Slug, MemoryRecordError]:
        slug = slugify(raw)
        if not slug:
            return Err(
                MemoryRecordError(
                    code="INVALID_PATH",
                    message=f"Slug '{raw}' is empty after normalization.",
                    path=raw,
                )
            )
        return Ok(cls(slug))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CategoryPath:
    """Ordered slug segments; the empty tuple is the root."""

    segments: tuple[str, ...] = ()

    @classmethod
    def root(cls) -> CategoryPath:
        return cls(())

    @classmethod
    def parse(cls, raw: str) -> Result[CategoryPath, CategoryError]:
        """Parse a raw or display-form path.

        ``""`` and ``"/"`` are the root. Segments that slugify to nothing are
        dropped; if nothing survives, the path is invalid.
        """
        stripped = raw.strip()
        if stripped in ("", SEPARATOR):
            return Ok(cls.root())
        return cls.from_segments(stripped.split(SEPARATOR), raw=raw)

    @classmethod
    def from_segments(
        cls, segments: list[str] | tuple[str, ...], raw: str | None = None
    ) -> Result[CategoryPath, CategoryError]:
        slugs = tuple(s for s in (slugify(seg) for seg in segments) if s)
        if not slugs:
            return Err(
                CategoryError(
                    code="INVALID_PATH",
                    message="Category path must include at least one segment with a valid slug.",
                    path=raw if raw is not None else SEPARATOR.join(segments),
                )
            )
        return Ok(cls(slugs))

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def parent(self) -> CategoryPath | None:
        if self.is_root:
            return None
        return CategoryPath(self.segments[:-1])

    def child(self, slug: str) -> CategoryPath:
        return CategoryPath(self.segments + (slug,))

    def ancestors(self) -> list[CategoryPath]:
        """Proper non-root ancestors, shallowest first."""
        return [CategoryPath(self.segments[:i]) for i in range(1, len(self.segments))]

    def __str__(self) -> str:
        return SEPARATOR.join(self.segments)


@dataclass(frozen=True)
class MemoryPath:
    """Owning category plus terminal slug."""

    category: CategoryPath
    slug: Slug

    @classmethod
    def parse(cls, raw: str) -> Result[MemoryPath, MemoryRecordError]:
        segments = [s for s in raw.strip().split(SEPARATOR) if s.strip()]
        if len(segments) < 2:
            return Err(
                MemoryRecordError(
                    code="INVALID_PATH",
                    message=(
                        f"Memory path '{raw}' must include at least one category. "
                        'Example: "category/memory-name"'
                    ),
                    path=raw,
                )
            )

        category = CategoryPath.from_segments(segments[:-1], raw=raw)
        if not category.ok:
            return Err(
                MemoryRecordError(
                    code="INVALID_PATH",
                    message=f"Invalid category in memory path: {raw}",
                    path=raw,
                    cause=category.error,
                )
            )

        slug = Slug.parse(segments[-1])
        if not slug.ok:
            return Err(
                MemoryRecordError(
                    code="INVALID_PATH",
                    message=f"Invalid memory slug in path: {raw}",
                    path=raw,
                    cause=slug.error,
                )
            )
        return Ok(cls(category.value, slug.value))

    @classmethod
    def of(cls, category: CategoryPath, slug: str) -> MemoryPath:
        """Build from already-normalized parts."""
        return cls(category, Slug(slug))

    def __str__(self) -> str:
        return f"{self.category}{SEPARATOR}{self.slug}"
