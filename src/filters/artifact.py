"""Artifact filters deciding which artifacts and update versions are checked."""

import re
from abc import ABC, abstractmethod
from typing import Optional, Pattern, Tuple

from artifact.models import Artifact

WILDCARD_SINGLE = "?"
WILDCARD_ANY = "*"


class ArtifactFilter(ABC):
    """Predicate over artifacts, optionally paired with a candidate update version."""

    @abstractmethod
    def accept(self, artifact: Artifact) -> bool:
        """Return True if the artifact should be checked."""

    @abstractmethod
    def accept_update(self, artifact: Artifact, update_version: str) -> bool:
        """Return True if ``update_version`` may be reported for the artifact."""


def _require_version(update_version: str) -> None:
    if not update_version:
        raise ValueError("Invalid update version: empty value")


class AcceptAllFilter(ArtifactFilter):
    """Filter accepting everything."""

    def accept(self, artifact: Artifact) -> bool:
        return True

    def accept_update(self, artifact: Artifact, update_version: str) -> bool:
        _require_version(update_version)
        return True

    def __repr__(self) -> str:
        return "ACCEPT_ALL"


class AcceptNoneFilter(ArtifactFilter):
    """Filter rejecting everything."""

    def accept(self, artifact: Artifact) -> bool:
        return False

    def accept_update(self, artifact: Artifact, update_version: str) -> bool:
        _require_version(update_version)
        return False

    def __repr__(self) -> str:
        return "ACCEPT_NONE"


ACCEPT_ALL = AcceptAllFilter()
ACCEPT_NONE = AcceptNoneFilter()


class CompositeArtifactFilter(ArtifactFilter):
    """Combination of filters, built with :meth:`all`, :meth:`any` or :meth:`none`."""

    ALL = "all"
    ANY = "any"
    NONE = "none"

    def __init__(self, mode: str, filters: Tuple[ArtifactFilter, ...]):
        if mode not in (self.ALL, self.ANY, self.NONE):
            raise ValueError(f"Invalid mode: {mode}")
        if not filters:
            raise ValueError("Invalid filters: at least one filter is required")
        if any(f is None for f in filters):
            raise ValueError("Invalid filters: contains a None element")
        self.mode = mode
        self.filters = tuple(filters)

    @classmethod
    def all(cls, *filters: ArtifactFilter) -> "CompositeArtifactFilter":
        """Accept when every filter accepts."""
        return cls(cls.ALL, filters)

    @classmethod
    def any(cls, *filters: ArtifactFilter) -> "CompositeArtifactFilter":
        """Accept when at least one filter accepts."""
        return cls(cls.ANY, filters)

    @classmethod
    def none(cls, *filters: ArtifactFilter) -> "CompositeArtifactFilter":
        """Accept when no filter accepts; the shape of an ignore list."""
        return cls(cls.NONE, filters)

    def _combine(self, results) -> bool:
        if self.mode == self.ALL:
            return all(results)
        if self.mode == self.ANY:
            return any(results)
        return not any(results)

    def accept(self, artifact: Artifact) -> bool:
        return self._combine(f.accept(artifact) for f in self.filters)

    def accept_update(self, artifact: Artifact, update_version: str) -> bool:
        _require_version(update_version)
        return self._combine(f.accept_update(artifact, update_version) for f in self.filters)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CompositeArtifactFilter):
            return NotImplemented
        return self.mode == other.mode and self.filters == other.filters

    def __hash__(self) -> int:
        return hash((self.mode, self.filters))

    def __repr__(self) -> str:
        return f"CompositeArtifactFilter.{self.mode}{self.filters!r}"


def create_pattern(expression: str) -> Pattern:
    """Translate a wildcard expression into a case-insensitive regular expression.

    ``?`` matches exactly one character and ``*`` zero or more; every other
    character matches itself.
    """
    escaped = re.escape(expression)
    escaped = escaped.replace(re.escape(WILDCARD_SINGLE), ".").replace(re.escape(WILDCARD_ANY), ".*")
    return re.compile(f"^{escaped}$", re.IGNORECASE | re.DOTALL)


class WildcardArtifactFilter(ArtifactFilter):
    """Filter matching group, artifact and update version wildcard expressions."""

    def __init__(
        self,
        group_id_expression: str,
        artifact_id_expression: Optional[str] = None,
        update_version_expression: Optional[str] = None,
    ):
        for name, expression in (
            ("group_id_expression", group_id_expression),
            ("artifact_id_expression", artifact_id_expression),
            ("update_version_expression", update_version_expression),
        ):
            if expression is not None and not expression:
                raise ValueError(f"Invalid {name}: empty value")
        if group_id_expression is None:
            raise ValueError("Invalid group_id_expression: None")
        self.group_id_expression = group_id_expression
        self.artifact_id_expression = artifact_id_expression
        self.update_version_expression = update_version_expression
        self._group_id_pattern = create_pattern(group_id_expression)
        self._artifact_id_pattern = (
            create_pattern(artifact_id_expression) if artifact_id_expression is not None else None
        )
        self._update_version_pattern = (
            create_pattern(update_version_expression) if update_version_expression is not None else None
        )

    def accept(self, artifact: Artifact) -> bool:
        identifier = artifact.identifier
        if not self._group_id_pattern.fullmatch(identifier.group_id):
            return False
        return self._artifact_id_pattern is None or bool(self._artifact_id_pattern.fullmatch(identifier.artifact_id))

    def accept_update(self, artifact: Artifact, update_version: str) -> bool:
        _require_version(update_version)
        if not self.accept(artifact):
            return False
        return self._update_version_pattern is None or bool(self._update_version_pattern.fullmatch(update_version))

    def __eq__(self, other) -> bool:
        if not isinstance(other, WildcardArtifactFilter):
            return NotImplemented
        return (
            self.group_id_expression,
            self.artifact_id_expression,
            self.update_version_expression,
        ) == (
            other.group_id_expression,
            other.artifact_id_expression,
            other.update_version_expression,
        )

    def __hash__(self) -> int:
        return hash((self.group_id_expression, self.artifact_id_expression, self.update_version_expression))

    def __repr__(self) -> str:
        parts = [self.group_id_expression, self.artifact_id_expression, self.update_version_expression]
        return f"WildcardArtifactFilter({':'.join(p for p in parts if p is not None)!r})"
