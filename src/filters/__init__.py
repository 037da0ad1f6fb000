"""Artifact filters and the ignore rule parser."""

from .artifact import (
    ACCEPT_ALL,
    ACCEPT_NONE,
    ArtifactFilter,
    CompositeArtifactFilter,
    WildcardArtifactFilter,
)
from .parser import ArtifactFilterParseError

__all__ = [
    "ACCEPT_ALL",
    "ACCEPT_NONE",
    "ArtifactFilter",
    "ArtifactFilterParseError",
    "CompositeArtifactFilter",
    "WildcardArtifactFilter",
]
