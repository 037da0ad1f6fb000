"""Maven version ordering.

Versions listed by several repositories are merged, so they must be sorted
the way Maven sorts them. Comparison is delegated to ``univers``, whose
``MavenVersion`` follows Maven's ``ComparableVersion``: numeric items compare
numerically, known qualifiers by maturity and trailing zeros are dropped.
"""
import logging
from typing import Iterable, List, Optional

from univers.versions import MavenVersion

logger = logging.getLogger(__name__)


def maven_version(version: str) -> Optional[MavenVersion]:
    """Parse a version, returning None (with a warning) when it is not usable."""
    try:
        return MavenVersion(version)
    except ValueError as exc:
        logger.warning("Skipping the %r version: %s", version, exc)
        return None


def compare_versions(left: str, right: str) -> int:
    """Compare two versions, returning -1, 0 or 1.

    Raises:
        ValueError: If either version cannot be parsed.
    """
    left_version, right_version = MavenVersion(left), MavenVersion(right)
    if left_version < right_version:
        return -1
    if right_version < left_version:
        return 1
    return 0


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Return the distinct versions in ascending Maven order.

    Versions that cannot be parsed are left out. Equivalent spellings such as
    ``1`` and ``1.0`` keep a lexical order among themselves.
    """
    parsed = []
    for version in sorted(set(versions)):
        key = maven_version(version)
        if key is not None:
            parsed.append((key, version))
    parsed.sort(key=lambda pair: pair[0])
    return [version for _, version in parsed]
