"""Parser for ignore files and command line filter expressions.

Grammar, one expression per line::

    # comment
    groupId[:artifactId[:updateVersion]]   # trailing comment

``?`` and ``*`` wildcards are allowed in every part, matching is case
insensitive.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .artifact import ACCEPT_ALL, ArtifactFilter, CompositeArtifactFilter, WildcardArtifactFilter

logger = logging.getLogger(__name__)

COMMENT_START = "#"
SEPARATOR = ":"


class ArtifactFilterParseError(Exception):
    """Raised when an ignore rule does not follow the expression grammar.

    Attributes:
        reason: What is wrong with the line
        line: The offending expression, comment and padding removed
        line_number: 1-based physical line number
        file: Ignore file the line comes from, when parsing a file
    """

    def __init__(self, reason: str, line: str, line_number: int, file: Optional[Path] = None):
        if not reason:
            raise ValueError("Invalid reason: empty value")
        if line is None:
            raise ValueError("Invalid line: None")
        if line_number <= 0:
            raise ValueError(f"Invalid line number: {line_number} (expected > 0)")
        location = f"at line {line_number}"
        if file is not None:
            location += f' of the "{file}" file'
        super().__init__(f'{reason}: "{line}" ({location})')
        self.reason = reason
        self.line = line
        self.line_number = line_number
        self.file = file

    def with_file(self, file: Path) -> "ArtifactFilterParseError":
        """Return a copy of this error located in the given file."""
        return ArtifactFilterParseError(self.reason, self.line, self.line_number, Path(file))


def parse_expression(expression: str, line_number: int = 1) -> WildcardArtifactFilter:
    """Turn one ``groupId[:artifactId[:updateVersion]]`` expression into a filter.

    Raises:
        ArtifactFilterParseError: If the expression has too many separators or
            an empty part.
    """
    if expression.count(SEPARATOR) > 2:
        raise ArtifactFilterParseError("Unexpected format", expression, line_number)
    parts = expression.split(SEPARATOR)
    for reason, part in zip(
        (
            "Unexpected format, empty groupId",
            "Unexpected format, empty artifactId",
            "Unexpected format, empty version expression",
        ),
        parts,
    ):
        if not part:
            raise ArtifactFilterParseError(reason, expression, line_number)
    return WildcardArtifactFilter(*parts)


def parse_rules(lines: Union[str, Iterable[str]]) -> List[WildcardArtifactFilter]:
    """Parse ignore rules, skipping comments and blank lines.

    Args:
        lines: Raw text, or an iterable of lines such as an open file

    Returns:
        One filter per rule, in file order
    """
    if isinstance(lines, str):
        lines = lines.splitlines()
    rules: List[WildcardArtifactFilter] = []
    for line_number, raw_line in enumerate(lines, start=1):
        expression = raw_line.split(COMMENT_START, 1)[0].strip()
        if not expression:
            continue
        rule = parse_expression(expression, line_number)
        logger.debug("Ignoring artifacts matching %r", rule)
        rules.append(rule)
    return rules


def parse(lines: Union[str, Iterable[str]]) -> ArtifactFilter:
    """Parse ignore rules into a filter rejecting whatever any rule matches.

    Returns:
        ``CompositeArtifactFilter.none`` over the rules, ``ACCEPT_ALL`` when
        there is no rule
    """
    rules = parse_rules(lines)
    if not rules:
        return ACCEPT_ALL
    return CompositeArtifactFilter.none(*rules)


def parse_file(ignore_file: Union[str, Path]) -> ArtifactFilter:
    """Parse an ignore file.

    Raises:
        ArtifactFilterParseError: With ``file`` set, if a rule is malformed.
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not UTF-8 text.
    """
    ignore_file = Path(ignore_file)
    logger.info("Parsing the %s ignore file", ignore_file)
    try:
        with open(ignore_file, encoding="utf-8") as handle:
            return parse(handle)
    except ArtifactFilterParseError as exc:
        raise exc.with_file(ignore_file) from exc


def parse_file_if_exists(ignore_file: Union[str, Path]) -> ArtifactFilter:
    """Parse an ignore file, accepting everything when it does not exist."""
    ignore_file = Path(ignore_file)
    if not ignore_file.is_file():
        return ACCEPT_ALL
    return parse_file(ignore_file)


def parse_expressions(expressions: Iterable[str]) -> List[WildcardArtifactFilter]:
    """Parse command line filter expressions, numbered by their position."""
    return [
        parse_expression(expression.strip(), position)
        for position, expression in enumerate(expressions, start=1)
    ]
