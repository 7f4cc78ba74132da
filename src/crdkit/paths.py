"""Path expressions for extracting values from resource documents.

The dialect is the subset of Kubernetes JSONPath used by printer columns and
status mappings:

    .status.phase
    spec.issuerRef.name
    .status.conditions[?(@.type=="Ready")].status

A path is a dot-separated list of property names with an optional leading
dot. At most one segment may carry an equality filter, which selects the
first list element whose ``key`` stringifies to the literal.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from crdkit.formatting import stringify

_FILTER_PATTERN = re.compile(
    r'^(?P<array>.+?)\[\?\(@\.(?P<key>\w+)\s*==\s*"(?P<literal>[^"]*)"\)\](?:\.(?P<rest>.+))?$'
)

_MISSING = object()


class PathSyntaxError(ValueError):
    """Raised when a path expression cannot be parsed."""

    def __init__(self, path: str, reason: str) -> None:
        """Initialize with the offending expression and the reason."""
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path expression '{path}': {reason}")


@dataclass(frozen=True)
class PathFilter:
    """Equality filter applied to a list: ``[?(@.key=="literal")]``."""

    key: str
    literal: str

    def matches(self, element: Any) -> bool:
        """Return True if ``element`` has ``key`` equal to the literal."""
        if not isinstance(element, Mapping) or self.key not in element:
            return False
        return stringify(element[self.key]) == self.literal


@dataclass(frozen=True)
class PathExpression:
    """A compiled path expression.

    Attributes:
        source: The expression as written in the bundle.
        head: Segments resolved from the document root.
        filter: Optional filter applied to the value ``head`` resolves to.
        tail: Segments resolved against the filtered element.
    """

    source: str
    head: tuple[str, ...]
    filter: PathFilter | None = None
    tail: tuple[str, ...] = ()

    def evaluate(self, document: Any, default: Any = None) -> Any:
        """Resolve the expression against ``document``.

        Returns ``default`` when any step cannot be followed.
        """
        current = _walk(document, self.head)
        if current is _MISSING:
            return default

        if self.filter is not None:
            if not isinstance(current, list):
                return default
            current = next((item for item in current if self.filter.matches(item)), _MISSING)
            if current is _MISSING:
                return default
            current = _walk(current, self.tail)
            if current is _MISSING:
                return default

        return current


def _walk(current: Any, segments: Sequence[str]) -> Any:
    """Follow plain segments; integer segments index into lists."""
    for segment in segments:
        if isinstance(current, Mapping):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _split_segments(path: str, part: str) -> tuple[str, ...]:
    segments = tuple(part.split("."))
    for segment in segments:
        if not segment:
            raise PathSyntaxError(path, "empty segment")
        if any(ch in segment for ch in "[]()?@=\"'"):
            raise PathSyntaxError(path, f"unsupported segment '{segment}'")
    return segments


@lru_cache(maxsize=512)
def compile_path(path: str) -> PathExpression:
    """Parse a path expression.

    Args:
        path: Expression such as ``.status.conditions[?(@.type=="Ready")].status``.

    Returns:
        The compiled PathExpression (cached per expression text).

    Raises:
        PathSyntaxError: If the expression is empty, has empty segments,
            more than one filter, or a malformed filter.
    """
    body = path.strip()
    if body.startswith("."):
        body = body[1:]
    if not body:
        raise PathSyntaxError(path, "expression is empty")

    if "[" not in body:
        return PathExpression(source=path, head=_split_segments(path, body))

    match = _FILTER_PATTERN.match(body)
    if match is None:
        raise PathSyntaxError(path, 'expected a filter of the form name[?(@.key=="value")]')

    rest = match.group("rest")
    if rest is not None and "[" in rest:
        raise PathSyntaxError(path, "only one filter segment is allowed")

    return PathExpression(
        source=path,
        head=_split_segments(path, match.group("array")),
        filter=PathFilter(key=match.group("key"), literal=match.group("literal")),
        tail=_split_segments(path, rest) if rest else (),
    )


def resolve(document: Any, path: str, default: Any = None) -> Any:
    """Resolve ``path`` against a semi-structured document.

    Indexing through None or a non-container, a filter over something that
    is not a list, and a filter without a match all yield ``default``.
    Resource instances are resolved against their ``as_document()`` form.

    Raises:
        PathSyntaxError: If ``path`` is malformed.
    """
    if hasattr(document, "as_document"):
        document = document.as_document()
    return compile_path(path).evaluate(document, default)
