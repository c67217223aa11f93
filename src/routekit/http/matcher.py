"""
=============================================================================
PATH MATCHER
=============================================================================

Decides whether a request path matches a route pattern and extracts the
named parameters.

=============================================================================
PATTERN SYNTAX
=============================================================================

1. LITERAL SEGMENTS: exact string equality

   Pattern: /hello
   Matches: /hello, /hello/
   Doesn't match: /hello/world, /Hello

2. NAMED PARAMETERS (:name): any single non-empty segment

   Pattern: /users/:user
   Matches: /users/alice        → {"user": "alice"}
   Doesn't match: /users, /users/alice/posts

3. PREFIX MOUNTS (prefix=True): leading segments match, rest passes through

   Pattern: /static (mounted)
   Matches: /static             → remainder "/"
            /static/css/a.css   → remainder "/css/a.css"
   Doesn't match: /staticfiles, /

   A mount at "/" matches every path.

=============================================================================
MATCHING ALGORITHM
=============================================================================

Both pattern and path are normalized ("/" + strip("/")) and split on "/":

    Pattern:  /users/:user          → [LIT "users", PARAM "user"]
    Path:     /users/alice          → ["users", "alice"]

    ┌─────────────┬────────────┬───────────────────────────────┐
    │ pattern seg │ path seg   │ result                        │
    ├─────────────┼────────────┼───────────────────────────────┤
    │ LIT users   │ users      │ equal → continue              │
    │ PARAM user  │ alice      │ non-empty → bind user=alice   │
    └─────────────┴────────────┴───────────────────────────────┘
    Segment counts equal (exact pattern) → match {"user": "alice"}

Patterns without parameters skip the split and compare the normalized
strings directly; the outcome is the same as the segment walk.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class SegmentKind(Enum):
    """How a pattern segment is matched."""
    LITERAL = "literal"     # users - exact match required
    PARAM = "param"         # :user - captures one path segment


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    value: str              # literal text, or parameter name


@dataclass(frozen=True)
class PathMatch:
    """
    Result of a successful match.

    Example:
        Pattern: /users/:user
        Path:    /users/alice
        Result:  PathMatch(params={"user": "alice"}, remainder="/")
    """
    params: Dict[str, str] = field(default_factory=dict)
    remainder: str = "/"


def normalize_path(path: str) -> str:
    """Ensure a leading slash and drop trailing ones ("" → "/")."""
    return "/" + path.strip("/")


def _split(normalized: str) -> List[str]:
    if normalized == "/":
        return []
    return normalized[1:].split("/")


class PathPattern:
    """
    A compiled route path pattern.

    Args:
        pattern: Path template such as "/users/:user".
        prefix: Match as a mount point instead of an exact path.

    Raises:
        ValueError: Empty pattern, empty parameter name ("/users/:"),
                    or a parameter name used twice.
    """

    def __init__(self, pattern: str, prefix: bool = False):
        if not pattern:
            raise ValueError("Route pattern must not be empty")

        self.pattern = normalize_path(pattern)
        self.prefix = prefix
        self.segments: Tuple[Segment, ...] = tuple(
            self._parse_segment(s) for s in _split(self.pattern)
        )

        names = self.param_names
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(
                f"Duplicate parameter names in {pattern!r}: {sorted(duplicates)}"
            )

        # Parameterless patterns compare by string equality
        self._literal: Optional[str] = None if names else self.pattern

    @staticmethod
    def _parse_segment(segment: str) -> Segment:
        if segment.startswith(":"):
            name = segment[1:]
            if not name:
                raise ValueError("Route parameter needs a name after ':'")
            return Segment(SegmentKind.PARAM, name)
        return Segment(SegmentKind.LITERAL, segment)

    @property
    def param_names(self) -> List[str]:
        return [s.value for s in self.segments if s.kind is SegmentKind.PARAM]

    def match(self, path: str) -> Optional[PathMatch]:
        """
        Match a concrete request path.

        Returns:
            PathMatch with one value per declared parameter, or None.
        """
        normalized = normalize_path(path)

        if self._literal is not None:
            return self._match_literal(normalized)

        parts = _split(normalized)
        if len(parts) < len(self.segments):
            return None
        if not self.prefix and len(parts) != len(self.segments):
            return None

        params: Dict[str, str] = {}
        for segment, part in zip(self.segments, parts):
            if segment.kind is SegmentKind.LITERAL:
                if part != segment.value:
                    return None
            else:
                if not part:
                    return None
                params[segment.value] = part

        rest = parts[len(self.segments):]
        return PathMatch(params=params, remainder="/" + "/".join(rest))

    def _match_literal(self, normalized: str) -> Optional[PathMatch]:
        literal = self._literal
        if normalized == literal:
            return PathMatch()
        if not self.prefix:
            return None
        if literal == "/":
            return PathMatch(remainder=normalized)
        if normalized.startswith(literal + "/"):
            return PathMatch(remainder=normalized[len(literal):])
        return None

    def __repr__(self) -> str:
        kind = "prefix" if self.prefix else "exact"
        return f"PathPattern({self.pattern!r}, {kind})"
