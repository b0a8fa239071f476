"""
Version value type

Dotted numeric versions of arbitrary depth ("1", "1.2", "1.2.3.4").
Comparison pads the shorter version with zeros, so "1.2" == "1.2.0".
"""

from functools import total_ordering
from itertools import zip_longest

from github_updater.core.exceptions import InvalidVersion


@total_ordering
class Version:
    """
    Immutable, comparable dotted numeric version

    Example:
        >>> Version.parse("v1.2", prefix_tolerant=True) == Version.parse("1.2.0")
        True
        >>> Version.parse("1.10") > Version.parse("1.9")
        True
    """

    __slots__ = ("_components",)

    def __init__(self, *components: int):
        if not components:
            raise InvalidVersion("", "no components")
        for component in components:
            if not isinstance(component, int) or isinstance(component, bool) or component < 0:
                raise InvalidVersion(".".join(str(c) for c in components), "components must be non-negative integers")
        object.__setattr__(self, "_components", tuple(components))

    @classmethod
    def parse(cls, text: str, prefix_tolerant: bool = False) -> "Version":
        """
        Parse a dotted numeric version string

        Args:
            text: Version text, e.g. "1.2.3"
            prefix_tolerant: Strip a single leading letter first ("v1.2.3")

        Returns:
            Version

        Raises:
            InvalidVersion: If text is empty, non-numeric or malformed
        """
        if not isinstance(text, str):
            raise InvalidVersion(repr(text), "not a string")

        raw = text.strip()
        if prefix_tolerant and raw[:1].isalpha():
            raw = raw[1:]

        if not raw:
            raise InvalidVersion(text, "empty")

        components = []
        for segment in raw.split("."):
            # isascii() keeps out unicode digits like "²" that int() would reject
            if not segment or not (segment.isascii() and segment.isdigit()):
                raise InvalidVersion(text, f"bad segment {segment!r}")
            components.append(int(segment))

        return cls(*components)

    @property
    def components(self) -> tuple[int, ...]:
        """Components as parsed"""
        return self._components

    @property
    def major(self) -> int:
        return self._components[0]

    @property
    def minor(self) -> int:
        return self._components[1] if len(self._components) > 1 else 0

    @property
    def patch(self) -> int:
        return self._components[2] if len(self._components) > 2 else 0

    def _normalized(self) -> tuple[int, ...]:
        """Components with trailing zeros dropped (hash/equality key)"""
        components = list(self._components)
        while components and components[-1] == 0:
            components.pop()
        return tuple(components)

    def _padded_pairs(self, other: "Version"):
        return zip_longest(self._components, other._components, fillvalue=0)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return all(a == b for a, b in self._padded_pairs(other))

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        for a, b in self._padded_pairs(other):
            if a != b:
                return a < b
        return False

    def __hash__(self) -> int:
        return hash(self._normalized())

    def __setattr__(self, name, value):
        raise AttributeError("Version is immutable")

    def __str__(self) -> str:
        return ".".join(str(c) for c in self._components)

    def __repr__(self) -> str:
        return f"Version('{self}')"
