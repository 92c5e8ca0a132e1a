"""Generic value tree shared by outgoing requests and parsed responses.

A tree is made of three node kinds:

    ScalarNode: text value or absent (``None``)
    ListNode: ordered items that are all emitted under the owning tag
    MappingNode: ordered ``(tag, node)`` pairs with unique tags

Repetition of a tag is always explicit (a ``ListNode`` under that tag), so
insertion order and repeated siblings survive untouched from the caller to the
wire and back.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from engage_pod.shared.exceptions import EncodingError

ATTRIBUTES_KEY = "@attributes"
TEXT_KEY = "#text"


class Node:
    """Base class of all tree nodes."""

    def to_python(self) -> Any:
        """Convert the node to plain ``dict``/``list``/``str``/``None`` values."""
        raise NotImplementedError


@dataclass
class ScalarNode(Node):
    """Leaf value; ``value=None`` emits an empty element."""

    value: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.value is not None and not isinstance(self.value, str):
            raise TypeError("Scalar value must be a string or None")

    @property
    def is_absent(self) -> bool:
        return self.value is None

    def to_python(self) -> Any:
        if self.attributes:
            result: Dict[str, Any] = {ATTRIBUTES_KEY: dict(self.attributes)}
            if self.value is not None:
                result[TEXT_KEY] = self.value
            return result
        return self.value


@dataclass
class ListNode(Node):
    """Repeated sibling elements sharing one tag, in order."""

    items: List[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        for item in self.items:
            if not isinstance(item, Node):
                raise TypeError("List items must be Node instances")

    def append(self, item: Node) -> None:
        if not isinstance(item, Node):
            raise TypeError("List items must be Node instances")
        self.items.append(item)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.items)

    def __getitem__(self, index: int) -> Node:
        return self.items[index]

    def to_python(self) -> Any:
        return [item.to_python() for item in self.items]


@dataclass
class MappingNode(Node):
    """Ordered tag/node pairs; each tag occurs at most once."""

    entries: List[Tuple[str, Node]] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        seen = set()
        for tag, node in self.entries:
            if not tag:
                raise ValueError("Mapping tag cannot be empty")
            if tag in seen:
                raise ValueError(
                    f"Duplicate tag '{tag}' in mapping; use a ListNode for repeats"
                )
            if not isinstance(node, Node):
                raise TypeError(f"Value for tag '{tag}' must be a Node instance")
            seen.add(tag)

    def __contains__(self, tag: object) -> bool:
        return any(existing == tag for existing, _ in self.entries)

    def __getitem__(self, tag: str) -> Node:
        for existing, node in self.entries:
            if existing == tag:
                return node
        raise KeyError(tag)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, tag: str, default: Optional[Node] = None) -> Optional[Node]:
        """Return the node stored under ``tag`` or ``default``."""
        for existing, node in self.entries:
            if existing == tag:
                return node
        return default

    def keys(self) -> List[str]:
        return [tag for tag, _ in self.entries]

    def items(self) -> List[Tuple[str, Node]]:
        return list(self.entries)

    def add(self, tag: str, node: Node) -> None:
        """Append a new entry; the tag must not be present yet."""
        if not tag:
            raise ValueError("Mapping tag cannot be empty")
        if tag in self:
            raise ValueError(
                f"Duplicate tag '{tag}' in mapping; use a ListNode for repeats"
            )
        if not isinstance(node, Node):
            raise TypeError(f"Value for tag '{tag}' must be a Node instance")
        self.entries.append((tag, node))

    def set(self, tag: str, node: Node) -> None:
        """Replace the entry for ``tag`` in place, or append it."""
        for index, (existing, _) in enumerate(self.entries):
            if existing == tag:
                self.entries[index] = (tag, node)
                return
        self.add(tag, node)

    def path(self, *tags: str) -> Optional[Node]:
        """Follow nested mapping tags, returning ``None`` when a step is missing."""
        current: Optional[Node] = self
        for tag in tags:
            if not isinstance(current, MappingNode):
                return None
            current = current.get(tag)
            if current is None:
                return None
        return current

    def to_python(self) -> Any:
        result: Dict[str, Any] = {}
        if self.attributes:
            result[ATTRIBUTES_KEY] = dict(self.attributes)
        for tag, node in self.entries:
            result[tag] = node.to_python()
        return result


def scalar_text(value: Any) -> Optional[str]:
    """Render a plain Python scalar as element text."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    raise EncodingError(f"Cannot encode value of type {type(value).__name__}")


def from_python(value: Any) -> Node:
    """Build a tree from plain Python values.

    ``dict`` becomes a :class:`MappingNode` (insertion order kept), ``list`` and
    ``tuple`` become a :class:`ListNode`, scalars become a :class:`ScalarNode`.
    A ``"@attributes"`` key in a dict is kept as a regular entry and turned into
    element attributes by the encoder.

    Raises:
        EncodingError: If a value is neither a scalar, a sequence nor a mapping
    """
    if isinstance(value, Node):
        return value
    if isinstance(value, dict):
        entries: List[Tuple[str, Node]] = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f"Mapping keys must be strings, got {key!r}")
            entries.append((key, from_python(item)))
        return MappingNode(entries)
    if isinstance(value, (list, tuple)):
        return ListNode([from_python(item) for item in value])
    return ScalarNode(scalar_text(value))


NodeLike = Union[Node, Dict[str, Any]]
