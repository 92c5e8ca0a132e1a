"""Value tree to XML document encoder.

Encoding runs in three passes over the built document:

1. build elements from the tree (mapping entries in order, one sibling per
   list item, empty element for absent scalars)
2. inject positional attribute hints keyed by ``(depth, tag)``
3. rewrite placeholder tags through the rename table

Hints and renames both run after construction, so hints are keyed by the
placeholder tag, not the final one.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from engage_pod.shared.exceptions import EncodingError
from engage_pod.shared.logging import get_logger
from engage_pod.tree.document import XMLDocument, XMLElement
from engage_pod.tree.node import (
    ATTRIBUTES_KEY,
    TEXT_KEY,
    ListNode,
    MappingNode,
    Node,
    NodeLike,
    ScalarNode,
    from_python,
)

AttributeHints = Mapping[Tuple[int, str], Sequence[Mapping[str, str]]]
RenameTable = Mapping[str, str]


@dataclass
class EncoderConfig:
    """Configuration for document encoding."""

    encoding: str = "utf-8"
    xml_declaration: bool = False
    pretty_print: bool = False
    # Raise when fewer hints than elements are supplied, instead of leaving
    # the trailing elements without the attribute.
    strict_attribute_hints: bool = False

    def __post_init__(self) -> None:
        if not self.encoding:
            raise ValueError("encoding cannot be empty")


class TreeEncoder:
    """Encodes value trees into :class:`XMLDocument` instances."""

    def __init__(
        self,
        config: Optional[EncoderConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config or EncoderConfig()
        self.logger = get_logger(__name__, correlation_id, "encoder")

    def encode(
        self,
        tree: NodeLike,
        rename_table: Optional[RenameTable] = None,
        attribute_hints: Optional[AttributeHints] = None,
    ) -> XMLDocument:
        """Encode ``tree`` into a document.

        Args:
            tree: Mapping with exactly one entry (the root element), as a
                ``MappingNode`` or a plain ``dict``
            rename_table: Placeholder tag to final tag
            attribute_hints: ``(depth, tag)`` to one attribute map per
                generated element, in document order

        Returns:
            The encoded document

        Raises:
            EncodingError: On unencodable values or surplus attribute hints
        """
        node = from_python(tree)
        if not isinstance(node, MappingNode) or len(node) != 1:
            raise EncodingError("Tree must be a mapping with exactly one root entry")

        root_tag, root_node = node.entries[0]
        if isinstance(root_node, ListNode):
            raise EncodingError("Root element cannot be a list")

        elements = self._build(root_tag, root_node, parent=None)
        document = XMLDocument(root=elements[0], encoding=self.config.encoding)

        if attribute_hints:
            self._apply_attribute_hints(document, attribute_hints)
        if rename_table:
            self._apply_renames(document, rename_table)

        self.logger.debug(
            "Encoded document",
            extra={
                "root": document.root.tag if document.root else None,
                "element_count": len(document.iter_elements()),
            },
        )
        return document

    def encode_to_string(
        self,
        tree: NodeLike,
        rename_table: Optional[RenameTable] = None,
        attribute_hints: Optional[AttributeHints] = None,
    ) -> str:
        """Encode ``tree`` and serialize the result."""
        document = self.encode(tree, rename_table, attribute_hints)
        try:
            return document.to_string(
                xml_declaration=self.config.xml_declaration,
                pretty_print=self.config.pretty_print,
            )
        except ValueError as e:
            # lxml rejects invalid tag names and non-XML characters
            raise EncodingError(f"Cannot serialize document: {e}") from e

    def _build(
        self, tag: str, node: Node, parent: Optional[XMLElement]
    ) -> List[XMLElement]:
        if isinstance(node, ListNode):
            built: List[XMLElement] = []
            for item in node.items:
                if isinstance(item, ListNode):
                    raise EncodingError(f"Nested list under tag '{tag}' cannot be encoded")
                built.extend(self._build(tag, item, parent))
            return built

        element = XMLElement(tag=tag)
        if parent is not None:
            parent.add_child(element)

        if isinstance(node, ScalarNode):
            element.attributes.update(node.attributes)
            element.text = node.value
        elif isinstance(node, MappingNode):
            element.attributes.update(node.attributes)
            for child_tag, child in node.entries:
                if child_tag == ATTRIBUTES_KEY:
                    element.attributes.update(_attribute_values(child, tag))
                elif child_tag == TEXT_KEY:
                    element.text = _text_value(child, tag)
                else:
                    self._build(child_tag, child, element)
        else:
            raise EncodingError(
                f"Value under tag '{tag}' is not a Scalar, List or Mapping node "
                f"({type(node).__name__})"
            )
        return [element]

    def _apply_attribute_hints(
        self, document: XMLDocument, attribute_hints: AttributeHints
    ) -> None:
        for (depth, tag), hints in attribute_hints.items():
            targets = document.elements_at(depth, tag)
            if len(hints) > len(targets):
                raise EncodingError(
                    f"{len(hints)} attribute hints for {len(targets)} "
                    f"'{tag}' elements at depth {depth}"
                )
            if self.config.strict_attribute_hints and len(hints) != len(targets):
                raise EncodingError(
                    f"{len(hints)} attribute hints for {len(targets)} "
                    f"'{tag}' elements at depth {depth}"
                )
            for element, hint in zip(targets, hints):
                for name, value in hint.items():
                    element.set_attribute(name, str(value))

    def _apply_renames(self, document: XMLDocument, rename_table: RenameTable) -> None:
        for element in document.iter_elements():
            if element.tag in rename_table:
                element.tag = rename_table[element.tag]


def _attribute_values(node: Node, tag: str) -> Dict[str, str]:
    if not isinstance(node, MappingNode):
        raise EncodingError(f"'{ATTRIBUTES_KEY}' of '{tag}' must be a mapping")
    values: Dict[str, str] = {}
    for name, value in node.entries:
        if not isinstance(value, ScalarNode) or value.value is None:
            raise EncodingError(f"Attribute '{name}' of '{tag}' must be a text value")
        values[name] = value.value
    return values


def _text_value(node: Node, tag: str) -> Optional[str]:
    if not isinstance(node, ScalarNode):
        raise EncodingError(f"'{TEXT_KEY}' of '{tag}' must be a text value")
    return node.value


def encode(
    tree: NodeLike,
    rename_table: Optional[RenameTable] = None,
    attribute_hints: Optional[AttributeHints] = None,
    config: Optional[EncoderConfig] = None,
) -> XMLDocument:
    """Encode a value tree into an :class:`XMLDocument`.

    Examples:
        >>> doc = encode({"ROW": {"COLUMN": ["10", "x"]}},
        ...              attribute_hints={(1, "COLUMN"): [{"name": "id"}, {"name": "label"}]})
        >>> doc.to_string()
        '<ROW><COLUMN name="id">10</COLUMN><COLUMN name="label">x</COLUMN></ROW>'
    """
    return TreeEncoder(config).encode(tree, rename_table, attribute_hints)


def encode_to_string(
    tree: NodeLike,
    rename_table: Optional[RenameTable] = None,
    attribute_hints: Optional[AttributeHints] = None,
    config: Optional[EncoderConfig] = None,
) -> str:
    """Encode a value tree straight to XML text."""
    return TreeEncoder(config).encode_to_string(tree, rename_table, attribute_hints)
