"""XML document to value tree decoder.

Decoding rules:

- several same-named children of one parent become a ``ListNode``
- a single occurrence is stored directly, never wrapped in a one-item list
- attributes are exposed under the reserved ``"@attributes"`` key
- a childless element decodes to ``ScalarNode(text)`` or ``ScalarNode(None)``

Callers reading a field that may repeat must accept both shapes; see
:func:`as_list`.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from lxml import etree

from engage_pod.shared.exceptions import ParseError
from engage_pod.shared.logging import get_logger
from engage_pod.tree.document import XMLElement
from engage_pod.tree.node import (
    ATTRIBUTES_KEY,
    TEXT_KEY,
    ListNode,
    MappingNode,
    Node,
    ScalarNode,
)

SUCCESS_VALUES = ("true", "success")
PREVIEW_LENGTH = 100  # Max length for content preview in logs


@dataclass
class DecoderConfig:
    """Configuration for response decoding."""

    strip_namespaces: bool = True
    # Keep text of elements that also have child elements, under "#text".
    keep_mixed_text: bool = False


class TreeDecoder:
    """Decodes XML text into value trees."""

    def __init__(
        self,
        config: Optional[DecoderConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config or DecoderConfig()
        self.logger = get_logger(__name__, correlation_id, "decoder")
        self._parser = etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            remove_comments=True,
            remove_pis=True,
        )

    def parse_document(self, xml_text: Union[str, bytes]) -> XMLElement:
        """Parse XML text into the document model.

        Raises:
            ParseError: If the input is empty or not well-formed
        """
        if xml_text is None or not xml_text.strip():
            raise ParseError("Empty XML document")
        data = xml_text.encode("utf-8") if isinstance(xml_text, str) else xml_text
        try:
            lxml_root = etree.fromstring(data, parser=self._parser)
        except etree.XMLSyntaxError as e:
            self.logger.warning(
                "Malformed XML response",
                extra={"preview": data[:PREVIEW_LENGTH].decode("utf-8", "replace")},
            )
            raise ParseError(f"Malformed XML: {e}") from e
        return XMLElement.from_lxml(lxml_root, self.config.strip_namespaces)

    def decode(self, xml_text: Union[str, bytes]) -> MappingNode:
        """Decode XML text into a mapping holding the root element."""
        root = self.parse_document(xml_text)
        return MappingNode([(root.tag, self.element_to_node(root))])

    def element_to_node(self, element: XMLElement) -> Node:
        """Convert one element (and its subtree) to a node."""
        if not element.children:
            if element.attributes:
                entries = [(ATTRIBUTES_KEY, _attributes_node(element.attributes))]
                if element.text is not None:
                    entries.append((TEXT_KEY, ScalarNode(element.text)))
                return MappingNode(entries)
            return ScalarNode(element.text if element.text else None)

        grouped: Dict[str, List[Node]] = {}
        for child in element.children:
            grouped.setdefault(child.tag, []).append(self.element_to_node(child))

        mapping = MappingNode()
        if element.attributes:
            mapping.add(ATTRIBUTES_KEY, _attributes_node(element.attributes))
        if self.config.keep_mixed_text and element.text and element.text.strip():
            mapping.add(TEXT_KEY, ScalarNode(element.text.strip()))
        for tag, nodes in grouped.items():
            mapping.add(tag, nodes[0] if len(nodes) == 1 else ListNode(nodes))
        return mapping

    def decode_envelope(self, xml_text: Union[str, bytes]) -> MappingNode:
        """Decode an XML API response and check its result/fault discriminator.

        Raises:
            ParseError: If the document is malformed or carries neither
                ``Envelope/Body/RESULT/SUCCESS`` nor ``Envelope/Body/Fault``
        """
        tree = self.decode(xml_text)
        if "Envelope" not in tree:
            raise ParseError("Response has no Envelope element")
        has_success = tree.path("Envelope", "Body", "RESULT", "SUCCESS") is not None
        has_fault = tree.path("Envelope", "Body", "Fault") is not None
        if not (has_success or has_fault):
            raise ParseError("Invalid data from the server: no SUCCESS or Fault element")
        return tree


def _attributes_node(attributes: Dict[str, str]) -> MappingNode:
    return MappingNode([(name, ScalarNode(value)) for name, value in attributes.items()])


def decode(xml_text: Union[str, bytes]) -> MappingNode:
    """Decode XML text into a value tree.

    Examples:
        >>> decode("<RESULT><SUCCESS>true</SUCCESS></RESULT>").to_python()
        {'RESULT': {'SUCCESS': 'true'}}
    """
    return TreeDecoder().decode(xml_text)


def decode_envelope(xml_text: Union[str, bytes]) -> MappingNode:
    """Decode an XML API response envelope."""
    return TreeDecoder().decode_envelope(xml_text)


def scalar_value(node: Optional[Node]) -> Optional[str]:
    """Text of a scalar node, or of the ``#text`` entry of an attributed leaf."""
    if isinstance(node, ScalarNode):
        return node.value
    if isinstance(node, MappingNode):
        return scalar_value(node.get(TEXT_KEY))
    return None


def as_list(node: Optional[Node]) -> List[Node]:
    """Normalize the single-versus-repeated shape of a decoded field."""
    if node is None:
        return []
    if isinstance(node, ListNode):
        return list(node.items)
    return [node]


def result_of(envelope: MappingNode) -> Optional[MappingNode]:
    """``Envelope/Body/RESULT`` of a decoded response, if it is a mapping."""
    result = envelope.path("Envelope", "Body", "RESULT")
    return result if isinstance(result, MappingNode) else None


def fault_string(envelope: MappingNode) -> Optional[str]:
    """``Envelope/Body/Fault/FaultString`` of a decoded response."""
    value = scalar_value(envelope.path("Envelope", "Body", "Fault", "FaultString"))
    return value or None


def is_success(result: Any) -> bool:
    """Whether a RESULT block reports success.

    The ``SUCCESS`` field is compared case-insensitively against ``"true"``
    and ``"success"``. Accepts a ``MappingNode`` or a plain dict.
    """
    if isinstance(result, MappingNode):
        value = scalar_value(result.get("SUCCESS"))
    elif isinstance(result, dict):
        value = result.get("SUCCESS")
    else:
        return False
    return isinstance(value, str) and value.strip().lower() in SUCCESS_VALUES
