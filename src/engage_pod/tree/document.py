"""XML document model produced by the encoder and consumed by the decoder.

Elements form an ordered tree with parent links so that depth-based lookups
(attribute hints) and tag rewrites can run as separate passes after the tree
has been built. Serialization and parsing go through ``lxml.etree``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from lxml import etree


@dataclass(eq=False)
class XMLElement:
    """Single XML element with attributes, text and ordered children."""

    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    children: List["XMLElement"] = field(default_factory=list)
    parent: Optional["XMLElement"] = None

    def __post_init__(self) -> None:
        """Validate element values and establish parent-child relationships."""
        if not self.tag:
            raise ValueError("Element tag cannot be empty")
        for child in self.children:
            child.parent = self

    def add_child(self, child: "XMLElement") -> None:
        """Add a child element and establish parent relationship."""
        if not isinstance(child, XMLElement):
            raise TypeError("Child must be an XMLElement instance")
        child.parent = self
        self.children.append(child)

    def find_child(self, tag: str) -> Optional["XMLElement"]:
        """Find first direct child with matching tag name."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def find_children(self, tag: str) -> List["XMLElement"]:
        """Find all direct children with matching tag name."""
        return [child for child in self.children if child.tag == tag]

    def iter(self) -> Iterator["XMLElement"]:
        """Iterate over this element and its descendants in document order."""
        yield self
        for child in self.children:
            yield from child.iter()

    def set_attribute(self, name: str, value: str) -> None:
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError("Attribute name and value must be strings")
        self.attributes[name] = value

    def get_attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def get_depth(self) -> int:
        """Get depth of this element in the tree (root = 0)."""
        if self.parent is None:
            return 0
        return self.parent.get_depth() + 1

    def get_path(self) -> str:
        """Get XPath-like path to this element."""
        if self.parent is None:
            return f"/{self.tag}"

        parent_path = self.parent.get_path()
        siblings = self.parent.find_children(self.tag)
        if len(siblings) > 1:
            position = next(i for i, s in enumerate(siblings) if s is self) + 1
            return f"{parent_path}/{self.tag}[{position}]"
        return f"{parent_path}/{self.tag}"

    def to_lxml(self) -> Any:
        """Convert to an ``lxml.etree`` element."""
        lxml_element = etree.Element(self.tag)
        for key, value in self.attributes.items():
            lxml_element.set(key, value)
        if self.text is not None:
            lxml_element.text = self.text
        for child in self.children:
            lxml_element.append(child.to_lxml())
        return lxml_element

    @classmethod
    def from_lxml(cls, lxml_element: Any, strip_namespaces: bool = True) -> "XMLElement":
        """Convert an ``lxml.etree`` element, skipping comments and PIs.

        When stripping namespaces would give two attributes the same name, the
        unqualified attribute keeps the local name and the others keep their
        qualified ``{uri}name`` form.
        """
        attributes: Dict[str, str] = {}
        for key, value in lxml_element.attrib.items():
            name = _local_name(key) if strip_namespaces else key
            if name != key and (name in attributes or name in lxml_element.attrib):
                name = key
            attributes[name] = value

        element = cls(
            tag=_local_name(lxml_element.tag) if strip_namespaces else lxml_element.tag,
            attributes=attributes,
            text=lxml_element.text,
        )
        for child in lxml_element:
            if not isinstance(child.tag, str):
                continue
            element.add_child(cls.from_lxml(child, strip_namespaces))
        return element


def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    if ":" in tag:
        return tag.split(":", 1)[1]
    return tag


@dataclass
class XMLDocument:
    """Root XML document container."""

    root: Optional[XMLElement] = None
    encoding: str = "utf-8"
    version: str = "1.0"

    def iter_elements(self) -> List[XMLElement]:
        """All elements in document order."""
        if not self.root:
            return []
        return list(self.root.iter())

    def elements_at(self, depth: int, tag: str) -> List[XMLElement]:
        """Elements named ``tag`` at ``depth`` (root = 0), in document order."""
        return [
            element for element in self.iter_elements()
            if element.tag == tag and element.get_depth() == depth
        ]

    def find(self, tag: str) -> Optional[XMLElement]:
        for element in self.iter_elements():
            if element.tag == tag:
                return element
        return None

    def find_all(self, tag: str) -> List[XMLElement]:
        return [element for element in self.iter_elements() if element.tag == tag]

    def to_lxml(self) -> Any:
        if not self.root:
            raise ValueError("Document has no root element")
        return self.root.to_lxml()

    def to_string(self, xml_declaration: bool = False, pretty_print: bool = False) -> str:
        """Serialize the document to text."""
        lxml_root = self.to_lxml()
        if xml_declaration:
            data = etree.tostring(
                lxml_root,
                xml_declaration=True,
                encoding=self.encoding,
                pretty_print=pretty_print,
            )
            return data.decode(self.encoding)
        return etree.tostring(lxml_root, encoding="unicode", pretty_print=pretty_print)
