"""Value tree and XML codec.

Key Components:
    Node, ScalarNode, ListNode, MappingNode: generic nested value tree
    XMLDocument, XMLElement: ordered XML document model
    TreeEncoder / encode: value tree to XML, with attribute hints and renames
    TreeDecoder / decode: XML to value tree
"""

from .decoder import (
    DecoderConfig,
    TreeDecoder,
    as_list,
    decode,
    decode_envelope,
    fault_string,
    is_success,
    result_of,
    scalar_value,
)
from .document import XMLDocument, XMLElement
from .encoder import (
    AttributeHints,
    EncoderConfig,
    RenameTable,
    TreeEncoder,
    encode,
    encode_to_string,
)
from .node import (
    ATTRIBUTES_KEY,
    TEXT_KEY,
    ListNode,
    MappingNode,
    Node,
    ScalarNode,
    from_python,
)

__all__ = [
    "ATTRIBUTES_KEY",
    "TEXT_KEY",
    "Node",
    "ScalarNode",
    "ListNode",
    "MappingNode",
    "from_python",
    "XMLDocument",
    "XMLElement",
    "AttributeHints",
    "RenameTable",
    "EncoderConfig",
    "TreeEncoder",
    "encode",
    "encode_to_string",
    "DecoderConfig",
    "TreeDecoder",
    "decode",
    "decode_envelope",
    "as_list",
    "scalar_value",
    "result_of",
    "fault_string",
    "is_success",
]
