"""
Value tree of a decoded extension manifest.

A manifest is an untyped nested structure. It is modelled as a closed set of
node types so traversal code can dispatch on the node class:

- ScalarNode: a raw byte string
- IntegerNode: an integer
- MappingNode: ordered (key, node) pairs with unique keys

The only shape the tools rely on is a top-level ``FILES`` mapping whose
children each carry a ``name`` (relative path) and a ``content`` entry.
"""

import hashlib
from typing import Annotated, Iterator, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator


class ScalarNode(BaseModel):
    """A string value. Kept as bytes since file contents are binary."""
    model_config = {"frozen": True}

    kind: Literal["scalar"] = "scalar"
    value: bytes

    @property
    def text(self) -> str:
        """The value decoded as UTF-8 (raises UnicodeDecodeError)."""
        return self.value.decode("utf-8")


class IntegerNode(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["integer"] = "integer"
    value: int


class MappingNode(BaseModel):
    """Ordered mapping of string keys to child nodes."""
    model_config = {"frozen": True}

    kind: Literal["mapping"] = "mapping"
    entries: Tuple[Tuple[str, "ValueNode"], ...] = ()

    @model_validator(mode="after")
    def _check_unique_keys(self):
        seen = set()
        for key, _ in self.entries:
            if key in seen:
                raise ValueError(f"duplicate key '{key}'")
            seen.add(key)
        return self

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return any(existing == key for existing, _ in self.entries)

    def keys(self) -> List[str]:
        return [key for key, _ in self.entries]

    def items(self) -> Iterator[Tuple[str, "ValueNode"]]:
        return iter(self.entries)

    def get(self, key: str, default: Optional["ValueNode"] = None) -> Optional["ValueNode"]:
        for existing, node in self.entries:
            if existing == key:
                return node
        return default


ValueNode = Annotated[Union[ScalarNode, IntegerNode, MappingNode], Field(discriminator="kind")]

MappingNode.model_rebuild()


class FileEntry(BaseModel):
    """One file described by a manifest's FILES section."""
    model_config = {"frozen": True}

    name: str
    content: bytes

    @property
    def parts(self) -> List[str]:
        return self.name.split("/")


def build_manifest(files: Mapping[str, bytes], extension_key: Optional[str] = None,
                   mtime: int = 0) -> MappingNode:
    """
    Build a manifest tree for a set of files, laid out like a TER archive.

    Args:
        files: Relative path -> content
        extension_key: Stored as ``extKey`` when given
        mtime: Modification time recorded for every file

    Returns:
        Root MappingNode with a FILES section
    """
    file_nodes = []
    for name, content in files.items():
        file_nodes.append((name, MappingNode(entries=(
            ("name", ScalarNode(value=name.encode("utf-8"))),
            ("size", IntegerNode(value=len(content))),
            ("mtime", IntegerNode(value=mtime)),
            ("is_executable", IntegerNode(value=0)),
            ("content", ScalarNode(value=content)),
            ("content_md5", ScalarNode(value=hashlib.md5(content).hexdigest().encode("ascii"))),
        ))))

    entries = []
    if extension_key is not None:
        entries.append(("extKey", ScalarNode(value=extension_key.encode("utf-8"))))
    entries.append(("FILES", MappingNode(entries=tuple(file_nodes))))
    return MappingNode(entries=tuple(entries))
