"""
Pydantic schemas: the decoded manifest value tree and per-script settings.
"""

from t3scripts.schemas.values import (
    FileEntry,
    IntegerNode,
    MappingNode,
    ScalarNode,
    ValueNode,
    build_manifest,
)

__all__ = [
    "FileEntry",
    "IntegerNode",
    "MappingNode",
    "ScalarNode",
    "ValueNode",
    "build_manifest",
]
