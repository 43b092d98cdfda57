"""
Human readable dump of a manifest value tree.

Keys of a mapping are padded so the '=' signs of siblings line up, nested
mappings are indented by two spaces. Strings that aren't printable, or are
longer than the string limit, are summarized as ``String[<byte length>]``.
"""

from typing import Callable, List, Optional

from t3scripts.core.settings import DEFAULT_STRING_LIMIT
from t3scripts.schemas.values import IntegerNode, MappingNode, ScalarNode

INDENT_STEP = "  "


def format_scalar(value: bytes, string_limit: int = DEFAULT_STRING_LIMIT) -> str:
    """
    Render a string value, or its placeholder.

    A limit of 0 disables the length check; non-printable values are always
    summarized.
    """
    try:
        text = value.decode("utf-8")
    except UnicodeDecodeError:
        text = None

    too_long = string_limit > 0 and len(value) > string_limit
    if text is None or not text.isprintable() or too_long:
        return f"String[{len(value)}]"
    return text


def _widest_key(node: MappingNode) -> int:
    return max((len(key) for key in node.keys()), default=0)


def format_value_tree(node, indent: str = "", name_width: Optional[int] = None,
                      string_limit: int = DEFAULT_STRING_LIMIT) -> List[str]:
    """
    Render a value tree as lines of text.

    Args:
        node: Tree (or subtree) to render
        indent: Prefix of every line at this level
        name_width: Width keys are padded to; defaults to the longest key of
            ``node``'s immediate children
        string_limit: Longest string shown literally, 0 for no limit
    """
    if isinstance(node, ScalarNode):
        return [indent + format_scalar(node.value, string_limit)]
    if isinstance(node, IntegerNode):
        return [indent + str(node.value)]
    if not isinstance(node, MappingNode):
        raise TypeError(f"Not a value node: {type(node).__name__}")

    width = _widest_key(node) if name_width is None else name_width
    lines = []
    for key, child in node.items():
        label = f"{indent}{key.ljust(width)} ="
        if isinstance(child, MappingNode):
            lines.append(label)
            lines.extend(format_value_tree(child, indent + INDENT_STEP, None, string_limit))
        elif isinstance(child, IntegerNode):
            lines.append(f"{label} {child.value}")
        else:
            lines.append(f"{label} {format_scalar(child.value, string_limit)}")
    return lines


def dump_value_tree(node, string_limit: int = DEFAULT_STRING_LIMIT,
                    echo: Callable[[str], None] = print) -> None:
    """Write the rendering of ``node`` line by line through ``echo``."""
    for line in format_value_tree(node, string_limit=string_limit):
        echo(line)
