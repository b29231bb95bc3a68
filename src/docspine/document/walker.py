"""
Depth-first tree walker shared by every stage.

The visitor never mutates the list it is being walked over. It *returns*
an instruction and the walker (the cursor owner) applies it after the visit:

- ``None`` / ``Action.CONTINUE`` – descend into the node's children
- ``Action.SKIP_CHILDREN`` – do not descend
- ``Replace(node)`` – swap the visited node for ``node`` in its parent's
  list; neither the old subtree nor the replacement is visited

Replacement is one-for-one, so positions of later siblings never shift
and the traversal order (document order, pre-order) is the same for every
stage that walks the tree.

Example:
    >>> from docspine.document.nodes import Element, Text
    >>> tree = [Element("paragraph", children=[Text("a"), Text("b")])]
    >>> seen = []
    >>> walk(tree, lambda n: seen.append(type(n).__name__))
    0
    >>> seen
    ['Element', 'Text', 'Text']
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from docspine.document.nodes import Node


class Action(Enum):
    CONTINUE = "continue"
    SKIP_CHILDREN = "skip_children"


@dataclass(frozen=True)
class Replace:
    node: Node


Visit = Action | Replace | None
Visitor = Callable[[Node], Visit]


def walk(nodes: list[Node], visitor: Visitor) -> int:
    """Walk ``nodes`` in document order, applying the visitor's instructions.

    Returns:
        Number of replacements applied
    """
    replaced = 0
    # Explicit stack of (sibling list, next index); the visited list is
    # only written through the index the cursor currently points at.
    stack: list[tuple[list[Node], int]] = [(nodes, 0)]
    while stack:
        siblings, index = stack.pop()
        if index >= len(siblings):
            continue
        stack.append((siblings, index + 1))

        node = siblings[index]
        action = visitor(node)

        if isinstance(action, Replace):
            siblings[index] = action.node
            replaced += 1
        elif action is None or action is Action.CONTINUE:
            if node.children:
                stack.append((node.children, 0))
        elif action is not Action.SKIP_CHILDREN:
            raise TypeError(f"visitor returned unsupported instruction: {action!r}")
    return replaced


def iter_nodes(nodes: list[Node]):
    """Yield every node of the forest in document order (read-only)."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.children)
