"""
Hierarchy Engine
================
Rebuilds the section / sub-category / line-item tree of a flat statement.

The CSV sheets carry no parent pointers; the only signals are the row labels
and their order (a child row follows its parent). Rows are scanned once while
keeping a cursor on the open level-0 section and the open level-1 group, and
each label is matched against the template grammar:

1. standalone label  -> new top-level leaf, closes both cursors
2. section label     -> new top-level node, becomes the level-0 cursor
3. group label scoped to the open section -> child of the section, level-1 cursor
4. item label scoped to the open group    -> child of the group
5. anything else     -> child of the deepest open cursor, or a top-level orphan

This module is pure and UI-independent. Expansion state is plain data
({node_id: bool}) so a re-render never depends on a previous tree object.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from app_logging import get_logger
from statement_config import LabelRule, NodeKind, TreeGrammar

logger = get_logger(__name__)


@dataclass
class RowClassification:
    index: int
    label: str
    level: int
    kind: NodeKind
    role: Optional[str] = None
    parent_index: Optional[int] = None
    default_open: bool = False


@dataclass
class TreeNode:
    """One statement row placed in the hierarchy."""
    id: str
    row_data: List[str]
    level: int
    kind: NodeKind = NodeKind.UNMATCHED
    role: Optional[str] = None
    is_header: bool = False
    is_expanded: bool = False
    default_open: bool = False
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.row_data[0] if self.row_data else ""

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "row_data": list(self.row_data),
            "level": self.level,
            "kind": self.kind.value,
            "role": self.role,
            "is_header": self.is_header,
            "is_expanded": self.is_expanded,
            "children": [c.to_dict() for c in self.children],
        }


def node_id(index: int) -> str:
    return f"row-{index}"


# =============================================================================
# CLASSIFICATION
# =============================================================================

@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern":
    return re.compile(pattern, re.IGNORECASE)


def _first_match(label: str, rules: Sequence[LabelRule]) -> Optional[LabelRule]:
    for rule in rules:
        if any(_compile(p).search(label) for p in rule.patterns):
            return rule
    return None


def _row_label(row: Sequence[str], label_col: int) -> str:
    if len(row) <= label_col or row[label_col] is None:
        return ""
    return str(row[label_col]).strip()


def classify_rows(rows: Sequence[Sequence[str]], grammar: TreeGrammar) -> List[RowClassification]:
    """
    Assign every row a level, kind and parent.

    Scoped rules are checked against the role of the *currently open* parent,
    so a label shared by several sections ("Other Income") attaches to
    whichever section opened most recently.

    Args:
        rows: Statement rows in document order
        grammar: Template grammar

    Returns:
        One RowClassification per input row, same order
    """
    standalone = grammar.standalone_rules()
    sections = grammar.section_rules()

    out: List[RowClassification] = []
    section: Optional[Tuple[int, str]] = None  # (row index, role)
    group: Optional[Tuple[int, str]] = None

    for i, row in enumerate(rows):
        label = _row_label(row, grammar.label_col)

        rule = _first_match(label, standalone) if label else None
        if rule:
            section = group = None
            out.append(RowClassification(i, label, 0, NodeKind.STANDALONE, rule.role))
            continue

        rule = _first_match(label, sections) if label else None
        if rule:
            section, group = (i, rule.role), None
            out.append(RowClassification(i, label, 0, NodeKind.SECTION, rule.role,
                                         default_open=rule.default_open))
            continue

        if section and label:
            rule = _first_match(label, grammar.child_rules(1, section[1]))
            if rule:
                group = (i, rule.role)
                out.append(RowClassification(i, label, 1, NodeKind.GROUP, rule.role,
                                             parent_index=section[0],
                                             default_open=rule.default_open))
                continue

        if group and label:
            rule = _first_match(label, grammar.child_rules(2, group[1]))
            if rule:
                out.append(RowClassification(i, label, 2, NodeKind.ITEM, rule.role,
                                             parent_index=group[0]))
                continue

        # Fallback: keep the row under whatever is open, never drop it
        if group:
            out.append(RowClassification(i, label, 2, NodeKind.UNMATCHED, parent_index=group[0]))
        elif section:
            out.append(RowClassification(i, label, 1, NodeKind.UNMATCHED, parent_index=section[0]))
        else:
            out.append(RowClassification(i, label, 0, NodeKind.UNMATCHED))

    unmatched = sum(1 for c in out if c.kind == NodeKind.UNMATCHED)
    if unmatched:
        logger.debug("%s grammar: %d of %d rows matched no label rule", grammar.name, unmatched, len(out))
    return out


# =============================================================================
# TREE BUILDING
# =============================================================================

def build_tree(
    rows: Sequence[Sequence[str]],
    grammar: TreeGrammar,
    expand_all: Optional[bool] = None,
    expanded: Optional[Dict[str, bool]] = None,
) -> List[TreeNode]:
    """
    Build the display forest for a statement.

    Args:
        rows: Statement rows in document order
        grammar: Template grammar
        expand_all: Force every header open (True) or closed (False);
            None applies each rule's default
        expanded: Per-node overrides {node_id: bool}, e.g. user toggles;
            these win over `expand_all`

    Returns:
        Top-level nodes in document order
    """
    classifications = classify_rows(rows, grammar)
    nodes: Dict[int, TreeNode] = {}
    roots: List[TreeNode] = []

    for c in classifications:
        node = TreeNode(
            id=node_id(c.index),
            row_data=[("" if cell is None else str(cell)) for cell in rows[c.index]],
            level=c.level,
            kind=c.kind,
            role=c.role,
            default_open=c.default_open,
        )
        nodes[c.index] = node
        if c.parent_index is None:
            roots.append(node)
        else:
            nodes[c.parent_index].children.append(node)

    expanded = expanded or {}
    for node in nodes.values():
        node.is_header = node.kind == NodeKind.SECTION or node.has_children
        if not node.is_header:
            continue
        if node.id in expanded:
            node.is_expanded = bool(expanded[node.id])
        elif expand_all is not None:
            node.is_expanded = bool(expand_all)
        else:
            node.is_expanded = node.default_open

    return roots


def walk(forest: Sequence[TreeNode]) -> Iterator[TreeNode]:
    """Every node, depth-first in document order."""
    for node in forest:
        yield node
        yield from walk(node.children)


def find_node(forest: Sequence[TreeNode], target_id: str) -> Optional[TreeNode]:
    for node in walk(forest):
        if node.id == target_id:
            return node
    return None


def visible_nodes(forest: Sequence[TreeNode]) -> List[TreeNode]:
    """Nodes a table shows given each header's expansion flag."""
    out: List[TreeNode] = []
    for node in forest:
        out.append(node)
        if node.is_expanded and node.children:
            out.extend(visible_nodes(node.children))
    return out


def tree_signature(forest: Sequence[TreeNode]) -> List[Tuple[str, int, Optional[str]]]:
    """(id, level, parent id) for every node; equal signatures mean equal structure."""
    sig: List[Tuple[str, int, Optional[str]]] = []

    def _visit(nodes: Sequence[TreeNode], parent: Optional[str]) -> None:
        for n in nodes:
            sig.append((n.id, n.level, parent))
            _visit(n.children, n.id)

    _visit(forest, None)
    return sig


# =============================================================================
# EXPANSION STATE
# =============================================================================

def initial_expansion(forest: Sequence[TreeNode], expand_all: Optional[bool] = None) -> Dict[str, bool]:
    """Expansion map for every header node under the default policy."""
    state: Dict[str, bool] = {}
    for node in walk(forest):
        if node.is_header:
            state[node.id] = node.default_open if expand_all is None else bool(expand_all)
    return state


def toggle_expansion(state: Dict[str, bool], target_id: str, forest: Sequence[TreeNode]) -> Dict[str, bool]:
    """
    Flip one node's expansion flag.

    Returns a new map; siblings and descendants keep their own flags. Unknown
    or non-header ids leave the state unchanged.
    """
    node = find_node(forest, target_id)
    if node is None or not node.is_header:
        return dict(state)
    new_state = dict(state)
    new_state[target_id] = not state.get(target_id, node.is_expanded)
    return new_state
