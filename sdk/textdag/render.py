"""Plain-text renderings of a Dag: indented text, Markdown, GraphViz DOT and Mermaid."""

from typing import Callable, Iterator, List, Tuple

from .graph import Dag
from .search import node_type
from .store import GraphNode

SHOW_FORMATS = ("text", "markdown")
MERMAID_DIRECTIONS = ("TB", "TD", "BT", "LR", "RL")

_MERMAID_SHAPES = {
    "document": ('("', '")'),
    "sentence": ('["', '"]'),
    "token": ('(("', '"))'),
}


def _walk(dag: Dag) -> Iterator[Tuple[GraphNode, int]]:
    """Depth-first from the roots, yielding (node, level) once per node."""
    visited = set()
    stack = [(root.id, 0) for root in reversed(dag.get_roots())]
    while stack:
        node_id, level = stack.pop()
        if node_id in visited:
            continue
        visited.add(node_id)
        yield dag.get_node(node_id), level
        for child_id in reversed(dag.child_ids(node_id)):
            stack.append((child_id, level + 1))


def _clip(text: str, limit: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def show(
    dag: Dag,
    show_data: Callable[[object], str] = str,
    indent: str = "  ",
    format: str = "text",
) -> str:
    """Render the graph as an indented tree.

    `text` gives one `[operation] data` line per node (`root` for unlabeled
    nodes). `markdown` gives a heading per node, nested by level, with the
    node type as a code badge and the producing operation underneath.
    """
    if format not in SHOW_FORMATS:
        raise ValueError(f"Unknown format {format!r}, expected one of {', '.join(SHOW_FORMATS)}")
    if format == "markdown":
        return _show_markdown(dag, show_data)

    lines = []
    for node, level in _walk(dag):
        op = node.metadata.operation or "root"
        lines.append(f"{indent * level}[{op}] {show_data(node.data)}")
    return "\n".join(lines)


def _show_markdown(dag: Dag, show_data: Callable[[object], str]) -> str:
    lines: List[str] = ["# Text Processing Graph", ""]
    for node, level in _walk(dag):
        text = show_data(node.data)
        lines.append(f"{'#' * min(level + 2, 6)} `{node_type(node)}` {_clip(text, 100)}")
        lines.append("")
        if len(text) > 100:
            lines.append("> Full text: " + text.replace("\n", " "))
            lines.append("")
        if node.metadata.operation:
            lines.append(f"*Operation: `{node.metadata.operation}`*")
            lines.append("")
    return "\n".join(lines).rstrip("\n") + "\n"


# ----------------------------------------------------------------------
# Diagram exports
# ----------------------------------------------------------------------


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def to_dot(
    dag: Dag,
    show_data: Callable[[object], str] = str,
    graph_name: str = "TextProcessingGraph",
) -> str:
    """GraphViz DOT source. Nodes are `n<index>` in insertion order; edges are
    labelled with the operation that produced the child."""
    lines = [f"digraph {graph_name} {{"]
    for index, node in enumerate(dag.nodes()):
        label = f"{node_type(node)}: {_clip(show_data(node.data), 30)}"
        lines.append(f'  n{index} [label="{_dot_escape(label)}"];')
    for parent_id, child_id in dag.edges():
        op = dag.get_node(child_id).metadata.operation
        attrs = f' [label="{_dot_escape(op)}"]' if op else ""
        lines.append(f"  n{dag.index_of(parent_id)} -> n{dag.index_of(child_id)}{attrs};")
    lines.append("}")
    return "\n".join(lines)


def _mermaid_escape(text: str) -> str:
    return text.replace('"', "#quot;")


def to_mermaid(
    dag: Dag,
    show_data: Callable[[object], str] = str,
    direction: str = "TB",
) -> str:
    """Mermaid flowchart source. Documents are rounded, sentences rectangular,
    tokens circular."""
    if direction not in MERMAID_DIRECTIONS:
        raise ValueError(f"Unknown direction {direction!r}, expected one of {', '.join(MERMAID_DIRECTIONS)}")
    lines = [f"graph {direction}"]
    for index, node in enumerate(dag.nodes()):
        kind = node_type(node)
        opening, closing = _MERMAID_SHAPES.get(kind, ('["', '"]'))
        label = _mermaid_escape(f"{kind}: {_clip(show_data(node.data), 20)}")
        lines.append(f"  n{index}{opening}{label}{closing}")
    for parent_id, child_id in dag.edges():
        op = dag.get_node(child_id).metadata.operation
        arrow = f"-->|{op}|" if op else "-->"
        lines.append(f"  n{dag.index_of(parent_id)} {arrow} n{dag.index_of(child_id)}")
    return "\n".join(lines)
