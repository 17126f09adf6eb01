"""Catamorphism (bottom-up fold) and anamorphism (top-down unfold) over a Dag."""

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .errors import CycleError, NodeNotFoundError, UnfoldCancelled
from .graph import Dag
from .store import GraphNode, NodeId

A = TypeVar("A")
B = TypeVar("B")
S = TypeVar("S")

GraphAlgebra = Callable[[GraphNode[A], List[B]], B]
GraphCoalgebra = Callable[[S], Tuple[A, Iterable[S]]]

_WORD = re.compile(r"\w")


def cata(dag: Dag[A], algebra: GraphAlgebra) -> List[B]:
    """Fold the graph bottom-up and return one result per root.

    A node's algebra runs only after all of its children have been folded,
    and exactly once even when the node is reachable along several paths.
    The child results are passed in the order `dag.child_ids` reports them.

    Raises:
        NodeNotFoundError: a child id refers to a node missing from the store.
        CycleError: the structure turned out not to be acyclic.
    """
    memo: Dict[NodeId, B] = {}
    return [_fold_from(dag, root.id, algebra, memo) for root in dag.get_roots()]


def _fold_from(dag: Dag[A], start: NodeId, algebra: GraphAlgebra, memo: Dict[NodeId, B]) -> B:
    in_progress = set()
    stack: List[Tuple[NodeId, bool]] = [(start, False)]

    while stack:
        node_id, expanded = stack.pop()

        if expanded:
            node = dag.get_node(node_id)
            memo[node_id] = algebra(node, [memo[c] for c in dag.child_ids(node_id)])
            in_progress.discard(node_id)
            continue

        if node_id in memo:
            continue
        if node_id in in_progress:
            raise CycleError(node_id, node_id)
        if dag.get_node(node_id) is None:
            raise NodeNotFoundError(node_id)

        in_progress.add(node_id)
        stack.append((node_id, True))
        for child_id in reversed(dag.child_ids(node_id)):
            if child_id in memo:
                continue
            if child_id in in_progress:
                raise CycleError(node_id, child_id)
            stack.append((child_id, False))

    return memo[start]


def ana(
    seed: S,
    coalgebra: GraphCoalgebra,
    cancel_event: Optional[Any] = None,
    operation: Optional[str] = "unfold",
) -> Dag[A]:
    """Build a graph top-down from `seed`.

    `coalgebra(seed)` returns the node payload and the seeds of its children.
    There is no depth limit; the caller is responsible for the seeds running
    out. Pass anything with an `is_set()` method as `cancel_event` to be able
    to stop an unfold, which then raises UnfoldCancelled with the partial graph.
    """
    dag: Dag[A] = Dag.empty()
    stack: List[Tuple[S, Optional[NodeId]]] = [(seed, None)]

    while stack:
        if cancel_event is not None and cancel_event.is_set():
            raise UnfoldCancelled(dag)
        current, parent_id = stack.pop()
        data, child_seeds = coalgebra(current)
        dag, node_id = dag.add_node_with_id(
            data, parent_id, operation if parent_id is not None else None
        )
        for child_seed in reversed(list(child_seeds)):
            stack.append((child_seed, node_id))

    return dag


# ----------------------------------------------------------------------
# Algebras
# ----------------------------------------------------------------------


def word_count_algebra(node: GraphNode[Any], children: Sequence[int]) -> int:
    """Count `tokenize` nodes holding at least one word character."""
    data = node.data
    is_word = (
        isinstance(data, str)
        and node.metadata.operation == "tokenize"
        and bool(_WORD.search(data))
    )
    return int(is_word) + sum(children)


def char_count_algebra(node: GraphNode[Any], children: Sequence[int]) -> int:
    """Characters in the finest segmentation: leaves count their text, inner nodes sum."""
    if not children:
        return len(node.data) if isinstance(node.data, str) else 0
    return sum(children)
