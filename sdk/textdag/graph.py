"""Persistent DAG of text-processing nodes.

Every mutating call returns a new `Dag`; previously obtained values remain
valid and never observe later inserts. Versions share one append-only
`NodeStore` and each remembers how much of it belongs to them, so the common
case (growing the newest version) costs no copying. Writing from an older
version forks a private copy of its prefix.
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from .errors import CycleError, NodeNotFoundError
from .store import GraphNode, NodeId, NodeMetadata, NodeStore, generate_node_id, now_ms

logger = logging.getLogger(__name__)

A = TypeVar("A")
B = TypeVar("B")
T = TypeVar("T")


class TraversalOrder(str, Enum):
    DFS = "dfs"
    BFS = "bfs"
    TOPO = "topo"


@dataclass(frozen=True)
class GraphStats:
    node_count: int
    edge_count: int
    depth: int
    roots: int


class Dag(Generic[A]):
    """An immutable view over a prefix of a node store."""

    def __init__(self, store: Optional[NodeStore[A]] = None, size: int = 0, edge_count: int = 0):
        self._store: NodeStore[A] = store if store is not None else NodeStore()
        self._size = size
        self._edge_count = edge_count

    @classmethod
    def empty(cls) -> "Dag[A]":
        return cls()

    @classmethod
    def singleton(cls, data: A) -> "Dag[A]":
        """A graph holding one root node at depth 0."""
        return cls().add_node(data)

    @classmethod
    def from_nodes(
        cls,
        nodes: Iterable[GraphNode[A]],
        edges: Iterable[Tuple[NodeId, NodeId]] = (),
    ) -> "Dag[A]":
        """Build a graph from existing node records, stored exactly as given.

        `parent_id` and `depth` are provenance and are not re-derived; a
        `parent_id` may name a node that is not part of `nodes` (as after
        `filter_nodes`). Structure comes from `edges` alone, each added through
        `add_edge`, so duplicate ids raise ValueError and a cycle raises
        CycleError.
        """
        dag = cls()._commit(list(nodes), [])
        for parent_id, child_id in edges:
            dag = dag.add_edge(parent_id, child_id)
        return dag

    # ------------------------------------------------------------------
    # Mutation (returns new values)
    # ------------------------------------------------------------------

    def add_node(
        self,
        data: A,
        parent_id: Optional[NodeId] = None,
        operation: Optional[str] = None,
        node_id: Optional[NodeId] = None,
        timestamp: Optional[int] = None,
    ) -> "Dag[A]":
        """Return a new graph with one more node, linked under `parent_id` if given."""
        dag, _ = self.add_node_with_id(data, parent_id, operation, node_id, timestamp)
        return dag

    def add_node_with_id(
        self,
        data: A,
        parent_id: Optional[NodeId] = None,
        operation: Optional[str] = None,
        node_id: Optional[NodeId] = None,
        timestamp: Optional[int] = None,
    ) -> Tuple["Dag[A]", NodeId]:
        """Like `add_node` but also returns the id of the inserted node."""
        new_id = node_id if node_id is not None else generate_node_id()
        if parent_id is not None and parent_id == new_id:
            raise CycleError(parent_id, new_id)
        if new_id in self:
            raise ValueError(f"Duplicate node id: {new_id}")

        depth = 0
        edges = []
        if parent_id is not None:
            parent = self.get_node(parent_id)
            if parent is None:
                raise NodeNotFoundError(parent_id)
            depth = parent.metadata.depth + 1
            edges.append((parent_id, new_id))

        node = GraphNode(
            id=new_id,
            data=data,
            parent_id=parent_id,
            metadata=NodeMetadata(
                operation=operation,
                timestamp=timestamp if timestamp is not None else now_ms(),
                depth=depth,
            ),
        )
        return self._commit([node], edges), new_id

    def add_edge(self, parent_id: NodeId, child_id: NodeId) -> "Dag[A]":
        """Return a new graph with an extra parent -> child edge between existing nodes.

        Used for shared children and for validating externally supplied
        structure. Raises CycleError, before anything is written, if `parent_id`
        is reachable from `child_id`.
        """
        parent_index = self._require_index(parent_id)
        child_index = self._require_index(child_id)
        if parent_index == child_index or self._reaches(child_index, parent_index):
            logger.debug("Rejected edge %s -> %s: %s already reaches %s", parent_id, child_id, child_id, parent_id)
            raise CycleError(parent_id, child_id)
        if child_index in self._store.children_of(parent_index, self._edge_count):
            raise ValueError(f"Edge already exists: {parent_id} -> {child_id}")
        return self._commit([], [(parent_id, child_id)])

    def _commit(self, nodes: List[GraphNode[A]], edges: List[Tuple[NodeId, NodeId]]) -> "Dag[A]":
        store = self._store
        if not store.append(self._size, self._edge_count, nodes, edges):
            store = store.fork(self._size, self._edge_count)
            store.append(self._size, self._edge_count, nodes, edges)
        return Dag(store, self._size + len(nodes), self._edge_count + len(edges))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return self._size

    def __contains__(self, node_id: object) -> bool:
        return self._store.index_of(node_id, self._size) is not None  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[GraphNode[A]]:
        return iter(self.nodes())

    @property
    def size(self) -> int:
        return self._size

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def is_empty(self) -> bool:
        return self._size == 0

    def nodes(self) -> List[GraphNode[A]]:
        """All nodes in insertion order."""
        return [self._store.node_at(i) for i in range(self._size)]

    def edges(self) -> List[Tuple[NodeId, NodeId]]:
        """All parent -> child edges in insertion order."""
        return [
            (self._store.node_at(p).id, self._store.node_at(c).id)
            for p, c in self._store.edges(self._edge_count)
        ]

    def get_node(self, node_id: NodeId) -> Optional[GraphNode[A]]:
        return self._store.get(node_id, self._size)

    def index_of(self, node_id: NodeId) -> Optional[int]:
        return self._store.index_of(node_id, self._size)

    def id_of(self, index: int) -> Optional[NodeId]:
        return self._store.id_of(index, self._size)

    def child_ids(self, node_id: NodeId) -> List[NodeId]:
        """Ids of the children of `node_id` in insertion order; [] for unknown ids."""
        index = self.index_of(node_id)
        if index is None:
            return []
        return [self._store.node_at(c).id for c in self._store.children_of(index, self._edge_count)]

    def get_children(self, node_id: NodeId) -> List[GraphNode[A]]:
        index = self.index_of(node_id)
        if index is None:
            return []
        return [self._store.node_at(c) for c in self._store.children_of(index, self._edge_count)]

    def get_parents(self, node_id: NodeId) -> List[GraphNode[A]]:
        index = self.index_of(node_id)
        if index is None:
            return []
        return [self._store.node_at(p) for p in self._store.parents_of(index, self._edge_count)]

    def get_roots(self) -> List[GraphNode[A]]:
        """Nodes without an incoming edge, in insertion order."""
        return [
            self._store.node_at(i)
            for i in range(self._size)
            if not self._store.parents_of(i, self._edge_count)
        ]

    def get_leaves(self) -> List[GraphNode[A]]:
        """Nodes without an outgoing edge, in insertion order."""
        return [
            self._store.node_at(i)
            for i in range(self._size)
            if not self._store.children_of(i, self._edge_count)
        ]

    def find_nodes(self, predicate: Callable[[GraphNode[A]], bool]) -> List[NodeId]:
        return [node.id for node in self.nodes() if predicate(node)]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def traverse(
        self,
        start: Optional[Iterable[NodeId]] = None,
        order: TraversalOrder = TraversalOrder.DFS,
    ) -> List[GraphNode[A]]:
        """Visit every node reachable from `start` exactly once.

        `start=None` means all roots. An explicit empty `start` visits nothing,
        even on a non-empty graph. Depth-first is pre-order with children in
        insertion order; topological order puts each parent before all of its
        descendants.
        """
        order = TraversalOrder(order)
        if start is None:
            start_indices = [i for i in range(self._size) if not self._store.parents_of(i, self._edge_count)]
        else:
            start_indices = [self._require_index(node_id) for node_id in start]

        if order is TraversalOrder.DFS:
            indices = self._dfs(start_indices)
        elif order is TraversalOrder.BFS:
            indices = self._bfs(start_indices)
        else:
            indices = self._topo(start_indices)
        return [self._store.node_at(i) for i in indices]

    def fold_traversal(
        self,
        start: Optional[Iterable[NodeId]],
        order: TraversalOrder,
        initial: T,
        f: Callable[[T, GraphNode[A]], T],
    ) -> T:
        """Left fold over the nodes in traversal order."""
        result = initial
        for node in self.traverse(start, order):
            result = f(result, node)
        return result

    def fold_nodes(self, initial: T, f: Callable[[T, GraphNode[A]], T]) -> T:
        """Fold over all nodes; order is insertion order but callers should not rely on it."""
        result = initial
        for node in self.nodes():
            result = f(result, node)
        return result

    def _children(self, index: int) -> List[int]:
        return self._store.children_of(index, self._edge_count)

    def _dfs(self, start: List[int]) -> List[int]:
        visited = set()
        out = []
        stack = list(reversed(start))
        while stack:
            index = stack.pop()
            if index in visited:
                continue
            visited.add(index)
            out.append(index)
            stack.extend(reversed(self._children(index)))
        return out

    def _bfs(self, start: List[int]) -> List[int]:
        visited = set()
        out = []
        queue = deque()
        for index in start:
            if index not in visited:
                visited.add(index)
                queue.append(index)
        while queue:
            index = queue.popleft()
            out.append(index)
            for child in self._children(index):
                if child not in visited:
                    visited.add(child)
                    queue.append(child)
        return out

    def _topo(self, start: List[int]) -> List[int]:
        reachable = sorted(self._dfs(start))
        members = set(reachable)
        in_degree = {i: 0 for i in reachable}
        for index in reachable:
            for child in self._children(index):
                in_degree[child] += 1

        queue = deque(i for i in reachable if in_degree[i] == 0)
        out = []
        while queue:
            index = queue.popleft()
            out.append(index)
            for child in self._children(index):
                if child not in members:
                    continue
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)
        if len(out) != len(reachable):
            stuck = next(i for i in reachable if in_degree[i] > 0)
            raise CycleError(self._store.node_at(stuck).id, self._store.node_at(stuck).id)
        return out

    def _reaches(self, source: int, target: int) -> bool:
        stack = [source]
        seen = {source}
        while stack:
            index = stack.pop()
            if index == target:
                return True
            for child in self._children(index):
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        return False

    def _require_index(self, node_id: NodeId) -> int:
        index = self.index_of(node_id)
        if index is None:
            raise NodeNotFoundError(node_id)
        return index

    # ------------------------------------------------------------------
    # Structure-preserving transformations
    # ------------------------------------------------------------------

    def map(self, f: Callable[[A], B]) -> "Dag[B]":
        """Apply `f` to every payload; ids, metadata, edges and order are kept."""
        store: NodeStore[B] = NodeStore()
        for node in self.nodes():
            store.insert(replace(node, data=f(node.data)))
        for parent_index, child_index in self._store.edges(self._edge_count):
            store.add_edge(parent_index, child_index)
        return Dag(store, self._size, self._edge_count)

    def filter_nodes(self, predicate: Callable[[GraphNode[A]], bool]) -> "Dag[A]":
        """Keep nodes passing `predicate` and the edges between them.

        Edges touching a dropped node are removed; grandparents are not
        reconnected to grandchildren. Kept records are unchanged, so a node
        whose parent was dropped becomes a root of the result while still
        carrying its original `parent_id` and `depth`.
        """
        store: NodeStore[A] = NodeStore()
        remap: Dict[int, int] = {}
        for index, node in enumerate(self.nodes()):
            if predicate(node):
                remap[index] = store.insert(node)
        for parent_index, child_index in self._store.edges(self._edge_count):
            if parent_index in remap and child_index in remap:
                store.add_edge(remap[parent_index], remap[child_index])
        return Dag(store, store.node_count, store.edge_count)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def is_acyclic(self) -> bool:
        in_degree = [len(self._store.parents_of(i, self._edge_count)) for i in range(self._size)]
        queue = deque(i for i in range(self._size) if in_degree[i] == 0)
        seen = 0
        while queue:
            index = queue.popleft()
            seen += 1
            for child in self._children(index):
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)
        return seen == self._size

    def stats(self) -> GraphStats:
        nodes = self.nodes()
        max_depth = max((n.metadata.depth for n in nodes), default=-1)
        return GraphStats(
            node_count=self._size,
            edge_count=self._edge_count,
            depth=max_depth + 1,
            roots=len(self.get_roots()),
        )

    def __repr__(self) -> str:
        return f"Dag(nodes={self._size}, edges={self._edge_count})"


# ----------------------------------------------------------------------
# Function-style API
# ----------------------------------------------------------------------


def empty() -> Dag:
    return Dag.empty()


def singleton(data: A) -> Dag[A]:
    return Dag.singleton(data)


def add_node(
    dag: Dag[A],
    data: A,
    parent_id: Optional[NodeId] = None,
    operation: Optional[str] = None,
) -> Dag[A]:
    return dag.add_node(data, parent_id, operation)


def get_children(dag: Dag[A], node_id: NodeId) -> List[GraphNode[A]]:
    return dag.get_children(node_id)


def get_roots(dag: Dag[A]) -> List[GraphNode[A]]:
    return dag.get_roots()


def get_leaves(dag: Dag[A]) -> List[GraphNode[A]]:
    return dag.get_leaves()


def traverse(
    dag: Dag[A],
    start: Optional[Iterable[NodeId]] = None,
    order: TraversalOrder = TraversalOrder.DFS,
) -> List[GraphNode[A]]:
    return dag.traverse(start, order)


def map_nodes(dag: Dag[A], f: Callable[[A], B]) -> Dag[B]:
    return dag.map(f)


def filter_nodes(dag: Dag[A], predicate: Callable[[GraphNode[A]], bool]) -> Dag[A]:
    return dag.filter_nodes(predicate)


def is_acyclic(dag: Dag) -> bool:
    return dag.is_acyclic()
