"""Node records and the append-only arena that backs every Dag version."""

import logging
import threading
import time
import uuid
from bisect import bisect_left
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, NewType, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

A = TypeVar("A")

NodeId = NewType("NodeId", str)


def generate_node_id() -> NodeId:
    """Return a fresh, globally unique node id."""
    return NodeId(str(uuid.uuid4()))


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class NodeMetadata:
    operation: Optional[str]
    timestamp: int
    depth: int


@dataclass(frozen=True)
class GraphNode(Generic[A]):
    """A node in the DAG: payload plus provenance."""

    id: NodeId
    data: A
    parent_id: Optional[NodeId]
    metadata: NodeMetadata

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def operation(self) -> Optional[str]:
        return self.metadata.operation

    @property
    def depth(self) -> int:
        return self.metadata.depth


class NodeStore(Generic[A]):
    """Arena of node records with a bidirectional id <-> dense index mapping.

    The store only grows. Edges are kept in a sequence of their own so that a
    Dag version can be described by two numbers: how many nodes and how many
    edges of the arena it can see. Every read accepts those limits; without
    them the whole arena is visible.
    """

    def __init__(self):
        self._nodes: List[GraphNode[A]] = []
        self._index: Dict[NodeId, int] = {}
        self._edges: List[Tuple[int, int]] = []
        self._out: List[List[int]] = []
        self._in: List[List[int]] = []
        self._lock = threading.Lock()

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, node: GraphNode[A]) -> int:
        """Append a node record and return its new dense index."""
        if node.id in self._index:
            raise ValueError(f"Duplicate node id: {node.id}")
        index = len(self._nodes)
        self._nodes.append(node)
        self._index[node.id] = index
        self._out.append([])
        self._in.append([])
        return index

    def add_edge(self, parent_index: int, child_index: int) -> int:
        """Record a parent -> child edge and return its sequence number."""
        seq = len(self._edges)
        self._edges.append((parent_index, child_index))
        self._out[parent_index].append(seq)
        self._in[child_index].append(seq)
        return seq

    def append(
        self,
        node_limit: int,
        edge_limit: int,
        nodes: Iterable[GraphNode[A]],
        edges: Iterable[Tuple[NodeId, NodeId]],
    ) -> bool:
        """Append nodes and edges if the arena still ends where the caller's view ends.

        Returns False without touching the arena when another version has
        already extended it; the caller must then fork.
        """
        with self._lock:
            if len(self._nodes) != node_limit or len(self._edges) != edge_limit:
                return False
            for node in nodes:
                self.insert(node)
            for parent_id, child_id in edges:
                self.add_edge(self._index[parent_id], self._index[child_id])
            return True

    def fork(self, node_limit: int, edge_limit: int) -> "NodeStore[A]":
        """Copy the visible prefix into a private store."""
        logger.debug("Forking node store at %d nodes / %d edges", node_limit, edge_limit)
        clone: NodeStore[A] = NodeStore()
        for node in self._nodes[:node_limit]:
            clone.insert(node)
        for parent_index, child_index in self._edges[:edge_limit]:
            clone.add_edge(parent_index, child_index)
        return clone

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, node_id: NodeId, node_limit: Optional[int] = None) -> Optional[GraphNode[A]]:
        index = self.index_of(node_id, node_limit)
        if index is None:
            return None
        return self._nodes[index]

    def index_of(self, node_id: NodeId, node_limit: Optional[int] = None) -> Optional[int]:
        index = self._index.get(node_id)
        if index is None:
            return None
        if node_limit is not None and index >= node_limit:
            return None
        return index

    def id_of(self, index: int, node_limit: Optional[int] = None) -> Optional[NodeId]:
        limit = len(self._nodes) if node_limit is None else node_limit
        if index < 0 or index >= limit:
            return None
        return self._nodes[index].id

    def node_at(self, index: int) -> GraphNode[A]:
        return self._nodes[index]

    def children_of(self, index: int, edge_limit: Optional[int] = None) -> List[int]:
        """Child indices of `index` in edge insertion order."""
        return self._adjacent(self._out[index], edge_limit, 1)

    def parents_of(self, index: int, edge_limit: Optional[int] = None) -> List[int]:
        return self._adjacent(self._in[index], edge_limit, 0)

    def edges(self, edge_limit: Optional[int] = None) -> List[Tuple[int, int]]:
        limit = len(self._edges) if edge_limit is None else edge_limit
        return self._edges[:limit]

    def _adjacent(self, seqs: List[int], edge_limit: Optional[int], end: int) -> List[int]:
        # edge sequence numbers are appended in increasing order
        visible = seqs if edge_limit is None else seqs[:bisect_left(seqs, edge_limit)]
        return [self._edges[seq][end] for seq in visible]
