"""Multi-key inverted index over graph nodes."""

from typing import Callable, Dict, Generic, Hashable, Iterable, List, Tuple, TypeVar

from .store import GraphNode, NodeId

K = TypeVar("K", bound=Hashable)


class SearchIndex(Generic[K]):
    """Mapping from key to the ordered ids of the nodes that emitted it.

    Built once; rebuild it to reflect later graph changes.
    """

    def __init__(self, index: Dict[K, Tuple[NodeId, ...]]):
        self._index = index
        self._all = frozenset(i for ids in index.values() for i in ids)

    @classmethod
    def build(cls, nodes: Iterable[GraphNode], key_fn: Callable[[GraphNode], Iterable[K]]) -> "SearchIndex[K]":
        postings: Dict[K, List[NodeId]] = {}
        seen: Dict[K, set] = {}
        for node in nodes:
            for key in key_fn(node):
                ids = seen.setdefault(key, set())
                if node.id in ids:
                    continue
                ids.add(node.id)
                postings.setdefault(key, []).append(node.id)
        return cls({key: tuple(ids) for key, ids in postings.items()})

    def __len__(self) -> int:
        return len(self._index)

    def keys(self) -> List[K]:
        return list(self._index)

    def query(self, key: K) -> List[NodeId]:
        """Ids for `key`; an unknown key yields an empty list."""
        return list(self._index.get(key, ()))

    def query_union(self, keys: Iterable[K]) -> List[NodeId]:
        """Ids matching any key, in first-seen order."""
        result: Dict[NodeId, None] = {}
        for key in keys:
            for node_id in self._index.get(key, ()):
                result.setdefault(node_id)
            if len(result) == len(self._all):
                # nothing left that a further key could add
                break
        return list(result)

    def query_intersection(self, keys: Iterable[K]) -> List[NodeId]:
        """Ids matching every key, in the first key's order.

        Stops scanning as soon as the running intersection is empty.
        """
        running = None
        for key in keys:
            postings = self._index.get(key, ())
            if running is None:
                running = list(postings)
            else:
                allowed = set(postings)
                running = [node_id for node_id in running if node_id in allowed]
            if not running:
                return []
        return running or []


def build_index(nodes: Iterable[GraphNode], key_fn: Callable[[GraphNode], Iterable[K]]) -> SearchIndex[K]:
    return SearchIndex.build(nodes, key_fn)


def query(index: SearchIndex[K], key: K) -> List[NodeId]:
    return index.query(key)


def query_union(index: SearchIndex[K], keys: Iterable[K]) -> List[NodeId]:
    return index.query_union(keys)


def query_intersection(index: SearchIndex[K], keys: Iterable[K]) -> List[NodeId]:
    return index.query_intersection(keys)


_NODE_TYPES = {"root": "document", "sentencize": "sentence", "tokenize": "token"}


def node_type(node: GraphNode) -> str:
    """document / sentence / token for pipeline nodes, else the operation name."""
    op = node.metadata.operation or "root"
    return _NODE_TYPES.get(op, op)


def node_keys(node: GraphNode) -> List[Tuple[str, str]]:
    """Default key function: ("op", operation) and ("type", ...) pairs for text nodes."""
    op = node.metadata.operation or "root"
    keys = [("op", op), ("type", node_type(node))]
    if isinstance(node.data, str) and op == "tokenize":
        keys.append(("text", node.data.lower()))
    return keys
