"""Wire records for graphs, corpus configs and statistics.

Only the logical shape is fixed here. Durations travel as integer
milliseconds and become `timedelta` on the way in.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .corpus import CorpusConfig, CorpusStatistics
from .graph import Dag
from .store import GraphNode, NodeId, NodeMetadata


class NodeMetadataRecord(BaseModel):
    operation: Optional[str] = None
    timestamp: int
    depth: int = Field(ge=0)


class NodeRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    data: Any = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    metadata: NodeMetadataRecord


class DagRecord(BaseModel):
    """Nodes in insertion order plus the parent -> child edges between them.

    When `edges` is omitted the structure is taken from each node's
    `parentId`, for parents that are part of the record.
    """

    nodes: List[NodeRecord] = Field(default_factory=list)
    edges: Optional[List[Tuple[str, str]]] = None


def dag_to_records(dag: Dag) -> DagRecord:
    nodes = [
        NodeRecord(
            id=node.id,
            data=node.data,
            parent_id=node.parent_id,
            metadata=NodeMetadataRecord(
                operation=node.metadata.operation,
                timestamp=node.metadata.timestamp,
                depth=node.metadata.depth,
            ),
        )
        for node in dag.nodes()
    ]
    return DagRecord(nodes=nodes, edges=dag.edges())


def dag_from_records(record: DagRecord) -> Dag:
    """Rebuild a graph from its records, keeping ids, timestamps and depths.

    A `parentId` naming a node outside the record is kept as provenance, the
    way `filter_nodes` leaves it. Where the parent is present the recorded
    depth must be one more than the parent's; a node without a parent must
    be at depth 0.

    Raises:
        NodeNotFoundError: an edge names a node that is not in the record.
        CycleError: the edges close a cycle.
        ValueError: duplicate ids or a depth that disagrees with its parent.
    """
    nodes = [
        GraphNode(
            id=NodeId(rec.id),
            data=rec.data,
            parent_id=NodeId(rec.parent_id) if rec.parent_id is not None else None,
            metadata=NodeMetadata(
                operation=rec.metadata.operation,
                timestamp=rec.metadata.timestamp,
                depth=rec.metadata.depth,
            ),
        )
        for rec in record.nodes
    ]
    by_id = {node.id: node for node in nodes}
    for node in nodes:
        if node.parent_id is None:
            if node.depth != 0:
                raise ValueError(f"Node {node.id}: root recorded at depth {node.depth}")
            continue
        parent = by_id.get(node.parent_id)
        if parent is not None and node.depth != parent.depth + 1:
            raise ValueError(
                f"Node {node.id}: recorded depth {node.depth}, parent {parent.id} is at {parent.depth}"
            )

    if record.edges is None:
        edges = [(node.parent_id, node.id) for node in nodes if node.parent_id in by_id]
    else:
        edges = [(NodeId(parent_id), NodeId(child_id)) for parent_id, child_id in record.edges]
    return Dag.from_nodes(nodes, edges)


def dag_to_json(dag: Dag) -> str:
    return dag_to_records(dag).model_dump_json(by_alias=True)


def dag_from_json(text: str) -> Dag:
    return dag_from_records(DagRecord.model_validate_json(text))


class CorpusConfigRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_size: int = Field(default=100, ge=1, alias="batchSize")
    concurrency: int = Field(default=10, ge=1)
    extractor_timeout_ms: Optional[int] = Field(default=None, ge=0, alias="extractorTimeoutMs")

    def to_config(self, **overrides: Any) -> CorpusConfig:
        timeout = None
        if self.extractor_timeout_ms is not None:
            timeout = timedelta(milliseconds=self.extractor_timeout_ms)
        return CorpusConfig(
            batch_size=self.batch_size,
            concurrency=self.concurrency,
            extractor_timeout=timeout,
            **overrides,
        )

    @classmethod
    def from_config(cls, config: CorpusConfig) -> "CorpusConfigRecord":
        timeout_ms = None
        if config.extractor_timeout is not None:
            timeout_ms = config.extractor_timeout // timedelta(milliseconds=1)
        return cls(
            batch_size=config.batch_size,
            concurrency=config.concurrency,
            extractor_timeout_ms=timeout_ms,
        )


class CorpusStatisticsRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_count: int = Field(alias="documentCount")
    total_words: int = Field(alias="totalWords")
    total_sentences: int = Field(alias="totalSentences")
    total_chars: int = Field(alias="totalChars")
    vocabulary: List[str]
    term_frequency: Dict[str, int] = Field(alias="termFrequency")
    document_frequency: Dict[str, int] = Field(alias="documentFrequency")


def statistics_to_record(stats: CorpusStatistics) -> CorpusStatisticsRecord:
    return CorpusStatisticsRecord(
        document_count=stats.document_count,
        total_words=stats.total_words,
        total_sentences=stats.total_sentences,
        total_chars=stats.total_chars,
        vocabulary=sorted(stats.vocabulary),
        term_frequency=dict(sorted(stats.term_frequency.items())),
        document_frequency=dict(sorted(stats.document_frequency.items())),
    )


def statistics_from_record(record: CorpusStatisticsRecord) -> CorpusStatistics:
    return CorpusStatistics(
        document_count=record.document_count,
        total_words=record.total_words,
        total_sentences=record.total_sentences,
        total_chars=record.total_chars,
        vocabulary=frozenset(record.vocabulary),
        term_frequency=dict(record.term_frequency),
        document_frequency=dict(record.document_frequency),
    )
