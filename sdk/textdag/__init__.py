"""textdag: text-processing pipelines as persistent DAGs, plus corpus statistics."""

from .corpus import (
    CorpusConfig,
    CorpusStatistics,
    Document,
    DocumentFeatures,
    ProcessedDocument,
    Progress,
    aggregate,
    compute_pairwise_similarities,
    compute_tfidf,
    create_documents,
    create_documents_with_ids,
    document_statistics,
    engine_extractor,
    process_parallel,
    process_parallel_stream,
    top_similar_documents,
    top_terms_by_frequency,
)
from .errors import (
    AggregationCancelled,
    CycleError,
    ExtractionError,
    NodeNotFoundError,
    TextDagError,
    UnfoldCancelled,
)
from .fold import ana, cata, char_count_algebra, word_count_algebra
from .graph import Dag, GraphStats, TraversalOrder
from .render import show, to_dot, to_mermaid
from .search import SearchIndex, build_index
from .similarity import cosine_similarity
from .store import GraphNode, NodeId, NodeMetadata, NodeStore

__version__ = "1.0.0"


def empty() -> Dag:
    """Create an empty graph."""
    return Dag.empty()


def singleton(data) -> Dag:
    """Create a graph holding one root node."""
    return Dag.singleton(data)
