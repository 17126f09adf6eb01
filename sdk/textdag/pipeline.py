"""Text operations that grow a Dag: sentencize and tokenize."""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ExtractionError, NodeNotFoundError
from .fold import cata, char_count_algebra, word_count_algebra
from .graph import Dag
from .store import NodeId


class PipelineOperation(str, Enum):
    SENTENCIZE = "sentencize"
    TOKENIZE = "tokenize"
    BOTH = "both"


def from_text(text: str) -> Tuple[Dag[str], NodeId]:
    """A singleton graph whose root holds `text`."""
    return Dag.empty().add_node_with_id(text)


def _targets(dag: Dag[str], node_ids: Optional[Iterable[NodeId]]) -> List[NodeId]:
    targets = list(node_ids)
    for node_id in targets:
        if node_id not in dag:
            raise NodeNotFoundError(node_id)
    return targets


def _run_engine(step, node_id: NodeId, text: str) -> List[str]:
    """Call an engine method, reporting its failure against the node it was run on."""
    try:
        return list(step(text))
    except Exception as e:
        raise ExtractionError(node_id, str(e)) from e


def sentencize(dag: Dag[str], engine, node_ids: Optional[Iterable[NodeId]] = None) -> Dag[str]:
    """Add one `sentencize` child per sentence under each target (default: roots)."""
    if node_ids is None:
        node_ids = [root.id for root in dag.get_roots()]
    for node_id in _targets(dag, node_ids):
        text = dag.get_node(node_id).data
        for sentence in _run_engine(engine.sentencize, node_id, text):
            dag = dag.add_node(sentence, node_id, PipelineOperation.SENTENCIZE.value)
    return dag


def tokenize(dag: Dag[str], engine, node_ids: Optional[Iterable[NodeId]] = None) -> Dag[str]:
    """Add `tokenize` children under each target.

    Targets default to the sentence nodes, or the roots when the graph has no
    sentences. Targets that already have token children are skipped, so
    running the step twice changes nothing.
    """
    if node_ids is None:
        node_ids = dag.find_nodes(lambda n: n.metadata.operation == PipelineOperation.SENTENCIZE.value)
        if not node_ids:
            node_ids = [root.id for root in dag.get_roots()]

    for node_id in _targets(dag, node_ids):
        already = any(
            child.metadata.operation == PipelineOperation.TOKENIZE.value
            for child in dag.get_children(node_id)
        )
        if already:
            continue
        text = dag.get_node(node_id).data
        for token in _run_engine(engine.tokenize, node_id, text):
            dag = dag.add_node(token, node_id, PipelineOperation.TOKENIZE.value)
    return dag


def build_graph(text: str, engine, operation: str = PipelineOperation.BOTH) -> Dag[str]:
    """Run `operation` on a fresh document graph."""
    operation = PipelineOperation(operation)
    dag, _ = from_text(text)
    if operation in (PipelineOperation.SENTENCIZE, PipelineOperation.BOTH):
        dag = sentencize(dag, engine)
    if operation in (PipelineOperation.TOKENIZE, PipelineOperation.BOTH):
        dag = tokenize(dag, engine)
    return dag


def text_counts(dag: Dag[str]) -> Dict[str, int]:
    """Word and character totals over all roots, computed with `cata`."""
    return {
        "words": sum(cata(dag, word_count_algebra)),
        "chars": sum(cata(dag, char_count_algebra)),
    }
