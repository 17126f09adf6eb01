"""Exception types raised by textdag."""

from typing import Any, Optional


class TextDagError(Exception):
    """Base class for all textdag errors."""


class CycleError(TextDagError):
    """An edge insertion would make the graph cyclic. The graph is left unchanged."""

    def __init__(self, parent_id: str, child_id: str):
        self.parent_id = parent_id
        self.child_id = child_id
        super().__init__(
            f"Cannot add edge {parent_id} -> {child_id}: operation would create a cycle"
        )


class NodeNotFoundError(TextDagError):
    """A node id referenced by an operation is not present in the store."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class ExtractionError(TextDagError):
    """The feature extractor or text engine failed for one document or node."""

    def __init__(self, document_id: str, reason: str = ""):
        self.document_id = document_id
        msg = f"Feature extraction failed for document {document_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AggregationCancelled(TextDagError):
    """Aggregation was cancelled; `partial` covers exactly the processed documents."""

    def __init__(self, partial: Any, processed: int, total: int):
        self.partial = partial
        self.processed = processed
        self.total = total
        super().__init__(f"Aggregation cancelled after {processed}/{total} documents")


class UnfoldCancelled(TextDagError):
    """An unfold was cancelled; `partial` holds the graph built so far."""

    def __init__(self, partial: Any, reason: Optional[str] = None):
        self.partial = partial
        super().__init__(reason or "Unfold cancelled")
