"""FastAPI HTTP server for textdag."""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

import textdag
from textdag.config import load_engine, read_config
from textdag.corpus import create_documents_with_ids, engine_extractor
from textdag.pipeline import PipelineOperation, build_graph, text_counts
from textdag.serialization import (
    CorpusConfigRecord,
    DagRecord,
    dag_from_records,
    dag_to_records,
    statistics_to_record,
)

app = FastAPI(title="textdag", version="1.0.0", description="Text-processing DAG and corpus statistics API")

# Global engine instance
_engine = None


def get_engine():
    global _engine
    if _engine is None:
        _engine = load_engine(read_config())
    return _engine


# Request/Response models
class GraphRequest(BaseModel):
    text: str
    operation: PipelineOperation = PipelineOperation.BOTH


class DocumentModel(BaseModel):
    id: str
    text: str
    metadata: Optional[Dict[str, Any]] = None


class CorpusRequest(BaseModel):
    documents: List[DocumentModel]
    config: CorpusConfigRecord = Field(default_factory=CorpusConfigRecord)


class SimilarRequest(CorpusRequest):
    query_id: str
    top: int = Field(default=10, ge=1)


def _documents(req: CorpusRequest):
    return create_documents_with_ids(d.model_dump() for d in req.documents)


def _raise_http(e: Exception):
    if isinstance(e, textdag.CycleError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, textdag.NodeNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, textdag.ExtractionError):
        raise HTTPException(status_code=422, detail=str(e))
    raise HTTPException(status_code=500, detail=str(e))


# Endpoints
@app.get("/health")
def health():
    return {"status": "ok", "version": textdag.__version__}


@app.post("/graph")
def create_graph(req: GraphRequest):
    try:
        dag = build_graph(req.text, get_engine(), req.operation)
    except textdag.TextDagError as e:
        _raise_http(e)
    stats = dag.stats()
    return {
        "graph": dag_to_records(dag).model_dump(by_alias=True),
        "stats": {
            "nodeCount": stats.node_count,
            "edgeCount": stats.edge_count,
            "depth": stats.depth,
            "roots": stats.roots,
        },
    }


@app.post("/graph/counts")
def graph_counts(record: DagRecord):
    try:
        dag = dag_from_records(record)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except textdag.TextDagError as e:
        _raise_http(e)
    return text_counts(dag)


@app.post("/corpus/stats")
async def corpus_stats(req: CorpusRequest):
    extractor = engine_extractor(get_engine())
    try:
        stats = await textdag.aggregate(_documents(req), extractor, req.config.to_config())
    except textdag.TextDagError as e:
        _raise_http(e)
    return statistics_to_record(stats).model_dump(by_alias=True)


@app.post("/corpus/tfidf")
async def corpus_tfidf(req: CorpusRequest):
    extractor = engine_extractor(get_engine())
    try:
        vectors = await textdag.compute_tfidf(_documents(req), extractor, req.config.to_config())
    except textdag.TextDagError as e:
        _raise_http(e)
    return [{"id": doc_id, "vector": vector} for doc_id, vector in vectors]


@app.post("/corpus/similar")
async def corpus_similar(req: SimilarRequest):
    docs = _documents(req)
    if req.query_id not in {d.id for d in docs}:
        raise HTTPException(status_code=404, detail=f"Unknown document: {req.query_id}")
    extractor = engine_extractor(get_engine())
    try:
        table = await textdag.compute_pairwise_similarities(docs, extractor, req.config.to_config())
    except textdag.TextDagError as e:
        _raise_http(e)
    return [
        {"id": doc_id, "score": score}
        for doc_id, score in textdag.top_similar_documents(req.query_id, table, req.top)
    ]


def run(host: str = "0.0.0.0", port: int = 8420):
    """Start the HTTP server."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
