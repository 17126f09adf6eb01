"""Corpus-scale statistics, TF-IDF and similarity.

Documents are processed in batches of `batch_size`. Batches run strictly one
after another; inside a batch at most `concurrency` extractor calls are in
flight. Per-document statistics are merged with `CorpusStatistics.combine`,
which is associative and commutative, so the totals do not depend on the
batch size, the concurrency or the order in which documents finish.
"""

import asyncio
import inspect
import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Generic,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

from .errors import AggregationCancelled, ExtractionError
from .similarity import similarity_matrix, top_k

logger = logging.getLogger(__name__)

F = TypeVar("F")


# ----------------------------------------------------------------------
# Types
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Document:
    id: str
    text: str
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class DocumentFeatures:
    """What an extractor returns for one document."""

    tokens: List[str]
    sentences: List[str]


@dataclass(frozen=True)
class ProcessedDocument(Generic[F]):
    id: str
    text: str
    features: F
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Progress:
    processed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class CorpusConfig:
    """Knobs for batched processing.

    `report_progress` is called (or awaited) once per finished batch.
    `cancel_event` is any object with `is_set()`; once set, no further
    documents are started. `extractor_timeout` bounds each extractor call.
    """

    batch_size: int = 100
    concurrency: int = 10
    report_progress: Optional[Callable[[Progress], Any]] = None
    cancel_event: Optional[Any] = None
    extractor_timeout: Optional[timedelta] = None

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")


DEFAULT_CONFIG = CorpusConfig()

Extractor = Callable[[Document], Any]


@dataclass(frozen=True)
class CorpusStatistics:
    """Corpus-wide counts; a commutative monoid under `combine`."""

    document_count: int = 0
    total_words: int = 0
    total_sentences: int = 0
    total_chars: int = 0
    vocabulary: FrozenSet[str] = frozenset()
    term_frequency: Mapping[str, int] = field(default_factory=dict)
    document_frequency: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "CorpusStatistics":
        """The identity element."""
        return cls()

    def combine(self, other: "CorpusStatistics") -> "CorpusStatistics":
        return CorpusStatistics(
            document_count=self.document_count + other.document_count,
            total_words=self.total_words + other.total_words,
            total_sentences=self.total_sentences + other.total_sentences,
            total_chars=self.total_chars + other.total_chars,
            vocabulary=self.vocabulary | other.vocabulary,
            term_frequency=_merge_counts(self.term_frequency, other.term_frequency),
            document_frequency=_merge_counts(self.document_frequency, other.document_frequency),
        )

    __add__ = combine


def _merge_counts(m1: Mapping[str, int], m2: Mapping[str, int]) -> Dict[str, int]:
    result = dict(m1)
    for term, count in m2.items():
        result[term] = result.get(term, 0) + count
    return result


def combine_all(stats: Iterable[CorpusStatistics]) -> CorpusStatistics:
    total = CorpusStatistics.empty()
    for s in stats:
        total = total.combine(s)
    return total


def document_statistics(doc: Document, tokens: Sequence[str], sentences: Sequence[str]) -> CorpusStatistics:
    """Statistics for a single document."""
    term_frequency: Dict[str, int] = {}
    for token in tokens:
        term_frequency[token] = term_frequency.get(token, 0) + 1
    vocabulary = frozenset(term_frequency)
    return CorpusStatistics(
        document_count=1,
        total_words=len(tokens),
        total_sentences=len(sentences),
        total_chars=len(doc.text),
        vocabulary=vocabulary,
        term_frequency=term_frequency,
        document_frequency={term: 1 for term in vocabulary},
    )


# ----------------------------------------------------------------------
# Documents and batches
# ----------------------------------------------------------------------


def create_documents(texts: Iterable[str]) -> List[Document]:
    return [Document(id=f"doc-{i}", text=text) for i, text in enumerate(texts)]


def create_documents_with_ids(items: Iterable[Mapping[str, Any]]) -> List[Document]:
    return [
        Document(id=str(item["id"]), text=item["text"], metadata=item.get("metadata"))
        for item in items
    ]


def iter_batches(documents: Sequence[Document], batch_size: int) -> Iterator[List[Document]]:
    for start in range(0, len(documents), batch_size):
        yield list(documents[start:start + batch_size])


def engine_extractor(engine) -> Callable[[Document], DocumentFeatures]:
    """Adapt a text engine (tokenize/sentencize) into a document extractor."""

    def extract(doc: Document) -> DocumentFeatures:
        return DocumentFeatures(
            tokens=list(engine.tokenize(doc.text)),
            sentences=list(engine.sentencize(doc.text)),
        )

    return extract


# ----------------------------------------------------------------------
# Parallel processing
# ----------------------------------------------------------------------

_SKIPPED = object()


def _is_async(fn: Callable) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))


def _is_cancelled(cancel_event: Optional[Any]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class _ExtractorThreads:
    """Worker threads for plain extractors, owned by one corpus call.

    `drain` stops queued calls and waits for the running ones, so no
    extractor is still executing once the owning call has returned or raised.
    """

    def __init__(self, max_workers: int):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="textdag-extract")
        self._running: Set[Future] = set()

    def submit(self, fn: Callable, *args: Any) -> "asyncio.Future":
        future = self._executor.submit(fn, *args)
        self._running.add(future)
        future.add_done_callback(self._running.discard)
        return asyncio.wrap_future(future)

    async def drain(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        pending = [asyncio.wrap_future(f) for f in list(self._running) if not f.done()]
        if pending:
            logger.debug("Waiting for %d running extractor call(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)


async def _extract(
    extractor: Callable[[Document], Any],
    doc: Document,
    timeout: Optional[timedelta],
    threads: _ExtractorThreads,
) -> Any:
    """Run the extractor for one document, mapping any failure to ExtractionError."""
    if _is_async(extractor):
        call: Awaitable = extractor(doc)
    else:
        call = threads.submit(extractor, doc)
    try:
        if timeout is not None:
            return await asyncio.wait_for(call, timeout.total_seconds())
        return await call
    except ExtractionError:
        raise
    except asyncio.TimeoutError as e:
        reason = f"timed out after {timeout.total_seconds()}s" if timeout is not None else "timed out"
        raise ExtractionError(doc.id, reason) from e
    except Exception as e:
        raise ExtractionError(doc.id, str(e)) from e


async def _report(config: CorpusConfig, processed: int, total: int) -> None:
    if config.report_progress is None:
        return
    progress = Progress(
        processed=processed,
        total=total,
        percentage=math.floor(processed / total * 100) if total else 100,
    )
    result = config.report_progress(progress)
    if inspect.isawaitable(result):
        await result


async def _process_batch(
    batch: List[Document],
    process_doc: Callable[[Document], Awaitable[Any]],
    semaphore: asyncio.Semaphore,
    cancel_event: Optional[Any],
) -> Tuple[List[Any], bool]:
    """Run one batch; returns the results of the documents that ran (in batch order)
    and whether cancellation cut the batch short.

    If any document fails, the rest of the batch is cancelled and the error
    propagates; no task survives this call.
    """

    async def worker(doc: Document) -> Any:
        async with semaphore:
            if _is_cancelled(cancel_event):
                return _SKIPPED
            return await process_doc(doc)

    tasks = [asyncio.create_task(worker(doc)) for doc in batch]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    done = [r for r in results if r is not _SKIPPED]
    return done, len(done) < len(batch)


async def process_parallel_stream(
    documents: Sequence[Document],
    process_doc: Callable[[Document], Any],
    config: CorpusConfig = DEFAULT_CONFIG,
) -> AsyncIterator[ProcessedDocument]:
    """Yield results batch by batch, in document order, as each batch completes.

    A batch's results are yielded before its progress report. On cancellation
    AggregationCancelled is raised with `partial=None`; every document counted
    in `processed` has already been yielded.
    """
    total = len(documents)
    processed = 0
    semaphore = asyncio.Semaphore(config.concurrency)
    threads = _ExtractorThreads(config.concurrency)

    async def run(doc: Document) -> ProcessedDocument:
        features = await _extract(process_doc, doc, config.extractor_timeout, threads)
        return ProcessedDocument(id=doc.id, text=doc.text, features=features, metadata=doc.metadata)

    try:
        for batch in iter_batches(documents, config.batch_size):
            done, cut_short = await _process_batch(batch, run, semaphore, config.cancel_event)
            for item in done:
                yield item
            processed += len(done)
            if processed < total and (cut_short or _is_cancelled(config.cancel_event)):
                logger.warning("Processing cancelled after %d/%d documents", processed, total)
                raise AggregationCancelled(None, processed, total)
            await _report(config, processed, total)
    finally:
        await threads.drain()


async def process_parallel(
    documents: Sequence[Document],
    process_doc: Callable[[Document], Any],
    config: CorpusConfig = DEFAULT_CONFIG,
) -> List[ProcessedDocument]:
    """Run `process_doc` over every document with bounded concurrency.

    Results come back in document order. Failures surface as ExtractionError
    and abort the batch they occurred in.
    """
    results: List[ProcessedDocument] = []
    try:
        async for item in process_parallel_stream(documents, process_doc, config):
            results.append(item)
    except AggregationCancelled as e:
        raise AggregationCancelled(results, e.processed, e.total) from None
    return results


async def aggregate(
    documents: Sequence[Document],
    extractor: Extractor,
    config: CorpusConfig = DEFAULT_CONFIG,
) -> CorpusStatistics:
    """Compute corpus statistics over `documents`.

    `extractor(doc)` (plain or async) must return DocumentFeatures. Statistics
    are combined per batch in document order, then folded into the running
    total in batch order.

    Raises:
        ExtractionError: the extractor failed; the failing batch is discarded.
            Raised once every extractor call it started has returned.
        AggregationCancelled: `config.cancel_event` was set; `partial` holds
            the statistics of exactly the documents that were processed.
    """
    total = len(documents)
    processed = 0
    stats = CorpusStatistics.empty()
    semaphore = asyncio.Semaphore(config.concurrency)
    threads = _ExtractorThreads(config.concurrency)

    async def run(doc: Document) -> CorpusStatistics:
        features = await _extract(extractor, doc, config.extractor_timeout, threads)
        return document_statistics(doc, features.tokens, features.sentences)

    try:
        for number, batch in enumerate(iter_batches(documents, config.batch_size), 1):
            try:
                done, cut_short = await _process_batch(batch, run, semaphore, config.cancel_event)
            except ExtractionError as e:
                logger.warning("Batch %d aborted: %s", number, e)
                raise

            stats = stats.combine(combine_all(done))
            processed += len(done)
            logger.debug("Batch %d combined (%d/%d documents)", number, processed, total)

            if processed < total and (cut_short or _is_cancelled(config.cancel_event)):
                logger.warning("Aggregation cancelled after %d/%d documents", processed, total)
                raise AggregationCancelled(stats, processed, total)
            await _report(config, processed, total)
    finally:
        await threads.drain()

    return stats


# ----------------------------------------------------------------------
# TF-IDF
# ----------------------------------------------------------------------


def compute_tf(tokens: Sequence[str]) -> Dict[str, float]:
    """Term counts normalized by document length."""
    total = len(tokens)
    if total == 0:
        return {}
    counts: Dict[str, int] = {}
    for token in tokens:
        counts[token] = counts.get(token, 0) + 1
    return {term: count / total for term, count in counts.items()}


def compute_idf(stats: CorpusStatistics) -> Dict[str, float]:
    """log(N / df) per term; terms with no recorded documents get 0."""
    total_docs = stats.document_count
    if total_docs == 0:
        return {}
    return {
        term: math.log(total_docs / df) if df > 0 else 0.0
        for term, df in stats.document_frequency.items()
    }


async def compute_tfidf(
    documents: Sequence[Document],
    extractor: Extractor,
    config: CorpusConfig = DEFAULT_CONFIG,
) -> List[Tuple[str, Dict[str, float]]]:
    """TF-IDF vector per document, as (doc_id, vector) pairs in document order.

    Two passes: corpus statistics first (IDF needs the whole corpus), then the
    per-document weights. Progress is reported during the second pass only.
    """
    stats = await aggregate(documents, extractor, replace(config, report_progress=None))
    idf = compute_idf(stats)

    threads = _ExtractorThreads(config.concurrency)

    async def weigh(doc: Document) -> Dict[str, float]:
        features = await _extract(extractor, doc, config.extractor_timeout, threads)
        tf = compute_tf(features.tokens)
        return {term: score * idf.get(term, 0.0) for term, score in tf.items()}

    try:
        processed = await process_parallel(documents, weigh, config)
    finally:
        await threads.drain()
    return [(p.id, p.features) for p in processed]


# ----------------------------------------------------------------------
# Similarity and top-K
# ----------------------------------------------------------------------


async def compute_pairwise_similarities(
    documents: Sequence[Document],
    extractor: Extractor,
    config: CorpusConfig = DEFAULT_CONFIG,
) -> Dict[str, Dict[str, float]]:
    """Upper-triangular similarity table: result[a][b] for every a listed before b."""
    vectors = await compute_tfidf(documents, extractor, config)
    matrix = similarity_matrix([v for _, v in vectors])
    table: Dict[str, Dict[str, float]] = {}
    for i, (doc_id, _) in enumerate(vectors):
        table[doc_id] = {vectors[j][0]: float(matrix[i, j]) for j in range(i + 1, len(vectors))}
    return table


def top_similar_documents(
    query_id: str,
    similarities: Mapping[str, Mapping[str, float]],
    k: int,
) -> List[Tuple[str, float]]:
    """The `k` documents most similar to `query_id`, reading both halves of the table."""
    scores: Dict[str, float] = dict(similarities.get(query_id, {}))
    for doc_id, row in similarities.items():
        if query_id in row:
            scores[doc_id] = row[query_id]
    return top_k(scores, k)


def top_terms_by_frequency(stats: CorpusStatistics, k: int) -> List[Tuple[str, int]]:
    return sorted(stats.term_frequency.items(), key=lambda item: (-item[1], item[0]))[:k]
