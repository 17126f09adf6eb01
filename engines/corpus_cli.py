#!/usr/bin/env python3
"""CLI bridge for corpus statistics, TF-IDF, similarity and document graphs."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import textdag
from textdag.config import load_corpus_config, load_engine, read_config
from textdag.corpus import create_documents_with_ids, engine_extractor
from textdag.pipeline import build_graph, text_counts
from textdag.serialization import dag_to_records, statistics_to_record


def _load_documents(paths):
    items = []
    for p in paths:
        path = Path(p)
        if not path.is_file():
            raise FileNotFoundError(f"Path not found: {p}")
        items.append({"id": str(path), "text": path.read_text(encoding="utf-8", errors="replace")})
    return create_documents_with_ids(items)


def _setup(args):
    config = read_config(args.config)
    overrides = {}
    if getattr(args, "batch_size", None):
        overrides["batch_size"] = args.batch_size
    if getattr(args, "concurrency", None):
        overrides["concurrency"] = args.concurrency

    def report(progress):
        print(
            f"Processed {progress.processed}/{progress.total} ({progress.percentage}%)",
            file=sys.stderr,
        )

    if args.verbose:
        overrides["report_progress"] = report
    corpus_config = load_corpus_config(config, **overrides)
    return config, load_engine(config), corpus_config


def cmd_stats(args):
    """Aggregate statistics over files."""
    _, engine, corpus_config = _setup(args)
    docs = _load_documents(args.files)
    stats = asyncio.run(textdag.aggregate(docs, engine_extractor(engine), corpus_config))
    out = statistics_to_record(stats).model_dump(by_alias=True)
    out["topTerms"] = textdag.top_terms_by_frequency(stats, args.top)
    print(json.dumps(out, indent=2))


def cmd_tfidf(args):
    """TF-IDF vector per file."""
    _, engine, corpus_config = _setup(args)
    docs = _load_documents(args.files)
    vectors = asyncio.run(textdag.compute_tfidf(docs, engine_extractor(engine), corpus_config))
    print(json.dumps({doc_id: vector for doc_id, vector in vectors}, indent=2, sort_keys=True))


def cmd_similar(args):
    """Top-K files most similar to --query."""
    config, engine, corpus_config = _setup(args)
    docs = _load_documents(args.files)
    if args.query not in {d.id for d in docs}:
        raise FileNotFoundError(f"Query document not among inputs: {args.query}")
    top = args.top or int(config.get("search.top_k", "10"))
    table = asyncio.run(
        textdag.compute_pairwise_similarities(docs, engine_extractor(engine), corpus_config)
    )
    for doc_id, score in textdag.top_similar_documents(args.query, table, top):
        print(f"{score:.4f}\t{doc_id}")


def cmd_graph(args):
    """Build and print the processing graph of one file."""
    config = read_config(args.config)
    engine = load_engine(config)
    text = Path(args.file).read_text(encoding="utf-8", errors="replace")
    dag = build_graph(text, engine, args.operation)
    if args.format == "json":
        out = dag_to_records(dag).model_dump(by_alias=True)
        out["counts"] = text_counts(dag)
        print(json.dumps(out, indent=2))
    elif args.format == "dot":
        print(textdag.to_dot(dag))
    elif args.format == "mermaid":
        print(textdag.to_mermaid(dag))
    elif args.format == "markdown":
        print(textdag.show(dag, format="markdown"), end="")
    else:
        print(textdag.show(dag, lambda d: json.dumps(d)[:60]))


def main():
    parser = argparse.ArgumentParser(description="textdag corpus CLI")
    parser.add_argument("--config", default=None, help="Config file (default: $TEXTDAG_CONFIG)")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command")

    def corpus_parser(name):
        p = subparsers.add_parser(name)
        p.add_argument("files", nargs="+")
        p.add_argument("--batch-size", type=int, default=None)
        p.add_argument("--concurrency", type=int, default=None)
        return p

    stats_parser = corpus_parser("stats")
    stats_parser.add_argument("--top", type=int, default=10)

    corpus_parser("tfidf")

    similar_parser = corpus_parser("similar")
    similar_parser.add_argument("--query", required=True)
    similar_parser.add_argument("--top", type=int, default=None)

    graph_parser = subparsers.add_parser("graph")
    graph_parser.add_argument("file")
    graph_parser.add_argument("--operation", default="both", choices=["sentencize", "tokenize", "both"])
    graph_parser.add_argument("--format", default="text", choices=["text", "json", "markdown", "dot", "mermaid"])

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    commands = {
        "stats": cmd_stats,
        "tfidf": cmd_tfidf,
        "similar": cmd_similar,
        "graph": cmd_graph,
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)

    try:
        commands[args.command](args)
    except (textdag.TextDagError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
