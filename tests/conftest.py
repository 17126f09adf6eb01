"""Shared fixtures for textdag tests."""

import sys
from pathlib import Path

import pytest

# Add project root and sdk to path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))


@pytest.fixture
def engine():
    """Default regex engine."""
    from engines.simple_engine import SimpleEngine
    return SimpleEngine()


@pytest.fixture
def config_file(tmp_path):
    """Write a textdag config file with small batches."""
    path = tmp_path / "textdag.ini"
    path.write_text(
        "[corpus]\n"
        "batch_size = 2\n"
        "concurrency = 3\n"
        "extractor_timeout_ms = 0\n\n"
        "[engine]\n"
        "provider = simple\n"
        "lowercase = true\n"
        "stopwords = a, an\n\n"
        "[search]\n"
        "top_k = 5\n"
    )
    return path


@pytest.fixture
def diamond():
    """A -> B, A -> C, B -> D, C -> D. Returns (dag, ids)."""
    import textdag
    dag, a = textdag.empty().add_node_with_id("A")
    dag, b = dag.add_node_with_id("B", a, "step")
    dag, c = dag.add_node_with_id("C", a, "step")
    dag, d = dag.add_node_with_id("D", b, "step")
    dag = dag.add_edge(c, d)
    return dag, {"A": a, "B": b, "C": c, "D": d}


@pytest.fixture
def corpus():
    import textdag
    return textdag.create_documents(["the cat sat", "the dog ran", "the cat ran"])
