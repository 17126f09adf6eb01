"""Tests for cata/ana (sdk/textdag/fold.py)."""

import threading

import pytest

import textdag
from textdag import CycleError, NodeNotFoundError, UnfoldCancelled, ana, cata
from textdag.fold import char_count_algebra, word_count_algebra


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _concat(node, children):
    return node.data + "".join(children)


def _chain(n):
    return n, [n - 1] if n > 0 else []


def _binary(depth):
    return depth, [depth - 1, depth - 1] if depth > 0 else []


# ---------------------------------------------------------------------------
# cata
# ---------------------------------------------------------------------------


class TestCata:
    def test_children_before_parent_in_child_order(self, diamond):
        dag, _ = diamond
        assert cata(dag, _concat) == ["ABDCD"]

    def test_shared_node_folded_once(self, diamond):
        dag, _ = diamond
        calls = []

        def algebra(node, children):
            calls.append(node.data)
            return 1 + sum(children)

        assert cata(dag, algebra) == [5]
        assert sorted(calls) == ["A", "B", "C", "D"]
        assert calls.index("D") < calls.index("B")
        assert calls.index("D") < calls.index("C")
        assert calls[-1] == "A"

    def test_deterministic(self, diamond):
        dag, _ = diamond
        assert cata(dag, _concat) == cata(dag, _concat)

    def test_one_result_per_root(self):
        dag, r1 = textdag.empty().add_node_with_id("x")
        dag, r2 = dag.add_node_with_id("y")
        dag = dag.add_node("z", r2, "child")
        assert cata(dag, _concat) == ["x", "yz"]

    def test_empty_graph(self):
        assert cata(textdag.empty(), _concat) == []

    def test_deep_chain_does_not_recurse(self):
        dag = ana(5000, _chain)
        assert cata(dag, lambda node, children: 1 + sum(children)) == [5001]

    def test_missing_child_raises(self, diamond, monkeypatch):
        dag, ids = diamond
        original = dag.child_ids

        def child_ids(node_id):
            if node_id == ids["A"]:
                return original(node_id) + ["ghost"]
            return original(node_id)

        monkeypatch.setattr(dag, "child_ids", child_ids)
        with pytest.raises(NodeNotFoundError) as exc:
            cata(dag, _concat)
        assert exc.value.node_id == "ghost"

    def test_cycle_detected(self, diamond, monkeypatch):
        dag, ids = diamond
        original = dag.child_ids

        def child_ids(node_id):
            if node_id == ids["D"]:
                return [ids["A"]]
            return original(node_id)

        monkeypatch.setattr(dag, "child_ids", child_ids)
        with pytest.raises(CycleError):
            cata(dag, _concat)


class TestAlgebras:
    def test_char_count_sums_leaves(self, diamond):
        dag, _ = diamond
        # leaves: D reached through B and through C
        assert cata(dag, char_count_algebra) == [2]

    def test_char_count_single_node(self):
        assert cata(textdag.singleton("hello"), char_count_algebra) == [5]

    def test_word_count_counts_word_tokens(self):
        dag, root = textdag.empty().add_node_with_id("hi there !")
        for token in ["hi", "there", "!"]:
            dag = dag.add_node(token, root, "tokenize")
        assert cata(dag, word_count_algebra) == [2]

    def test_word_count_ignores_other_operations(self):
        dag, root = textdag.empty().add_node_with_id("one")
        dag = dag.add_node("one", root, "sentencize")
        assert cata(dag, word_count_algebra) == [0]


# ---------------------------------------------------------------------------
# ana
# ---------------------------------------------------------------------------


class TestAna:
    def test_chain(self):
        dag = ana(3, _chain)
        assert [n.data for n in dag.traverse()] == [3, 2, 1, 0]
        assert [n.depth for n in dag.traverse()] == [0, 1, 2, 3]

    def test_root_has_no_operation(self):
        dag = ana(2, _chain, operation="expand")
        ops = [n.operation for n in dag.traverse()]
        assert ops == [None, "expand", "expand"]

    def test_binary_tree(self):
        dag = ana(3, _binary)
        assert len(dag) == 15
        assert len(dag.get_leaves()) == 8
        assert [n.data for n in dag.nodes()] == [n.data for n in dag.traverse()]

    def test_leaf_seed(self):
        dag = ana(0, _chain)
        assert len(dag) == 1

    def test_cata_after_ana(self):
        dag = ana(3, _chain)
        assert cata(dag, lambda node, children: node.data + sum(children)) == [6]

    def test_cancel_returns_partial(self):
        event = threading.Event()
        calls = []

        def coalgebra(n):
            calls.append(n)
            if len(calls) == 3:
                event.set()
            return _chain(n)

        with pytest.raises(UnfoldCancelled) as exc:
            ana(10, coalgebra, cancel_event=event)
        partial = exc.value.partial
        assert [n.data for n in partial.nodes()] == [10, 9, 8]
        assert partial.is_acyclic()

    def test_cancel_before_start(self):
        event = threading.Event()
        event.set()
        with pytest.raises(UnfoldCancelled) as exc:
            ana(10, _chain, cancel_event=event)
        assert exc.value.partial.is_empty()
