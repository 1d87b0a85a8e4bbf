import math

import pytest

from pangenomic_fr.config import PriorityOption
from pangenomic_fr.exceptions import ConfigurationError
from pangenomic_fr.frequented_region import (HEADING, FRPair, FrequentedRegion, compute_priority,
                                             format_p_value, sorted_best_first)
from pangenomic_fr.nodes import NodeSet

from conftest import make_graph, make_nodes

P4 = PriorityOption.parse("4")
INF = math.inf


def region(graph, ids, alpha=1.0, kappa=0, option=P4) -> FrequentedRegion:
    return FrequentedRegion(graph, graph.get_node_set(str(list(ids)).replace(" ", "")), alpha, kappa, option)


def test_singleton_support_counts_each_label() -> None:
    nodes = make_nodes([1, 2])
    graph = make_graph([("a", "case", [1, 2]), ("b", "ctrl", [1]), ("c", "ctrl", [2])], nodes)
    fr = region(graph, [1])
    assert fr.support == 2
    assert fr.case_subpath_support == 1
    assert fr.ctrl_subpath_support == 1


def test_odds_ratio_sentinel_for_case_only_support() -> None:
    nodes = make_nodes([1, 2])
    specs = [(f"case{i}", "case", [1] if i < 5 else [2]) for i in range(10)]
    specs += [(f"ctrl{i}", "ctrl", [2]) for i in range(10)]
    graph = make_graph(specs, nodes)
    fr = region(graph, [1], option=PriorityOption.parse("3"))
    assert fr.case_subpath_support == 5
    assert fr.ctrl_subpath_support == 0
    assert fr.or_value == INF
    assert fr.priority == 2000
    assert 0.0 < fr.p_value < 0.05


def test_pair_support_with_kappa(toy_graph) -> None:
    assert region(toy_graph, [4, 5]).support == 1
    assert region(toy_graph, [3, 5]).ctrl_subpath_support == 2
    assert region(toy_graph, [2, 4], kappa=0).support == 1
    assert region(toy_graph, [2, 4], kappa=1).support == 2
    assert region(toy_graph, [2, 4], kappa=INF).support == 2


def test_partial_penetrance_counts_separate_spans(toy_graph) -> None:
    fr = region(toy_graph, [2, 4], alpha=0.5, kappa=0)
    s1_subpaths = [str(s.node_set()) for s in fr.subpaths if s.name == "s1"]
    assert s1_subpaths == ["[2]", "[4]"]
    assert fr.support == 4
    assert fr.count_subpaths_of(toy_graph.get_path("s1")) == 2
    assert fr.get_path_support() == 3


def test_support_monotonic_in_kappa_and_alpha(toy_graph) -> None:
    for ids in ([1, 2], [2, 4], [1, 3, 5], [2, 3, 5, 6], [1, 4, 6]):
        by_kappa = [region(toy_graph, ids, 1.0, k).support for k in (0, 1, 2, INF)]
        assert by_kappa == sorted(by_kappa)
        by_alpha = [region(toy_graph, ids, a, 1).support for a in (0.0, 0.5, 1.0)]
        assert by_alpha == sorted(by_alpha, reverse=True)


def test_statistics_and_row_format(toy_graph) -> None:
    fr = region(toy_graph, [4])
    assert fr.support == 2
    assert fr.or_value == INF
    assert fr.p_value == pytest.approx(1 / 3)
    assert fr.priority == 47
    assert str(fr) == "[4]\t1\t2\t2\t0\tinf\t3.33E-1\t47"
    assert FrequentedRegion.column_heading() == HEADING


def test_from_row_restores_values(toy_graph) -> None:
    fr = region(toy_graph, [1])
    restored = FrequentedRegion.from_row(str(fr), 1.0, 0, P4, toy_graph)
    assert restored == fr
    assert str(restored) == str(fr)
    assert restored.subpaths == []


@pytest.mark.parametrize("option,expected", [
    ("0", 7), ("0:case", 5), ("0:ctrl", 2),
    ("1", 3), ("1:ctrl", -3), ("2", 3),
])
def test_support_priorities(option, expected) -> None:
    assert compute_priority(PriorityOption.parse(option), 7, 5, 2, 1.0, 0.5) == expected


def test_odds_ratio_priorities() -> None:
    option = PriorityOption.parse("3")
    assert compute_priority(option, 3, 2, 1, 10.0, 0.5) == 1000
    assert compute_priority(option, 3, 1, 2, 0.1, 0.5) == 1000
    assert compute_priority(PriorityOption.parse("3:case"), 3, 1, 2, 0.1, 0.5) == -1000
    assert compute_priority(PriorityOption.parse("3:ctrl"), 3, 1, 2, 0.1, 0.5) == 1000
    assert compute_priority(PriorityOption.parse("3:ctrl"), 2, 0, 2, 0.0, 0.5) == 2000
    assert compute_priority(option, 0, 0, 0, 0.0, 1.0) == 0


def test_p_value_priority() -> None:
    assert compute_priority(P4, 1, 1, 0, INF, 0.01) == 200
    assert compute_priority(P4, 1, 1, 0, INF, 0.0) > 0


def test_unsupported_priority() -> None:
    with pytest.raises(ConfigurationError):
        compute_priority(PriorityOption(7), 1, 1, 0, 1.0, 1.0)


def test_ordering() -> None:
    def fr(ids, priority, support):
        r = FrequentedRegion(None, NodeSet.from_ids(ids), 1.0, 0, P4, update=False)
        r.priority, r.support = priority, support
        return r

    low = fr([1], 1, 9)
    high = fr([2], 5, 1)
    more_support = fr([3], 5, 2)
    smaller = fr([4], 5, 2)
    larger = fr([4, 5], 5, 2)
    assert max([low, high]) is high
    assert max([high, more_support]) is more_support
    assert max([larger, smaller]) is smaller
    assert max([more_support, smaller]) is smaller
    assert sorted_best_first([low, larger, smaller, high]) == [smaller, larger, high, low]
    assert NodeSet.from_ids([1]) != NodeSet.from_ids([4]) and fr([1], 0, 0) == fr([1], 9, 9)


def test_fr_pair_merges_lazily(toy_graph) -> None:
    pair = FRPair(region(toy_graph, [1]), region(toy_graph, [2]), P4)
    assert str(pair.nodes) == "[1,2]"
    assert pair.merged.support == 2
    assert str(pair) == "[1]\t[2]\t[1,2]"


def test_subpaths_string(toy_graph) -> None:
    fr = region(toy_graph, [5, 6])
    assert fr.subpaths_string() == "[5,6]\ns3.ctrl:[5,6]\ns4.ctrl:[5,6]"


def test_format_p_value() -> None:
    assert format_p_value(0.00948) == "9.48E-3"
    assert format_p_value(1.0) == "1.00E0"
    assert format_p_value(2.5e-16) == "2.50E-16"


def test_support_by_label_and_node(toy_graph) -> None:
    fr = region(toy_graph, [2, 3])
    node = toy_graph.get_node
    # s1 (case) and s4 (ctrl) both walk 2-3
    assert fr.get_subpath_support() == 2
    assert fr.get_subpath_support("case") == 1
    assert fr.get_subpath_support("control") == 1
    assert fr.get_subpath_support("other") == 0
    assert fr.get_case_count(node(2)) == 1
    assert fr.get_control_count(node(3)) == 1
    assert fr.get_case_count(node(5)) == 0
