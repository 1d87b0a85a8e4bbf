import itertools

import pytest

from pangenomic_fr.exceptions import ConfigurationError, DataConsistencyError
from pangenomic_fr.nodes import Node, NodeSet


def test_node_call_status_and_zygosity() -> None:
    assert Node(1, genotype="0/1").is_called
    assert Node(2, genotype="./.").is_no_call
    assert Node(3, genotype="00").is_no_call
    assert Node(4, genotype="1|1").is_homozygous
    assert Node(5, genotype="01").is_heterozygous
    assert Node(6, genotype="0/1").alleles == ["0", "1"]


def test_node_without_genotype_has_no_call_status() -> None:
    with pytest.raises(DataConsistencyError):
        Node(1).is_called


def test_node_equality_by_id_and_description() -> None:
    a = Node(1, "1", 100, 100, None, "0/1", 0.5)
    assert a == Node(1)
    assert a != Node(1, "1", 100, 100, None, "1/1", 0.5)
    assert a != Node(2, "1", 100, 100, None, "0/1", 0.5)
    assert hash(a) == hash(Node(1))


def test_node_set_canonical_for_any_order() -> None:
    expected = NodeSet.from_ids([1, 2, 3, 5])
    for perm in itertools.permutations([5, 3, 1, 2]):
        node_set = NodeSet.from_ids(perm)
        assert node_set == expected
        assert hash(node_set) == hash(expected)
        assert str(node_set) == "[1,2,3,5]"


def test_node_set_drops_duplicate_ids() -> None:
    assert NodeSet.from_ids([3, 1, 3, 1]).ids == (1, 3)


def test_node_set_from_string() -> None:
    assert NodeSet.from_string("[4,2, 9]").ids == (2, 4, 9)
    assert NodeSet.from_string("[]").is_empty()
    assert NodeSet.from_string(None).is_empty()


@pytest.mark.parametrize("text", ["1,2", "[1,a]", "[1,2", "(1,2)"])
def test_node_set_from_malformed_string(text: str) -> None:
    with pytest.raises(ConfigurationError):
        NodeSet.from_string(text)


def test_node_set_from_string_with_unknown_id() -> None:
    node_map = {1: Node(1), 2: Node(2)}
    with pytest.raises(DataConsistencyError):
        NodeSet.from_string("[1,3]", node_map)


def test_merge_and_superset() -> None:
    a = NodeSet.from_ids([1, 2])
    b = NodeSet.from_ids([2, 3])
    merged = a.merge(b)
    assert str(merged) == "[1,2,3]"
    assert merged.is_superset_of(a)
    assert not a.is_superset_of(a)
    assert not a.is_superset_of(b)
    assert 3 in merged and Node(3) in merged


def test_distance_values() -> None:
    assert NodeSet.from_ids([1, 2, 3]).distance_from(NodeSet.from_ids([1, 3])) == 1
    assert NodeSet.from_ids([]).distance_from(NodeSet.from_ids([1, 2])) == 2
    assert NodeSet.from_ids([1, 2]).distance_from(NodeSet.from_ids([3, 4])) == 2


def test_distance_laws() -> None:
    sets = [NodeSet.from_ids(ids) for ids in ([1, 2, 3], [2, 3, 4, 5], [1, 5], [], [3])]
    for a in sets:
        assert a.distance_from(a) == 0
        for b in sets:
            assert a.distance_from(b) == b.distance_from(a)
            for c in sets:
                assert a.distance_from(c) <= a.distance_from(b) + b.distance_from(c)


def test_same_position_and_chromosome() -> None:
    same = NodeSet([Node(1, "1", 100, 100, None, "0/0"), Node(2, "1", 100, 100, None, "0/1")])
    assert same.same_position()
    apart = NodeSet([Node(1, "1", 100, 100, None, "0/0"), Node(2, "2", 200, 200, None, "0/1")])
    assert not apart.same_position()
    assert not apart.on_one_chromosome()
    assert NodeSet().same_position()
