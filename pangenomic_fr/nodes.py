# pangenomic_fr/nodes.py
"""
Graph nodes and ordered node sets.

A Node is one genotype call at one locus. A NodeSet is the candidate unit the
finder merges: an immutable, id-ordered, duplicate-free collection of Nodes
whose canonical string form "[id1,id2,...]" is used for files and logs.
"""

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .exceptions import ConfigurationError, DataConsistencyError

NO_CALL_GENOTYPES = ("./.", "00")
_ALLELE_SPLIT = re.compile(r"[/|]")


@total_ordering
@dataclass(frozen=True, eq=False)
class Node:
    """
    A genotype node of the pangenomic graph.

    Attributes:
        id: Unique, externally assigned node id.
        contig: Chromosome/contig name.
        start: 1-based start coordinate of the locus.
        end: End coordinate of the locus.
        rs: dbSNP identifier, or None when absent.
        genotype: Genotype string such as "0/1", "1|1" or "./.".
        genotype_frequency: Frequency of this genotype among the samples.
    """
    id: int
    contig: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    rs: Optional[str] = None
    genotype: Optional[str] = None
    genotype_frequency: float = 0.0

    @property
    def is_described(self) -> bool:
        return None not in (self.contig, self.start, self.end, self.genotype)

    @property
    def is_no_call(self) -> bool:
        if self.genotype is None:
            raise DataConsistencyError("Node has no genotype", f"node {self.id}")
        return self.genotype in NO_CALL_GENOTYPES

    @property
    def is_called(self) -> bool:
        return not self.is_no_call

    @property
    def alleles(self) -> List[str]:
        """Alleles of the genotype; a bare two-character genotype like "01" counts as two alleles."""
        if not self.genotype:
            return []
        if _ALLELE_SPLIT.search(self.genotype):
            return _ALLELE_SPLIT.split(self.genotype)
        if len(self.genotype) == 2:
            return [self.genotype[0], self.genotype[1]]
        return [self.genotype]

    @property
    def is_homozygous(self) -> bool:
        alleles = self.alleles
        return len(alleles) == 2 and alleles[0] == alleles[1]

    @property
    def is_heterozygous(self) -> bool:
        alleles = self.alleles
        return len(alleles) == 2 and alleles[0] != alleles[1]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        if self.id != other.id:
            return False
        if self.is_described and other.is_described:
            # same id must mean the same locus and call
            return (self.contig, self.start, self.end, self.genotype) == \
                (other.contig, other.start, other.end, other.genotype)
        return True

    def __hash__(self) -> int:
        return hash(self.id)

    def __lt__(self, other: "Node") -> bool:
        return self.id < other.id

    def __str__(self) -> str:
        return str(self.id)


NodeLike = Union[Node, int]


@total_ordering
class NodeSet:
    """
    Ordered set of Nodes, ascending by id.

    Equality and hashing use the ordered id sequence, so a NodeSet is a safe
    dictionary key. Ordering follows the canonical string form.
    """

    __slots__ = ("_nodes", "_ids", "_id_set")

    def __init__(self, nodes: Iterable[Node] = ()):
        by_id: Dict[int, Node] = {}
        for node in nodes:
            by_id.setdefault(node.id, node)
        self._nodes: Tuple[Node, ...] = tuple(by_id[i] for i in sorted(by_id))
        self._ids: Tuple[int, ...] = tuple(sorted(by_id))
        self._id_set = frozenset(self._ids)

    @classmethod
    def from_ids(cls, ids: Iterable[int]) -> "NodeSet":
        """Build a NodeSet of id-only Nodes, for use without a graph."""
        return cls(Node(int(i)) for i in ids)

    @classmethod
    def from_string(cls, text: Optional[str], node_map: Optional[Dict[int, Node]] = None) -> "NodeSet":
        """
        Parse a "[id,id,...]" string.

        Args:
            text: NodeSet string; None or "" give an empty set.
            node_map: Optional id -> Node lookup. When given, every id must be present.

        Raises:
            ConfigurationError: If the string is malformed.
            DataConsistencyError: If an id is missing from node_map.
        """
        ids = parse_node_ids(text)
        if node_map is None:
            return cls.from_ids(ids)
        missing = [i for i in ids if i not in node_map]
        if missing:
            raise DataConsistencyError("Node id not found in graph", f"{missing} in {text}")
        return cls(node_map[i] for i in ids)

    @property
    def ids(self) -> Tuple[int, ...]:
        return self._ids

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self._nodes

    def first(self) -> Node:
        return self._nodes[0]

    def last(self) -> Node:
        return self._nodes[-1]

    def is_empty(self) -> bool:
        return not self._nodes

    def merge(self, other: "NodeSet") -> "NodeSet":
        """Union of two NodeSets."""
        return NodeSet(self._nodes + other._nodes)

    def contains_all(self, other: "NodeSet") -> bool:
        return other._id_set <= self._id_set

    def is_superset_of(self, other: "NodeSet") -> bool:
        """True if this set is strictly larger than other and contains all of it."""
        return len(self) > len(other) and self.contains_all(other)

    def distance_from(self, other: "NodeSet") -> int:
        """Levenshtein distance between the two id-ordered node lists."""
        a, b = self._nodes, other._nodes
        if not a:
            return len(b)
        if not b:
            return len(a)
        if len(a) < len(b):
            a, b = b, a
        row = list(range(len(b) + 1))
        for i, x in enumerate(a, 1):
            diagonal, row[0] = row[0], i
            for j, y in enumerate(b, 1):
                cost = 0 if x == y else 1
                diagonal, row[j] = row[j], min(row[j] + 1, row[j - 1] + 1, diagonal + cost)
        return row[-1]

    def same_position(self) -> bool:
        """True if every node shares the contig and start of the first."""
        if not self._nodes:
            return True
        first = self._nodes[0]
        return all(n.contig == first.contig and n.start == first.start for n in self._nodes)

    def on_one_chromosome(self) -> bool:
        return len({n.contig for n in self._nodes}) <= 1

    def __contains__(self, item: NodeLike) -> bool:
        if isinstance(item, Node):
            return item.id in self._id_set
        return item in self._id_set

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, NodeSet):
            return NotImplemented
        return self._ids == other._ids

    def __hash__(self) -> int:
        return hash(self._ids)

    def __lt__(self, other: "NodeSet") -> bool:
        return str(self) < str(other)

    def __str__(self) -> str:
        return "[" + ",".join(str(i) for i in self._ids) + "]"

    def __repr__(self) -> str:
        return f"NodeSet({self})"


def parse_node_ids(text: Optional[str]) -> List[int]:
    """Parse "[1,2,3]" into [1, 2, 3]."""
    if text is None:
        return []
    text = text.strip()
    if not text:
        return []
    if not (text.startswith("[") and text.endswith("]")):
        raise ConfigurationError("Malformed NodeSet string", text)
    inner = text[1:-1].strip()
    if not inner:
        return []
    try:
        return [int(token) for token in inner.split(",")]
    except ValueError as e:
        raise ConfigurationError("Malformed NodeSet string", text) from e
