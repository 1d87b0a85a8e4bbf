# pangenomic_fr/paths.py
"""
Samples and their paths through the pangenomic graph.
"""

from dataclasses import dataclass
from functools import total_ordering
from typing import Iterable, List, Optional, Tuple

from .nodes import Node, NodeSet

CASE = "case"
CTRL = "ctrl"
_CONTROL_LABELS = ("ctrl", "control")


@total_ordering
@dataclass(frozen=True, eq=False)
class Sample:
    """An individual with an optional case/control label. Equality is by name."""
    name: str
    label: Optional[str] = None

    @property
    def is_case(self) -> bool:
        return self.label is not None and self.label.lower() == CASE

    @property
    def is_control(self) -> bool:
        return self.label is not None and self.label.lower() in _CONTROL_LABELS

    @property
    def normalized_label(self) -> Optional[str]:
        """Label folded to case or ctrl; other labels lower-cased, None when unlabeled."""
        if self.is_case:
            return CASE
        if self.is_control:
            return CTRL
        return self.label.lower() if self.label else None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __lt__(self, other: "Sample") -> bool:
        return self.name < other.name

    def __str__(self) -> str:
        return f"{self.name}\t{self.label}"


@total_ordering
class Path:
    """
    A sample's ordered walk through graph nodes, weight 1.0.

    Paths compare by Sample, not by node content: a subpath sliced from a path
    is equal to the path it came from.
    """

    weight = 1.0

    def __init__(self, sample: Sample, nodes: Iterable[Node] = ()):
        self.sample = sample
        self.nodes: Tuple[Node, ...] = tuple(nodes)
        self._node_ids = frozenset(n.id for n in self.nodes)

    @property
    def name(self) -> str:
        return self.sample.name

    @property
    def label(self) -> Optional[str]:
        return self.sample.label

    @property
    def is_case(self) -> bool:
        return self.sample.is_case

    @property
    def is_control(self) -> bool:
        return self.sample.is_control

    @property
    def edges(self) -> List[Tuple[Node, Node]]:
        """Consecutive node pairs along the path."""
        return list(zip(self.nodes, self.nodes[1:]))

    def traverses(self, node: Node) -> bool:
        return node.id in self._node_ids

    def traverses_all(self, nodes: Iterable[Node]) -> bool:
        return all(n.id in self._node_ids for n in nodes)

    def traverses_any(self, nodes: Iterable[Node]) -> bool:
        return any(n.id in self._node_ids for n in nodes)

    def subpath(self, left: Node, right: Node) -> "Path":
        """
        Inclusive slice from left to right.

        Returns an empty path of the same sample if either node is not traversed.
        """
        if left.id not in self._node_ids or right.id not in self._node_ids:
            return Path(self.sample)
        if left.id == right.id:
            return Path(self.sample, [left])
        sliced: List[Node] = []
        started = finished = False
        for node in self.nodes:
            if not started and node.id == left.id:
                started = True
                sliced.append(node)
            elif not finished and node.id == right.id:
                finished = True
                sliced.append(node)
            elif started and not finished:
                sliced.append(node)
        return Path(self.sample, sliced)

    def contains(self, other: "Path") -> bool:
        """
        True if other's nodes appear within this path.

        Matches from the first of other's nodes found here and stops at the
        first later node that is missing, so gaps before the first match are
        tolerated.
        """
        match = False
        for node in other.nodes:
            if not match and node.id in self._node_ids:
                match = True
            elif match and node.id not in self._node_ids:
                match = False
                break
        return match

    def node_set(self) -> NodeSet:
        return NodeSet(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Path):
            return NotImplemented
        return self.sample == other.sample

    def __hash__(self) -> int:
        return hash(self.sample)

    def __lt__(self, other: "Path") -> bool:
        return self.sample < other.sample

    def __str__(self) -> str:
        return f"{self.sample}\t{self.node_set()}"

    def __repr__(self) -> str:
        return f"Path({self.sample.name}.{self.sample.label}:{self.node_set()})"


def name_label(path: Path) -> str:
    """Heading used for a path in subpath listings and matrices: "name.label"."""
    return f"{path.name}.{path.label}"
