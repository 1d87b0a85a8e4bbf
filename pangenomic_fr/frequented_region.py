# pangenomic_fr/frequented_region.py
"""
Frequented regions: a NodeSet together with the subpaths that support it.

Support semantics:
1. For each path, the nodes belonging to the region are located in path order
2. From each such node a span is extended rightwards while no run of
   non-region nodes inside it is longer than kappa
3. A span counts when it covers at least alpha * size region nodes and is
   not contained in a span already accepted for that path

Statistics (odds ratio, Fisher p-value) compare case and control support
against the graph's global label counts.
"""

import logging
import math
import sys
from functools import total_ordering
from typing import Dict, List, Optional

from .config import PriorityOption
from .exceptions import ConfigurationError, DataConsistencyError
from .graph import PangenomicGraph
from .nodes import Node, NodeSet
from .paths import CASE, CTRL, Path, name_label
from .statistical_validation import odds_ratio

logger = logging.getLogger(__name__)

HEADING = "nodes\tsize\tsupport\tcase\tctrl\tOR\tp\tpri"
OR_SENTINEL_PRIORITY = 2000
_MIN_P_VALUE = sys.float_info.min


@total_ordering
class FrequentedRegion:
    """
    A candidate region of the graph with its support and priority.

    Equality and hashing are by NodeSet. Ordering ranks by priority, then
    support, then smaller size, then NodeSet string; the best region is the
    maximum.
    """

    def __init__(self, graph: Optional[PangenomicGraph], nodes: NodeSet, alpha: float, kappa: float,
                 priority_option: PriorityOption, update: bool = True):
        """
        Initialize a FrequentedRegion.

        Args:
            graph: Graph whose paths give the support; None for regions read from file.
            nodes: The region's nodes.
            alpha: Penetrance.
            kappa: Maximum insertion, math.inf for unlimited.
            priority_option: Parsed priority option, including its current label.
            update: Compute support and statistics immediately.
        """
        self.graph = graph
        self.nodes = nodes
        self.alpha = alpha
        self.kappa = kappa
        self.priority_option = priority_option
        self.subpaths: List[Path] = []
        self.support = 0
        self.case_subpath_support = 0
        self.ctrl_subpath_support = 0
        self.case_path_support = 0
        self.ctrl_path_support = 0
        self.priority = 0
        self.p_value = 1.0
        self.or_value = 0.0
        self.number = 0
        if update:
            self.update()

    @classmethod
    def from_row(cls, row: str, alpha: float, kappa: float, priority_option: PriorityOption,
                 graph: Optional[PangenomicGraph] = None) -> "FrequentedRegion":
        """
        Rebuild a region from one FR table row without recomputing support.

        Raises:
            DataConsistencyError: If the row does not have the table's columns.
        """
        fields = row.rstrip("\n").split("\t")
        if len(fields) != len(HEADING.split("\t")):
            raise DataConsistencyError("Malformed FR row", row)
        nodes = graph.get_node_set(fields[0]) if graph is not None else NodeSet.from_string(fields[0])
        fr = cls(graph, nodes, alpha, kappa, priority_option, update=False)
        try:
            fr.support = int(fields[2])
            fr.case_subpath_support = int(fields[3])
            fr.ctrl_subpath_support = int(fields[4])
            fr.or_value = float(fields[5])
            fr.p_value = float(fields[6])
            fr.priority = int(fields[7])
            size = int(fields[1])
        except ValueError as e:
            raise DataConsistencyError("Malformed FR row", row) from e
        if size != len(nodes):
            raise DataConsistencyError("FR size does not match its nodes", row)
        return fr

    @property
    def size(self) -> int:
        return len(self.nodes)

    def update(self) -> None:
        """Recompute support from every graph path, then the statistics and priority."""
        if self.graph is None:
            raise DataConsistencyError("Cannot update a frequented region without a graph", str(self.nodes))
        self.update_support()
        self.update_priority()

    def update_support(self) -> None:
        subpaths: List[Path] = []
        for path in self.graph.paths:
            subpaths.extend(self.compute_support(path))
        self.subpaths = subpaths
        self.support = len(subpaths)
        self.case_subpath_support = sum(1 for s in subpaths if s.is_case)
        self.ctrl_subpath_support = sum(1 for s in subpaths if s.is_control)
        self.case_path_support = len({s.name for s in subpaths if s.is_case})
        self.ctrl_path_support = len({s.name for s in subpaths if s.is_control})

    def compute_support(self, path: Path) -> List[Path]:
        """
        Supporting subpaths of this region on one path.

        Raises:
            DataConsistencyError: If a span endpoint cannot be sliced from the path.
        """
        members = [n for n in path.nodes if n in self.nodes]
        if not members:
            return []
        finite_kappa = math.isfinite(self.kappa)
        positions = _positions(path) if finite_kappa else {}
        required = self.alpha * self.size
        supporting: List[Path] = []
        for i, left in enumerate(members):
            right = left
            count = 1
            for j in range(i + 1, len(members)):
                if finite_kappa:
                    gap = positions[members[j].id] - positions[members[j - 1].id] - 1
                    if gap > self.kappa:
                        break
                right = members[j]
                count = j - i + 1
            subpath = path.subpath(left, right)
            if len(subpath) == 0:
                raise DataConsistencyError(
                    "Empty subpath for a supporting span",
                    f"{path.name}: {left.id}-{right.id} in {self.nodes}"
                )
            if any(s.contains(subpath) for s in supporting):
                continue
            if count >= required:
                supporting.append(subpath)
        return supporting

    def update_priority(self) -> None:
        case_paths = self.graph.get_path_count(CASE)
        ctrl_paths = self.graph.get_path_count(CTRL)
        self.or_value = odds_ratio(self.case_subpath_support, self.ctrl_subpath_support,
                                   case_paths, ctrl_paths)
        self.p_value = self.graph.fisher.two_tailed_p(
            self.case_path_support, case_paths - self.case_path_support,
            self.ctrl_path_support, ctrl_paths - self.ctrl_path_support
        )
        self.priority = compute_priority(
            self.priority_option, self.support, self.case_subpath_support,
            self.ctrl_subpath_support, self.or_value, self.p_value
        )

    def get_subpath_support(self, label: Optional[str] = None) -> int:
        if label is None:
            return self.support
        if label == CASE:
            return self.case_subpath_support
        if label in (CTRL, "control"):
            return self.ctrl_subpath_support
        return sum(1 for s in self.subpaths if s.label == label)

    def get_path_support(self, label: Optional[str] = None) -> int:
        """Number of distinct paths, optionally of one label, with a supporting subpath."""
        if label == CASE:
            return self.case_path_support
        if label in (CTRL, "control"):
            return self.ctrl_path_support
        return len({s.name for s in self.subpaths if label is None or s.label == label})

    def count_subpaths_of(self, path: Path) -> int:
        """Number of this region's subpaths that come from path."""
        return sum(1 for s in self.subpaths if s.name == path.name)

    def get_case_count(self, node: Node) -> int:
        return sum(1 for s in self.subpaths if s.is_case and s.traverses(node))

    def get_control_count(self, node: Node) -> int:
        return sum(1 for s in self.subpaths if s.is_control and s.traverses(node))

    def contains_no_call_node(self) -> bool:
        return any(n.is_no_call for n in self.nodes)

    def on_one_chromosome(self) -> bool:
        return self.nodes.on_one_chromosome()

    def subpaths_string(self) -> str:
        """This region followed by one "name.label:[ids]" line per subpath."""
        lines = [str(self.nodes)]
        lines.extend(f"{name_label(s)}:{s.node_set()}" for s in self.subpaths)
        return "\n".join(lines)

    @staticmethod
    def column_heading() -> str:
        return HEADING

    def sort_key(self):
        return (self.priority, self.support, -self.size, str(self.nodes))

    def __eq__(self, other) -> bool:
        if not isinstance(other, FrequentedRegion):
            return NotImplemented
        return self.nodes == other.nodes

    def __hash__(self) -> int:
        return hash(self.nodes)

    def __lt__(self, other: "FrequentedRegion") -> bool:
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return "\t".join([
            str(self.nodes),
            str(self.size),
            str(self.support),
            str(self.case_subpath_support),
            str(self.ctrl_subpath_support),
            f"{self.or_value:.3f}",
            format_p_value(self.p_value),
            str(self.priority),
        ])

    def __repr__(self) -> str:
        return f"FrequentedRegion({self.nodes}, support={self.support}, priority={self.priority})"


@total_ordering
class FRPair:
    """Two regions and their merge; the merged region is built on first use."""

    def __init__(self, fr1: FrequentedRegion, fr2: FrequentedRegion, priority_option: PriorityOption):
        self.fr1 = fr1
        self.fr2 = fr2
        self.priority_option = priority_option
        self.nodes = fr1.nodes.merge(fr2.nodes)
        self._merged: Optional[FrequentedRegion] = None

    @property
    def merged(self) -> FrequentedRegion:
        if self._merged is None:
            self.merge()
        return self._merged

    def merge(self) -> FrequentedRegion:
        self._merged = FrequentedRegion(self.fr1.graph, self.nodes, self.fr1.alpha, self.fr1.kappa,
                                        self.priority_option)
        return self._merged

    def __eq__(self, other) -> bool:
        if not isinstance(other, FRPair):
            return NotImplemented
        return self.nodes == other.nodes

    def __hash__(self) -> int:
        return hash(self.nodes)

    def __lt__(self, other: "FRPair") -> bool:
        return self.merged < other.merged

    def __str__(self) -> str:
        return f"{self.fr1.nodes}\t{self.fr2.nodes}\t{self.nodes}"


def compute_priority(option: PriorityOption, support: int, case_support: int, ctrl_support: int,
                     or_value: float, p_value: float) -> int:
    """
    Integer priority of a region under a priority option.

    Raises:
        ConfigurationError: If the option key or label is unsupported.
    """
    label = option.label
    if label not in (None, CASE, CTRL):
        raise ConfigurationError("Unsupported priority label", str(label))
    if option.key == 0:
        if label == CASE:
            return case_support
        if label == CTRL:
            return ctrl_support
        return support
    if option.key == 1:
        if label == CTRL:
            return ctrl_support - case_support
        return case_support - ctrl_support
    if option.key == 2:
        return abs(case_support - ctrl_support)
    if option.key == 3:
        if case_support > 0 and ctrl_support == 0:
            priority = OR_SENTINEL_PRIORITY
        elif case_support == 0 and ctrl_support > 0:
            priority = -OR_SENTINEL_PRIORITY
        elif case_support == 0:
            priority = 0
        else:
            priority = int(1000 * math.log10(or_value))
        if label is None:
            return abs(priority)
        return -priority if label == CTRL else priority
    if option.key == 4:
        return int(100 * -math.log10(max(p_value, _MIN_P_VALUE)))
    raise ConfigurationError("Unsupported priority option", str(option))


def format_p_value(p_value: float) -> str:
    """Scientific notation with two decimals and an unpadded exponent, e.g. 9.48E-3."""
    if p_value == 0:
        return "0.00E0"
    mantissa, exponent = f"{p_value:.2E}".split("E")
    return f"{mantissa}E{int(exponent)}"


def _positions(path: Path) -> Dict[int, int]:
    positions: Dict[int, int] = {}
    for index, node in enumerate(path.nodes):
        positions.setdefault(node.id, index)
    return positions


def sorted_best_first(frs) -> List[FrequentedRegion]:
    """Regions ordered best first."""
    return sorted(frs, reverse=True)
