# pangenomic_fr/graph.py
"""
Pangenomic graph: a DAG over genotype nodes whose edges come from sample paths.

The graph is immutable once built. Options that drop paths (no-call removal,
case/control equalization, path-node filters) return a new graph with freshly
built indices rather than editing this one.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional

import networkx as nx
import numpy as np

from .exceptions import DataConsistencyError
from .nodes import Node, NodeSet
from .paths import CASE, CTRL, Path
from .statistical_validation import FisherExact, odds_ratio

logger = logging.getLogger(__name__)


class PangenomicGraph:
    """
    Directed acyclic graph of Nodes with the Paths that traverse them.

    Attributes:
        name: Graph name, used to prefix output files.
        node_id_map: Node id -> Node.
        path_name_map: Path name -> Path.
        node_paths: Node -> Paths traversing it.
        label_counts: Normalized label -> number of Paths with that label.
        fisher: Fisher's exact test helper sized to the path count.
    """

    def __init__(self, nodes: Iterable[Node], paths: Iterable[Path], name: Optional[str] = None):
        self.name = name
        self.node_id_map: Dict[int, Node] = {}
        for node in nodes:
            existing = self.node_id_map.get(node.id)
            if existing is not None and existing != node:
                raise DataConsistencyError("Conflicting nodes share an id", f"{existing.id}")
            self.node_id_map[node.id] = node

        self.paths: List[Path] = list(paths)
        self.path_name_map: Dict[str, Path] = {}
        for path in self.paths:
            if path.name in self.path_name_map:
                raise DataConsistencyError("Duplicate path name", path.name)
            missing = [n.id for n in path.nodes if n.id not in self.node_id_map]
            if missing:
                raise DataConsistencyError("Path traverses unknown nodes", f"{path.name}: {missing}")
            self.path_name_map[path.name] = path

        self.digraph = nx.DiGraph()
        self.digraph.add_nodes_from(self.node_id_map[i] for i in sorted(self.node_id_map))
        for path in self.paths:
            for u, v in path.edges:
                if self.digraph.has_edge(u, v):
                    self.digraph.edges[u, v]['paths'].append(path.name)
                else:
                    self.digraph.add_edge(u, v, paths=[path.name])
        if not nx.is_directed_acyclic_graph(self.digraph):
            cycle = nx.find_cycle(self.digraph)
            raise DataConsistencyError("Path edges form a cycle", str([(u.id, v.id) for u, v in cycle]))

        self.label_counts: Dict[str, int] = {}
        self.node_paths: Dict[Node, List[Path]] = {}
        self.tally_label_counts()
        self.build_node_paths()
        self.fisher = FisherExact(len(self.paths))
        logger.debug(f"Built graph {name} with {len(self.node_id_map)} nodes and {len(self.paths)} paths")

    def tally_label_counts(self) -> None:
        """Count paths per normalized label."""
        self.label_counts = dict(Counter(p.sample.normalized_label for p in self.paths
                                         if p.sample.normalized_label))

    def build_node_paths(self) -> None:
        """Index the paths that traverse each node."""
        node_paths: Dict[Node, List[Path]] = defaultdict(list)
        for path in self.paths:
            for node in set(path.nodes):
                node_paths[self.node_id_map[node.id]].append(path)
        self.node_paths = dict(node_paths)

    @property
    def nodes(self) -> List[Node]:
        """All nodes in ascending id order."""
        return [self.node_id_map[i] for i in sorted(self.node_id_map)]

    def get_node(self, node_id: int) -> Node:
        try:
            return self.node_id_map[node_id]
        except KeyError:
            raise DataConsistencyError("Node id not found in graph", str(node_id)) from None

    def get_node_set(self, text: Optional[str]) -> NodeSet:
        """Resolve a "[id,...]" string against this graph's nodes."""
        return NodeSet.from_string(text, self.node_id_map)

    def get_path(self, name: str) -> Path:
        try:
            return self.path_name_map[name]
        except KeyError:
            raise DataConsistencyError("Path not found in graph", name) from None

    def get_path_count(self, label: Optional[str] = None) -> int:
        """Number of paths, or of paths with the given label."""
        if label is None:
            return len(self.paths)
        return self.label_counts.get(_normalize(label), 0)

    def get_paths(self, node: Node) -> List[Path]:
        return self.node_paths.get(node, [])

    def get_path_count_for_node(self, node: Node) -> int:
        return len(self.get_paths(node))

    def get_label_counts(self, node: Node) -> Dict[str, int]:
        """Per-label count of the paths traversing node."""
        return dict(Counter(p.sample.normalized_label for p in self.get_paths(node)
                            if p.sample.normalized_label))

    def get_edge_label_counts(self, u: Node, v: Node) -> Dict[str, int]:
        """Per-label count of the paths stepping directly from u to v."""
        if not self.digraph.has_edge(u, v):
            return {}
        labels = (self.path_name_map[name].sample.normalized_label
                  for name in self.digraph.edges[u, v]['paths'])
        return dict(Counter(label for label in labels if label))

    def get_path_count_for_edge(self, u: Node, v: Node) -> int:
        if not self.digraph.has_edge(u, v):
            return 0
        return len(self.digraph.edges[u, v]['paths'])

    def odds_ratio(self, node: Node) -> float:
        """Case/control odds ratio of traversing node; 0 if only controls traverse, +inf if only cases."""
        counts = self.get_label_counts(node)
        return odds_ratio(counts.get(CASE, 0), counts.get(CTRL, 0),
                          self.get_path_count(CASE), self.get_path_count(CTRL))

    def fisher_exact_p(self, node: Node) -> float:
        """Two-tailed Fisher p-value of the node-by-label table."""
        return self._fisher_for_counts(self.get_label_counts(node))

    def edge_odds_ratio(self, u: Node, v: Node) -> float:
        counts = self.get_edge_label_counts(u, v)
        return odds_ratio(counts.get(CASE, 0), counts.get(CTRL, 0),
                          self.get_path_count(CASE), self.get_path_count(CTRL))

    def edge_fisher_exact_p(self, u: Node, v: Node) -> float:
        return self._fisher_for_counts(self.get_edge_label_counts(u, v))

    def _fisher_for_counts(self, counts: Dict[str, int]) -> float:
        case_on = counts.get(CASE, 0)
        ctrl_on = counts.get(CTRL, 0)
        case_off = self.get_path_count(CASE) - case_on
        ctrl_off = self.get_path_count(CTRL) - ctrl_on
        return self.fisher.two_tailed_p(case_on, case_off, ctrl_on, ctrl_off)

    # Graph -> Graph transforms

    def with_paths(self, paths: Iterable[Path]) -> "PangenomicGraph":
        """New graph over the given paths, keeping only nodes they traverse."""
        paths = list(paths)
        traversed = {n.id for p in paths for n in p.nodes}
        nodes = [n for n in self.nodes if n.id in traversed]
        return PangenomicGraph(nodes, paths, name=self.name)

    def drop_no_call_paths(self) -> "PangenomicGraph":
        """Drop every path that traverses a no-call node."""
        kept = [p for p in self.paths if not any(n.is_no_call for n in p.nodes)]
        logger.info(f"Dropped {len(self.paths) - len(kept)} paths with no-call nodes")
        return self.with_paths(kept)

    def remove_paths_traversing(self, node_set: NodeSet) -> "PangenomicGraph":
        """Drop paths that traverse any node of node_set."""
        if node_set.is_empty():
            return self
        kept = [p for p in self.paths if not p.traverses_any(node_set)]
        logger.info(f"Removed {len(self.paths) - len(kept)} paths traversing {node_set}")
        return self.with_paths(kept)

    def keep_paths_traversing(self, node_set: NodeSet) -> "PangenomicGraph":
        """Keep only paths that traverse every node of node_set."""
        if node_set.is_empty():
            return self
        kept = [p for p in self.paths if p.traverses_all(node_set)]
        logger.info(f"Kept {len(kept)} paths traversing {node_set}")
        return self.with_paths(kept)

    def equalize_cases_controls(self, seed: int = 42) -> "PangenomicGraph":
        """Randomly down-sample the larger of the case and control groups to the smaller one's size."""
        cases = [p for p in self.paths if p.is_case]
        controls = [p for p in self.paths if p.is_control]
        rng = np.random.default_rng(seed)
        if len(cases) > len(controls):
            cases = _sample_paths(cases, len(controls), rng)
        elif len(controls) > len(cases):
            controls = _sample_paths(controls, len(cases), rng)
        keep = set(cases) | set(controls)
        kept = [p for p in self.paths if p in keep or not (p.is_case or p.is_control)]
        logger.info(f"Equalized to {len(cases)} cases and {len(controls)} controls")
        return self.with_paths(kept)

    def limit_cases(self, max_cases: int, seed: int = 42) -> "PangenomicGraph":
        """Randomly down-sample cases to at most max_cases."""
        cases = [p for p in self.paths if p.is_case]
        if len(cases) <= max_cases:
            return self
        keep = set(_sample_paths(cases, max_cases, np.random.default_rng(seed)))
        kept = [p for p in self.paths if not p.is_case or p in keep]
        logger.info(f"Limited cases to {max_cases}")
        return self.with_paths(kept)

    def __repr__(self) -> str:
        return f"PangenomicGraph(name={self.name!r}, nodes={len(self.node_id_map)}, paths={len(self.paths)})"


def _normalize(label: str) -> str:
    lowered = label.lower()
    return CTRL if lowered == "control" else lowered


def _sample_paths(paths: List[Path], size: int, rng: np.random.Generator) -> List[Path]:
    chosen = sorted(rng.choice(len(paths), size=size, replace=False))
    return [paths[i] for i in chosen]
