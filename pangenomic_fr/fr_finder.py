# pangenomic_fr/fr_finder.py
"""
Round-based search for frequented regions.

1. Seeding: one single-node FR per node that passes the node filters
2. Rounds: every pooled FR (fr1, serially) is merged with every pooled FR
   (fr2, in parallel); merges that survive the constraints and the keep
   option and are interesting join the round's candidates
3. The best candidate of a round is emitted, all candidates join the pool
4. The search stops when a round yields nothing, or on the round or clock
   time budget
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Set

from .config import FRFinderConfig
from .data_loader import DataLoader
from .exceptions import ConfigurationError
from .fr_utils import (form_output_prefix, frs_file, load_state, params_file, path_frs_file,
                       save_state, subpaths_file, write_fr_subpaths, write_frequented_regions,
                       write_parameters, write_path_frs)
from .frequented_region import FRPair, FrequentedRegion, sorted_best_first
from .graph import PangenomicGraph
from .nodes import Node, NodeSet
from .utils import format_time

logger = logging.getLogger(__name__)


class FRFinder:
    """
    Finds frequented regions of a pangenomic graph.

    Attributes:
        frequented_regions: Output regions keyed by NodeSet.
        all_frequented_regions: Candidate pool keyed by NodeSet.
        accepted_fr_pairs: Merges that passed every check, keyed by merged NodeSet.
        rejected_node_sets: Merged NodeSets that failed a check.
        round: Number of rounds run.
        clocktime_exceeded: Whether the search stopped on the clock time budget.
    """

    def __init__(self, graph: PangenomicGraph, config: FRFinderConfig):
        """
        Initialize the FRFinder.

        Args:
            graph: Graph to search.
            config: Search parameters.

        Raises:
            DataConsistencyError: If a required, included or excluded node is not in the graph.
            ConfigurationError: If same-position mode is on and the required nodes differ in position.
        """
        self.graph = graph
        self.config = config
        self.required_nodes = graph.get_node_set(config.required_nodes)
        self.included_nodes = graph.get_node_set(config.included_nodes)
        self.excluded_nodes = graph.get_node_set(config.excluded_nodes)
        if config.require_same_position and not self.required_nodes.same_position():
            raise ConfigurationError("Required nodes are not at the same position", str(self.required_nodes))

        self.graph_name = config.graph_name or graph.name or "graph"
        self.output_prefix = form_output_prefix(self.graph_name, config.alpha, config.kappa, self.required_nodes)
        self.priority_option = config.priority

        self.frequented_regions: Dict[NodeSet, FrequentedRegion] = {}
        self.all_frequented_regions: Dict[NodeSet, FrequentedRegion] = {}
        self.accepted_fr_pairs: Dict[NodeSet, FRPair] = {}
        self.rejected_node_sets: Set[NodeSet] = set()
        self.best_fr: Optional[FrequentedRegion] = None
        self.round = 0
        self.elapsed = 0.0
        self.clocktime_exceeded = False
        self._lock = threading.Lock()

    @property
    def output_path_prefix(self) -> Optional[str]:
        if not self.config.output_dir:
            return None
        return str(Path(self.config.output_dir) / self.output_prefix)

    def find_frs(self) -> List[FrequentedRegion]:
        """
        Run the search.

        Returns:
            The output regions, best first.
        """
        cfg = self.config
        logger.info(f"Finding FRs in {self.graph_name}: alpha={cfg.alpha} kappa={cfg.kappa} "
                    f"priority={self.priority_option} keep={cfg.keep}")
        start = time.monotonic()
        with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
            if cfg.resume:
                self._resume()
            else:
                self._seed(executor)

            added = True
            while added and (cfg.max_round == 0 or self.round < cfg.max_round) and not self.clocktime_exceeded:
                self.round += 1
                interesting = self._run_round(executor, start)
                if interesting:
                    self.all_frequented_regions.update(interesting)
                    best = max(interesting.values())
                    self.frequented_regions[best.nodes] = best
                    logger.info(f"{self.round}:{best}")
                    if self.priority_option.alternates:
                        self.priority_option = self.priority_option.toggled()
                    if cfg.require_best_node_set:
                        self.best_fr = best
                        self.required_nodes = best.nodes
                else:
                    added = False
                    self._log_best_rejected()
                if cfg.write_save_files and self.output_path_prefix:
                    save_state(self.output_path_prefix, self.frequented_regions.values(),
                               self.all_frequented_regions.values(), self.rejected_node_sets,
                               self.accepted_fr_pairs.values(), self.round, self.priority_option)

        self.elapsed = time.monotonic() - start
        logger.info(f"Found {len(self.frequented_regions)} FRs in {self.round} rounds, "
                    f"clock time {format_time(self.elapsed)}")
        if self.output_path_prefix:
            self.write_outputs()
        return self.get_frequented_regions()

    def get_frequented_regions(self) -> List[FrequentedRegion]:
        """Output regions, best first."""
        return sorted_best_first(self.frequented_regions.values())

    def is_interesting(self, fr: FrequentedRegion) -> bool:
        cfg = self.config
        return (fr.support >= cfg.min_support
                and fr.size >= cfg.min_size
                and (cfg.max_size is None or fr.size <= cfg.max_size)
                and (cfg.min_priority == 0 or fr.priority >= cfg.min_priority))

    def _new_fr(self, nodes: NodeSet) -> FrequentedRegion:
        return FrequentedRegion(self.graph, nodes, self.config.alpha, self.config.kappa, self.priority_option)

    def _seed(self, executor: ThreadPoolExecutor) -> None:
        cfg = self.config
        rejects: Counter = Counter()
        starting_nodes: List[Node] = []
        for node in self.graph.nodes:
            if node in self.excluded_nodes:
                rejects['contained in excluded nodes'] += 1
            elif cfg.exclude_no_calls and node.is_no_call:
                rejects['no call'] += 1
            elif cfg.require_homozygous and not node.is_homozygous:
                rejects['not homozygous'] += 1
            elif node.genotype_frequency < cfg.min_mgf:
                rejects[f'genotype frequency < {cfg.min_mgf}'] += 1
            elif cfg.max_p_value < 1.0 and self.graph.fisher_exact_p(node) > cfg.max_p_value:
                rejects[f'p-value > {cfg.max_p_value}'] += 1
            else:
                starting_nodes.append(node)

        for fr in executor.map(lambda n: self._new_fr(NodeSet([n])), starting_nodes):
            if cfg.alpha == 1.0 and fr.support < cfg.min_support:
                rejects[f'FR support < {cfg.min_support}'] += 1
                continue
            self.all_frequented_regions[fr.nodes] = fr
        for reason, count in rejects.items():
            logger.info(f"{count} nodes excluded because {reason}")

        seeds = self.required_nodes.merge(self.included_nodes)
        for fr in self.all_frequented_regions.values():
            if not self.is_interesting(fr):
                continue
            if seeds.is_empty() or any(n in fr.nodes for n in seeds):
                self.frequented_regions[fr.nodes] = fr

        for node_set in (self.required_nodes, self.included_nodes):
            if node_set.is_empty():
                continue
            fr = self._new_fr(node_set)
            self.all_frequented_regions[fr.nodes] = fr
            if self.is_interesting(fr):
                self.frequented_regions[fr.nodes] = fr

        logger.info(f"{len(self.all_frequented_regions)} FRs will be used to initiate search")
        for fr in self.get_frequented_regions():
            logger.info(f"0:{fr}")

    def _resume(self) -> None:
        if not self.output_path_prefix:
            raise ConfigurationError("Resuming requires an output directory holding the saved state")
        (self.frequented_regions, self.all_frequented_regions, self.rejected_node_sets,
         self.accepted_fr_pairs, self.round, self.priority_option) = load_state(
            self.output_path_prefix, self.graph, self.config.alpha, self.config.kappa, self.priority_option)

    def _run_round(self, executor: ThreadPoolExecutor, start: float) -> Dict[NodeSet, FrequentedRegion]:
        interesting: Dict[NodeSet, FrequentedRegion] = {}
        pool = sorted(self.all_frequented_regions.values(), key=lambda fr: fr.nodes)
        for fr1 in pool:
            if self.best_fr is None:
                if not fr1.nodes.contains_all(self.required_nodes):
                    continue
            elif fr1 != self.best_fr:
                continue
            if self._clocktime_is_exceeded(start):
                self.clocktime_exceeded = True
                logger.warning(f"Maximum clock time of {self.config.max_clocktime} minutes exceeded")
                break
            for merged in executor.map(partial(self._evaluate_pair, fr1), pool):
                if merged is not None:
                    interesting[merged.nodes] = merged
        return interesting

    def _clocktime_is_exceeded(self, start: float) -> bool:
        max_clocktime = self.config.max_clocktime
        return max_clocktime > 0 and time.monotonic() - start > max_clocktime * 60

    def _evaluate_pair(self, fr1: FrequentedRegion, fr2: FrequentedRegion) -> Optional[FrequentedRegion]:
        """Merge fr1 and fr2; return the merge if it is kept and interesting."""
        if self.best_fr is not None and fr2.size > 1:
            # grow the best FR one node at a time
            return None
        nodes = fr1.nodes.merge(fr2.nodes)
        if nodes in self.frequented_regions:
            return None
        pair = self.accepted_fr_pairs.get(nodes)
        if pair is None:
            if nodes in self.rejected_node_sets:
                return None
            if self._violates_constraints(nodes):
                self._reject(nodes)
                return None
            pair = FRPair(fr1, fr2, self.priority_option)
            pair.merge()
        merged = pair.merged
        if not self._keep(merged):
            self._reject(nodes)
            return None
        with self._lock:
            self.accepted_fr_pairs.setdefault(nodes, pair)
        return merged if self.is_interesting(merged) else None

    def _violates_constraints(self, nodes: NodeSet) -> bool:
        cfg = self.config
        if cfg.kappa_is_finite and not nodes.on_one_chromosome():
            return True
        if cfg.require_same_position and not nodes.same_position():
            return True
        if self.best_fr is None and not nodes.contains_all(self.required_nodes):
            return True
        if any(n in nodes for n in self.excluded_nodes):
            return True
        if not self.included_nodes.is_empty() and not any(n in nodes for n in self.included_nodes):
            return True
        return len(nodes) < cfg.min_size or (cfg.max_size is not None and len(nodes) > cfg.max_size)

    def _keep(self, merged: FrequentedRegion) -> bool:
        """Apply the keep option against the output regions."""
        keep = self.config.keep
        if keep is None:
            return True
        outputs = list(self.frequented_regions.values())
        if keep.key == 'subset':
            if merged.size < keep.value:
                return True
            for old in outputs:
                if merged.nodes.is_superset_of(old.nodes) and merged.priority <= old.priority:
                    return False
                if old.nodes.is_superset_of(merged.nodes) and old.priority <= merged.priority:
                    return False
            return True
        for old in outputs:
            if merged.nodes.distance_from(old.nodes) < keep.value and merged.priority <= old.priority:
                return False
        return True

    def _reject(self, nodes: NodeSet) -> None:
        with self._lock:
            self.rejected_node_sets.add(nodes)
            self.accepted_fr_pairs.pop(nodes, None)

    def _log_best_rejected(self) -> None:
        remaining = [p.merged for key, p in self.accepted_fr_pairs.items() if key not in self.frequented_regions]
        if remaining:
            logger.info(f"TR:{max(remaining)}")

    def write_outputs(self) -> None:
        """Write the parameters, FR table and the optional subpath and path FR files."""
        prefix = self.output_path_prefix
        frs = self.get_frequented_regions()
        for number, fr in enumerate(frs, 1):
            fr.number = number
        write_parameters(self.config, params_file(prefix), self.elapsed,
                         graph=self.graph_name, rounds=self.round,
                         clocktime_exceeded=self.clocktime_exceeded)
        write_frequented_regions(frs, frs_file(prefix))
        if self.config.write_fr_subpaths:
            write_fr_subpaths(frs, subpaths_file(prefix))
        if self.config.write_path_frs:
            write_path_frs(frs, self.graph.paths, path_frs_file(prefix))

    def scan_required_nodes(self, first_id: int, last_id: int) -> Dict[int, Optional[FrequentedRegion]]:
        """
        Run one search per node id in [first_id, last_id] with that node required.

        Returns:
            Best FR of each run keyed by node id; None when a run found nothing.
        """
        results: Dict[int, Optional[FrequentedRegion]] = {}
        for node_id in range(first_id, last_id + 1):
            if node_id not in self.graph.node_id_map or self.graph.node_id_map[node_id] in self.excluded_nodes:
                continue
            config = replace(self.config, required_nodes=f"[{node_id}]")
            frs = FRFinder(self.graph, config).find_frs()
            results[node_id] = frs[0] if frs else None
            logger.info(f"Required node {node_id}: {results[node_id]}")
        return results


def run_frfinder_analysis(graph_prefix: str, config: FRFinderConfig, drop_no_call_paths: bool = False,
                          equalize: bool = False, max_cases: Optional[int] = None,
                          excluded_path_nodes: str = "[]", included_path_nodes: str = "[]",
                          seed: int = 42) -> FRFinder:
    """
    Load a TXT graph, apply the path filters and run a search.

    Args:
        graph_prefix: Prefix of <prefix>.nodes.txt and <prefix>.paths.txt.
        config: Search parameters.
        drop_no_call_paths: Drop paths traversing no-call nodes.
        equalize: Down-sample cases or controls to equal numbers.
        max_cases: Down-sample cases to at most this many.
        excluded_path_nodes: Drop paths traversing any of these nodes.
        included_path_nodes: Keep only paths traversing all of these nodes.
        seed: Random seed for down-sampling.

    Returns:
        The finder, after its search has run.
    """
    graph = DataLoader().load_graph(graph_prefix)
    if drop_no_call_paths:
        graph = graph.drop_no_call_paths()
    graph = graph.remove_paths_traversing(graph.get_node_set(excluded_path_nodes))
    graph = graph.keep_paths_traversing(graph.get_node_set(included_path_nodes))
    if max_cases is not None:
        graph = graph.limit_cases(max_cases, seed)
    if equalize:
        graph = graph.equalize_cases_controls(seed)
    logger.info(f"Graph {graph.name}: {len(graph.nodes)} nodes, {graph.get_path_count()} paths "
                f"({graph.get_path_count('case')} cases, {graph.get_path_count('ctrl')} controls)")
    finder = FRFinder(graph, config)
    finder.find_frs()
    return finder
