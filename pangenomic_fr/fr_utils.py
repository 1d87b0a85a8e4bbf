# pangenomic_fr/fr_utils.py
"""
Persistence and post-processing of frequented regions.

Everything here is a stateless transform over a finished set of regions:
FR tables, subpath listings, run parameters, checkpoints, pruning,
q-values, path x FR matrices and polygenic risk scores.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .config import FRFinderConfig, PriorityOption
from .exceptions import DataConsistencyError
from .frequented_region import HEADING, FRPair, FrequentedRegion, sorted_best_first
from .graph import PangenomicGraph
from .nodes import NodeSet
from .paths import Path as GraphPath, name_label
from .statistical_validation import multiple_testing_correction
from .utils import format_time

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# File naming

def frs_file(prefix: str) -> Path:
    return Path(f"{prefix}.frs.txt")


def subpaths_file(prefix: str) -> Path:
    return Path(f"{prefix}.subpaths.txt")


def path_frs_file(prefix: str) -> Path:
    return Path(f"{prefix}.pathfrs.txt")


def params_file(prefix: str) -> Path:
    return Path(f"{prefix}.params.json")


def prs_file(prefix: str) -> Path:
    return Path(f"{prefix}.prs.txt")


def log_file(prefix: str) -> Path:
    return Path(f"{prefix}.log")


def form_output_prefix(graph_name: str, alpha: float, kappa: float,
                       required_nodes: Optional[NodeSet] = None) -> str:
    """Output prefix "<graph>-<alpha>-<kappa>" with "-<id>" for a single required node."""
    kappa_text = str(int(kappa)) if math.isfinite(kappa) else "Inf"
    prefix = f"{graph_name}-{alpha:.1f}-{kappa_text}"
    if required_nodes is not None and len(required_nodes) == 1:
        prefix += f"-{required_nodes.first().id}"
    return prefix


def graph_name_from_prefix(prefix: str) -> str:
    """Graph name part of an output prefix such as "HLA-1.0-Inf"."""
    return Path(prefix).name.split("-")[0]


def _prepare(path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


# FR tables

def fr_table(frs: Iterable[FrequentedRegion]) -> pd.DataFrame:
    """Formatted FR table, best first."""
    rows = [str(fr).split("\t") for fr in sorted_best_first(frs)]
    return pd.DataFrame(rows, columns=HEADING.split("\t"))


def write_frequented_regions(frs: Iterable[FrequentedRegion], path: PathLike) -> None:
    """Write the FR table: heading line plus one row per region, best first."""
    path = _prepare(path)
    fr_table(frs).to_csv(path, sep='\t', index=False)
    logger.info(f"Wrote frequented regions to: {path}")


def read_frequented_regions(path: PathLike, graph: Optional[PangenomicGraph] = None,
                            alpha: float = 1.0, kappa: float = math.inf,
                            priority_option: Union[str, PriorityOption] = "4",
                            update: bool = False, min_size: int = 0, min_support: int = 0,
                            max_p_value: float = 1.0,
                            min_priority: Optional[int] = None) -> List[FrequentedRegion]:
    """
    Read an FR table, numbering regions in file order.

    Args:
        path: FR table file.
        graph: Graph to resolve node ids against; required when update is True.
        alpha, kappa, priority_option: Parameters the regions were found with.
        update: Recompute support and statistics against graph.
        min_size, min_support, max_p_value, min_priority: Row filters.

    Returns:
        List of regions that pass the filters.
    """
    path = Path(path)
    if not path.is_file():
        raise DataConsistencyError("FR file does not exist", str(path))
    if isinstance(priority_option, str):
        priority_option = PriorityOption.parse(priority_option)

    df = pd.read_csv(path, sep='\t', dtype=str, comment='#', keep_default_na=False)
    if list(df.columns) != HEADING.split("\t"):
        raise DataConsistencyError("FR file has an unexpected heading", str(path))

    frs = []
    for values in df.itertuples(index=False):
        fr = FrequentedRegion.from_row("\t".join(values), alpha, kappa, priority_option, graph)
        if update:
            fr.update()
        if fr.size < min_size or fr.support < min_support or fr.p_value > max_p_value:
            continue
        if min_priority is not None and fr.priority < min_priority:
            continue
        fr.number = len(frs) + 1
        frs.append(fr)
    logger.info(f"Read {len(frs)} frequented regions from: {path}")
    return frs


def write_fr_subpaths(frs: Iterable[FrequentedRegion], path: PathLike) -> None:
    """Write each region followed by its supporting subpaths."""
    path = _prepare(path)
    with path.open('w') as f:
        for fr in sorted_best_first(frs):
            f.write(fr.subpaths_string() + "\n")
    logger.info(f"Wrote FR subpaths to: {path}")


# Parameters

def write_parameters(config: FRFinderConfig, path: PathLike, elapsed: float = 0.0,
                     **extra: Any) -> None:
    """Write alpha, kappa, elapsed clock time and all configuration values as JSON."""
    path = _prepare(path)
    params = config.to_dict()
    params['clocktime'] = format_time(elapsed)
    params.update(extra)
    with path.open('w') as f:
        json.dump(params, f, indent=2)
    logger.info(f"Wrote parameters to: {path}")


def read_parameters(path: PathLike) -> Dict[str, Any]:
    path = Path(path)
    if not path.is_file():
        raise DataConsistencyError("Parameters file does not exist", str(path))
    with path.open('r') as f:
        return json.load(f)


def read_alpha(path: PathLike) -> float:
    return float(read_parameters(path)['alpha'])


def read_kappa(path: PathLike) -> float:
    kappa = read_parameters(path)['kappa']
    return math.inf if kappa is None or kappa < 0 else kappa


def read_priority_option(path: PathLike) -> PriorityOption:
    return PriorityOption.parse(read_parameters(path).get('priority_option', "4"))


# Checkpoints

def checkpoint_files(prefix: str) -> Dict[str, Path]:
    return {
        'frs': Path(f"{prefix}.save.frs.txt"),
        'all': Path(f"{prefix}.save.allFrequentedRegions.txt"),
        'rejected': Path(f"{prefix}.save.rejectedNodeSets.txt"),
        'accepted': Path(f"{prefix}.save.acceptedFRPairs.txt"),
        'params': Path(f"{prefix}.save.params.json"),
    }


def save_state(prefix: str, frequented_regions: Iterable[FrequentedRegion],
               all_frequented_regions: Iterable[FrequentedRegion], rejected: Iterable[NodeSet],
               accepted: Iterable[FRPair], round_number: int, priority_option: PriorityOption) -> None:
    """Checkpoint the finder's state after a round."""
    files = checkpoint_files(prefix)
    write_frequented_regions(frequented_regions, files['frs'])
    write_frequented_regions(all_frequented_regions, files['all'])
    _prepare(files['rejected']).write_text("".join(f"{n}\n" for n in sorted(rejected)))
    _prepare(files['accepted']).write_text("".join(f"{p}\n" for p in sorted(accepted, key=lambda p: p.nodes)))
    with _prepare(files['params']).open('w') as f:
        json.dump({'round': round_number, 'priority_option': str(priority_option),
                   'priority_label': priority_option.label}, f, indent=2)
    logger.info(f"Saved state after round {round_number} to {prefix}.save.*")


def load_state(prefix: str, graph: PangenomicGraph, alpha: float, kappa: float,
               priority_option: PriorityOption) -> Tuple[Dict[NodeSet, FrequentedRegion],
                                                         Dict[NodeSet, FrequentedRegion],
                                                         set, Dict[NodeSet, FRPair], int, PriorityOption]:
    """
    Reload checkpointed state; regions are recomputed against the graph.

    Returns:
        (output regions, candidate pool, rejected keys, accepted pairs, round, priority option)
    """
    files = checkpoint_files(prefix)
    meta = read_parameters(files['params'])
    priority_option = PriorityOption(priority_option.key, priority_option.parameter,
                                     meta.get('priority_label', priority_option.label))

    def regions(path):
        frs = read_frequented_regions(path, graph, alpha, kappa, priority_option, update=True)
        return {fr.nodes: fr for fr in frs}

    output = regions(files['frs'])
    pool = regions(files['all'])
    rejected = {graph.get_node_set(line) for line in _lines(files['rejected'])}
    accepted: Dict[NodeSet, FRPair] = {}
    for line in _lines(files['accepted']):
        fr1_text, fr2_text, _ = line.split("\t")
        fr1 = pool.get(graph.get_node_set(fr1_text)) or FrequentedRegion(
            graph, graph.get_node_set(fr1_text), alpha, kappa, priority_option)
        fr2 = pool.get(graph.get_node_set(fr2_text)) or FrequentedRegion(
            graph, graph.get_node_set(fr2_text), alpha, kappa, priority_option)
        pair = FRPair(fr1, fr2, priority_option)
        pair.merge()
        accepted[pair.nodes] = pair
    logger.info(f"Resumed {len(output)} FRs, {len(pool)} candidates, {len(rejected)} rejected "
                f"and {len(accepted)} accepted pairs from round {meta['round']}")
    return output, pool, rejected, accepted, int(meta['round']), priority_option


def _lines(path: Path) -> List[str]:
    if not path.is_file():
        raise DataConsistencyError("Checkpoint file does not exist", str(path))
    return [line for line in path.read_text().splitlines() if line.strip()]


# Post-processing

def prune_frequented_regions(frs: Sequence[FrequentedRegion], min_size: int = 0, min_support: int = 0,
                             max_p_value: float = 1.0, min_priority: Optional[int] = None,
                             remove_no_calls: bool = False) -> List[FrequentedRegion]:
    """Drop regions with no-call nodes, then by size, support, p-value and priority."""
    pruned = list(frs)
    filters = [
        ('no-call', remove_no_calls, lambda fr: not fr.contains_no_call_node()),
        ('size', min_size > 0, lambda fr: fr.size >= min_size),
        ('support', min_support > 0, lambda fr: fr.support >= min_support),
        ('p-value', max_p_value < 1.0, lambda fr: fr.p_value <= max_p_value),
        ('priority', min_priority is not None, lambda fr: fr.priority >= min_priority),
    ]
    for name, active, keep in filters:
        if not active:
            continue
        before = len(pruned)
        pruned = [fr for fr in pruned if keep(fr)]
        logger.info(f"Removed {before - len(pruned)} FRs by {name}")
    return pruned


def adjust_p_values(frs: Sequence[FrequentedRegion], method: str = 'fdr_bh') -> Dict[NodeSet, float]:
    """Multiple-testing corrected p-values (q-values) keyed by NodeSet."""
    corrected = multiple_testing_correction([fr.p_value for fr in frs], method=method)
    return {fr.nodes: float(q) for fr, q in zip(frs, corrected)}


def prune_on_q_value(frs: Sequence[FrequentedRegion], max_q_value: float,
                     method: str = 'fdr_bh') -> List[FrequentedRegion]:
    q_values = adjust_p_values(frs, method)
    kept = [fr for fr in frs if q_values[fr.nodes] <= max_q_value]
    logger.info(f"Removed {len(frs) - len(kept)} FRs by {method} q-value")
    return kept


def fr_labels(frs: Sequence[FrequentedRegion]) -> List[str]:
    """Row labels FR1, FR2, ... taken from region numbers, or from position when unnumbered."""
    return [f"FR{fr.number or i}" for i, fr in enumerate(frs, 1)]


def path_fr_matrix(frs: Sequence[FrequentedRegion], paths: Sequence[GraphPath],
                   orient: str = 'frs') -> pd.DataFrame:
    """
    Supporting-subpath counts of every path in every region.

    Args:
        frs: Regions with computed subpaths.
        paths: Graph paths, giving the "name.label" headings.
        orient: 'frs' for one row per region, 'paths' for one row per path.
    """
    counts = np.array([[fr.count_subpaths_of(p) for p in paths] for fr in frs], dtype=int)
    matrix = pd.DataFrame(counts.reshape(len(frs), len(paths)),
                          index=fr_labels(frs), columns=[name_label(p) for p in paths])
    if orient == 'paths':
        return matrix.T
    if orient != 'frs':
        raise ValueError(f"Unknown orientation: {orient}")
    return matrix


def write_path_frs(frs: Sequence[FrequentedRegion], paths: Sequence[GraphPath], path: PathLike,
                   orient: str = 'frs') -> None:
    path = _prepare(path)
    path_fr_matrix(frs, paths, orient).to_csv(path, sep='\t')
    logger.info(f"Wrote path FR matrix to: {path}")


def polygenic_risk_scores(frs: Sequence[FrequentedRegion], paths: Sequence[GraphPath]) -> pd.Series:
    """
    Per-path score: mean of ln(OR) over the regions, weighted by the path's subpath count in each.

    Regions with an odds ratio of 0 or infinity carry no finite log and are skipped.
    """
    usable = [fr for fr in frs if 0 < fr.or_value < math.inf]
    log_or = np.log(np.array([fr.or_value for fr in usable], dtype=float))
    scores = []
    for p in paths:
        counts = np.array([fr.count_subpaths_of(p) for fr in usable], dtype=float)
        total = counts.sum()
        scores.append(float((counts * log_or).sum() / total) if total > 0 else np.nan)
    return pd.Series(scores, index=[name_label(p) for p in paths], name='prs')


def write_polygenic_risk_scores(frs: Sequence[FrequentedRegion], paths: Sequence[GraphPath],
                                path: PathLike) -> None:
    path = _prepare(path)
    polygenic_risk_scores(frs, paths).to_csv(path, sep='\t', header=True)
    logger.info(f"Wrote polygenic risk scores to: {path}")
