import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import PriorityOption
from .data_loader import DataLoader
from .exceptions import PangenomicFRError
from .fr_finder import run_frfinder_analysis
from .fr_utils import (form_output_prefix, graph_name_from_prefix, log_file,
                       params_file, path_frs_file, prs_file, prune_frequented_regions,
                       prune_on_q_value, read_frequented_regions, read_parameters,
                       write_frequented_regions, write_path_frs, write_polygenic_risk_scores)
from .nodes import NodeSet
from .utils import create_config_from_args, setup_logging

logger = logging.getLogger(__name__)


def validate_file_path(file_path: str, file_type: str) -> Path:
    """Validate if file exists and has correct extension."""
    path = Path(file_path)
    if not path.is_file():
        logger.error(f"{file_type} file does not exist: {file_path}")
        sys.exit(1)

    valid_extensions = {
        'frs': ('.txt',),
        'params': ('.json',),
        'config': ('.json', '.yml', '.yaml')
    }

    if file_type in valid_extensions and path.suffix.lower() not in valid_extensions[file_type]:
        logger.error(f"Invalid {file_type} file format: {file_path}. Expected extensions: {valid_extensions[file_type]}")
        sys.exit(1)

    return path


def validate_graph_prefix(prefix: str) -> str:
    """Validate that both graph TXT files exist for a prefix."""
    for path in (DataLoader.nodes_file(prefix), DataLoader.paths_file(prefix)):
        if not path.is_file():
            logger.error(f"Graph file does not exist: {path}")
            sys.exit(1)
    return prefix


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up the argument parser with organized argument groups."""
    parser = argparse.ArgumentParser(
        prog="pangenomic-fr",
        description=(
            "Frequented-region finder for pangenomic genotype graphs.\n"
            "Finds node sets whose supporting paths separate cases from controls."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog="Example: pangenomic-fr find --graph data/HLA --alpha 1.0 --kappa 0 --output-dir results/"
    )
    parser.add_argument("--verbose", action="store_true", help="Log debug messages.")
    parser.add_argument("--version", action="version", version="pangenomic-fr 1.0.0")
    subparsers = parser.add_subparsers(dest="command", required=True)

    find = subparsers.add_parser("find", help="Find frequented regions in a graph.",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)

    # Input arguments; numeric and flag defaults of None leave config file values alone
    input_group = find.add_argument_group('Required Input')
    input_group.add_argument("--graph", required=True, type=str,
                             help="Graph prefix of <prefix>.nodes.txt and <prefix>.paths.txt.")
    input_group.add_argument("--alpha", type=float, default=None, help="Penetrance, 0.0-1.0.")
    input_group.add_argument("--kappa", type=int, default=None, help="Maximum insertion; -1 for unlimited.")

    search_group = find.add_argument_group('Search Parameters')
    search_group.add_argument("--priority-option", dest="priority_option", type=str, default=None,
                              help="Priority option 0-4 with optional :case, :ctrl or :alt (default 4).")
    search_group.add_argument("--keep-option", dest="keep_option", type=str, default=None,
                              help="subset[:N] or distance[:N] pruning of output FRs.")
    search_group.add_argument("--min-support", dest="min_support", type=int, default=None)
    search_group.add_argument("--min-size", dest="min_size", type=int, default=None)
    search_group.add_argument("--max-size", dest="max_size", type=int, default=None)
    search_group.add_argument("--max-round", dest="max_round", type=int, default=None,
                              help="Maximum number of rounds, 0 for unlimited.")
    search_group.add_argument("--min-priority", dest="min_priority", type=int, default=None)
    search_group.add_argument("--max-clocktime", dest="max_clocktime", type=float, default=None,
                              help="Maximum clock time in minutes, 0 for unlimited.")
    search_group.add_argument("--max-workers", dest="max_workers", type=int, default=None)

    node_group = find.add_argument_group('Node Constraints')
    node_group.add_argument("--required-nodes", dest="required_nodes", type=str, default=None,
                            help="Nodes every FR must contain, e.g. [1,2].")
    node_group.add_argument("--included-nodes", dest="included_nodes", type=str, default=None,
                            help="FRs must contain at least one of these nodes.")
    node_group.add_argument("--excluded-nodes", dest="excluded_nodes", type=str, default=None,
                            help="FRs must not contain any of these nodes.")
    node_group.add_argument("--require-best-node-set", dest="require_best_node_set", action="store_true", default=None)
    node_group.add_argument("--require-same-position", dest="require_same_position", action="store_true", default=None)
    node_group.add_argument("--require-homozygous", dest="require_homozygous", action="store_true", default=None)
    node_group.add_argument("--exclude-no-calls", dest="exclude_no_calls", action="store_true", default=None)
    node_group.add_argument("--min-mgf", dest="min_mgf", type=float, default=None,
                            help="Minimum genotype frequency of a starting node.")
    node_group.add_argument("--max-pval", dest="max_p_value", type=float, default=None,
                            help="Maximum Fisher p-value of a starting node.")
    node_group.add_argument("--scan-required-nodes", type=str, default=None,
                            help="Run once per required node id in a range, e.g. 1-100.")

    path_group = find.add_argument_group('Path Filters')
    path_group.add_argument("--drop-no-call-paths", action="store_true")
    path_group.add_argument("--equalize", action="store_true", help="Equalize case and control counts.")
    path_group.add_argument("--max-cases", type=int, default=None)
    path_group.add_argument("--excluded-path-nodes", type=str, default="[]",
                            help="Drop paths traversing any of these nodes.")
    path_group.add_argument("--included-path-nodes", type=str, default="[]",
                            help="Keep only paths traversing all of these nodes.")
    path_group.add_argument("--seed", type=int, default=42, help="Random seed for down-sampling.")

    output_group = find.add_argument_group('Output')
    output_group.add_argument("--output-dir", dest="output_dir", type=str, default=None)
    output_group.add_argument("--write-save-files", dest="write_save_files", action="store_true", default=None)
    output_group.add_argument("--write-path-frs", dest="write_path_frs", action="store_true", default=None)
    output_group.add_argument("--write-fr-subpaths", dest="write_fr_subpaths", action="store_true", default=None)
    output_group.add_argument("--resume", action="store_true", default=None)
    output_group.add_argument("--config", type=str, default=None,
                              help="Optional YAML or JSON config file with finder parameters.")

    post = subparsers.add_parser("postprocess", help="Prune an FR table and write derived tables.",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    post.add_argument("--frs", required=True, type=str, help="FR table (<prefix>.frs.txt).")
    post.add_argument("--graph", type=str, default=None,
                      help="Graph prefix; needed for --update, --remove-no-calls, --path-frs and --prs.")
    post.add_argument("--params", type=str, default=None,
                      help="Parameters file; defaults to the one beside the FR table.")
    post.add_argument("--update", action="store_true", help="Recompute FR support from the graph.")
    post.add_argument("--min-size", type=int, default=0)
    post.add_argument("--min-support", type=int, default=0)
    post.add_argument("--max-pval", type=float, default=1.0)
    post.add_argument("--min-priority", type=int, default=None)
    post.add_argument("--remove-no-calls", action="store_true")
    post.add_argument("--max-qval", type=float, default=None, help="Maximum multiple-testing corrected p-value.")
    post.add_argument("--correction-method", type=str, default="fdr_bh")
    post.add_argument("--path-frs", action="store_true", help="Write the path x FR matrix.")
    post.add_argument("--orient", choices=["frs", "paths"], default="frs")
    post.add_argument("--prs", action="store_true", help="Write polygenic risk scores per path.")
    post.add_argument("--output-prefix", type=str, default=None,
                      help="Prefix of the pruned outputs; defaults to <frs prefix>.pruned.")

    return parser


def parse_id_range(text: str) -> List[int]:
    first, _, last = text.partition("-")
    return [int(first), int(last or first)]


def run_find(args: argparse.Namespace) -> None:
    graph_prefix = validate_graph_prefix(args.graph)
    config_path = str(validate_file_path(args.config, 'config')) if args.config else None
    config = create_config_from_args(args, config_path)

    if config.output_dir:
        graph_name = config.graph_name or Path(graph_prefix).name
        prefix = form_output_prefix(graph_name, config.alpha, config.kappa,
                                    NodeSet.from_string(config.required_nodes))
        setup_logging(str(log_file(str(Path(config.output_dir) / prefix))), args.verbose)

    finder = run_frfinder_analysis(
        graph_prefix, config,
        drop_no_call_paths=args.drop_no_call_paths,
        equalize=args.equalize,
        max_cases=args.max_cases,
        excluded_path_nodes=args.excluded_path_nodes,
        included_path_nodes=args.included_path_nodes,
        seed=args.seed
    )
    if args.scan_required_nodes:
        first_id, last_id = parse_id_range(args.scan_required_nodes)
        finder.scan_required_nodes(first_id, last_id)


def run_postprocess(args: argparse.Namespace) -> None:
    frs_path = validate_file_path(args.frs, 'frs')
    prefix = str(frs_path)[:-len(".frs.txt")] if str(frs_path).endswith(".frs.txt") else str(frs_path.with_suffix(""))
    params_path = Path(args.params) if args.params else params_file(prefix)
    params = read_parameters(params_path)
    kappa = params['kappa']

    graph = None
    if args.graph:
        graph = DataLoader().load_graph(validate_graph_prefix(args.graph))
    elif args.update or args.remove_no_calls or args.path_frs or args.prs:
        logger.error("--graph is required for --update, --remove-no-calls, --path-frs and --prs")
        sys.exit(1)

    frs = read_frequented_regions(
        frs_path, graph,
        alpha=float(params['alpha']),
        kappa=float('inf') if kappa is None or kappa < 0 else kappa,
        priority_option=PriorityOption.parse(params.get('priority_option', "4")),
        update=args.update or args.path_frs or args.prs
    )
    frs = prune_frequented_regions(frs, args.min_size, args.min_support, args.max_pval,
                                   args.min_priority, args.remove_no_calls)
    if args.max_qval is not None:
        frs = prune_on_q_value(frs, args.max_qval, args.correction_method)

    out_prefix = args.output_prefix or f"{prefix}.pruned"
    logger.info(f"{len(frs)} FRs remain in {graph_name_from_prefix(prefix)} after pruning")
    write_frequented_regions(frs, f"{out_prefix}.frs.txt")
    if args.path_frs:
        write_path_frs(frs, graph.paths, path_frs_file(out_prefix), args.orient)
    if args.prs:
        write_polygenic_risk_scores(frs, graph.paths, prs_file(out_prefix))


def main(argv: Optional[List[str]] = None) -> None:
    """Main function dispatching the find and postprocess commands."""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)
    try:
        if args.command == "find":
            run_find(args)
        else:
            run_postprocess(args)
        logger.info("Completed successfully")
    except KeyboardInterrupt:
        logger.error("Interrupted by user")
        sys.exit(1)
    except PangenomicFRError as e:
        logger.error(f"Failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
