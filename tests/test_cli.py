import logging
from pathlib import Path

import pytest

from pangenomic_fr.cli import main, parse_id_range, setup_argument_parser
from pangenomic_fr.fr_utils import read_parameters


@pytest.fixture(autouse=True)
def restore_root_handlers():
    handlers = list(logging.root.handlers)
    yield
    for handler in logging.root.handlers:
        if handler not in handlers:
            handler.close()
    logging.root.handlers = handlers


def test_parser_leaves_unset_options_empty() -> None:
    args = setup_argument_parser().parse_args(["find", "--graph", "g", "--alpha", "1", "--kappa", "-1"])
    assert args.kappa == -1
    assert args.write_path_frs is None
    assert args.min_support is None
    assert args.excluded_path_nodes == "[]"


def test_parse_id_range() -> None:
    assert parse_id_range("3-9") == [3, 9]
    assert parse_id_range("4") == [4, 4]


def test_find_then_postprocess(toy_graph_files, tmp_path: Path) -> None:
    out = tmp_path / "out"
    main(["find", "--graph", toy_graph_files, "--alpha", "1.0", "--kappa", "0",
          "--priority-option", "0", "--max-round", "1", "--output-dir", str(out), "--write-path-frs"])
    frs_path = out / "toy-1.0-0.frs.txt"
    assert frs_path.is_file()
    assert (out / "toy-1.0-0.pathfrs.txt").is_file()
    assert (out / "toy-1.0-0.log").is_file()
    params = read_parameters(out / "toy-1.0-0.params.json")
    assert params['kappa'] == 0 and params['rounds'] == 1

    main(["postprocess", "--frs", str(frs_path), "--graph", toy_graph_files, "--min-size", "2", "--prs"])
    pruned = (out / "toy-1.0-0.pruned.frs.txt").read_text().splitlines()
    assert pruned[1].startswith("[5,6]\t2\t2\t")
    assert len(pruned) == 2
    assert (out / "toy-1.0-0.pruned.prs.txt").is_file()


def test_find_reads_config_file(toy_graph_files, tmp_path: Path) -> None:
    config = tmp_path / "finder.yml"
    config.write_text(f"alpha: 1.0\nkappa: 0\nmax_round: 1\noutput_dir: {tmp_path / 'cfg'}\n")
    main(["find", "--graph", toy_graph_files, "--config", str(config)])
    assert (tmp_path / "cfg" / "toy-1.0-0.frs.txt").is_file()


def test_errors_exit_nonzero(toy_graph_files, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["find", "--graph", toy_graph_files, "--alpha", "2.0", "--kappa", "0"])
    assert excinfo.value.code == 1
    with pytest.raises(SystemExit):
        main(["find", "--graph", str(tmp_path / "missing"), "--alpha", "1.0", "--kappa", "0"])
    with pytest.raises(SystemExit):
        main(["postprocess", "--frs", str(tmp_path / "missing.frs.txt")])
