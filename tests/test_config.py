import argparse
import logging
import math
from pathlib import Path

import pytest

from pangenomic_fr.config import FRFinderConfig, KeepOption, PriorityOption
from pangenomic_fr.exceptions import ConfigurationError, PangenomicFRError
from pangenomic_fr.utils import create_config_from_args, load_config_file


def test_priority_option_grammar() -> None:
    assert PriorityOption.parse("4") == PriorityOption(4, None, None)
    assert PriorityOption.parse("1").label == "case"
    assert PriorityOption.parse("1:ctrl").label == "ctrl"
    alt = PriorityOption.parse("3:alt")
    assert alt.alternates and alt.label is None
    assert alt.toggled().label == "case"
    assert alt.toggled().toggled().label == "ctrl"
    assert str(alt) == "3:alt"


@pytest.mark.parametrize("text", ["5", "x", "1:both", "1:case:ctrl", "-1"])
def test_priority_option_rejects(text: str) -> None:
    with pytest.raises(ConfigurationError):
        PriorityOption.parse(text)


def test_keep_option_grammar() -> None:
    assert KeepOption.parse(None) is None
    assert KeepOption.parse("") is None
    assert KeepOption.parse("subset") == KeepOption("subset", 3)
    assert KeepOption.parse("distance") == KeepOption("distance", 2)
    assert KeepOption.parse("subset:5").value == 5
    for text in ("superset", "subset:x", "distance:-1", "subset:1:2"):
        with pytest.raises(ConfigurationError):
            KeepOption.parse(text)


def test_config_validation() -> None:
    config = FRFinderConfig(alpha=0.5, kappa=-1)
    assert config.kappa == math.inf
    assert not config.kappa_is_finite
    assert config.priority == PriorityOption(4)
    assert config.keep is None
    assert config.to_dict()['kappa'] == -1
    assert 'priority' not in config.to_dict()

    for bad in ({'alpha': 1.5}, {'max_size': 0, 'min_size': 2}, {'max_p_value': 2.0},
                {'max_workers': 0}, {'required_nodes': "1,2"}, {'keep_option': "nearby"}):
        values = {'alpha': 1.0, 'kappa': 0, **bad}
        with pytest.raises(ConfigurationError):
            FRFinderConfig(**values)


def test_configuration_error_is_value_error() -> None:
    error = ConfigurationError("alpha must lie in [0, 1]", "1.5")
    assert isinstance(error, ValueError)
    assert isinstance(error, PangenomicFRError)
    assert str(error) == "alpha must lie in [0, 1]: 1.5"


def test_load_yaml_config(tmp_path: Path, caplog) -> None:
    path = tmp_path / "finder.yml"
    path.write_text(
        "finder:\n"
        "  alpha: 0.8\n"
        "  kappa: 3\n"
        "  keep_option: subset:2\n"
        "  colour: blue\n"
    )
    with caplog.at_level(logging.WARNING):
        config = load_config_file(str(path), max_round=5)
    assert "Unknown configuration parameter: colour" in caplog.text
    assert config.alpha == 0.8
    assert config.kappa == 3
    assert config.keep == KeepOption("subset", 2)
    assert config.max_round == 5


def test_load_json_config_requires_alpha_and_kappa(tmp_path: Path) -> None:
    path = tmp_path / "finder.json"
    path.write_text('{"alpha": 1.0}')
    with pytest.raises(ConfigurationError):
        load_config_file(str(path))
    path.write_text('{"alpha": ')
    with pytest.raises(ConfigurationError):
        load_config_file(str(path))


def test_arguments_override_config_file(tmp_path: Path) -> None:
    path = tmp_path / "finder.yml"
    path.write_text("alpha: 0.8\nkappa: 3\nwrite_path_frs: true\nmin_support: 4\n")
    args = argparse.Namespace(alpha=None, kappa=1, write_path_frs=None, min_support=2)
    config = create_config_from_args(args, str(path))
    assert config.alpha == 0.8
    assert config.kappa == 1
    assert config.write_path_frs
    assert config.min_support == 2

    with pytest.raises(ConfigurationError):
        create_config_from_args(argparse.Namespace(alpha=1.0))
