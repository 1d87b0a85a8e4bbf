# pangenomic_fr/config.py
"""
Configuration module for the frequented-region finder.
This file defines the dataclasses holding run parameters, together with the
small grammars for the priority option ("4", "1:ctrl", "3:alt") and the
keep option ("subset:3", "distance").
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Union

from .exceptions import ConfigurationError
from .nodes import parse_node_ids

PRIORITY_LABELS = ("case", "ctrl")
KEEP_DEFAULTS = {"subset": 3, "distance": 2}


@dataclass(frozen=True)
class PriorityOption:
    """
    Parsed priority option.

    Attributes:
        key (int): 0 support, 1 support difference, 2 absolute difference,
            3 odds ratio, 4 p-value.
        parameter (Optional[str]): "case", "ctrl", "alt" or None as written.
        label (Optional[str]): Label the priority is computed for; "alt"
            starts from the key's default label.
    """
    key: int
    parameter: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def parse(cls, text: Union[str, int]) -> "PriorityOption":
        parts = str(text).strip().split(":")
        if len(parts) > 2:
            raise ConfigurationError("Malformed priority option", str(text))
        try:
            key = int(parts[0])
        except ValueError as e:
            raise ConfigurationError("Priority option must start with an integer 0-4", str(text)) from e
        if key not in range(5):
            raise ConfigurationError("Unsupported priority option", str(text))
        parameter = parts[1].lower() if len(parts) == 2 else None
        if parameter is not None and parameter not in PRIORITY_LABELS + ("alt",):
            raise ConfigurationError("Priority option label must be case, ctrl or alt", str(text))
        label = parameter if parameter in PRIORITY_LABELS else None
        if key == 1 and label is None:
            label = "case"
        return cls(key, parameter, label)

    @property
    def alternates(self) -> bool:
        return self.parameter == "alt"

    def toggled(self) -> "PriorityOption":
        """Same option with the label switched between case and ctrl."""
        return PriorityOption(self.key, self.parameter, "ctrl" if self.label == "case" else "case")

    def __str__(self) -> str:
        return f"{self.key}:{self.parameter}" if self.parameter else str(self.key)


@dataclass(frozen=True)
class KeepOption:
    """Parsed keep option: "subset" or "distance" with its threshold."""
    key: str
    value: int

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["KeepOption"]:
        if text is None or str(text).strip() == "":
            return None
        parts = str(text).strip().split(":")
        key = parts[0].lower()
        if key not in KEEP_DEFAULTS or len(parts) > 2:
            raise ConfigurationError("Keep option must be subset[:N] or distance[:N]", str(text))
        if len(parts) == 1:
            return cls(key, KEEP_DEFAULTS[key])
        try:
            value = int(parts[1])
        except ValueError as e:
            raise ConfigurationError("Keep option threshold must be an integer", str(text)) from e
        if value < 0:
            raise ConfigurationError("Keep option threshold must be non-negative", str(text))
        return cls(key, value)

    def __str__(self) -> str:
        return f"{self.key}:{self.value}"


@dataclass(frozen=True)
class FRFinderConfig:
    """
    Configuration class for a frequented-region search.

    Attributes:
        alpha (float): Penetrance, minimum fraction of an FR's nodes a supporting
            subpath must cover (0.0-1.0).
        kappa (float): Maximum run of non-FR nodes inside a supporting subpath;
            math.inf (or a negative value on input) means unlimited.
        priority_option (str): Priority grammar "<0-4>[:case|ctrl|alt]" (default: "4").
        keep_option (Optional[str]): "subset[:N]" or "distance[:N]" duplicate pruning.
        min_support (int): Minimum support of an interesting FR (default: 1).
        min_size (int): Minimum number of nodes of an interesting FR (default: 1).
        max_size (Optional[int]): Maximum number of nodes, None for unbounded.
        max_round (int): Maximum number of merge rounds, 0 for unbounded.
        min_priority (int): Minimum priority of an interesting FR, 0 disables the check.
        max_clocktime (float): Wall-clock budget in minutes, 0 for unbounded.
        required_nodes / included_nodes / excluded_nodes (str): NodeSet strings.
        require_best_node_set (bool): Only grow the previous round's winner.
        require_same_position (bool): Only merge nodes at one genomic position.
        require_homozygous (bool): Seed only from homozygous nodes.
        exclude_no_calls (bool): Seed no FR from no-call nodes.
        min_mgf (float): Minimum genotype frequency of a seed node.
        max_p_value (float): Maximum node Fisher p-value of a seed node, 1.0 disables.
        max_workers (int): Threads evaluating candidate merges in parallel.
        write_save_files (bool): Checkpoint state after every round.
        write_path_frs (bool): Write the path x FR matrix at the end.
        write_fr_subpaths (bool): Write the per-FR subpath listing at the end.
        resume (bool): Resume from checkpoint files instead of seeding.
        graph_name (Optional[str]): Output prefix stem; defaults to the graph's name.
        output_dir (Optional[str]): Where outputs go; None writes nothing.
    """
    alpha: float
    kappa: float
    priority_option: str = "4"
    keep_option: Optional[str] = None
    min_support: int = 1
    min_size: int = 1
    max_size: Optional[int] = None
    max_round: int = 0
    min_priority: int = 0
    max_clocktime: float = 0.0
    required_nodes: str = "[]"
    included_nodes: str = "[]"
    excluded_nodes: str = "[]"
    require_best_node_set: bool = False
    require_same_position: bool = False
    require_homozygous: bool = False
    exclude_no_calls: bool = False
    min_mgf: float = 0.0
    max_p_value: float = 1.0
    max_workers: int = 4
    write_save_files: bool = False
    write_path_frs: bool = False
    write_fr_subpaths: bool = False
    resume: bool = False
    graph_name: Optional[str] = None
    output_dir: Optional[str] = None
    priority: PriorityOption = field(init=False, repr=False, compare=False)
    keep: Optional[KeepOption] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not 0.0 <= self.alpha <= 1.0:
            raise ConfigurationError("alpha must lie in [0, 1]", str(self.alpha))
        if self.kappa is None or self.kappa < 0:
            object.__setattr__(self, 'kappa', math.inf)
        if self.min_support < 0 or self.min_size < 0 or self.max_round < 0 or self.max_clocktime < 0:
            raise ConfigurationError("Bounds must be non-negative")
        if self.max_size is not None and self.max_size < self.min_size:
            raise ConfigurationError("max_size is smaller than min_size", f"{self.max_size} < {self.min_size}")
        if not 0.0 <= self.max_p_value <= 1.0:
            raise ConfigurationError("max_p_value must lie in [0, 1]", str(self.max_p_value))
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1", str(self.max_workers))
        for name in ('required_nodes', 'included_nodes', 'excluded_nodes'):
            parse_node_ids(getattr(self, name))
        object.__setattr__(self, 'priority', PriorityOption.parse(self.priority_option))
        object.__setattr__(self, 'keep', KeepOption.parse(self.keep_option))

    @property
    def kappa_is_finite(self) -> bool:
        return math.isfinite(self.kappa)

    def to_dict(self) -> Dict[str, Any]:
        """Plain parameter mapping; infinite kappa is written as -1."""
        values = asdict(self)
        values.pop('priority', None)
        values.pop('keep', None)
        if not self.kappa_is_finite:
            values['kappa'] = -1
        return values
