# pangenomic_fr/statistical_validation.py
"""
Statistical primitives for case/control association:
1. Two-tailed Fisher's exact test on 2x2 tables, memoized per graph
2. Odds ratios with explicit sentinels for empty cells
3. Multiple testing correction (Benjamini-Hochberg FDR and friends)
"""

import logging
import math
import threading
from typing import Dict, Sequence, Tuple

import numpy as np
from scipy.stats import fisher_exact
from statsmodels.stats.multitest import multipletests

from .exceptions import ConfigurationError, DataConsistencyError

logger = logging.getLogger(__name__)


class FisherExact:
    """
    Two-tailed Fisher's exact test for 2x2 tables whose total does not exceed max_size.

    One instance is owned by each graph and sized to its path count; p-values
    are cached by table since the finder evaluates the same tables many times.
    """

    def __init__(self, max_size: int):
        """
        Initialize the FisherExact helper.

        Args:
            max_size: Largest table total this instance accepts (the graph's path count).
        """
        if max_size < 0:
            raise ConfigurationError("Fisher's exact test size must be non-negative", str(max_size))
        self.max_size = max_size
        self._cache: Dict[Tuple[int, int, int, int], float] = {}
        self._lock = threading.Lock()

    def two_tailed_p(self, n11: int, n12: int, n21: int, n22: int) -> float:
        """
        Two-tailed p-value of the table [[n11, n12], [n21, n22]].

        Args:
            n11, n12: First row (e.g. case on, case off).
            n21, n22: Second row (e.g. control on, control off).

        Returns:
            The p-value, capped at 1.0.

        Raises:
            DataConsistencyError: If a cell is negative or the total exceeds max_size.
        """
        table = (int(n11), int(n12), int(n21), int(n22))
        if min(table) < 0:
            raise DataConsistencyError("Negative count in contingency table", str(table))
        if sum(table) > self.max_size:
            raise DataConsistencyError(
                "Contingency table exceeds Fisher's exact test size",
                f"{table} > {self.max_size}"
            )
        p_value = self._cache.get(table)
        if p_value is None:
            _, p_value = fisher_exact([[table[0], table[1]], [table[2], table[3]]], alternative='two-sided')
            p_value = min(1.0, float(p_value))
            with self._lock:
                self._cache[table] = p_value
        return p_value


def odds_ratio(case_on: int, ctrl_on: int, case_total: int, ctrl_total: int) -> float:
    """
    Odds ratio (case_on * ctrl_total) / (ctrl_on * case_total).

    Returns 0.0 when no case is on and +inf when only cases are on, never NaN.
    The case check runs first, so a region with neither case nor control
    support scores 0.0 rather than +inf.
    """
    if case_on == 0:
        return 0.0
    if ctrl_on == 0:
        return math.inf
    return (case_on * ctrl_total) / (ctrl_on * case_total)


def multiple_testing_correction(p_values: Sequence[float], method: str = 'fdr_bh',
                                alpha: float = 0.05) -> np.ndarray:
    """
    Apply a multiple testing correction to a sequence of p-values.

    Available methods include 'bonferroni', 'fdr_bh', 'fdr_by', 'holm'.

    Args:
        p_values: Raw p-values.
        method: statsmodels correction method (default: 'fdr_bh').
        alpha: Family-wise error rate used by statsmodels for the rejection flags.

    Returns:
        Array of corrected p-values in input order.
    """
    if len(p_values) == 0:
        return np.array([])
    try:
        _, corrected, _, _ = multipletests(np.asarray(p_values, dtype=float), alpha=alpha, method=method)
    except ValueError as e:
        raise ConfigurationError("Unsupported multiple testing method", method) from e
    logger.info(f"Applied {method} correction to {len(p_values)} p-values")
    return corrected
