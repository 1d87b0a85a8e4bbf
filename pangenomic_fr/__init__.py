# pangenomic_fr/__init__.py
from .config import FRFinderConfig, KeepOption, PriorityOption
from .fr_finder import FRFinder, run_frfinder_analysis
from .frequented_region import FRPair, FrequentedRegion
from .graph import PangenomicGraph
from .nodes import Node, NodeSet
from .paths import Path, Sample
__version__ = "1.0.0"

"""
pangenomic_fr: frequented-region discovery in pangenomic genotype graphs

Builds a graph of genotype nodes traversed by labeled sample paths and searches
it, round by round, for node sets whose supporting subpaths are enriched in
cases or controls. Regions are scored by support, odds ratio or Fisher's exact
test, and can be exported as per-path feature matrices for classifiers.
"""
