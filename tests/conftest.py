from pathlib import Path
from typing import Dict, List

import pytest

from pangenomic_fr.graph import PangenomicGraph
from pangenomic_fr.nodes import Node
from pangenomic_fr.paths import Path as GraphPath, Sample

# s1 case: 1-2-3-4
# s2 case: 1-2-4-5
# s3 ctrl: 1-3-5-6
# s4 ctrl: 2-3-5-6
TOY_PATHS = [
    ("s1", "case", [1, 2, 3, 4]),
    ("s2", "case", [1, 2, 4, 5]),
    ("s3", "ctrl", [1, 3, 5, 6]),
    ("s4", "ctrl", [2, 3, 5, 6]),
]


def make_nodes(ids, contig="1", genotype="0/1") -> Dict[int, Node]:
    return {i: Node(i, contig, 100 * i, 100 * i, None, genotype, 0.5) for i in ids}


def make_graph(path_specs, nodes: Dict[int, Node], name="toy") -> PangenomicGraph:
    paths = [GraphPath(Sample(name_, label), [nodes[i] for i in ids]) for name_, label, ids in path_specs]
    return PangenomicGraph(nodes.values(), paths, name=name)


@pytest.fixture
def toy_nodes() -> Dict[int, Node]:
    return make_nodes(range(1, 7))


@pytest.fixture
def toy_graph(toy_nodes) -> PangenomicGraph:
    return make_graph(TOY_PATHS, toy_nodes)


@pytest.fixture
def toy_graph_files(tmp_path: Path) -> str:
    prefix = tmp_path / "toy"
    lines: List[str] = [f"{i}\t.\t1\t{100 * i}\t{100 * i}\t0/1\t0.5" for i in range(1, 7)]
    Path(f"{prefix}.nodes.txt").write_text("\n".join(lines) + "\n")
    paths = [f"{n}\t{label}\t[{','.join(str(i) for i in ids)}]" for n, label, ids in TOY_PATHS]
    Path(f"{prefix}.paths.txt").write_text("\n".join(paths) + "\n")
    return str(prefix)
