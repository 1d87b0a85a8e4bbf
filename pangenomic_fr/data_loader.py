# data_loader.py
import logging
import pandas as pd
from pathlib import Path
from typing import List, Optional

from .exceptions import DataConsistencyError
from .graph import PangenomicGraph
from .nodes import Node, parse_node_ids
from .paths import Path as GraphPath, Sample

logger = logging.getLogger(__name__)

NODE_COLUMNS = ['id', 'rs', 'contig', 'start', 'end', 'genotype', 'gf']
PATH_COLUMNS = ['name', 'label', 'nodes']


class DataLoader:
    """Handles loading and saving of pangenomic graphs in the TXT format."""

    @staticmethod
    def nodes_file(prefix: str) -> Path:
        return Path(f"{prefix}.nodes.txt")

    @staticmethod
    def paths_file(prefix: str) -> Path:
        return Path(f"{prefix}.paths.txt")

    def load_nodes(self, file_path: str) -> List[Node]:
        """
        Load nodes from a tab-separated file: id, rs, contig, start, end, genotype, gf.
        """
        path = Path(file_path)
        logger.info(f"Loading nodes from: {path}")
        if not path.is_file():
            raise DataConsistencyError("Nodes file does not exist", str(path))

        df = pd.read_csv(path, sep='\t', header=None, names=NODE_COLUMNS, comment='#',
                         dtype={'id': 'int64', 'rs': str, 'contig': str, 'genotype': str},
                         keep_default_na=False)

        duplicates = df['id'].duplicated(keep=False)
        if duplicates.any():
            raise DataConsistencyError("Duplicate node ids", str(sorted(set(df.loc[duplicates, 'id']))))

        nodes = [
            Node(
                id=int(row.id),
                contig=row.contig,
                start=int(row.start),
                end=int(row.end),
                rs=None if row.rs in ('.', '') else row.rs,
                genotype=row.genotype,
                genotype_frequency=float(row.gf)
            )
            for row in df.itertuples(index=False)
        ]
        logger.info(f"Loaded {len(nodes)} nodes")
        return nodes

    def load_paths(self, file_path: str, nodes: List[Node]) -> List[GraphPath]:
        """
        Load paths from a tab-separated file: name, label, [id,id,...].
        """
        path = Path(file_path)
        logger.info(f"Loading paths from: {path}")
        if not path.is_file():
            raise DataConsistencyError("Paths file does not exist", str(path))

        df = pd.read_csv(path, sep='\t', header=None, names=PATH_COLUMNS, comment='#',
                         dtype=str, keep_default_na=False)

        duplicates = df['name'].duplicated(keep=False)
        if duplicates.any():
            logger.warning(f"Found {duplicates.sum()} duplicate path names. Keeping first occurrence.")
            df = df[~df['name'].duplicated(keep='first')]

        node_map = {n.id: n for n in nodes}
        paths = []
        for row in df.itertuples(index=False):
            ids = parse_node_ids(row.nodes)
            missing = [i for i in ids if i not in node_map]
            if missing:
                raise DataConsistencyError("Path traverses unknown nodes", f"{row.name}: {missing}")
            paths.append(GraphPath(Sample(row.name, row.label or None), [node_map[i] for i in ids]))
        logger.info(f"Loaded {len(paths)} paths")
        return paths

    def load_graph(self, prefix: str, name: Optional[str] = None) -> PangenomicGraph:
        """Load <prefix>.nodes.txt and <prefix>.paths.txt into a graph named after the prefix."""
        nodes = self.load_nodes(str(self.nodes_file(prefix)))
        paths = self.load_paths(str(self.paths_file(prefix)), nodes)
        return PangenomicGraph(nodes, paths, name=name or Path(prefix).name)

    def save_graph(self, graph: PangenomicGraph, prefix: str) -> None:
        """Write a graph in the same TXT format it is loaded from."""
        nodes_path = self.nodes_file(prefix)
        nodes_path.parent.mkdir(parents=True, exist_ok=True)
        nodes_df = pd.DataFrame(
            [[n.id, n.rs or '.', n.contig, n.start, n.end, n.genotype, n.genotype_frequency]
             for n in graph.nodes],
            columns=NODE_COLUMNS
        )
        nodes_df.to_csv(nodes_path, sep='\t', header=False, index=False)
        logger.info(f"Saved nodes to: {nodes_path}")

        paths_path = self.paths_file(prefix)
        paths_df = pd.DataFrame(
            [[p.name, p.label or '', "[" + ",".join(str(n.id) for n in p.nodes) + "]"] for p in graph.paths],
            columns=PATH_COLUMNS
        )
        paths_df.to_csv(paths_path, sep='\t', header=False, index=False)
        logger.info(f"Saved paths to: {paths_path}")
