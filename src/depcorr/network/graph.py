"""
NetworkX export of clustered correlation edges.

Rendering happens outside this package; the graph carries everything a
renderer needs as node and edge attributes and can be written as GraphML.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

import networkx as nx

from depcorr.stats.correlation import CorrelationEdge
from depcorr.stats.descriptive import GeneSummary

__all__ = ['to_networkx', 'write_graphml']

logger = logging.getLogger(__name__)


def to_networkx(
    edges: Sequence[CorrelationEdge],
    gene_stats: Optional[Iterable[GeneSummary]] = None,
) -> nx.Graph:
    """
    Build an undirected graph from clustered edges.

    Edge attributes: ``correlation``, ``slope``, ``weight`` (|r|), ``n``,
    ``cluster``. Node attributes: ``cluster`` and, when ``gene_stats`` is
    given, the descriptive statistics of each gene.
    """
    G = nx.Graph()
    for edge in edges:
        G.add_edge(
            edge.gene_a,
            edge.gene_b,
            correlation=edge.correlation,
            slope=edge.slope,
            weight=abs(edge.correlation),
            n=edge.n,
            cluster=edge.cluster,
        )
        for gene in (edge.gene_a, edge.gene_b):
            G.nodes[gene]['cluster'] = edge.cluster

    for summary in gene_stats or ():
        if summary.gene in G:
            attrs = summary.to_dict()
            attrs.pop('gene')
            G.nodes[summary.gene].update(attrs)

    return G


def write_graphml(G: nx.Graph, path: Path) -> Path:
    """Write ``G`` as GraphML; NaN attributes are omitted rather than written."""
    path = Path(path)
    clean = G.copy()
    for _, attrs in clean.nodes(data=True):
        for key, value in list(attrs.items()):
            if isinstance(value, float) and value != value:
                del attrs[key]
    nx.write_graphml(clean, path)
    logger.info(f"Wrote network ({G.number_of_nodes()} nodes, {G.number_of_edges()} edges): {path}")
    return path
