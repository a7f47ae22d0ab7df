"""
Connected components over surviving correlation edges.

Genes touched by at least one edge are numbered in first-appearance order
(scanning the edge list, ``gene_a`` before ``gene_b``); a disjoint-set over
those dense indices merges the endpoints of every edge; clusters are then
labelled 1..K in the order their root is first met while walking the genes
in that same order.

Labelling therefore depends only on the edge list, never on set or dict
iteration order, and the partition itself does not depend on edge order.
Genes without surviving edges receive no cluster.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from depcorr.stats.correlation import CorrelationEdge

__all__ = ['DisjointSet', 'ClusterAssignment', 'assign_clusters']


class DisjointSet:
    """
    Union-find over integers 0..n-1 with path compression.

    ``union(a, b)`` attaches the root of ``a`` under the root of ``b``.

    Examples:
        >>> ds = DisjointSet(4)
        >>> ds.union(0, 1)
        >>> ds.find(0) == ds.find(1)
        True
        >>> ds.find(2) == ds.find(3)
        False
    """

    def __init__(self, n: int):
        self.parent = np.arange(n, dtype=np.intp)

    def __len__(self) -> int:
        return len(self.parent)

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # Compress the path walked
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return int(root)

    def union(self, a: int, b: int) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a != root_b:
            self.parent[root_a] = root_b


@dataclass(frozen=True)
class ClusterAssignment:
    """
    Cluster labels for every gene touched by an edge.

    Attributes:
        genes: Genes in first-appearance order
        labels: gene → cluster label (1..K)
        edges: Input edges with ``cluster`` set
    """

    genes: tuple[str, ...]
    labels: dict
    edges: tuple[CorrelationEdge, ...]

    @property
    def n_clusters(self) -> int:
        return len(set(self.labels.values()))

    def members(self, cluster: int) -> list[str]:
        return [g for g in self.genes if self.labels[g] == cluster]

    def sizes(self) -> dict[int, int]:
        sizes: dict[int, int] = {}
        for gene in self.genes:
            label = self.labels[gene]
            sizes[label] = sizes.get(label, 0) + 1
        return sizes


def assign_clusters(edges: Sequence[CorrelationEdge]) -> ClusterAssignment:
    """Label connected components of ``edges`` 1..K in discovery order."""
    position: dict[str, int] = {}
    for edge in edges:
        for gene in (edge.gene_a, edge.gene_b):
            if gene not in position:
                position[gene] = len(position)

    genes = tuple(position)
    ds = DisjointSet(len(genes))
    for edge in edges:
        ds.union(position[edge.gene_a], position[edge.gene_b])

    root_label: dict[int, int] = {}
    labels: dict[str, int] = {}
    for i, gene in enumerate(genes):
        root = ds.find(i)
        if root not in root_label:
            root_label[root] = len(root_label) + 1
        labels[gene] = root_label[root]

    labelled = tuple(edge.with_cluster(labels[edge.gene_a]) for edge in edges)
    return ClusterAssignment(genes=genes, labels=labels, edges=labelled)
