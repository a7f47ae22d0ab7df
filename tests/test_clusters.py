"""
Tests for connected-component labelling and the NetworkX export.
"""

import itertools

import networkx as nx
import pytest

from depcorr.network.clusters import DisjointSet, assign_clusters
from depcorr.network.graph import to_networkx, write_graphml
from depcorr.stats.correlation import CorrelationEdge
from depcorr.stats.descriptive import GeneSummary


def _edge(a, b, r=0.9):
    return CorrelationEdge(gene_a=a, gene_b=b, correlation=r, slope=1.0, n=30)


def _partition(assignment):
    """Clusters as a set of frozensets (label-independent)."""
    groups = {}
    for gene, label in assignment.labels.items():
        groups.setdefault(label, set()).add(gene)
    return {frozenset(g) for g in groups.values()}


class TestDisjointSet:

    def test_singletons(self):
        ds = DisjointSet(3)
        assert [ds.find(i) for i in range(3)] == [0, 1, 2]

    def test_union_attaches_first_root_under_second(self):
        ds = DisjointSet(3)
        ds.union(0, 1)
        assert ds.find(0) == 1

    def test_transitive(self):
        ds = DisjointSet(5)
        ds.union(0, 1)
        ds.union(3, 4)
        ds.union(1, 4)
        roots = {ds.find(i) for i in (0, 1, 3, 4)}
        assert len(roots) == 1
        assert ds.find(2) == 2

    def test_path_compression(self):
        ds = DisjointSet(4)
        ds.union(0, 1)
        ds.union(1, 2)
        ds.union(2, 3)
        root = ds.find(0)
        assert ds.parent[0] == root


class TestAssignClusters:
    """Cluster labels 1..K in first-appearance order."""

    def test_two_components(self):
        edges = [_edge("A", "B"), _edge("B", "C"), _edge("D", "E")]
        result = assign_clusters(edges)

        assert result.labels == {"A": 1, "B": 1, "C": 1, "D": 2, "E": 2}
        assert result.n_clusters == 2
        assert [e.cluster for e in result.edges] == [1, 1, 2]
        assert result.members(1) == ["A", "B", "C"]
        assert result.sizes() == {1: 3, 2: 2}

    def test_bridge_merges_components(self):
        edges = [_edge("A", "B"), _edge("C", "D"), _edge("B", "C")]
        result = assign_clusters(edges)
        assert result.n_clusters == 1
        assert set(result.labels.values()) == {1}

    def test_partition_independent_of_edge_order(self):
        edges = [_edge("A", "B"), _edge("B", "C"), _edge("D", "E"), _edge("F", "G"), _edge("G", "E")]
        expected = _partition(assign_clusters(edges))
        for order in itertools.permutations(edges):
            assert _partition(assign_clusters(list(order))) == expected

    def test_labels_follow_edge_order(self):
        result = assign_clusters([_edge("D", "E"), _edge("A", "B")])
        assert result.labels["D"] == 1
        assert result.labels["A"] == 2

    def test_endpoints_share_label(self):
        edges = [_edge("A", "B"), _edge("C", "D"), _edge("E", "A")]
        result = assign_clusters(edges)
        for edge in result.edges:
            assert result.labels[edge.gene_a] == result.labels[edge.gene_b] == edge.cluster

    def test_empty(self):
        result = assign_clusters([])
        assert result.n_clusters == 0
        assert result.edges == ()

    def test_agrees_with_networkx_components(self, synthetic_dataset):
        from depcorr.stats.correlation import sweep

        result = sweep(synthetic_dataset.matrix, list(synthetic_dataset.matrix.genes),
                       correlation_cutoff=0.3, min_n=10)
        assignment = assign_clusters(result.edges)

        G = nx.Graph()
        G.add_edges_from((e.gene_a, e.gene_b) for e in result.edges)
        expected = {frozenset(c) for c in nx.connected_components(G)}
        assert _partition(assignment) == expected


class TestNetworkExport:

    @pytest.fixture
    def clustered(self):
        return assign_clusters([_edge("A", "B", 0.9), _edge("B", "C", -0.7), _edge("D", "E", 0.6)])

    def test_graph_attributes(self, clustered):
        G = to_networkx(clustered.edges)
        assert G.number_of_nodes() == 5
        assert G.number_of_edges() == 3
        assert G.edges["B", "C"]["weight"] == pytest.approx(0.7)
        assert G.edges["B", "C"]["correlation"] == pytest.approx(-0.7)
        assert G.nodes["D"]["cluster"] == 2

    def test_gene_stats_attached(self, clustered):
        stats = [GeneSummary(
            gene="A", cluster=1, mean_all=-0.5, sd_all=0.2, n_all=60,
            mean_filtered=float("nan"), sd_filtered=float("nan"), n_filtered=0, in_gene_list=True,
        )]
        G = to_networkx(clustered.edges, stats)
        assert G.nodes["A"]["mean_all"] == -0.5
        assert G.nodes["A"]["in_gene_list"] is True

    def test_write_graphml_drops_nan(self, clustered, tmp_path):
        stats = [GeneSummary(
            gene="A", cluster=1, mean_all=-0.5, sd_all=0.2, n_all=60,
            mean_filtered=float("nan"), sd_filtered=float("nan"), n_filtered=0, in_gene_list=True,
        )]
        G = to_networkx(clustered.edges, stats)
        path = write_graphml(G, tmp_path / "network.graphml")

        loaded = nx.read_graphml(path)
        assert set(loaded.nodes) == {"A", "B", "C", "D", "E"}
        assert "mean_filtered" not in loaded.nodes["A"]
        assert loaded.nodes["A"]["mean_all"] == pytest.approx(-0.5)
