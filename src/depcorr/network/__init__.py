"""Connected-component clustering and graph export of correlation edges."""

from depcorr.network.clusters import ClusterAssignment, DisjointSet, assign_clusters
from depcorr.network.graph import to_networkx, write_graphml

__all__ = [
    'ClusterAssignment',
    'DisjointSet',
    'assign_clusters',
    'to_networkx',
    'write_graphml',
]
