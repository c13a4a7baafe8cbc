"""
Grooming network construction and descriptive analysis.

- Graph construction from attribute tables and edge lists, induced
  subgraphs, symmetrization and adjacency matrices
- Descriptive statistics (density, components, diameter, cliques,
  modularity, degrees, reciprocity, transitivity, assortativity)
- Centrality measures (degree, closeness, betweenness, eigenvector)
- The combined descriptive battery and subgraph comparison
"""

from .construction import (
    GroomingNetwork,
    DEFAULT_COVARIATES,
    load_table,
    build_grooming_network,
    induced_subgraph,
    subgraph_by_attribute,
    split_by_attribute,
    symmetrize,
    adjacency_matrix,
    get_graph_info
)

from .statistics import (
    order,
    size,
    density,
    connected_components,
    distance_matrix,
    diameter,
    maximal_cliques,
    clique_number,
    count_cliques,
    modularity,
    degree_table,
    degree_summary,
    degree_frequency,
    reciprocity,
    transitivity,
    mixing_matrix,
    mixing_table,
    assortativity_nominal,
    assortativity_permutation_test
)

from .centrality import (
    extract_centrality,
    degree_centrality,
    closeness_centrality,
    betweenness_centrality,
    eigenvector_centrality,
    get_centrality_summary,
    identify_central_nodes,
    top_node
)

from .summary import (
    describe_network,
    compare_subgraphs
)
