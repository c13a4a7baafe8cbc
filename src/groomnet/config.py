"""Analysis configuration, frozen and validated on construction."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from groomnet.network.construction import DEFAULT_COVARIATES
from groomnet.common.exceptions import ConfigurationError


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Parameters of one end-to-end grooming network analysis.

    Attributes
    ----------
    nodes_path, edges_path : Path
        CSV files with monkey attributes and grooming observations
    output_dir : Path, optional
        Where tables and the JSON summary are written; nothing is written
        when None
    node_col, source_col, target_col : str
        Column names of the input tables
    covariates : tuple of str
        Attribute columns used as categorical covariates
    subgraph_attribute : str
        Covariate whose levels define the compared subgraphs
    expected_groups : int, optional
        Number of levels ``subgraph_attribute`` must have (None: any)
    clique_size : int
        Clique size whose count is reported
    seed : int
        Seed for ERGM simulation, SBM restarts and permutation tests
    gof_simulations : int
        Networks simulated for ERGM goodness-of-fit
    max_blocks, sbm_restarts : int
        Largest community count and restarts per count for the SBM
    permutations : int
        Label permutations for assortativity tests (0 skips them)
    run_ergm, run_sbm : bool
        Whether to fit the two model families
    """

    nodes_path: Path
    edges_path: Path
    output_dir: Optional[Path] = None
    node_col: str = "name"
    source_col: str = "source"
    target_col: str = "target"
    covariates: Tuple[str, ...] = DEFAULT_COVARIATES
    subgraph_attribute: str = "SleepLoc"
    expected_groups: Optional[int] = 2
    clique_size: int = 6
    seed: int = 42
    gof_simulations: int = 100
    max_blocks: int = 6
    sbm_restarts: int = 5
    permutations: int = 1000
    run_ergm: bool = True
    run_sbm: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes_path", Path(self.nodes_path))
        object.__setattr__(self, "edges_path", Path(self.edges_path))
        if self.output_dir is not None:
            object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "covariates", tuple(self.covariates))

        for name in ("clique_size", "gof_simulations", "max_blocks", "sbm_restarts"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value!r}",
                    parameter=name,
                    value=value
                )

        if self.permutations < 0:
            raise ConfigurationError(
                f"permutations must be non-negative, got {self.permutations}",
                parameter="permutations",
                value=self.permutations
            )

        if self.expected_groups is not None and self.expected_groups < 1:
            raise ConfigurationError(
                f"expected_groups must be positive, got {self.expected_groups}",
                parameter="expected_groups",
                value=self.expected_groups
            )

        if self.subgraph_attribute not in self.covariates:
            raise ConfigurationError(
                f"subgraph_attribute '{self.subgraph_attribute}' is not a covariate",
                parameter="subgraph_attribute",
                value=self.subgraph_attribute,
                valid_options=list(self.covariates)
            )

        if self.source_col == self.target_col:
            raise ConfigurationError(
                "source_col and target_col must differ",
                parameter="target_col",
                value=self.target_col
            )
