"""
ERGM term specifications as explicit variant types.

A model is a tuple of terms. Each term is a small frozen dataclass that
validates its own arguments on construction, so a malformed specification
fails before any fitting starts instead of inside the estimator:

- ``Edges()``: number of edges
- ``Mutual()``: number of reciprocated dyads
- ``NodeMatch(attribute)``: edges between monkeys sharing the attribute value;
  with ``diff=True`` one statistic per level (optionally restricted to
  ``levels``)
- ``NodeFactor(attribute, base=1)``: per level, edges touching a monkey of
  that level (sender and receiver each count); the ``base``-th level in
  sorted order is dropped as the reference category (0 keeps all levels)

Coefficient names follow the usual ERGM conventions: ``edges``, ``mutual``,
``nodematch.Age``, ``nodematch.Age.Senior``, ``nodefactor.Age.Senior``.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from groomnet.network.construction import GroomingNetwork
from groomnet.common.exceptions import ModelSpecificationError


class ErgmTerm:
    """Base class of all ERGM terms."""

    name = "term"
    dyad_dependent = False

    def coefficient_names(self, network: GroomingNetwork) -> List[str]:
        raise NotImplementedError

    def design(self, network: GroomingNetwork) -> np.ndarray:
        """
        Change statistics for toggling each ordered edge on, shape (n, n, k).

        Only defined for dyad-independent terms.
        """
        raise NotImplementedError

    def check(self, network: GroomingNetwork) -> None:
        """Validate the term against a network's covariates."""


def _check_attribute_name(term_name: str, attribute: Any) -> None:
    if not isinstance(attribute, str) or not attribute:
        raise ModelSpecificationError(
            f"{term_name} requires a non-empty covariate name, got {attribute!r}",
            parameter="attribute",
            value=attribute
        )


def _check_attribute_present(term_name: str, attribute: str, network: GroomingNetwork) -> None:
    if attribute not in network.covariates:
        raise ModelSpecificationError(
            f"{term_name} refers to unknown covariate '{attribute}'",
            parameter="attribute",
            value=attribute,
            valid_options=network.covariates
        )


@dataclass(frozen=True)
class Edges(ErgmTerm):
    """Edge count; the ERGM intercept."""

    name = "edges"

    def coefficient_names(self, network: GroomingNetwork) -> List[str]:
        return ["edges"]

    def design(self, network: GroomingNetwork) -> np.ndarray:
        n = network.number_of_nodes()
        block = np.ones((n, n, 1))
        block[np.arange(n), np.arange(n), 0] = 0.0
        return block


@dataclass(frozen=True)
class Mutual(ErgmTerm):
    """Number of mutual (reciprocated) dyads."""

    name = "mutual"
    dyad_dependent = True

    def coefficient_names(self, network: GroomingNetwork) -> List[str]:
        return ["mutual"]


@dataclass(frozen=True)
class NodeMatch(ErgmTerm):
    """
    Homophily on a categorical covariate.

    Parameters
    ----------
    attribute : str
        Covariate name
    diff : bool, default False
        One coefficient per level instead of a single uniform one
    levels : tuple, optional
        With ``diff=True``, the levels to keep (all levels by default)
    """

    attribute: str
    diff: bool = False
    levels: Optional[Tuple[Any, ...]] = None

    name = "nodematch"

    def __post_init__(self) -> None:
        _check_attribute_name("nodematch", self.attribute)
        if self.levels is not None:
            if not self.diff:
                raise ModelSpecificationError(
                    "nodematch 'levels' only applies with diff=True",
                    parameter="levels",
                    value=self.levels
                )
            if len(self.levels) == 0:
                raise ModelSpecificationError(
                    "nodematch 'levels' must not be empty",
                    parameter="levels"
                )
            object.__setattr__(self, "levels", tuple(self.levels))

    def _levels(self, network: GroomingNetwork) -> List[Any]:
        available = network.attribute_levels(self.attribute)
        if self.levels is None:
            return available
        return [level for level in available if level in self.levels]

    def check(self, network: GroomingNetwork) -> None:
        _check_attribute_present("nodematch", self.attribute, network)
        if self.levels is not None:
            available = network.attribute_levels(self.attribute)
            missing = [level for level in self.levels if level not in available]
            if missing:
                raise ModelSpecificationError(
                    f"nodematch levels {missing} do not occur in '{self.attribute}'",
                    parameter="levels",
                    value=list(self.levels),
                    valid_options=available
                )

    def coefficient_names(self, network: GroomingNetwork) -> List[str]:
        if not self.diff:
            return [f"nodematch.{self.attribute}"]
        return [f"nodematch.{self.attribute}.{level}" for level in self._levels(network)]

    def design(self, network: GroomingNetwork) -> np.ndarray:
        values = np.array(network.attribute_values(self.attribute), dtype=object)
        same = values[:, None] == values[None, :]
        np.fill_diagonal(same, False)

        if not self.diff:
            return same[:, :, None].astype(float)

        blocks = [(same & (values[:, None] == level)).astype(float) for level in self._levels(network)]
        return np.stack(blocks, axis=2)


@dataclass(frozen=True)
class NodeFactor(ErgmTerm):
    """
    Activity by level of a categorical covariate.

    Parameters
    ----------
    attribute : str
        Covariate name
    base : int, default 1
        1-based position (in sorted order) of the reference level to drop;
        0 keeps every level
    """

    attribute: str
    base: int = 1

    name = "nodefactor"

    def __post_init__(self) -> None:
        _check_attribute_name("nodefactor", self.attribute)
        if not isinstance(self.base, int) or isinstance(self.base, bool) or self.base < 0:
            raise ModelSpecificationError(
                f"nodefactor 'base' must be a non-negative integer, got {self.base!r}",
                parameter="base",
                value=self.base
            )

    def _levels(self, network: GroomingNetwork) -> List[Any]:
        levels = network.attribute_levels(self.attribute)
        if self.base == 0:
            return levels
        return [level for position, level in enumerate(levels, start=1) if position != self.base]

    def check(self, network: GroomingNetwork) -> None:
        _check_attribute_present("nodefactor", self.attribute, network)
        n_levels = len(network.attribute_levels(self.attribute))
        if self.base > n_levels:
            raise ModelSpecificationError(
                f"nodefactor base {self.base} exceeds the {n_levels} levels of '{self.attribute}'",
                parameter="base",
                value=self.base
            )

    def coefficient_names(self, network: GroomingNetwork) -> List[str]:
        return [f"nodefactor.{self.attribute}.{level}" for level in self._levels(network)]

    def design(self, network: GroomingNetwork) -> np.ndarray:
        values = np.array(network.attribute_values(self.attribute), dtype=object)
        n = len(values)
        blocks = []
        for level in self._levels(network):
            member = (values == level).astype(float)
            block = member[:, None] + member[None, :]
            block[np.arange(n), np.arange(n)] = 0.0
            blocks.append(block)
        return np.stack(blocks, axis=2)


def validate_terms(terms: Sequence[ErgmTerm]) -> Tuple[ErgmTerm, ...]:
    """
    Validate a term specification independent of any network.

    Raises
    ------
    ModelSpecificationError
        If the specification is empty, contains something that is not a
        term, or repeats a term
    """
    terms = tuple(terms)
    if not terms:
        raise ModelSpecificationError("An ERGM specification needs at least one term")

    for term in terms:
        if not isinstance(term, ErgmTerm):
            raise ModelSpecificationError(
                f"Not an ERGM term: {term!r}",
                parameter="terms",
                valid_options=["Edges", "Mutual", "NodeMatch", "NodeFactor"]
            )

    if len(set(terms)) != len(terms):
        raise ModelSpecificationError("ERGM specification repeats a term", parameter="terms")

    return terms


def format_terms(terms: Sequence[ErgmTerm]) -> str:
    """Render a specification in formula style, e.g. ``edges + nodematch(Age)``."""
    parts = []
    for term in terms:
        if isinstance(term, NodeMatch):
            args = [term.attribute]
            if term.diff:
                args.append("diff=TRUE")
            if term.levels is not None:
                args.append(f"levels={list(term.levels)}")
            parts.append(f"nodematch({', '.join(args)})")
        elif isinstance(term, NodeFactor):
            suffix = f", base={term.base}" if term.base != 1 else ""
            parts.append(f"nodefactor({term.attribute}{suffix})")
        else:
            parts.append(term.name)
    return " + ".join(parts)
