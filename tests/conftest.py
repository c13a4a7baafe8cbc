"""Shared fixtures for the groomnet test suite."""

import logging

import numpy as np
import polars as pl
import pytest

from groomnet.network.construction import build_grooming_network


@pytest.fixture(autouse=True)
def reset_groomnet_logging():
    """Undo any ``setup_logging`` call so tests do not leak handlers."""
    yield
    root = logging.getLogger("groomnet")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


def _attributes(names, age=None, gender=None, sleep=None):
    n = len(names)
    return pl.DataFrame({
        "name": list(names),
        "Age": list(age) if age is not None else ["Adult"] * n,
        "Gender": list(gender) if gender is not None else ["Female"] * n,
        "SleepLoc": list(sleep) if sleep is not None else ["Loc1"] * n,
    })


def _edges(pairs):
    return pl.DataFrame(
        {"source": [s for s, _ in pairs], "target": [t for _, t in pairs]},
        schema={"source": pl.Utf8, "target": pl.Utf8}
    )


def _group_tables(n_per_group, p_within, p_between, seed):
    rng = np.random.default_rng(seed)
    n = 2 * n_per_group
    names = [f"M{i:02d}" for i in range(n)]
    group = np.repeat([0, 1], n_per_group)

    probability = np.where(group[:, None] == group[None, :], p_within, p_between)
    adjacency = rng.random((n, n)) < probability
    np.fill_diagonal(adjacency, False)

    pairs = [(names[i], names[j]) for i, j in zip(*np.nonzero(adjacency))]
    nodes = _attributes(
        names,
        age=[["Juvenile", "Adult", "Senior"][i % 3] for i in range(n)],
        gender=[["Female", "Male"][(i // 2) % 2] for i in range(n)],
        sleep=["Loc1" if g == 0 else "Loc2" for g in group],
    )
    return nodes, _edges(pairs)


@pytest.fixture
def tables():
    """Builders for attribute and edge tables."""
    class Tables:
        attributes = staticmethod(_attributes)
        edges = staticmethod(_edges)
        groups = staticmethod(_group_tables)
    return Tables


@pytest.fixture
def four_node_network():
    """A->B, B->A, B->C, C->D."""
    nodes = _attributes(
        ["A", "B", "C", "D"],
        age=["Juvenile", "Juvenile", "Senior", "Senior"],
        gender=["Male", "Female", "Female", "Male"],
        sleep=["Loc1", "Loc1", "Loc2", "Loc2"],
    )
    edges = _edges([("A", "B"), ("B", "A"), ("B", "C"), ("C", "D")])
    return build_grooming_network(nodes, edges)


@pytest.fixture
def two_triangles_network():
    """Two disjoint directed 3-cycles, one per sleeping location."""
    names = ["A", "B", "C", "D", "E", "F"]
    nodes = _attributes(
        names,
        age=["Juvenile", "Senior", "Juvenile", "Senior", "Juvenile", "Senior"],
        sleep=["Loc1", "Loc1", "Loc1", "Loc2", "Loc2", "Loc2"],
    )
    edges = _edges([
        ("A", "B"), ("B", "C"), ("C", "A"),
        ("D", "E"), ("E", "F"), ("F", "D"),
    ])
    return build_grooming_network(nodes, edges)


@pytest.fixture
def group_network():
    """24 monkeys in two sleeping groups, dense within groups and sparse between."""
    nodes, edges = _group_tables(12, 0.5, 0.05, seed=7)
    return build_grooming_network(nodes, edges)
