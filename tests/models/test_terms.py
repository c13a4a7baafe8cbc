"""
Tests for ERGM term specifications.
"""

import pytest
import numpy as np

from groomnet.models.terms import (
    Edges,
    Mutual,
    NodeMatch,
    NodeFactor,
    validate_terms,
    format_terms
)
from groomnet.common.exceptions import ModelSpecificationError


class TestTermConstruction:
    """Malformed terms fail when they are built."""

    def test_valid_terms(self):
        terms = (Edges(), Mutual(), NodeMatch("Age"), NodeMatch("SleepLoc", diff=True),
                 NodeFactor("Gender"), NodeFactor("Age", base=0))
        assert validate_terms(terms) == terms

    def test_terms_are_immutable_values(self):
        assert NodeMatch("Age") == NodeMatch("Age")
        assert NodeMatch("Age") != NodeMatch("Age", diff=True)
        with pytest.raises(AttributeError):
            NodeMatch("Age").attribute = "Gender"

    @pytest.mark.parametrize("attribute", ["", None, 3])
    def test_nodematch_requires_name(self, attribute):
        with pytest.raises(ModelSpecificationError, match="non-empty covariate name"):
            NodeMatch(attribute)

    def test_nodematch_levels_need_diff(self):
        with pytest.raises(ModelSpecificationError, match="diff=True"):
            NodeMatch("Age", levels=("Senior",))

    def test_nodematch_empty_levels(self):
        with pytest.raises(ModelSpecificationError, match="must not be empty"):
            NodeMatch("Age", diff=True, levels=())

    def test_nodematch_levels_become_tuple(self):
        term = NodeMatch("Age", diff=True, levels=["Senior"])
        assert term.levels == ("Senior",)

    @pytest.mark.parametrize("base", [-1, 1.5, True])
    def test_nodefactor_base(self, base):
        with pytest.raises(ModelSpecificationError, match="non-negative integer"):
            NodeFactor("Age", base=base)


class TestValidateTerms:

    def test_empty(self):
        with pytest.raises(ModelSpecificationError, match="at least one term"):
            validate_terms([])

    def test_not_a_term(self):
        with pytest.raises(ModelSpecificationError, match="Not an ERGM term"):
            validate_terms([Edges(), "mutual"])

    def test_repeated_term(self):
        with pytest.raises(ModelSpecificationError, match="repeats"):
            validate_terms([Edges(), NodeMatch("Age"), NodeMatch("Age")])

    def test_format(self):
        text = format_terms([Edges(), Mutual(), NodeMatch("SleepLoc", diff=True), NodeFactor("Age")])
        assert text == "edges + mutual + nodematch(SleepLoc, diff=TRUE) + nodefactor(Age)"


class TestTermsAgainstNetwork:

    def test_unknown_covariate(self, four_node_network):
        with pytest.raises(ModelSpecificationError, match="unknown covariate 'Colour'"):
            NodeMatch("Colour").check(four_node_network)

    def test_unknown_level(self, four_node_network):
        with pytest.raises(ModelSpecificationError, match="do not occur"):
            NodeMatch("Age", diff=True, levels=("Infant",)).check(four_node_network)

    def test_nodefactor_base_too_large(self, four_node_network):
        with pytest.raises(ModelSpecificationError, match="exceeds"):
            NodeFactor("Age", base=3).check(four_node_network)

    def test_coefficient_names(self, four_node_network):
        assert Edges().coefficient_names(four_node_network) == ["edges"]
        assert NodeMatch("Age").coefficient_names(four_node_network) == ["nodematch.Age"]
        assert NodeMatch("Age", diff=True).coefficient_names(four_node_network) == [
            "nodematch.Age.Juvenile", "nodematch.Age.Senior"
        ]
        assert NodeFactor("Age").coefficient_names(four_node_network) == ["nodefactor.Age.Senior"]
        assert NodeFactor("Age", base=0).coefficient_names(four_node_network) == [
            "nodefactor.Age.Juvenile", "nodefactor.Age.Senior"
        ]

    def test_edges_design(self, four_node_network):
        block = Edges().design(four_node_network)

        assert block.shape == (4, 4, 1)
        assert block[:, :, 0].sum() == 12
        assert np.all(np.diag(block[:, :, 0]) == 0)

    def test_nodematch_design(self, four_node_network):
        block = NodeMatch("SleepLoc").design(four_node_network)[:, :, 0]

        assert block[0, 1] == 1 and block[2, 3] == 1
        assert block[1, 2] == 0
        assert block[0, 0] == 0

    def test_nodefactor_design(self, four_node_network):
        block = NodeFactor("Age").design(four_node_network)[:, :, 0]

        # A, B Juvenile; C, D Senior
        assert block[0, 1] == 0
        assert block[0, 2] == 1
        assert block[2, 3] == 2
