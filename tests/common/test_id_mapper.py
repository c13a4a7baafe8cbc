"""
Tests for the IDMapper class.

Covers construction from name lists, lookups in both directions, batch
lookups and error conditions.
"""

import pytest

from groomnet.common.id_mapper import IDMapper


class TestIDMapperBasic:
    """Test basic IDMapper functionality."""

    def test_empty_mapper(self):
        mapper = IDMapper()

        assert mapper.size() == 0
        assert len(mapper) == 0
        assert repr(mapper) == "IDMapper(size=0)"

    def test_from_ids_assigns_consecutive_ids(self):
        mapper = IDMapper.from_ids(["Ada", "Bo", "Cy"])

        assert mapper.size() == 3
        assert mapper.get_internal("Ada") == 0
        assert mapper.get_internal("Cy") == 2
        assert mapper.get_original(1) == "Bo"
        assert mapper.get_original_batch(range(3)) == ["Ada", "Bo", "Cy"]

    def test_mapping_consistency(self):
        """Every name survives a lookup in both directions."""
        names = ["Ada", "Bo", 42, "Dee"]
        mapper = IDMapper.from_ids(names)

        for name in names:
            assert mapper.get_original(mapper.get_internal(name)) == name
        assert "Bo" in mapper
        assert mapper.has_original(42)
        assert not mapper.has_original("Zed")

    def test_batch_lookups(self):
        mapper = IDMapper.from_ids(["Ada", "Bo", "Cy"])

        assert mapper.get_internal_batch(["Cy", "Ada"]) == [2, 0]
        assert mapper.get_original_batch([1, 2]) == ["Bo", "Cy"]


class TestIDMapperErrors:
    """Test error conditions."""

    def test_get_internal_not_found(self):
        mapper = IDMapper.from_ids(["Ada"])

        with pytest.raises(KeyError, match="Original ID 'Zed' not found"):
            mapper.get_internal("Zed")

    def test_get_original_not_found(self):
        mapper = IDMapper.from_ids(["Ada"])

        with pytest.raises(KeyError, match="Internal ID 99 not found"):
            mapper.get_original(99)

    def test_get_original_invalid_type(self):
        mapper = IDMapper()

        with pytest.raises(TypeError, match="Internal ID must be integer"):
            mapper.get_original("0")

    def test_duplicate_name_rejected(self):
        with pytest.raises(ValueError, match="already mapped"):
            IDMapper.from_ids(["Ada", "Bo", "Ada"])

    def test_duplicate_internal_id_rejected(self):
        mapper = IDMapper()
        mapper.add_mapping("Ada", 0)

        with pytest.raises(ValueError, match="Internal ID 0 already mapped"):
            mapper.add_mapping("Bo", 0)

    def test_negative_internal_id_rejected(self):
        mapper = IDMapper()

        with pytest.raises(ValueError, match="non-negative"):
            mapper.add_mapping("Ada", -1)

    def test_unhashable_name_rejected(self):
        mapper = IDMapper()

        with pytest.raises(TypeError, match="hashable"):
            mapper.add_mapping(["Ada"], 0)
