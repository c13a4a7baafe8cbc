"""
Bidirectional mapping between monkey names and networkit node ids.

networkit graphs address nodes by consecutive integers starting from 0, while
the attribute and grooming tables address monkeys by name. ``IDMapper`` keeps
both directions consistent.
"""

from typing import Any, Dict, List, Iterable


class IDMapper:
    """
    Bidirectional mapping between original and internal node IDs.

    Attributes
    ----------
    original_to_internal : Dict[Any, int]
        Monkey name -> networkit node id
    internal_to_original : Dict[int, Any]
        networkit node id -> monkey name

    Examples
    --------
    >>> mapper = IDMapper.from_ids(["Ada", "Bo"])
    >>> mapper.get_internal("Bo")
    1
    >>> mapper.get_original(0)
    'Ada'
    """

    def __init__(self) -> None:
        self.original_to_internal: Dict[Any, int] = {}
        self.internal_to_original: Dict[int, Any] = {}

    @classmethod
    def from_ids(cls, original_ids: Iterable[Any]) -> 'IDMapper':
        """
        Build a mapper assigning consecutive internal ids in iteration order.

        Raises
        ------
        ValueError
            If an original id occurs twice
        """
        mapper = cls()
        for internal_id, original_id in enumerate(original_ids):
            mapper.add_mapping(original_id, internal_id)
        return mapper

    def get_internal(self, original_id: Any) -> int:
        """
        Get the networkit id for a monkey name.

        Raises
        ------
        KeyError
            If the name is not mapped
        """
        try:
            return self.original_to_internal[original_id]
        except KeyError:
            raise KeyError(f"Original ID '{original_id}' not found in mapping")

    def get_original(self, internal_id: int) -> Any:
        """
        Get the monkey name for a networkit id.

        Raises
        ------
        KeyError
            If the id is not mapped
        TypeError
            If internal_id is not an integer
        """
        if not isinstance(internal_id, int):
            raise TypeError(f"Internal ID must be integer, got {type(internal_id)}")

        try:
            return self.internal_to_original[internal_id]
        except KeyError:
            raise KeyError(f"Internal ID {internal_id} not found in mapping")

    def get_internal_batch(self, original_ids: List[Any]) -> List[int]:
        """Get internal ids for a list of names."""
        return [self.get_internal(original_id) for original_id in original_ids]

    def get_original_batch(self, internal_ids: List[int]) -> List[Any]:
        """Get names for a list of internal ids."""
        return [self.get_original(int(internal_id)) for internal_id in internal_ids]

    def add_mapping(self, original_id: Any, internal_id: int) -> None:
        """
        Add a mapping pair.

        Raises
        ------
        ValueError
            If either side is already mapped, or internal_id is negative
        TypeError
            If internal_id is not an integer or original_id is unhashable
        """
        if not isinstance(internal_id, int):
            raise TypeError(f"Internal ID must be integer, got {type(internal_id)}")

        if internal_id < 0:
            raise ValueError(f"Internal ID must be non-negative, got {internal_id}")

        try:
            hash(original_id)
        except TypeError:
            raise TypeError(f"Original ID must be hashable, got {type(original_id)}")

        if original_id in self.original_to_internal:
            raise ValueError(
                f"Original ID '{original_id}' already mapped to internal ID "
                f"{self.original_to_internal[original_id]}"
            )

        if internal_id in self.internal_to_original:
            raise ValueError(
                f"Internal ID {internal_id} already mapped to original ID "
                f"'{self.internal_to_original[internal_id]}'"
            )

        self.original_to_internal[original_id] = internal_id
        self.internal_to_original[internal_id] = original_id

    def size(self) -> int:
        """Number of mapped nodes."""
        return len(self.original_to_internal)

    def has_original(self, original_id: Any) -> bool:
        return original_id in self.original_to_internal

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, item: Any) -> bool:
        return item in self.original_to_internal

    def __repr__(self) -> str:
        return f"IDMapper(size={self.size()})"
