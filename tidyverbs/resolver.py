"""
Column resolution: names, positions and string literals to 1-based ordinals.
"""

from typing import Any, List, Sequence

import numpy as np

from .exceptions import UnknownColumnError, OutOfRangeError, AmbiguousBindingError

__all__ = ['ColumnResolver']


class ColumnResolver:
    """
    Resolves identifiers against a table's column-name sequence.

    Positions are 1-based. A negative integer ``-k`` names column ``k`` for
    exclusion and is bounds-checked on ``k``.

    Example:
        >>> r = ColumnResolver(['year', 'month', 'day'])
        >>> r.position('month')
        2
        >>> r.resolve([3, 'year'])
        [3, 1]
    """

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        self._index = {}
        for i, name in enumerate(self.names, start=1):
            if name in self._index:
                raise AmbiguousBindingError(name, "column name appears more than once")
            self._index[name] = i

    @property
    def size(self) -> int:
        return len(self.names)

    def has(self, name: Any) -> bool:
        return isinstance(name, str) and name in self._index

    def position(self, name: str) -> int:
        """1-based position of ``name``; raises UnknownColumnError when absent."""
        try:
            return self._index[name]
        except (KeyError, TypeError):
            raise UnknownColumnError(name, self.names) from None

    def name_at(self, position: int) -> str:
        self.check_position(position)
        return self.names[position - 1]

    def check_position(self, position: int) -> int:
        if position < 1 or position > self.size:
            raise OutOfRangeError(position, self.size)
        return position

    def resolve_one(self, value: Any) -> int:
        """
        Resolve a single name or position.

        Negative positions come back negative (exclusion markers).
        """
        if isinstance(value, (bool, np.bool_)):
            raise AmbiguousBindingError(str(value), "logical values do not select columns")
        if isinstance(value, (int, np.integer)):
            value = int(value)
            if value == 0:
                raise OutOfRangeError(0, self.size)
            if value < 0:
                self.check_position(-value)
                return value
            return self.check_position(value)
        if isinstance(value, str):
            return self.position(value)
        raise AmbiguousBindingError(repr(value), f"a {type(value).__name__} is neither a column name nor a position")

    def resolve(self, value: Any) -> List[int]:
        """Resolve a name, a position, or a sequence of them, keeping order."""
        if isinstance(value, (str, int, np.integer, bool, np.bool_)):
            return [self.resolve_one(value)]
        if isinstance(value, (list, tuple, range, np.ndarray)) or hasattr(value, 'tolist'):
            items = value.tolist() if hasattr(value, 'tolist') else list(value)
            return [self.resolve_one(item) for item in items]
        return [self.resolve_one(value)]
