"""
Selection helpers: name-predicate column selectors for selecting contexts.

Helpers scan the column-name sequence and return matching 1-based positions
in table order. Their arguments are expressions evaluated in the enclosing
environment only, so ``starts_with(env.prefix)`` or ``starts_with(X.prefix)``
reads an outer variable even if a column called ``prefix`` exists.

Example:
    >>> t.select(starts_with("dep"), ends_with("delay"))
    >>> t.select(~matches(r"^arr_"))
"""

import re
from typing import Any, Callable, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from .expressions import Expression, Node
from .exceptions import UnknownColumnError, ValidationError
from .utils import is_scalar

__all__ = [
    'SelectionHelper',
    'starts_with',
    'ends_with',
    'contains',
    'matches',
    'num_range',
    'everything',
    'last_col',
    'all_of',
    'any_of',
    'where',
]


def _strings(values: Sequence[Any], helper: str) -> List[str]:
    out = []
    for value in values:
        items = [value] if is_scalar(value) else list(value)
        for item in items:
            if not isinstance(item, str):
                raise ValidationError(f"{helper}() expects strings, got {type(item).__name__}")
            out.append(item)
    return out


class SelectionHelper(Expression):
    """Base class for selection helpers."""

    helper_name = 'helper'

    def __init__(self, *args: Any, **options: Any):
        super().__init__(None)
        self.args = [self.wrap(arg) for arg in args]
        self.options = options

    def nodes(self) -> Iterator[Node]:
        yield self
        for arg in self.args:
            yield from arg.nodes()

    def deparse(self) -> str:
        parts = [arg.deparse() for arg in self.args]
        parts += [f"{key} = {value!r}" for key, value in self.options.items()]
        return f"{self.helper_name}({', '.join(parts)})"

    def select(self, names: List[str], args: List[Any], data: Optional[pd.DataFrame]) -> List[int]:
        """
        Return matching 1-based positions.

        Args:
            names: column names of the table
            args: helper arguments, already evaluated in the environment
            data: the table's frame, for helpers that inspect values
        """
        raise NotImplementedError

    def __copy__(self):
        new = type(self).__new__(type(self))
        new.__dict__.update(self.__dict__)
        new.args = list(self.args)
        new.options = dict(self.options)
        return new


class _NameMatcher(SelectionHelper):
    """Shared implementation for string-predicate helpers."""

    def _test(self, name: str, needle: str) -> bool:
        raise NotImplementedError

    def select(self, names, args, data):
        needles = _strings(args, self.helper_name)
        if not needles:
            raise ValidationError(f"{self.helper_name}() needs at least one argument")
        ignore_case = self.options.get('ignore_case', True)
        if ignore_case:
            needles = [needle.lower() for needle in needles]
        positions = []
        for i, name in enumerate(names, start=1):
            candidate = name.lower() if ignore_case else name
            if any(self._test(candidate, needle) for needle in needles):
                positions.append(i)
        return positions


class StartsWith(_NameMatcher):
    helper_name = 'starts_with'

    def _test(self, name, needle):
        return name.startswith(needle)


class EndsWith(_NameMatcher):
    helper_name = 'ends_with'

    def _test(self, name, needle):
        return name.endswith(needle)


class Contains(_NameMatcher):
    helper_name = 'contains'

    def _test(self, name, needle):
        return needle in name


class Matches(SelectionHelper):
    helper_name = 'matches'

    def select(self, names, args, data):
        patterns = _strings(args, self.helper_name)
        flags = re.IGNORECASE if self.options.get('ignore_case', True) else 0
        compiled = [re.compile(pattern, flags) for pattern in patterns]
        return [i for i, name in enumerate(names, start=1) if any(p.search(name) for p in compiled)]


class NumRange(SelectionHelper):
    helper_name = 'num_range'

    def select(self, names, args, data):
        prefix, numbers = args
        suffix = self.options.get('suffix', '')
        width = self.options.get('width')
        wanted = []
        for number in ([numbers] if is_scalar(numbers) else list(numbers)):
            digits = str(int(number)).zfill(width) if width else str(int(number))
            wanted.append(f"{prefix}{digits}{suffix}")
        lookup = {name: i for i, name in enumerate(names, start=1)}
        return [lookup[name] for name in wanted if name in lookup]


class Everything(SelectionHelper):
    helper_name = 'everything'

    def select(self, names, args, data):
        return list(range(1, len(names) + 1))


class LastCol(SelectionHelper):
    helper_name = 'last_col'

    def select(self, names, args, data):
        offset = int(args[0]) if args else 0
        position = len(names) - offset
        if position < 1:
            raise ValidationError(f"last_col(offset = {offset}) is out of bounds for {len(names)} columns")
        return [position]


class AllOf(SelectionHelper):
    helper_name = 'all_of'

    def select(self, names, args, data):
        lookup = {name: i for i, name in enumerate(names, start=1)}
        positions = []
        for name in _strings(args, self.helper_name):
            if name not in lookup:
                raise UnknownColumnError(name, names)
            positions.append(lookup[name])
        return positions


class AnyOf(SelectionHelper):
    helper_name = 'any_of'

    def select(self, names, args, data):
        lookup = {name: i for i, name in enumerate(names, start=1)}
        return [lookup[name] for name in _strings(args, self.helper_name) if name in lookup]


class Where(SelectionHelper):
    helper_name = 'where'

    def __init__(self, predicate: Callable[[pd.Series], bool]):
        if not callable(predicate):
            raise ValidationError("where() expects a predicate function")
        super().__init__()
        self.predicate = predicate

    def deparse(self) -> str:
        return f"where({getattr(self.predicate, '__name__', 'predicate')})"

    def select(self, names, args, data):
        if data is None:
            raise ValidationError("where() needs column values and can't be used with names alone")
        positions = []
        for i, name in enumerate(names, start=1):
            verdict = self.predicate(data[name])
            if not isinstance(verdict, (bool, np.bool_)):
                raise ValidationError(f"where() predicate must return a single logical, got {verdict!r}")
            if bool(verdict):
                positions.append(i)
        return positions


def starts_with(*prefixes: Any, ignore_case: bool = True) -> SelectionHelper:
    """Columns whose name starts with any of the prefixes."""
    return StartsWith(*prefixes, ignore_case=ignore_case)


def ends_with(*suffixes: Any, ignore_case: bool = True) -> SelectionHelper:
    """Columns whose name ends with any of the suffixes."""
    return EndsWith(*suffixes, ignore_case=ignore_case)


def contains(*substrings: Any, ignore_case: bool = True) -> SelectionHelper:
    """Columns whose name contains any of the literal substrings."""
    return Contains(*substrings, ignore_case=ignore_case)


def matches(pattern: Any, ignore_case: bool = True) -> SelectionHelper:
    """Columns whose name matches a regular expression (searched, not anchored)."""
    return Matches(pattern, ignore_case=ignore_case)


def num_range(prefix: Any, numbers: Any, suffix: str = '', width: Optional[int] = None) -> SelectionHelper:
    """
    Columns named prefix + number (+ suffix), e.g. num_range("x", range(1, 4)) -> x1, x2, x3.
    """
    return NumRange(prefix, numbers, suffix=suffix, width=width)


def everything() -> SelectionHelper:
    """All columns."""
    return Everything()


def last_col(offset: int = 0) -> SelectionHelper:
    """The last column, or the one ``offset`` places before it."""
    return LastCol(offset)


def all_of(names: Any) -> SelectionHelper:
    """Columns named in a character vector; every name must exist."""
    return AllOf(names)


def any_of(names: Any) -> SelectionHelper:
    """Columns named in a character vector; missing names are skipped."""
    return AnyOf(names)


def where(predicate: Callable[[pd.Series], bool]) -> SelectionHelper:
    """
    Columns for which ``predicate(column)`` is true.

    Example:
        >>> t.select(where(pd.api.types.is_numeric_dtype))
    """
    return Where(predicate)
