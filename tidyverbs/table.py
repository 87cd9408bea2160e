"""
Table - the immutable tabular value the verbs operate on.

A Table wraps a pandas DataFrame with uniquely named columns and an optional
list of grouping variables. Verbs never modify a Table; they return a new
one. ``to_pandas()`` hands out a copy, so the wrapped frame can't be changed
from outside either.

Example:
    >>> from tidyverbs import Table, X, F
    >>> flights = Table(df)
    >>> (flights
    ...     .filter(X.month == 1)
    ...     .group_by(X.carrier)
    ...     .summarise(delay=F.mean(X.dep_delay, na_rm=True)))
"""

from typing import Any, Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import config, get_sort_groups
from .exceptions import ValidationError
from .grouping import GroupingMetadata
from .resolver import ColumnResolver

__all__ = ['Table']


class Table:
    """
    An immutable table of named columns, optionally grouped.

    Args:
        data: a pandas DataFrame, a dict of columns, another Table, or None
        group_vars: names of grouping columns (normally set via group_by())

    Column names must be unique strings. The row index is always a
    RangeIndex; any other index on the input is dropped.
    """

    config = config

    def __init__(self, data: Any = None, group_vars: Optional[Sequence[str]] = None):
        if isinstance(data, Table):
            frame = data._frame.copy()
            group_vars = data.group_vars if group_vars is None else group_vars
            group_sort = data._group_sort
        else:
            if data is None:
                frame = pd.DataFrame()
            elif isinstance(data, pd.DataFrame):
                frame = data.copy()
            else:
                frame = pd.DataFrame(data)
            group_sort = get_sort_groups()

        frame = frame.reset_index(drop=True)
        for name in frame.columns:
            if not isinstance(name, str):
                raise ValidationError(f"Column names must be strings, got {name!r}")
        self._init(frame, list(group_vars or []), group_sort)

    def _init(self, frame: pd.DataFrame, group_vars: List[str], group_sort: bool) -> None:
        ColumnResolver(frame.columns)
        for var in group_vars:
            if var not in frame.columns:
                raise ValidationError(f"Grouping variable '{var}' is not a column")
        self._frame = frame
        self._group_vars = group_vars
        self._group_sort = group_sort
        self._grouping: Optional[GroupingMetadata] = None

    @classmethod
    def _wrap(cls, frame: pd.DataFrame, group_vars: Sequence[str] = (), group_sort: bool = False) -> 'Table':
        """Build a Table around a frame the caller owns, without copying it."""
        table = cls.__new__(cls)
        table._init(frame, list(group_vars), group_sort)
        return table

    def _derive(self, frame: pd.DataFrame, group_vars: Optional[Sequence[str]] = None,
                group_sort: Optional[bool] = None) -> 'Table':
        """New Table over ``frame`` keeping this table's grouping unless overridden."""
        return Table._wrap(
            frame,
            self._group_vars if group_vars is None else group_vars,
            self._group_sort if group_sort is None else group_sort,
        )

    # ========== Shape and columns ==========

    @property
    def columns(self) -> List[str]:
        return list(self._frame.columns)

    @property
    def nrow(self) -> int:
        return len(self._frame)

    @property
    def ncol(self) -> int:
        return len(self._frame.columns)

    @property
    def shape(self):
        return self._frame.shape

    @property
    def dtypes(self) -> pd.Series:
        return self._frame.dtypes.copy()

    def __len__(self) -> int:
        return self.nrow

    # ========== Grouping ==========

    @property
    def group_vars(self) -> List[str]:
        return list(self._group_vars)

    @property
    def is_grouped(self) -> bool:
        return bool(self._group_vars)

    def grouping(self) -> GroupingMetadata:
        """Partition of the rows by the grouping variables (cached)."""
        if self._grouping is None:
            self._grouping = GroupingMetadata.from_frame(self._frame, self._group_vars, sort=self._group_sort)
        return self._grouping

    @property
    def n_groups(self) -> int:
        """Number of groups; an ungrouped table is a single group."""
        if not self.is_grouped:
            return 1
        return self.grouping().n_groups

    def group_keys(self) -> pd.DataFrame:
        """One row per group with the grouping columns, in group order."""
        if not self.is_grouped:
            return pd.DataFrame(index=pd.RangeIndex(1))
        return self.grouping().group_keys()

    def group_indices(self) -> np.ndarray:
        """1-based group id of each row."""
        if not self.is_grouped:
            return np.ones(self.nrow, dtype=np.intp)
        return self.grouping().group_indices()

    def group_rows(self) -> List[np.ndarray]:
        """0-based row indices of each group, in group order."""
        if not self.is_grouped:
            return [np.arange(self.nrow)]
        return self.grouping().indices

    # ========== Conversion and comparison ==========

    def to_pandas(self) -> pd.DataFrame:
        """A copy of the data as a pandas DataFrame."""
        return self._frame.copy()

    to_df = to_pandas

    def equals(self, other: Any) -> bool:
        """Same columns, values and grouping."""
        if not isinstance(other, Table):
            return False
        return self._group_vars == other._group_vars and self._frame.equals(other._frame)

    def pipe(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """
        Call ``func(self, *args, **kwargs)``.

        Example:
            >>> flights.pipe(filter, X.month == 1).pipe(select, X.carrier)
        """
        return func(self, *args, **kwargs)

    def __repr__(self) -> str:
        header = f"# Table: {self.nrow} x {self.ncol}"
        if self.is_grouped:
            header += f"\n# Groups: {', '.join(self._group_vars)} [{self.n_groups}]"
        return f"{header}\n{self._frame.head(10).to_string()}"

    def __str__(self) -> str:
        return self.__repr__()
