"""
Grouping context for tidyverbs.

A grouped table carries its grouping variables; the partition itself
(group keys and the row indices of each group) is recomputed from the
grouping columns whenever a verb needs it, so it can never go stale.

This mirrors pandas groupby semantics with two differences:
- Missing values form their own group instead of being dropped
- Groups come in order of first appearance unless sorting is requested
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np
import pandas as pd

from .config import get_logger, get_max_workers
from .function_registry import EvalContext

__all__ = ['Group', 'GroupingMetadata', 'apply_groups']

T = TypeVar('T')


@dataclass(frozen=True)
class Group:
    """One slice of the partition."""

    group_id: int
    key: Tuple[Any, ...]
    rows: np.ndarray

    @property
    def size(self) -> int:
        return len(self.rows)

    def context(self, grouped: bool = True) -> EvalContext:
        if not grouped:
            return EvalContext(size=self.size)
        return EvalContext(size=self.size, group_id=self.group_id, group_key=self.key)


class GroupingMetadata:
    """
    Partition of a frame's rows by the values of the grouping variables.

    Example:
        >>> meta = GroupingMetadata.from_frame(df, ['month'])
        >>> meta.n_groups
        12
        >>> meta.group_keys()
           month
        0      1
        ...
    """

    def __init__(self, vars: Sequence[str], frame: pd.DataFrame, first: np.ndarray, inverse: np.ndarray):
        self.vars = list(vars)
        self._frame = frame
        self._first = first
        self._inverse = inverse

        counts = np.bincount(inverse, minlength=len(first)) if len(first) else np.array([], dtype=int)
        order = np.argsort(inverse, kind='stable')
        self._indices = np.split(order, np.cumsum(counts)[:-1]) if len(first) else []

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, vars: Sequence[str], sort: bool = False) -> 'GroupingMetadata':
        """
        Partition ``frame`` by ``vars``.

        Args:
            frame: the data (RangeIndex)
            vars: grouping column names; empty means a single group of all rows
            sort: order groups by key (missing last) instead of first appearance
        """
        vars = list(vars)
        n = len(frame)
        if not vars:
            first = np.array([0]) if n else np.array([], dtype=np.intp)
            return cls(vars, frame, first, np.zeros(n, dtype=np.intp))
        if n == 0:
            return cls(vars, frame, np.array([], dtype=np.intp), np.array([], dtype=np.intp))

        codes = []
        for var in vars:
            var_codes, _ = pd.factorize(frame[var], sort=sort, use_na_sentinel=False)
            codes.append(var_codes)

        _, first, inverse = np.unique(np.column_stack(codes), axis=0, return_index=True, return_inverse=True)
        inverse = np.asarray(inverse).reshape(-1)

        if not sort:
            order = np.argsort(first, kind='stable')
            rank = np.empty_like(order)
            rank[order] = np.arange(len(order))
            inverse = rank[inverse]
            first = first[order]

        get_logger().debug("[Groups] %d rows -> %d groups by %s", n, len(first), vars)
        return cls(vars, frame, first, inverse)

    @property
    def n_groups(self) -> int:
        return len(self._first)

    @property
    def indices(self) -> List[np.ndarray]:
        """Row indices (0-based, ascending) of each group, in group order."""
        return list(self._indices)

    @property
    def keys(self) -> List[Tuple[Any, ...]]:
        if not self.vars:
            return [() for _ in self._first]
        values = self._frame[self.vars].iloc[self._first]
        return [tuple(row) for row in values.itertuples(index=False, name=None)]

    def group_keys(self) -> pd.DataFrame:
        """One row per group holding its key values."""
        return self._frame[self.vars].iloc[self._first].reset_index(drop=True)

    def group_indices(self) -> np.ndarray:
        """1-based group id of every row."""
        return self._inverse + 1

    def groups(self) -> List[Group]:
        return [
            Group(group_id=i + 1, key=key, rows=rows)
            for i, (key, rows) in enumerate(zip(self.keys, self._indices))
        ]

    def __repr__(self) -> str:
        return f"GroupingMetadata(vars={self.vars}, n_groups={self.n_groups})"


def apply_groups(func: Callable[[Group], T], groups: Sequence[Group], max_workers: Optional[int] = None) -> List[T]:
    """
    Run ``func`` over every group and return the results in group order.

    With more than one worker configured, groups are dispatched to a thread
    pool; the results are still reassembled in group order.
    """
    workers = max_workers if max_workers is not None else get_max_workers()
    if workers <= 1 or len(groups) <= 1:
        return [func(group) for group in groups]

    get_logger().debug("[Groups] dispatching %d groups to %d workers", len(groups), workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(func, groups))
