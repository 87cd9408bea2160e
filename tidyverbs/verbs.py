"""
The verb layer: table-in, table-out transformations.

Every verb takes a Table as its first argument and returns a new Table; the
input is never modified. Verbs are also available as Table methods, so

    >>> filter(arrange(flights, X.dep_delay), X.month == 1)
    >>> flights.arrange(X.dep_delay).filter(X.month == 1)

are the same thing.

Control arguments start with an underscore (``_by_group``, ``_keep``,
``_env`` ...) so they can never collide with a column name passed as a
keyword.
"""

import functools
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import get_logger, get_random_state, get_sort_groups, active_profiler
from .environment import Env
from .evaluator import DataMask, MutateEvaluator, SelectEvaluator, eval_mutate, eval_select
from .exceptions import (
    AmbiguousBindingError,
    SummariseLengthMismatchError,
    TypeMismatchError,
    UnknownColumnError,
    ValidationError,
)
from .expressions import Call, DataRef, Desc, Expression, Symbol
from .function_registry import EvalContext
from .grouping import Group, apply_groups
from .resolver import ColumnResolver
from .selectors import everything
from .table import Table
from .utils import is_scalar

__all__ = [
    'filter',
    'arrange',
    'slice',
    'slice_head',
    'slice_tail',
    'slice_sample',
    'slice_min',
    'slice_max',
    'select',
    'rename',
    'rename_with',
    'relocate',
    'mutate',
    'transmute',
    'summarise',
    'summarize',
    'group_by',
    'ungroup',
    'pull',
    'distinct',
    'count',
]

_KEEP_OPTIONS = ('all', 'used', 'unused', 'none')
_GROUPS_OPTIONS = ('drop_last', 'drop', 'keep')


def _verb(func: Callable) -> Callable:
    """Profile a verb and log its shape change at DEBUG."""

    @functools.wraps(func)
    def wrapper(table, *args, **kwargs):
        if not isinstance(table, Table):
            raise ValidationError(f"{func.__name__}() expects a Table, got {type(table).__name__}")
        with active_profiler().step(func.__name__, rows=table.nrow):
            result = func(table, *args, **kwargs)
        if isinstance(result, Table):
            get_logger().debug(
                "[Verb] %s: %d x %d -> %d x %d",
                func.__name__, table.nrow, table.ncol, result.nrow, result.ncol,
            )
        return result

    return wrapper


# ========== Shared helpers ==========


def _partition(table: Table) -> List[Group]:
    """The partition a verb iterates over; ungrouped tables are one group."""
    if table.is_grouped:
        return table.grouping().groups()
    return [Group(group_id=1, key=(), rows=np.arange(table.nrow))]


def _mask(table: Table, group: Group) -> DataMask:
    return DataMask(table._frame, group.rows if table.is_grouped else None)


def _evaluator(table: Table, group: Group, env: Env, check_env: bool = True) -> MutateEvaluator:
    return MutateEvaluator(_mask(table, group), env, group.context(table.is_grouped), check_env)


def _take(table: Table, rows: np.ndarray) -> Table:
    frame = table._frame.iloc[rows].reset_index(drop=True)
    return table._derive(frame)


def _named_exprs(exprs: Sequence[Any], named: Dict[str, Any]) -> List[Tuple[str, Any]]:
    out = []
    for expr in exprs:
        expr = Expression.wrap(expr)
        out.append((expr.output_name, expr))
    for name, expr in named.items():
        out.append((name, expr if expr is None else Expression.wrap(expr)))
    return out


def _logical(value: pd.Series, label: str) -> np.ndarray:
    """A logical vector as a numpy bool mask, missing treated as false."""
    if pd.api.types.is_bool_dtype(value):
        return value.fillna(False).to_numpy(dtype=bool)
    if value.dtype == object and all(v is None or v is pd.NA or isinstance(v, (bool, np.bool_)) or
                                     (isinstance(v, float) and np.isnan(v)) for v in value):
        return value.map(lambda v: bool(v) if isinstance(v, (bool, np.bool_)) else False).to_numpy(dtype=bool)
    raise TypeMismatchError('filter', f"condition {label} must be logical, not {value.dtype}")


def _order_codes(values: pd.Series, descending: bool, label: str) -> np.ndarray:
    """Integer sort codes for a vector, missing values last in either direction."""
    try:
        codes, uniques = pd.factorize(values, sort=True)
    except TypeError as e:
        raise TypeMismatchError('arrange', f"can't order {label}: {e}") from e
    codes = np.asarray(codes, dtype=np.int64)
    missing = codes < 0
    if descending:
        codes = -codes
        codes[missing] = 1
    else:
        codes[missing] = len(uniques)
    return codes


def _sort_order(keys: List[np.ndarray]) -> np.ndarray:
    # np.lexsort sorts by the last key first
    return np.lexsort(list(reversed(keys)))


def _slice_size(size: int, n: Optional[int], prop: Optional[float]) -> int:
    if n is not None and prop is not None:
        raise ValidationError("Supply either n or prop, not both")
    if prop is not None:
        if not isinstance(prop, (int, float, np.number)):
            raise ValidationError(f"prop must be a number, got {type(prop).__name__}")
        count = int(np.floor(abs(prop) * size))
        count = count if prop >= 0 else size - count
    else:
        n = 1 if n is None else n
        if not isinstance(n, (int, np.integer)) or isinstance(n, bool):
            raise ValidationError(f"n must be a whole number, got {n!r}")
        count = n if n >= 0 else size + n
    return max(0, min(count, size))


def _positions_from(value: Any, label: str) -> List[int]:
    items = [value] if is_scalar(value) else list(value)
    out = []
    for item in items:
        if isinstance(item, (bool, np.bool_)) or pd.isna(item):
            raise ValidationError(f"Row positions in {label} must be whole numbers, got {item!r}")
        if isinstance(item, (float, np.floating)) and not float(item).is_integer():
            raise ValidationError(f"Row positions in {label} must be whole numbers, got {item!r}")
        if not isinstance(item, (int, np.integer, float, np.floating)):
            raise TypeMismatchError('slice', f"row positions must be numeric, got {type(item).__name__}")
        out.append(int(item))
    return out


def _concat_rows(parts: List[np.ndarray]) -> np.ndarray:
    if not parts:
        return np.array([], dtype=np.intp)
    return np.concatenate(parts).astype(np.intp)


def _rename_group_vars(group_vars: Sequence[str], mapping: Dict[str, str]) -> List[str]:
    return [mapping.get(var, var) for var in group_vars]


def _check_unique(names: Sequence[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise AmbiguousBindingError(name, "the result would have more than one column with this name")
        seen.add(name)


# ========== Row verbs ==========


@_verb
def filter(table: Table, *conditions: Any, _env=None) -> Table:
    """
    Keep the rows where every condition is true.

    Conditions are combined with logical AND; missing values count as
    false. On a grouped table conditions are evaluated per group (so
    aggregates like ``F.mean`` see only the group), and the surviving rows
    keep their original order.

    Example:
        >>> filter(flights, X.month == 1, X.day == 1)
        >>> flights.group_by(X.carrier).filter(X.dep_delay > F.mean(X.dep_delay, na_rm=True))
    """
    env = Env.coerce(_env)
    if not conditions:
        return table._derive(table._frame)

    def keep_rows(group: Group) -> np.ndarray:
        evaluator = _evaluator(table, group, env)
        keep = np.ones(group.size, dtype=bool)
        for condition in conditions:
            condition = Expression.wrap(condition)
            label = condition.deparse()
            value = evaluator.evaluate_vector(condition, label)
            keep &= _logical(value, label)
        return group.rows[keep]

    rows = np.sort(_concat_rows(apply_groups(keep_rows, _partition(table))))
    return _take(table, rows)


@_verb
def arrange(table: Table, *exprs: Any, _by_group: bool = False, _env=None) -> Table:
    """
    Reorder rows by the given keys.

    Keys are evaluated on the whole table. Wrap a key in ``desc()`` for
    descending order. Ties keep their input order and missing values sort
    last in both directions. Grouping is ignored unless ``_by_group=True``,
    in which case the grouping columns are used as leading keys.

    Example:
        >>> arrange(flights, X.year, X.month, desc(X.dep_delay))
    """
    env = Env.coerce(_env)
    keys = [Expression.wrap(e) for e in exprs]
    if _by_group and table.is_grouped:
        keys = [Symbol(var) for var in table.group_vars] + keys
    if not keys:
        return table._derive(table._frame)

    evaluator = MutateEvaluator(DataMask(table._frame), env, EvalContext(size=table.nrow))
    codes = []
    for key in keys:
        descending = isinstance(key, Desc)
        target = key.operand if descending else key
        values = evaluator.evaluate_vector(target, key.deparse())
        codes.append(_order_codes(values, descending, key.deparse()))

    return _take(table, _sort_order(codes))


@_verb
def slice(table: Table, *positions: Any, _env=None) -> Table:
    """
    Keep rows by 1-based position.

    Positive positions keep rows in the order given (positions past the end
    are ignored); negative positions drop rows. Mixing signs is an error.
    Positions are evaluated per group, so ``n()`` is the group size and
    grouped results are concatenated group by group.
    Environment vectors of positions may have any length.

    Example:
        >>> slice(flights, span(5, 10))
        >>> flights.group_by(X.month).slice(1, n())
        >>> slice(flights, -1)
        >>> slice(flights, X.rows, _env={"rows": [2, 4, 6]})
    """
    env = Env.coerce(_env)

    def rows_for(group: Group) -> np.ndarray:
        evaluator = _evaluator(table, group, env, check_env=False)
        wanted = []
        for position in positions:
            position = Expression.wrap(position)
            wanted += _positions_from(evaluator.evaluate(position, as_arg=True), position.deparse())
        wanted = [p for p in wanted if p != 0]

        negative = [p for p in wanted if p < 0]
        if negative and len(negative) != len(wanted):
            raise ValidationError("Can't mix positive and negative row positions in slice()")
        if negative:
            drop = {-p - 1 for p in negative}
            return group.rows[[i for i in range(group.size) if i not in drop]]
        return group.rows[[p - 1 for p in wanted if p <= group.size]]

    return _take(table, _concat_rows(apply_groups(rows_for, _partition(table))))


@_verb
def slice_head(table: Table, n: Optional[int] = None, prop: Optional[float] = None) -> Table:
    """
    First ``n`` rows (or ``prop`` of the rows) of each group.

    A negative ``n`` keeps all but the last ``|n|`` rows.
    """
    parts = [g.rows[:_slice_size(g.size, n, prop)] for g in _partition(table)]
    return _take(table, _concat_rows(parts))


@_verb
def slice_tail(table: Table, n: Optional[int] = None, prop: Optional[float] = None) -> Table:
    """Last ``n`` rows (or ``prop`` of the rows) of each group."""
    parts = []
    for g in _partition(table):
        count = _slice_size(g.size, n, prop)
        parts.append(g.rows[g.size - count:])
    return _take(table, _concat_rows(parts))


@_verb
def slice_sample(
    table: Table,
    n: Optional[int] = None,
    prop: Optional[float] = None,
    weight_by: Any = None,
    replace: bool = False,
    random_state: Optional[int] = None,
    _env=None,
) -> Table:
    """
    Randomly sample rows within each group.

    Without replacement the sample is capped at the group size. Weights
    are evaluated per group and normalised to sum to one. Groups are
    sampled one after another from a single generator so a fixed
    ``random_state`` (or ``config.random_state``) gives reproducible results.
    """
    env = Env.coerce(_env)
    seed = random_state if random_state is not None else get_random_state()
    rng = np.random.default_rng(seed)

    parts = []
    for group in _partition(table):
        count = _slice_size(group.size, n, prop) if not replace else _sample_size(group.size, n, prop)
        if count == 0 or group.size == 0:
            continue
        p = None
        if weight_by is not None:
            weights = _evaluator(table, group, env).evaluate_vector(weight_by, 'weight_by')
            weights = pd.to_numeric(weights, errors='raise').to_numpy(dtype=float)
            if np.isnan(weights).any() or (weights < 0).any():
                raise ValidationError("weight_by must be non-negative and non-missing")
            total = weights.sum()
            if total <= 0:
                raise ValidationError("weight_by must have a positive sum in every group")
            p = weights / total
        try:
            picked = rng.choice(group.size, size=count, replace=replace, p=p)
        except ValueError as e:
            raise ValidationError(f"Can't sample {count} rows from group {group.key!r}: {e}") from e
        parts.append(group.rows[picked])
    return _take(table, _concat_rows(parts))


def _sample_size(size: int, n: Optional[int], prop: Optional[float]) -> int:
    if n is not None and prop is not None:
        raise ValidationError("Supply either n or prop, not both")
    if prop is not None:
        return max(0, int(np.floor(prop * size)))
    return max(0, 1 if n is None else int(n))


def _slice_extreme(table: Table, order_by: Any, n, prop, with_ties: bool, na_rm: bool, env, descending: bool):
    order_by = Expression.wrap(order_by)
    label = order_by.deparse()

    def rows_for(group: Group) -> np.ndarray:
        values = _evaluator(table, group, env).evaluate_vector(order_by, label)
        present = values.notna().to_numpy()
        candidates = np.arange(group.size)
        if na_rm:
            candidates = candidates[present]
        if len(candidates) == 0:
            return candidates
        codes = _order_codes(values.iloc[candidates].reset_index(drop=True), descending, label)
        order = candidates[np.argsort(codes, kind='stable')]
        count = _slice_size(len(candidates), n, prop)
        if count == 0:
            return group.rows[order[:0]]
        if with_ties and count < len(order):
            ranked = codes[np.argsort(codes, kind='stable')]
            boundary = ranked[count - 1]
            if present[order[count - 1]]:
                while count < len(order) and ranked[count] == boundary:
                    count += 1
        return group.rows[order[:count]]

    return _take(table, _concat_rows(apply_groups(rows_for, _partition(table))))


@_verb
def slice_min(table: Table, order_by: Any, n: Optional[int] = None, prop: Optional[float] = None,
              with_ties: bool = True, na_rm: bool = False, _env=None) -> Table:
    """
    Rows with the smallest values of ``order_by`` in each group, smallest first.

    With ``with_ties`` every row tied with the last selected value is kept,
    so more than ``n`` rows can come back. Missing values rank last and are
    dropped entirely with ``na_rm=True``.

    Example:
        >>> flights.group_by(X.month).slice_min(X.dep_delay, n=3)
    """
    return _slice_extreme(table, order_by, n, prop, with_ties, na_rm, Env.coerce(_env), descending=False)


@_verb
def slice_max(table: Table, order_by: Any, n: Optional[int] = None, prop: Optional[float] = None,
              with_ties: bool = True, na_rm: bool = False, _env=None) -> Table:
    """Rows with the largest values of ``order_by`` in each group, largest first."""
    return _slice_extreme(table, order_by, n, prop, with_ties, na_rm, Env.coerce(_env), descending=True)


# ========== Column verbs ==========


@_verb
def select(table: Table, *exprs: Any, _env=None, **renames: Any) -> Table:
    """
    Keep (and optionally rename) columns.

    Arguments are evaluated in selecting context: bare names are column
    positions, ``span()``, ``c()``, ``-``/``~``, ``&``, ``|`` and the
    selection helpers work on positions. Keyword arguments select and
    rename in one step. Grouping columns are always kept.

    Example:
        >>> select(flights, X.year, X.month, X.day)
        >>> select(flights, span(X.year, X.day))
        >>> select(flights, -span(X.year, X.day))
        >>> select(flights, tail_num=X.tailnum)
    """
    env = Env.coerce(_env)
    names = table.columns
    positions, out_names = eval_select(exprs, names, env, renames, data=table._frame)

    picked = {names[p - 1]: new for p, new in zip(positions, out_names)}
    missing = [var for var in table.group_vars if var not in picked]
    if missing:
        get_logger().info("Adding missing grouping variables: %s", ", ".join(missing))
        positions = [names.index(var) + 1 for var in missing] + positions
        out_names = missing + out_names
        _check_unique(out_names)

    frame = table._frame.iloc[:, [p - 1 for p in positions]].copy()
    frame.columns = out_names
    return table._derive(frame, group_vars=_rename_group_vars(table.group_vars, picked))


@_verb
def rename(table: Table, *exprs: Any, _env=None, **renames: Any) -> Table:
    """
    Rename columns with ``new_name=old`` pairs (or aliased expressions), keeping every column.

    Example:
        >>> rename(flights, tail_num=X.tailnum)
        >>> rename(flights, X.tailnum.as_("tail_num"))
    """
    env = Env.coerce(_env)
    names = table.columns
    evaluator = SelectEvaluator(names, env, table._frame)

    pairs = []
    for expr in exprs:
        expr = Expression.wrap(expr)
        if expr.alias is None:
            raise ValidationError(f"rename() needs a new name for {expr.deparse()}; use .as_() or a keyword")
        pairs.append((expr.alias, expr))
    pairs += list(renames.items())

    mapping: Dict[str, str] = {}
    for new_name, expr in pairs:
        positions = evaluator.evaluate(expr)
        if len(positions) != 1:
            raise ValidationError(f"rename() needs exactly one column for '{new_name}', got {len(positions)}")
        mapping[names[positions[0] - 1]] = new_name

    out_names = [mapping.get(name, name) for name in names]
    _check_unique(out_names)
    frame = table._frame.copy()
    frame.columns = out_names
    return table._derive(frame, group_vars=_rename_group_vars(table.group_vars, mapping))


@_verb
def rename_with(table: Table, fn: Callable[[str], str], *cols: Any, _env=None) -> Table:
    """
    Rename the selected columns (default: all) by applying ``fn`` to each name.

    Example:
        >>> rename_with(flights, str.upper, starts_with("dep"))
    """
    env = Env.coerce(_env)
    names = table.columns
    positions, _ = eval_select(cols or (everything(),), names, env, data=table._frame)

    mapping = {}
    for p in positions:
        new_name = fn(names[p - 1])
        if not isinstance(new_name, str):
            raise ValidationError(f"rename_with() function must return strings, got {type(new_name).__name__}")
        mapping[names[p - 1]] = new_name

    out_names = [mapping.get(name, name) for name in names]
    _check_unique(out_names)
    frame = table._frame.copy()
    frame.columns = out_names
    return table._derive(frame, group_vars=_rename_group_vars(table.group_vars, mapping))


def _relocated_order(names: Sequence[str], moved: List[int], env: Env, before: Any, after: Any,
                     data: pd.DataFrame) -> List[int]:
    if before is not None and after is not None:
        raise ValidationError("Supply either _before or _after, not both")

    remaining = [p for p in range(1, len(names) + 1) if p not in set(moved)]
    index = 0
    if before is not None or after is not None:
        anchors = set(SelectEvaluator(names, env, data).evaluate(before if before is not None else after))
        hits = [i for i, p in enumerate(remaining) if p in anchors]
        if before is not None:
            index = hits[0] if hits else 0
        else:
            index = hits[-1] + 1 if hits else len(remaining)
    return remaining[:index] + moved + remaining[index:]


@_verb
def relocate(table: Table, *exprs: Any, _before: Any = None, _after: Any = None, _env=None, **renames: Any) -> Table:
    """
    Move the selected columns, to the front by default.

    Example:
        >>> relocate(flights, X.carrier)
        >>> relocate(flights, ends_with("delay"), _after=X.day)
    """
    env = Env.coerce(_env)
    names = table.columns
    moved, moved_names = eval_select(exprs, names, env, renames, data=table._frame)
    order = _relocated_order(names, moved, env, _before, _after, table._frame)

    mapping = {names[p - 1]: new for p, new in zip(moved, moved_names)}
    out_names = [mapping.get(names[p - 1], names[p - 1]) for p in order]
    _check_unique(out_names)
    frame = table._frame.iloc[:, [p - 1 for p in order]].copy()
    frame.columns = out_names
    return table._derive(frame, group_vars=_rename_group_vars(table.group_vars, mapping))


def _compute(table: Table, named: List[Tuple[str, Any]], env: Env) -> Dict[str, Optional[pd.Series]]:
    """Evaluate named expressions per group and stitch the results back in row order."""
    groups = _partition(table)
    if table.is_grouped and not groups:
        groups = [Group(group_id=1, key=(), rows=np.arange(0))]

    def run(group: Group) -> Dict[str, Optional[pd.Series]]:
        return eval_mutate(named, _mask(table, group), env, group.context(table.is_grouped))

    results = apply_groups(run, groups)
    if len(results) == 1:
        return results[0]

    combined: Dict[str, Optional[pd.Series]] = {}
    for name in results[0]:
        pieces = [r[name] for r in results]
        if any(piece is None for piece in pieces):
            combined[name] = None
            continue
        index = _concat_rows([g.rows for g in groups])
        values = pd.concat([piece.reset_index(drop=True) for piece in pieces], ignore_index=True)
        values.index = index
        combined[name] = values.sort_index().reset_index(drop=True)
    return combined


def _used_columns(named: List[Tuple[str, Any]], names: Sequence[str]) -> set:
    used = set()
    for _, expr in named:
        if expr is None:
            continue
        used.update(expr.symbols())
        used.update(node.ref for node in expr.find(DataRef))
    return used & set(names)


@_verb
def mutate(table: Table, *exprs: Any, _keep: str = 'all', _before: Any = None, _after: Any = None,
           _env=None, **named: Any) -> Table:
    """
    Add or replace columns.

    Expressions are evaluated left to right and each one can use the
    columns created before it. A keyword set to ``None`` removes that
    column. Results of length 1 are recycled; any other length must match
    the number of rows (per group on grouped tables).

    Args:
        _keep: which existing columns to keep: 'all', 'used', 'unused' or 'none'
        _before, _after: where to put new columns (default: at the end)

    Example:
        >>> mutate(flights, gain=X.arr_delay - X.dep_delay, hours=X.air_time / 60,
        ...        gain_per_hour=X.gain / X.hours)
    """
    if _keep not in _KEEP_OPTIONS:
        raise ValidationError(f"_keep must be one of {', '.join(_KEEP_OPTIONS)}, got {_keep!r}")
    env = Env.coerce(_env)
    named_list = _named_exprs(exprs, named)
    if not named_list:
        return table._derive(table._frame)

    names = table.columns
    results = _compute(table, named_list, env)

    frame = table._frame.copy()
    for name, values in results.items():
        if values is None:
            if name in table.group_vars:
                raise ValidationError(f"Can't remove grouping column '{name}'; ungroup() first")
            if name in frame.columns:
                frame = frame.drop(columns=[name])
        else:
            frame[name] = values

    created = [name for name, values in results.items() if values is not None]
    if _keep != 'all':
        used = _used_columns(named_list, names)
        keep = set(table.group_vars) | set(created)
        if _keep == 'used':
            keep |= used
        elif _keep == 'unused':
            keep |= set(names) - used
        frame = frame[[name for name in frame.columns if name in keep]]

    new_columns = [name for name in created if name not in names]
    if new_columns and (_before is not None or _after is not None):
        current = list(frame.columns)
        moved = [current.index(name) + 1 for name in new_columns]
        order = _relocated_order(current, moved, env, _before, _after, frame)
        frame = frame.iloc[:, [p - 1 for p in order]]

    return table._derive(frame.reset_index(drop=True))


@_verb
def transmute(table: Table, *exprs: Any, _env=None, **named: Any) -> Table:
    """
    Compute new columns and drop everything else except grouping columns.

    Example:
        >>> transmute(flights, gain=X.arr_delay - X.dep_delay)
    """
    env = Env.coerce(_env)
    named_list = _named_exprs(exprs, named)
    results = _compute(table, named_list, env)

    columns: Dict[str, Any] = {}
    for var in table.group_vars:
        columns[var] = table._frame[var]
    for name, values in results.items():
        if values is None:
            columns.pop(name, None)
        else:
            columns[name] = values

    frame = pd.DataFrame(columns, index=pd.RangeIndex(table.nrow))
    return table._derive(frame)


@_verb
def summarise(table: Table, *exprs: Any, _groups: Optional[str] = None, _env=None, **named: Any) -> Table:
    """
    Reduce each group to one row.

    Every expression must produce exactly one value per group; later
    expressions can refer to earlier summaries. The result holds the
    grouping columns followed by the summaries.

    Args:
        _groups: grouping of the result: 'drop_last' (default) peels off the
            last grouping variable, 'drop' ungroups, 'keep' keeps all

    Example:
        >>> flights.group_by(X.year, X.month, X.day).summarise(delay=F.mean(X.dep_delay, na_rm=True))
    """
    if _groups is not None and _groups not in _GROUPS_OPTIONS:
        raise ValidationError(f"_groups must be one of {', '.join(_GROUPS_OPTIONS)}, got {_groups!r}")
    env = Env.coerce(_env)
    named_list = _named_exprs(exprs, named)
    for name, expr in named_list:
        if expr is None:
            raise ValidationError(f"summarise() can't remove columns ('{name}' is None)")
        if name in table.group_vars:
            raise ValidationError(f"Can't summarise grouping column '{name}'")

    grouped = table.is_grouped

    def summarise_group(group: Group) -> Dict[str, Any]:
        mask = _mask(table, group)
        evaluator = MutateEvaluator(mask, env, group.context(grouped))
        row = {}
        for name, expr in named_list:
            value = evaluator.evaluate(expr, as_arg=True)
            if not is_scalar(value):
                if len(value) != 1:
                    raise SummariseLengthMismatchError(name, len(value), group.key if grouped else None)
                value = value.iloc[0] if isinstance(value, pd.Series) else list(value)[0]
            row[name] = value
            mask.add(name, pd.Series([value]))
        return row

    groups = _partition(table)
    rows = apply_groups(summarise_group, groups)

    if grouped:
        frame = table.grouping().group_keys()
    else:
        frame = pd.DataFrame(index=pd.RangeIndex(1))
    for name, _ in named_list:
        frame[name] = pd.Series([row[name] for row in rows], dtype=None if rows else object)

    group_vars = table.group_vars
    mode = _groups or 'drop_last'
    if mode == 'drop_last':
        out_vars = group_vars[:-1]
        if len(group_vars) > 1:
            get_logger().info("summarise() has grouped output by %s", ", ".join(out_vars))
    elif mode == 'drop':
        out_vars = []
    else:
        out_vars = group_vars
    return table._derive(frame.reset_index(drop=True), group_vars=out_vars)


summarize = summarise


# ========== Grouping verbs ==========


@_verb
def group_by(table: Table, *exprs: Any, _add: bool = False, _sort: Optional[bool] = None, _env=None,
             **named: Any) -> Table:
    """
    Group rows by the values of one or more columns.

    Arguments are evaluated in mutating context, so ``group_by(hour=X.dep_time // 100)``
    adds the derived column before grouping. ``_add=True`` adds to the
    existing grouping instead of replacing it.

    Example:
        >>> by_day = group_by(flights, X.year, X.month, X.day)
        >>> by_day.n_groups
    """
    env = Env.coerce(_env)
    names = table.columns

    new_vars: List[str] = []
    derived: Dict[str, Any] = {}
    for expr in exprs:
        expr = Expression.wrap(expr)
        if isinstance(expr, (Symbol, DataRef)) and expr.alias is None:
            name = expr.name if isinstance(expr, Symbol) else expr.ref
            if name not in names:
                raise UnknownColumnError(name, names)
            new_vars.append(name)
        else:
            derived[expr.output_name] = expr
            new_vars.append(expr.output_name)
    for name, expr in named.items():
        if expr is None:
            raise ValidationError(f"group_by() can't remove columns ('{name}' is None)")
        derived[name] = expr
        new_vars.append(name)

    base = table if _add else table._derive(table._frame, group_vars=[])
    if derived:
        base = mutate(base, _env=env, **derived)

    if _add:
        new_vars = table.group_vars + new_vars
    sort = get_sort_groups() if _sort is None else bool(_sort)
    return base._derive(base._frame, group_vars=list(dict.fromkeys(new_vars)), group_sort=sort)


@_verb
def ungroup(table: Table, *cols: Any, _env=None) -> Table:
    """
    Remove grouping, entirely or just for the given columns.

    Example:
        >>> by_day.ungroup()
        >>> by_day.ungroup(X.day)
    """
    if not cols:
        return table._derive(table._frame, group_vars=[])
    positions, _ = eval_select(cols, table.columns, Env.coerce(_env))
    drop = {table.columns[p - 1] for p in positions}
    return table._derive(table._frame, group_vars=[var for var in table.group_vars if var not in drop])


# ========== Extraction and counting ==========


@_verb
def pull(table: Table, var: Any = -1, name: Any = None, _env=None) -> pd.Series:
    """
    Extract one column as a pandas Series.

    ``var`` is a column (bare name or string) or a 1-based position;
    negative positions count from the right, so the default is the last
    column. ``name`` optionally picks a column to use as the index.

    Example:
        >>> pull(flights, X.dep_delay)
        >>> pull(flights, -1)
    """
    env = Env.coerce(_env)

    def position_of(expr: Any) -> int:
        if isinstance(expr, (int, np.integer)) and not isinstance(expr, bool):
            resolver = ColumnResolver(table.columns)
            expr = int(expr)
            return resolver.check_position(expr if expr > 0 else table.ncol + expr + 1)
        positions = SelectEvaluator(table.columns, env, table._frame).evaluate(expr)
        if len(positions) != 1:
            raise ValidationError(f"pull() needs exactly one column, got {len(positions)}")
        return positions[0]

    column = table._frame.iloc[:, position_of(var) - 1].copy()
    if name is not None:
        column.index = pd.Index(table._frame.iloc[:, position_of(name) - 1])
    return column


@_verb
def distinct(table: Table, *exprs: Any, _keep_all: bool = False, _env=None, **named: Any) -> Table:
    """
    Unique rows, by all columns or by the given (possibly computed) ones.

    The first occurrence of each combination is kept. Without ``_keep_all``
    only the grouping columns and the distinct keys are returned.
    """
    env = Env.coerce(_env)
    if not exprs and not named:
        frame = table._frame.drop_duplicates().reset_index(drop=True)
        return table._derive(frame)

    keys: List[str] = []
    derived: Dict[str, Any] = {}
    for expr in exprs:
        expr = Expression.wrap(expr)
        if isinstance(expr, Symbol) and expr.alias is None and expr.name in table.columns:
            keys.append(expr.name)
        else:
            derived[expr.output_name] = expr
            keys.append(expr.output_name)
    derived.update(named)
    keys += list(named)

    base = mutate(table, _env=env, **derived) if derived else table
    subset = list(dict.fromkeys(table.group_vars + keys))
    frame = base._frame.drop_duplicates(subset=subset)
    if not _keep_all:
        frame = frame[subset]
    return table._derive(frame.reset_index(drop=True))


@_verb
def count(table: Table, *exprs: Any, _wt: Any = None, _sort: bool = False, _name: Optional[str] = None,
          _env=None, **named: Any) -> Table:
    """
    Count rows per combination of the given columns (plus existing groups).

    ``_wt`` sums a weight instead of counting rows. The result keeps the
    input's grouping.

    Example:
        >>> count(flights, X.month)
        >>> flights.count(X.carrier, _sort=True)
        >>> flights.count(name=X.carrier, _name='flights')
    """
    env = Env.coerce(_env)
    name = _name or 'n'
    grouped = group_by(table, *exprs, _add=True, _env=env, **named)
    if name in grouped.group_vars:
        raise ValidationError(f"Column '{name}' already exists; pass _name= to count()")

    tally = Call('n') if _wt is None else Call('sum', _wt, na_rm=True)
    if grouped.is_grouped:
        result = summarise(grouped, _groups='drop', _env=env, **{name: tally})
    else:
        result = summarise(grouped, _env=env, **{name: tally})
    if _sort:
        result = arrange(result, Desc(Symbol(name)))
    return result._derive(result._frame, group_vars=table.group_vars, group_sort=table._group_sort)


def _inject_table_methods():
    """Expose every verb as a Table method."""
    verbs = [
        filter, arrange, slice, slice_head, slice_tail, slice_sample, slice_min, slice_max,
        select, rename, rename_with, relocate, mutate, transmute, summarise,
        group_by, ungroup, pull, distinct, count,
    ]
    for verb in verbs:
        setattr(Table, verb.__name__, verb)
    Table.summarize = summarise


_inject_table_methods()
