"""
Function system for tidyverbs: registered implementations and the F namespace.

Registered functions are thin delegations to pandas/numpy; the engine only
cares that each returns a vector of the slice size or a single value.

Example:
    >>> from tidyverbs import F, X, n
    >>> t.group_by(X.month).summarise(count=n(), delay=F.mean(X.dep_delay, na_rm=True))
    >>> t.mutate(hour_bin=F.cut(X.dep_time, [0, 600, 1200, 1800, 2400]))
"""

from typing import Any

import numpy as np
import pandas as pd

from .expressions import Call, Expression
from .function_registry import (
    FunctionRegistry,
    FunctionType,
    FunctionCategory,
    EvalContext,
    register_function,
)
from .utils import is_scalar

__all__ = ['F', 'n']


def _series(value: Any) -> pd.Series:
    if isinstance(value, pd.Series):
        return value
    if is_scalar(value):
        return pd.Series([value])
    return pd.Series(list(value) if not isinstance(value, np.ndarray) else value)


def _reduce(value: Any, na_rm: bool, reducer, empty=np.nan):
    s = _series(value)
    if not na_rm and s.isna().any():
        return np.nan
    s = s.dropna()
    if len(s) == 0:
        return empty
    return reducer(s)


# ========== Context functions ==========


@register_function('n', func_type=FunctionType.CONTEXT, category=FunctionCategory.CONTEXT)
def _n(context: EvalContext) -> int:
    """Number of rows in the current group (or table)."""
    return context.size


@register_function('cur_group_id', func_type=FunctionType.CONTEXT, category=FunctionCategory.CONTEXT)
def _cur_group_id(context: EvalContext) -> int:
    """1-based id of the current group (1 when ungrouped)."""
    return context.group_id or 1


# ========== Aggregates (delegated to pandas) ==========


@register_function('mean', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _mean(x, na_rm: bool = False):
    """Arithmetic mean; NaN if any value is missing unless na_rm."""
    return _reduce(x, na_rm, lambda s: s.mean())


@register_function('median', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _median(x, na_rm: bool = False):
    return _reduce(x, na_rm, lambda s: s.median())


@register_function('sum', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _sum(x, na_rm: bool = False):
    return _reduce(x, na_rm, lambda s: s.sum(), empty=0)


@register_function('min', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _min(x, na_rm: bool = False):
    return _reduce(x, na_rm, lambda s: s.min())


@register_function('max', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _max(x, na_rm: bool = False):
    return _reduce(x, na_rm, lambda s: s.max())


@register_function('sd', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE, aliases=['std'])
def _sd(x, na_rm: bool = False):
    """Sample standard deviation (ddof=1)."""
    return _reduce(x, na_rm, lambda s: s.std(ddof=1))


@register_function('var', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _var(x, na_rm: bool = False):
    return _reduce(x, na_rm, lambda s: s.var(ddof=1))


@register_function('first', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _first(x, default=np.nan):
    s = _series(x)
    return s.iloc[0] if len(s) else default


@register_function('last', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _last(x, default=np.nan):
    s = _series(x)
    return s.iloc[-1] if len(s) else default


@register_function('n_distinct', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _n_distinct(*xs, na_rm: bool = False) -> int:
    """Number of distinct value combinations across the given vectors."""
    frame = pd.DataFrame({i: _series(x).reset_index(drop=True) for i, x in enumerate(xs)})
    if na_rm:
        frame = frame.dropna()
    return int(len(frame.drop_duplicates()))


@register_function('any', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _any(x, na_rm: bool = False):
    s = _series(x)
    if na_rm:
        s = s.dropna()
    return bool(s.fillna(False).astype(bool).any())


@register_function('all', func_type=FunctionType.AGGREGATE, category=FunctionCategory.AGGREGATE)
def _all(x, na_rm: bool = False):
    s = _series(x)
    if na_rm:
        s = s.dropna()
    return bool(s.fillna(False).astype(bool).all())


# ========== Scalar functions ==========


@register_function('if_else', category=FunctionCategory.CONDITIONAL)
def _if_else(condition, true, false, missing=None):
    """Vectorised conditional; rows where the condition is missing get ``missing``."""
    cond = _series(condition)
    size = len(cond)

    def values(v):
        return np.asarray(v.to_numpy() if isinstance(v, pd.Series) else v, dtype=object)

    picked = np.where(cond.fillna(False).astype(bool).to_numpy(), values(true), values(false))
    result = pd.Series(picked, index=range(size)).infer_objects()
    if cond.isna().any():
        result = result.astype(object)
        result[cond.isna().to_numpy()] = missing if missing is not None else np.nan
        result = result.infer_objects()
    return result


@register_function('coalesce', category=FunctionCategory.CONDITIONAL)
def _coalesce(*xs):
    """First non-missing value, element-wise."""
    result = None
    for x in xs:
        value = x if is_scalar(x) else _series(x).reset_index(drop=True)
        if result is None:
            result = value
        elif is_scalar(result):
            if pd.isna(result):
                result = value
        else:
            result = result.fillna(value)
    return result


@register_function('cut', category=FunctionCategory.MATH, aliases=['bin'])
def _cut(x, breaks, labels=None, right: bool = True, include_lowest: bool = True):
    """Bin a numeric vector into a categorical (delegates to pandas.cut)."""
    return pd.cut(_series(x), bins=breaks, labels=labels, right=right, include_lowest=include_lowest)


@register_function('round', category=FunctionCategory.MATH)
def _round(x, digits: int = 0):
    return _series(x).round(digits) if not is_scalar(x) else round(x, digits)


@register_function('abs', category=FunctionCategory.MATH)
def _abs(x):
    return np.abs(x)


@register_function('sqrt', category=FunctionCategory.MATH)
def _sqrt(x):
    return np.sqrt(x)


@register_function('log', category=FunctionCategory.MATH)
def _log(x):
    return np.log(x)


@register_function('exp', category=FunctionCategory.MATH)
def _exp(x):
    return np.exp(x)


@register_function('is_na', category=FunctionCategory.CONDITIONAL)
def _is_na(x):
    return _series(x).isna() if not is_scalar(x) else bool(pd.isna(x))


@register_function('as_integer', category=FunctionCategory.TYPE_CONVERSION)
def _as_integer(x):
    """Cast to nullable integers, truncating toward zero."""
    s = pd.to_numeric(_series(x))
    return np.trunc(s).astype('Int64')


@register_function('as_numeric', category=FunctionCategory.TYPE_CONVERSION, aliases=['as_float'])
def _as_numeric(x):
    return pd.to_numeric(_series(x)).astype(float)


@register_function('as_character', category=FunctionCategory.TYPE_CONVERSION, aliases=['as_str'])
def _as_character(x):
    s = _series(x)
    return s.where(s.isna(), s.astype(str))


# ========== Function Namespace F ==========


class F:
    """
    Namespace building Call nodes for registered functions.

    Example:
        >>> from tidyverbs import F
        >>> F.mean(X.arr_delay, na_rm=True)      # Call('mean', ...)
        >>> F.if_else(X.dep_delay > 0, "late", "on time")
        >>> F.n()
    """

    @staticmethod
    def call(name: str, *args: Any, **kwargs: Any) -> Call:
        """Call any registered (or environment-bound) function by name."""
        return Call(name, *args, **kwargs)


def _inject_f_class_methods():
    """Inject static methods from registry into F class."""
    for spec in FunctionRegistry.all_specs():
        for name in sorted(spec.all_names):
            if hasattr(F, name):
                continue

            def make_static_method(func_name, doc):
                def static_method(*args, **kwargs):
                    return Call(func_name, *args, **kwargs)

                static_method.__name__ = func_name
                static_method.__doc__ = doc
                return staticmethod(static_method)

            setattr(F, name, make_static_method(name, spec.doc))


_inject_f_class_methods()


def n() -> Expression:
    """The number of rows in the current group, same as F.n()."""
    return Call('n')
