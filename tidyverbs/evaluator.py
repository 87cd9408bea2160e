"""
Expression evaluators for tidyverbs.

One expression tree, three walkers:

- ``EnvEvaluator``: evaluates in the enclosing environment only. Columns are
  not visible. Used for non-whitelisted calls in selecting contexts and for
  selection-helper arguments.
- ``SelectEvaluator``: selecting context. Bare names are column positions.
- ``MutateEvaluator``: mutating context. Bare names are column vectors from
  a ``DataMask``; everything is recycled to the slice size.

Which walker runs is decided by the calling verb, never by ambient state.

Example:
    >>> positions = evaluate_selecting(span(X.year, X.day), ['year', 'month', 'day'], Env())
    >>> positions
    [1, 2, 3]
    >>> evaluate_mutating(X.month * 2, frame, Env(), len(frame))
"""

import builtins
import operator
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .expressions import (
    Expression,
    Symbol,
    Literal,
    ArithmeticExpression,
    UnaryExpression,
    Call,
    Span,
    Concat,
    DataRef,
    EnvRef,
    Desc,
)
from .conditions import (
    BinaryCondition,
    CompoundCondition,
    NotCondition,
    UnaryCondition,
    InCondition,
    BetweenCondition,
)
from .selectors import SelectionHelper
from .resolver import ColumnResolver
from .environment import Env
from .function_registry import FunctionRegistry, EvalContext
from . import functions as _builtin_functions  # noqa: F401
from .exceptions import (
    UnknownColumnError,
    RecycleLengthMismatchError,
    TypeMismatchError,
    ValidationError,
    AmbiguousBindingError,
)
from .utils import is_scalar, value_length
from .config import get_logger

__all__ = [
    'DataMask',
    'EnvEvaluator',
    'SelectEvaluator',
    'MutateEvaluator',
    'evaluate_selecting',
    'evaluate_mutating',
    'eval_select',
    'eval_mutate',
    'recycle',
]

_BINARY_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    '+': operator.add,
    '-': operator.sub,
    '*': operator.mul,
    '/': operator.truediv,
    '//': operator.floordiv,
    '%': operator.mod,
    '**': operator.pow,
    '==': operator.eq,
    '!=': operator.ne,
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
    '&': operator.and_,
    '|': operator.or_,
    '^': operator.xor,
}

_MISSING = object()


def _apply_operator(op: str, left: Any, right: Any) -> Any:
    try:
        return _BINARY_OPS[op](left, right)
    except TypeError as e:
        raise TypeMismatchError(op, str(e)) from e


def recycle(value: Any, size: int, name: str) -> pd.Series:
    """
    Recycle a value to a Series of ``size`` rows with a fresh RangeIndex.

    Length-1 values are repeated; values of length ``size`` are re-indexed;
    anything else raises RecycleLengthMismatchError.
    """
    if is_scalar(value):
        return pd.Series([value]).iloc[[0] * size].reset_index(drop=True)

    series = value if isinstance(value, pd.Series) else pd.Series(value)
    length = len(series)
    if length == size:
        return series.reset_index(drop=True)
    if length == 1:
        return series.iloc[[0] * size].reset_index(drop=True)
    raise RecycleLengthMismatchError(name, length, size)


class DataMask:
    """
    Column vectors visible to a mutating evaluation.

    Wraps a frame and an optional row subset (a group slice). Columns are
    sliced lazily and cached; columns computed during the current verb call
    are layered on top so later arguments can see them.
    """

    def __init__(self, frame: pd.DataFrame, rows: Optional[np.ndarray] = None):
        self._frame = frame
        self._rows = rows
        self._cache: Dict[str, pd.Series] = {}
        self._added: Dict[str, pd.Series] = {}
        self._removed = set()

    @property
    def size(self) -> int:
        return len(self._frame) if self._rows is None else len(self._rows)

    def names(self) -> List[str]:
        base = [name for name in self._frame.columns if name not in self._removed]
        return base + [name for name in self._added if name not in self._frame.columns]

    def __contains__(self, name: object) -> bool:
        if name in self._added:
            return True
        return name in self._frame.columns and name not in self._removed

    def get(self, name: str) -> pd.Series:
        if name in self._added:
            return self._added[name]
        if name in self._removed or name not in self._frame.columns:
            raise UnknownColumnError(name, self.names())
        if name not in self._cache:
            column = self._frame[name]
            if self._rows is not None:
                column = column.iloc[self._rows]
            self._cache[name] = column.reset_index(drop=True)
        return self._cache[name]

    def add(self, name: str, values: pd.Series) -> None:
        self._removed.discard(name)
        self._added[name] = values

    def remove(self, name: str) -> None:
        self._added.pop(name, None)
        if name in self._frame.columns:
            self._removed.add(name)

    def frame(self) -> pd.DataFrame:
        """The visible columns as a DataFrame (RangeIndex)."""
        return pd.DataFrame({name: self.get(name) for name in self.names()}, index=pd.RangeIndex(self.size))


class EnvEvaluator:
    """
    Evaluates expressions against the enclosing environment only.

    Bare names are environment lookups; the table's columns are not injected.
    """

    def __init__(self, env: Env):
        self.env = env

    def evaluate(self, expr: Any) -> Any:
        if not isinstance(expr, Expression):
            return expr

        if isinstance(expr, Literal):
            return expr.value

        if isinstance(expr, (Symbol, EnvRef)):
            name = expr.name if isinstance(expr, Symbol) else expr.ref
            value = self.env.lookup(name, _MISSING)
            if value is _MISSING:
                raise UnknownColumnError(name)
            return value

        if isinstance(expr, DataRef):
            raise ValidationError(f"data.{expr.ref} can't be used outside a data mask")

        if isinstance(expr, Call):
            func = resolve_function(expr, self.env)
            if getattr(func, '_context_spec', False):
                raise ValidationError(f"{expr.func_name}() must be used inside a data verb")
            args = [self.evaluate(arg) for arg in expr.args]
            kwargs = {key: self.evaluate(value) for key, value in expr.kwargs.items()}
            return _invoke(expr.func_name, func, args, kwargs)

        if isinstance(expr, (ArithmeticExpression, BinaryCondition, CompoundCondition)):
            return _apply_operator(expr.operator, self.evaluate(expr.left), self.evaluate(expr.right))

        if isinstance(expr, UnaryExpression):
            return _negate(self.evaluate(expr.operand))

        if isinstance(expr, NotCondition):
            return not self.evaluate(expr.condition)

        if isinstance(expr, Concat):
            out = []
            for item in expr.items:
                value = self.evaluate(item)
                out.extend([value] if is_scalar(value) else list(value))
            return out

        if isinstance(expr, Span):
            start, end = self.evaluate(expr.start), self.evaluate(expr.end)
            step = 1 if end >= start else -1
            return list(range(int(start), int(end) + step, step))

        raise ValidationError(f"Can't evaluate {expr.deparse()} in the enclosing environment")


def _negate(value: Any) -> Any:
    try:
        return -value
    except TypeError as e:
        raise TypeMismatchError('-', str(e)) from e


def resolve_function(expr: Call, env: Env) -> Callable:
    """
    Find the callable behind a Call node.

    Callables are used as-is; names are looked up in the environment first,
    then in the function registry. Registry context functions come back
    wrapped and flagged with ``_context_spec``.
    """
    if callable(expr.func):
        return expr.func

    spec = FunctionRegistry.get(expr.func)
    bound = env.lookup(expr.func, _MISSING)
    # a captured frame chains in builtins; those never shadow registered functions
    if spec is not None and bound is getattr(builtins, expr.func, _MISSING):
        bound = _MISSING
    if bound is not _MISSING:
        if not callable(bound):
            raise AmbiguousBindingError(expr.func, f"bound to a {type(bound).__name__}, which is not callable")
        return bound

    if spec is None:
        raise ValidationError(f"Could not find function '{expr.func}'")
    if spec.needs_context:
        impl = spec.impl

        def contextual(context, *args, **kwargs):
            return impl(context, *args, **kwargs)

        contextual._context_spec = True
        return contextual
    return spec.impl


def _invoke(name: str, func: Callable, args: List[Any], kwargs: Dict[str, Any]) -> Any:
    try:
        return func(*args, **kwargs)
    except TypeError as e:
        raise TypeMismatchError(f"{name}()", str(e)) from e


class SelectEvaluator:
    """
    Selecting-context walker: expressions to 1-based column positions.

    Bare names that match a column win over environment bindings. Whitelisted
    combinators (span, c(), -, ~, &, |) and selection helpers are interpreted
    over positions; every other call is evaluated in the environment only and
    must yield names or positions.
    """

    def __init__(self, names: Sequence[str], env: Env, data: Optional[pd.DataFrame] = None):
        self.names = list(names)
        self.resolver = ColumnResolver(self.names)
        self.env = env
        self.env_evaluator = EnvEvaluator(env)
        self.data = data

    def evaluate(self, expr: Any) -> List[int]:
        """Ordered, duplicate-free list of positive positions."""
        expr = Expression.wrap(expr)

        if isinstance(expr, Symbol):
            if self.resolver.has(expr.name):
                return [self.resolver.position(expr.name)]
            value = self.env.lookup(expr.name, _MISSING)
            if value is _MISSING:
                raise UnknownColumnError(expr.name, self.names)
            return self._from_value(value, expr.name)

        if isinstance(expr, DataRef):
            return [self.resolver.position(expr.ref)]

        if isinstance(expr, EnvRef):
            return self._from_value(self.env_evaluator.evaluate(expr), expr.ref)

        if isinstance(expr, Literal):
            return self._from_value(expr.value, expr.deparse())

        if isinstance(expr, SelectionHelper):
            args = [self.env_evaluator.evaluate(arg) for arg in expr.args]
            return expr.select(self.names, args, self.data)

        if isinstance(expr, Span):
            start, end = self._endpoint(expr.start), self._endpoint(expr.end)
            step = 1 if end >= start else -1
            return list(range(start, end + step, step))

        if isinstance(expr, Concat):
            excluded = [_is_exclusion(item) for item in expr.items]
            if any(excluded) and not all(excluded):
                raise ValidationError(f"Can't mix selections and exclusions in {expr.deparse()}")
            if any(excluded):
                return self.complement(self.evaluate(_exclusion_target(expr)))
            return _ordered_union(*(self.evaluate(item) for item in expr.items))

        if isinstance(expr, UnaryExpression):
            return self.complement(self.evaluate(expr.operand))

        if isinstance(expr, NotCondition):
            return self.complement(self.evaluate(expr.condition))

        if isinstance(expr, CompoundCondition):
            left, right = self.evaluate(expr.left), self.evaluate(expr.right)
            if expr.operator == '&':
                keep = set(right)
                return [p for p in left if p in keep]
            if expr.operator == '|':
                return _ordered_union(left, right)
            both = set(left) & set(right)
            return [p for p in _ordered_union(left, right) if p not in both]

        # Any other call form runs in the enclosing environment only
        value = self.env_evaluator.evaluate(expr)
        return self._from_value(value, expr.deparse())

    def complement(self, positions: Iterable[int]) -> List[int]:
        drop = set(positions)
        return [p for p in range(1, len(self.names) + 1) if p not in drop]

    def _endpoint(self, expr: Expression) -> int:
        positions = self.evaluate(expr)
        if len(positions) != 1:
            raise ValidationError(f"Range endpoint {expr.deparse()} must select exactly one column")
        return positions[0]

    def _from_value(self, value: Any, label: str) -> List[int]:
        if isinstance(value, Expression):
            return self.evaluate(value)
        if isinstance(value, (float, np.floating)) and float(value).is_integer():
            value = int(value)
        try:
            resolved = self.resolver.resolve(value)
        except AmbiguousBindingError as e:
            raise AmbiguousBindingError(label, e.reason) from None
        negative = [p for p in resolved if p < 0]
        if negative and len(negative) != len(resolved):
            raise ValidationError(f"Can't mix positive and negative positions in {label}")
        if negative:
            return self.complement(-p for p in negative)
        return _ordered_union(resolved)


def _ordered_union(*groups: Iterable[int]) -> List[int]:
    seen = set()
    out = []
    for group in groups:
        for p in group:
            if p not in seen:
                seen.add(p)
                out.append(p)
    return out


def _is_exclusion(expr: Expression) -> bool:
    if isinstance(expr, (UnaryExpression, NotCondition)):
        return True
    if isinstance(expr, Literal) and isinstance(expr.value, (int, np.integer)) and not isinstance(expr.value, bool):
        return expr.value < 0
    if isinstance(expr, Concat):
        return bool(expr.items) and all(_is_exclusion(item) for item in expr.items)
    return False


def _exclusion_target(expr: Expression) -> Expression:
    if isinstance(expr, UnaryExpression):
        return expr.operand
    if isinstance(expr, NotCondition):
        return expr.condition
    if isinstance(expr, Concat):
        return Concat(*[_exclusion_target(item) for item in expr.items])
    return Literal(-expr.value)


def eval_select(
    exprs: Sequence[Any],
    names: Sequence[str],
    env: Env,
    renames: Optional[Dict[str, Any]] = None,
    data: Optional[pd.DataFrame] = None,
) -> Tuple[List[int], List[str]]:
    """
    Evaluate a sequence of selection expressions.

    A leading exclusion starts from every column; later exclusions remove
    columns; other expressions append positions. A position selected twice
    keeps its first place and takes the last alias given.

    Args:
        exprs: selection expressions, in order
        names: the table's column names
        env: enclosing environment
        renames: ``{new_name: expr}`` evaluated after ``exprs``
        data: the table's frame (needed by where())

    Returns:
        (positions, output_names), both in output order
    """
    evaluator = SelectEvaluator(names, env, data)
    items = [Expression.wrap(e) for e in exprs]
    items += [Expression.wrap(e).as_(new_name) for new_name, e in (renames or {}).items()]

    selected: Dict[int, str] = {}
    for i, expr in enumerate(items):
        if _is_exclusion(expr):
            if i == 0:
                selected = {p: names[p - 1] for p in range(1, len(names) + 1)}
            for p in evaluator.evaluate(_exclusion_target(expr)):
                selected.pop(p, None)
            continue

        positions = evaluator.evaluate(expr)
        for k, p in enumerate(positions, start=1):
            if expr.alias is None:
                selected.setdefault(p, names[p - 1])
            elif len(positions) == 1:
                selected[p] = expr.alias
            else:
                selected[p] = f"{expr.alias}{k}"

    out_names = list(selected.values())
    seen = set()
    for name in out_names:
        if name in seen:
            raise AmbiguousBindingError(name, "more than one selected column would get this name")
        seen.add(name)
    return list(selected.keys()), out_names


def evaluate_selecting(expr: Any, names: Sequence[str], env: Optional[Env] = None,
                       data: Optional[pd.DataFrame] = None) -> List[int]:
    """Evaluate one expression in selecting context to a list of 1-based positions."""
    return SelectEvaluator(names, Env.coerce(env), data).evaluate(expr)


class MutateEvaluator:
    """
    Mutating-context walker: expressions to vectors of the slice size.

    Bare names resolve to columns of the data mask first, then to
    environment bindings. Environment values must have length 1 or the
    slice size, wherever they appear. ``check_env=False`` lifts that for
    evaluators whose results are row positions rather than row vectors.
    """

    def __init__(self, mask: DataMask, env: Env, context: Optional[EvalContext] = None,
                 check_env: bool = True):
        self.mask = mask
        self.env = env
        self.size = mask.size
        self.context = context or EvalContext(size=mask.size)
        self.check_env = check_env
        self._logger = get_logger()

    def evaluate_vector(self, expr: Any, name: Optional[str] = None) -> pd.Series:
        """Evaluate and recycle to the slice size."""
        expr = Expression.wrap(expr)
        value = self.evaluate(expr, as_arg=True)
        return recycle(value, self.size, name or expr.output_name)

    def evaluate(self, expr: Any, as_arg: bool = False) -> Any:
        """
        Evaluate without final recycling.

        Returns a Series with a RangeIndex of the slice size, or a scalar.
        With ``as_arg`` (direct function arguments) literals and call results
        are passed through unchecked and the function decides what lengths
        it accepts.
        """
        if not isinstance(expr, Expression):
            return expr

        if isinstance(expr, Literal):
            return expr.value if as_arg else self._operand(expr.value, expr.deparse())

        if isinstance(expr, Symbol):
            if expr.name in self.mask:
                return self._column(expr.name)
            return self._lookup(expr.name, as_arg, self.mask.names())

        if isinstance(expr, DataRef):
            return self._column(expr.ref)

        if isinstance(expr, EnvRef):
            return self._lookup(expr.ref, as_arg)

        if isinstance(expr, ArithmeticExpression):
            left = self.evaluate(expr.left)
            right = self.evaluate(expr.right)
            return _apply_operator(expr.operator, left, right)

        if isinstance(expr, UnaryExpression):
            return _negate(self.evaluate(expr.operand))

        if isinstance(expr, BinaryCondition):
            left = self.evaluate(expr.left)
            right = self.evaluate(expr.right)
            return _apply_operator(expr.operator, left, right)

        if isinstance(expr, CompoundCondition):
            left = _as_logical(self.evaluate(expr.left), expr.operator)
            right = _as_logical(self.evaluate(expr.right), expr.operator)
            return _apply_operator(expr.operator, left, right)

        if isinstance(expr, NotCondition):
            value = _as_logical(self.evaluate(expr.condition), '~')
            return (not value) if is_scalar(value) else ~value

        if isinstance(expr, UnaryCondition):
            value = self.evaluate(expr.expr)
            if is_scalar(value):
                missing = bool(pd.isna(value))
                return missing if expr.operator == 'isna' else not missing
            return value.isna() if expr.operator == 'isna' else value.notna()

        if isinstance(expr, InCondition):
            value = self.evaluate(expr.expr)
            values = self.evaluate(expr.values, as_arg=True)
            values = [values] if is_scalar(values) else list(values)
            if is_scalar(value):
                result = value in values
            else:
                result = value.isin(values)
            return (not result if is_scalar(result) else ~result) if expr.negate else result

        if isinstance(expr, BetweenCondition):
            value = self.evaluate(expr.expr)
            lower = self.evaluate(expr.lower)
            upper = self.evaluate(expr.upper)
            return _apply_operator('&', _apply_operator('>=', value, lower), _apply_operator('<=', value, upper))

        if isinstance(expr, Call):
            return self._call(expr, check=not as_arg)

        if isinstance(expr, Span):
            start, end = self.evaluate(expr.start), self.evaluate(expr.end)
            if not (is_scalar(start) and is_scalar(end)):
                raise ValidationError(f"Range endpoints in {expr.deparse()} must be single values")
            step = 1 if end >= start else -1
            return pd.Series(np.arange(int(start), int(end) + step, step))

        if isinstance(expr, Concat):
            parts = []
            for item in expr.items:
                value = self.evaluate(item, as_arg=True)
                parts.append(pd.Series([value]) if is_scalar(value) else pd.Series(value).reset_index(drop=True))
            return pd.concat(parts, ignore_index=True) if parts else pd.Series([], dtype=object)

        if isinstance(expr, Desc):
            value = self.evaluate(expr.operand)
            if is_scalar(value):
                return _negate(value)
            if pd.api.types.is_numeric_dtype(value) and not pd.api.types.is_bool_dtype(value):
                return -value
            return -value.rank(method='dense')

        if isinstance(expr, SelectionHelper):
            raise ValidationError(f"{expr.deparse()} must be used within a selecting verb")

        raise ValidationError(f"Don't know how to evaluate {type(expr).__name__}")

    def _lookup(self, name: str, as_arg: bool, available: Optional[List[str]] = None) -> Any:
        value = self.env.lookup(name, _MISSING)
        if value is _MISSING:
            raise UnknownColumnError(name, available)
        if as_arg and not self.check_env:
            return value
        return self._operand(value, name)

    def _column(self, name: str) -> Any:
        column = self.mask.get(name)
        # summaries added by summarise() are length 1 within a larger group
        if len(column) != self.size:
            return self._operand(column, name)
        return column

    def _operand(self, value: Any, name: str) -> Any:
        """Normalize a value to a scalar or a slice-sized Series."""
        if is_scalar(value):
            return value
        length = value_length(value)
        if length == 1:
            return value.iloc[0] if isinstance(value, pd.Series) else list(value)[0]
        if length == self.size:
            return value.reset_index(drop=True) if isinstance(value, pd.Series) else pd.Series(value)
        raise RecycleLengthMismatchError(name, length, self.size)

    def _call(self, expr: Call, check: bool = True) -> Any:
        func = resolve_function(expr, self.env)
        args = [self.evaluate(arg, as_arg=True) for arg in expr.args]
        kwargs = {key: self.evaluate(value, as_arg=True) for key, value in expr.kwargs.items()}
        if getattr(func, '_context_spec', False):
            args = [self.context] + args

        result = _invoke(expr.func_name, func, args, kwargs)
        if isinstance(result, (np.ndarray, list, tuple, pd.Index, pd.Categorical)):
            result = pd.Series(result)
        if not check:
            return result
        return self._operand(result, expr.deparse())


def _as_logical(value: Any, op: str) -> Any:
    if is_scalar(value):
        if value is None or value is pd.NA or isinstance(value, (bool, np.bool_)):
            return value
        if isinstance(value, float) and np.isnan(value):
            return pd.NA
        raise TypeMismatchError(op, f"expected a logical value, got {type(value).__name__}")
    if pd.api.types.is_bool_dtype(value):
        return value.astype('boolean')
    if value.dtype == object:
        try:
            return value.astype('boolean')
        except (TypeError, ValueError) as e:
            raise TypeMismatchError(op, f"expected logical values: {e}") from e
    raise TypeMismatchError(op, f"expected logical values, got dtype {value.dtype}")


def evaluate_mutating(expr: Any, data: Union[pd.DataFrame, DataMask], env: Optional[Env] = None,
                      size: Optional[int] = None, context: Optional[EvalContext] = None) -> pd.Series:
    """
    Evaluate one expression in mutating context to a vector of ``size`` rows.

    Args:
        expr: expression to evaluate
        data: a DataFrame or a DataMask supplying the columns
        env: enclosing environment
        size: expected row count (defaults to the data's row count)
        context: evaluation context for context functions such as n()
    """
    mask = data if isinstance(data, DataMask) else DataMask(data)
    if size is not None and size != mask.size:
        raise ValidationError(f"Row count {size} doesn't match the data ({mask.size} rows)")
    return MutateEvaluator(mask, Env.coerce(env), context).evaluate_vector(expr)


def eval_mutate(
    named_exprs: Sequence[Tuple[str, Any]],
    data: Union[pd.DataFrame, DataMask],
    env: Optional[Env] = None,
    context: Optional[EvalContext] = None,
) -> Dict[str, Optional[pd.Series]]:
    """
    Evaluate named expressions left to right, each one visible to the next.

    A ``None`` expression removes the column from the mask and is reported
    as ``None`` in the result.

    Returns:
        ordered ``{name: Series or None}``
    """
    mask = data if isinstance(data, DataMask) else DataMask(data)
    evaluator = MutateEvaluator(mask, Env.coerce(env), context)
    results: Dict[str, Optional[pd.Series]] = {}
    for name, expr in named_exprs:
        if expr is None:
            mask.remove(name)
            results[name] = None
            continue
        vector = evaluator.evaluate_vector(expr, name)
        mask.add(name, vector)
        results[name] = vector
    return results
