"""
tidyverbs - A dplyr-style Verb Grammar for pandas
=================================================

tidyverbs evaluates the dplyr verbs (filter, arrange, slice, select, rename,
relocate, mutate, transmute, summarise, group_by) over in-memory tables,
with unevaluated expressions captured through a symbol factory.

Key Features:
- Two evaluation semantics: selecting (names are column positions) and
  mutating (names are column vectors)
- Grouped evaluation: verbs run per group and reassemble the results
- Explicit enclosing environment instead of implicit frame inspection
- Immutable tables: every verb returns a new Table

Example:
    >>> import pandas as pd
    >>> from tidyverbs import Table, X, F, n, desc, span, starts_with
    >>>
    >>> flights = Table(pd.read_csv("flights.csv"))
    >>>
    >>> # Rows
    >>> flights.filter(X.month == 1, X.day == 1).arrange(desc(X.dep_delay))
    >>>
    >>> # Columns
    >>> flights.select(span(X.year, X.day), starts_with("dep"))
    >>> flights.rename(tail_num=X.tailnum)
    >>>
    >>> # New columns, left to right
    >>> flights.mutate(gain=X.arr_delay - X.dep_delay, speed=X.distance / X.air_time * 60)
    >>>
    >>> # Per-group summaries
    >>> (flights
    ...     .group_by(X.month)
    ...     .summarise(n=n(), delay=F.mean(X.dep_delay, na_rm=True)))
    >>>
    >>> # Outer variables are passed explicitly
    >>> threshold = 30
    >>> flights.filter(X.dep_delay > X.threshold, _env={'threshold': threshold})

Core Classes:
- Table: immutable table with fluent verb methods
- Expression: base class of captured expressions (X.name builds a Symbol)
- Env: enclosing environment for names that are not columns
- Pipeline: reusable sequence of verbs
"""

from .table import Table
from .expressions import (
    Expression,
    Symbol,
    Literal,
    Call,
    X,
    data,
    env,
    sym,
    lit,
    call,
    c,
    span,
    desc,
)
from .conditions import Condition
from .environment import Env, EMPTY_ENV
from .functions import F, n
from .function_registry import FunctionRegistry, FunctionType, EvalContext, register_function
from .selectors import (
    starts_with,
    ends_with,
    contains,
    matches,
    num_range,
    everything,
    last_col,
    all_of,
    any_of,
    where,
)
from .evaluator import evaluate_selecting, evaluate_mutating, eval_select, eval_mutate
from .grouping import GroupingMetadata
from .verbs import (
    filter,
    arrange,
    slice,
    slice_head,
    slice_tail,
    slice_sample,
    slice_min,
    slice_max,
    select,
    rename,
    rename_with,
    relocate,
    mutate,
    transmute,
    summarise,
    summarize,
    group_by,
    ungroup,
    pull,
    distinct,
    count,
)
from .pipeline import pipe, Pipeline, pipeline
from .exceptions import (
    TidyVerbsError,
    ValidationError,
    UnknownColumnError,
    OutOfRangeError,
    RecycleLengthMismatchError,
    SummariseLengthMismatchError,
    AmbiguousBindingError,
    TypeMismatchError,
)
from .config import (
    config,
    get_logger,
    set_log_level,
    enable_debug,
    disable_debug,
    set_max_workers,
    set_random_state,
    set_sort_groups,
    enable_profiling,
    disable_profiling,
    get_profiler,
)

__version__ = "0.1.0"
__author__ = "tidyverbs Contributors"

__all__ = [
    # Core
    'Table',
    'Env',
    'EMPTY_ENV',
    # Expressions
    'Expression',
    'Symbol',
    'Literal',
    'Call',
    'Condition',
    'X',
    'data',
    'env',
    'sym',
    'lit',
    'call',
    'c',
    'span',
    'desc',
    # Functions
    'F',
    'n',
    'FunctionRegistry',
    'FunctionType',
    'EvalContext',
    'register_function',
    # Selection helpers
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
    # Evaluation
    'evaluate_selecting',
    'evaluate_mutating',
    'eval_select',
    'eval_mutate',
    'GroupingMetadata',
    # Verbs
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
    # Pipelines
    'pipe',
    'Pipeline',
    'pipeline',
    # Exceptions
    'TidyVerbsError',
    'ValidationError',
    'UnknownColumnError',
    'OutOfRangeError',
    'RecycleLengthMismatchError',
    'SummariseLengthMismatchError',
    'AmbiguousBindingError',
    'TypeMismatchError',
    # Configuration
    'config',
    'get_logger',
    'set_log_level',
    'enable_debug',
    'disable_debug',
    'set_max_workers',
    'set_random_state',
    'set_sort_groups',
    'enable_profiling',
    'disable_profiling',
    'get_profiler',
]
