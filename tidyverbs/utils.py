"""
Utility functions and decorators for tidyverbs
"""

import keyword
from typing import TypeVar, Callable, Any
from copy import copy

import numpy as np
import pandas as pd

__all__ = [
    'immutable',
    'ignore_copy',
    'format_identifier',
    'is_scalar',
    'value_length',
]

T = TypeVar('T')


def immutable(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that makes builder methods immutable.

    Each decorated method will:
    1. Create a shallow copy of self
    2. Execute the method on the copy
    3. Return the copy

    This ensures that the original object remains unchanged,
    enabling safe method chaining and thread-safe operations.

    Example:
        >>> e1 = X.dep_delay - X.arr_delay
        >>> e2 = e1.as_("gain")
        >>> e1.alias is None
        True
        >>> e2.alias
        'gain'
    """

    def wrapper(self, *args, **kwargs):
        self_copy = copy(self)
        result = func(self_copy, *args, **kwargs)
        return self_copy if result is None else result

    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


def ignore_copy(func: Callable) -> Callable:
    """
    Decorator for __getattr__ to prevent infinite recursion during copy operations.

    When using copy() or deepcopy() on objects with __getattr__, Python looks for
    special methods like __copy__, __deepcopy__, __getstate__, etc. If __getattr__
    tries to handle these, it can cause infinite recursion or silently return
    a bogus value. This decorator makes __getattr__ raise AttributeError for
    these special methods and for any other dunder name.
    """

    def wrapper(self, name):
        if name.startswith('__') and name.endswith('__'):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        return func(self, name)

    return wrapper


def format_identifier(name: str) -> str:
    """
    Format a column name for display inside a deparsed expression.

    Syntactic names are returned as-is, anything else is wrapped in backticks.

    Example:
        >>> format_identifier("dep_delay")
        'dep_delay'
        >>> format_identifier("dep delay")
        '`dep delay`'
    """
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    escaped = name.replace('`', '\\`')
    return f"`{escaped}`"


def is_scalar(value: Any) -> bool:
    """True for values that behave as a single element (strings included)."""
    if isinstance(value, (str, bytes)):
        return True
    if isinstance(value, (pd.Series, pd.Index, np.ndarray, list, tuple, range, pd.Categorical)):
        return False
    return np.ndim(value) == 0


def value_length(value: Any) -> int:
    """Length of a value in the vector sense: scalars have length 1."""
    if is_scalar(value):
        return 1
    return len(value)
