"""
Pipeline composition: thread a table through a sequence of verbs.

``pipe(t, stage1, stage2)`` is ``stage2(stage1(t))``. A stage is either a
callable taking the table, or a ``(verb, *args)`` tuple whose last element
may be a dict of keyword arguments.

``Pipeline`` records stages without running them, so a pipeline can be
built once and applied to several tables:

    >>> recent = Pipeline().filter(X.year == 2013).arrange(desc(X.dep_delay))
    >>> recent(flights)
    >>> recent.then(slice_head, n=5)(flights)
"""

from typing import Any, Callable, Dict, Optional, Tuple

from .config import get_logger
from .exceptions import ValidationError
from .utils import ignore_copy

__all__ = ['pipe', 'Pipeline', 'pipeline']


def _stage(stage: Any) -> Tuple[Callable, tuple, Dict[str, Any]]:
    if callable(stage):
        return stage, (), {}
    if isinstance(stage, tuple) and stage and callable(stage[0]):
        func, *args = stage
        kwargs = {}
        if args and isinstance(args[-1], dict):
            kwargs = args.pop()
        return func, tuple(args), kwargs
    raise ValidationError(f"Pipeline stage must be a callable or a (verb, *args) tuple, got {stage!r}")


def pipe(table: Any, *stages: Any) -> Any:
    """
    Feed ``table`` through each stage in turn and return the last result.

    Example:
        >>> pipe(flights,
        ...      (filter, X.month == 1),
        ...      (group_by, X.carrier),
        ...      (summarise, {'n': n()}))
    """
    result = table
    for stage in stages:
        func, args, kwargs = _stage(stage)
        result = func(result, *args, **kwargs)
    return result


class Pipeline:
    """
    An immutable, reusable sequence of verb applications.

    Calling a verb name on a Pipeline records that verb with its arguments
    and returns a new Pipeline. ``then()`` appends any callable.
    """

    def __init__(self, stages: Optional[Tuple[Tuple[Callable, tuple, Dict[str, Any]], ...]] = None):
        self._stages = tuple(stages or ())

    @property
    def stages(self) -> Tuple[Tuple[Callable, tuple, Dict[str, Any]], ...]:
        return self._stages

    def then(self, func: Callable, *args: Any, **kwargs: Any) -> 'Pipeline':
        if not callable(func):
            raise ValidationError(f"Pipeline.then() expects a callable, got {type(func).__name__}")
        return Pipeline(self._stages + ((func, args, kwargs),))

    @ignore_copy
    def __getattr__(self, name: str) -> Callable[..., 'Pipeline']:
        from . import verbs

        if name.startswith('_') or name not in verbs.__all__:
            raise AttributeError(f"'Pipeline' object has no attribute '{name}'")
        verb = getattr(verbs, name)

        def record(*args: Any, **kwargs: Any) -> 'Pipeline':
            return self.then(verb, *args, **kwargs)

        record.__name__ = name
        record.__doc__ = verb.__doc__
        return record

    def __call__(self, table: Any) -> Any:
        result = table
        for func, args, kwargs in self._stages:
            result = func(result, *args, **kwargs)
        get_logger().debug("[Pipeline] applied %d stages", len(self._stages))
        return result

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        names = [getattr(func, '__name__', repr(func)) for func, _, _ in self._stages]
        return f"Pipeline({' -> '.join(names) or 'empty'})"


def pipeline(*stages: Any) -> Pipeline:
    """Build a Pipeline from stages in the same form ``pipe()`` accepts."""
    return Pipeline(tuple(_stage(stage) for stage in stages))
