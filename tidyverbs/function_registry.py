"""
Function Registry - single source of truth for functions callable by name.

``Call('mean', X.dep_delay)`` and ``F.mean(X.dep_delay)`` both resolve
``mean`` here at evaluation time (after the enclosing environment, which can
shadow any registered name). Implementations receive already-evaluated
arguments (``pandas.Series`` or scalars) and return a vector or a scalar.

Context functions (``n()``, ``cur_group_id()``) additionally receive the
``EvalContext`` of the slice being evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

__all__ = [
    'FunctionType',
    'FunctionCategory',
    'FunctionSpec',
    'FunctionRegistry',
    'EvalContext',
    'register_function',
]


class FunctionType(Enum):
    """
    Function type classification.

    - SCALAR: element-wise functions returning a vector of the input size
    - AGGREGATE: functions reducing a vector to a single value
    - CONTEXT: functions that read the evaluation context (group size, group id)
    """

    SCALAR = auto()
    AGGREGATE = auto()
    CONTEXT = auto()


class FunctionCategory(Enum):
    """Function category, used for documentation and lookups."""

    MATH = "math"
    STRING = "string"
    CONDITIONAL = "conditional"
    TYPE_CONVERSION = "type"
    AGGREGATE = "aggregate"
    CONTEXT = "context"
    OTHER = "other"


@dataclass(frozen=True)
class EvalContext:
    """
    What a context function can see about the slice being evaluated.

    Attributes:
        size: number of rows in the slice (the group, or the whole table)
        group_id: 1-based group number, or None when ungrouped
        group_key: the group's key tuple, or None when ungrouped
    """

    size: int
    group_id: Optional[int] = None
    group_key: Optional[Tuple[Any, ...]] = None


@dataclass
class FunctionSpec:
    """
    Function specification.

    Attributes:
        name: Primary function name in snake_case (e.g., 'if_else')
        impl: Callable doing the work
        func_type: Type classification (SCALAR, AGGREGATE, CONTEXT)
        category: Category for documentation and lookups
        aliases: Alternative names for this function
        doc: Documentation string
    """

    name: str
    impl: Callable
    func_type: FunctionType = FunctionType.SCALAR
    category: FunctionCategory = FunctionCategory.OTHER
    aliases: List[str] = field(default_factory=list)
    doc: str = ""

    @property
    def needs_context(self) -> bool:
        return self.func_type == FunctionType.CONTEXT

    @property
    def all_names(self) -> Set[str]:
        """Get all names including aliases."""
        return {self.name} | set(self.aliases)

    def __repr__(self) -> str:
        return f"FunctionSpec(name='{self.name}', type={self.func_type.name}, category={self.category.name})"


class FunctionRegistry:
    """
    Global function registry.

    Usage:
        @FunctionRegistry.register(
            name='if_else',
            category=FunctionCategory.CONDITIONAL,
        )
        def if_else(condition, true, false, missing=None):
            ...

        spec = FunctionRegistry.get('if_else')
    """

    _functions: Dict[str, FunctionSpec] = {}
    _alias_map: Dict[str, str] = {}  # alias -> canonical name

    @classmethod
    def register(
        cls,
        name: str,
        func_type: FunctionType = FunctionType.SCALAR,
        category: FunctionCategory = FunctionCategory.OTHER,
        aliases: Optional[List[str]] = None,
        doc: str = "",
    ) -> Callable:
        """
        Decorator to register a function implementation.

        Args:
            name: Primary function name (snake_case)
            func_type: Function type (SCALAR, AGGREGATE, CONTEXT)
            category: Function category
            aliases: List of alternative names
            doc: Documentation string (defaults to the implementation's docstring)
        """

        def decorator(impl: Callable) -> Callable:
            spec = FunctionSpec(
                name=name,
                impl=impl,
                func_type=func_type,
                category=category,
                aliases=aliases or [],
                doc=doc or impl.__doc__ or "",
            )
            cls._register_spec(spec)
            return impl

        return decorator

    @classmethod
    def _register_spec(cls, spec: FunctionSpec) -> None:
        cls._functions[spec.name] = spec

        for alias in spec.aliases:
            if alias != spec.name:
                cls._alias_map[alias] = spec.name

    @classmethod
    def get(cls, name: str) -> Optional[FunctionSpec]:
        """Get function spec by name or alias, or None if not found."""
        if name in cls._functions:
            return cls._functions[name]
        if name in cls._alias_map:
            return cls._functions.get(cls._alias_map[name])
        return None

    @classmethod
    def all_specs(cls) -> List[FunctionSpec]:
        """Get all registered function specs."""
        return list(cls._functions.values())


# Convenience alias for the decorator
register_function = FunctionRegistry.register
