"""
Expression system for tidyverbs - unevaluated syntax trees captured at the call site.

Expressions are built with operator overloading on symbols and are only
evaluated when a verb hands them to the evaluator together with a table and
an enclosing environment:

    >>> from tidyverbs import X
    >>> expr = (X.arr_delay - X.dep_delay).as_("gain")
    >>> expr.deparse()
    'arr_delay - dep_delay'
"""

from typing import Any, Optional, Iterator, List, Type, Callable, Union
from copy import copy

from .utils import immutable, ignore_copy, format_identifier
from .exceptions import ValidationError

__all__ = [
    'Node',
    'Expression',
    'Symbol',
    'Literal',
    'ArithmeticExpression',
    'UnaryExpression',
    'Call',
    'Span',
    'Concat',
    'DataRef',
    'EnvRef',
    'Desc',
    'X',
    'data',
    'env',
    'sym',
    'lit',
    'call',
    'c',
    'span',
    'desc',
]


class Node:
    """
    Base class for all expression nodes.
    Provides tree traversal capabilities.
    """

    def nodes(self) -> Iterator['Node']:
        """Iterate over all nodes in the expression tree."""
        yield self

    def find(self, node_type: Type['Node']) -> List['Node']:
        """Find all nodes of a specific type."""
        return [node for node in self.nodes() if isinstance(node, node_type)]


class Expression(Node):
    """
    Base class for all expressions.

    Expressions can be:
    - Symbols (bare identifiers)
    - Literals (constants)
    - Calls (function invocations)
    - Arithmetic and unary operations
    - Conditions (comparisons, boolean combinations)
    - Selection forms (ranges, concatenation, selection helpers)
    """

    def __init__(self, alias: Optional[str] = None):
        self.alias = alias

    @immutable
    def as_(self, alias: str) -> 'Expression':
        """Set an alias (output column name) for this expression."""
        self.alias = alias

    @staticmethod
    def wrap(value: Any) -> 'Expression':
        """
        Wrap a value as an Expression.

        - Expression -> return as-is
        - other -> Literal(value)
        """
        if isinstance(value, Expression):
            return value
        return Literal(value)

    def deparse(self) -> str:
        """Render the expression as source-like text."""
        raise NotImplementedError(f"{type(self).__name__} must implement deparse()")

    @property
    def output_name(self) -> str:
        """Output column name: the alias if set, otherwise the deparsed text."""
        return self.alias or self.deparse()

    def symbols(self) -> List[str]:
        """Names of all bare identifiers referenced by this expression."""
        return [node.name for node in self.find(Symbol)]

    # ========== Comparison Operators ==========

    def __eq__(self, other: Any) -> 'BinaryCondition':
        from .conditions import BinaryCondition

        return BinaryCondition('==', self, self.wrap(other))

    def __ne__(self, other: Any) -> 'BinaryCondition':
        from .conditions import BinaryCondition

        return BinaryCondition('!=', self, self.wrap(other))

    def __gt__(self, other: Any) -> 'BinaryCondition':
        from .conditions import BinaryCondition

        return BinaryCondition('>', self, self.wrap(other))

    def __ge__(self, other: Any) -> 'BinaryCondition':
        from .conditions import BinaryCondition

        return BinaryCondition('>=', self, self.wrap(other))

    def __lt__(self, other: Any) -> 'BinaryCondition':
        from .conditions import BinaryCondition

        return BinaryCondition('<', self, self.wrap(other))

    def __le__(self, other: Any) -> 'BinaryCondition':
        from .conditions import BinaryCondition

        return BinaryCondition('<=', self, self.wrap(other))

    # __eq__ is overloaded, so identity hashing has to be restored explicitly
    def __hash__(self) -> int:
        return id(self)

    # ========== Boolean Operators ==========

    def __and__(self, other: Any) -> 'CompoundCondition':
        from .conditions import CompoundCondition

        return CompoundCondition('&', self, self.wrap(other))

    def __or__(self, other: Any) -> 'CompoundCondition':
        from .conditions import CompoundCondition

        return CompoundCondition('|', self, self.wrap(other))

    def __xor__(self, other: Any) -> 'CompoundCondition':
        from .conditions import CompoundCondition

        return CompoundCondition('^', self, self.wrap(other))

    def __rand__(self, other: Any) -> 'CompoundCondition':
        from .conditions import CompoundCondition

        return CompoundCondition('&', self.wrap(other), self)

    def __ror__(self, other: Any) -> 'CompoundCondition':
        from .conditions import CompoundCondition

        return CompoundCondition('|', self.wrap(other), self)

    def __invert__(self) -> 'NotCondition':
        from .conditions import NotCondition

        return NotCondition(self)

    # ========== Condition Methods ==========

    def isin(self, values) -> 'Condition':
        """
        Membership test.

        Example:
            >>> X.carrier.isin(["UA", "AA"])
        """
        from .conditions import InCondition

        return InCondition(self, self.wrap(values), negate=False)

    def notin(self, values) -> 'Condition':
        """Negated membership test."""
        from .conditions import InCondition

        return InCondition(self, self.wrap(values), negate=True)

    def isna(self) -> 'Condition':
        """True where the value is missing."""
        from .conditions import UnaryCondition

        return UnaryCondition('isna', self)

    def notna(self) -> 'Condition':
        """True where the value is present."""
        from .conditions import UnaryCondition

        return UnaryCondition('notna', self)

    def between(self, lower, upper) -> 'Condition':
        """
        Inclusive range test.

        Example:
            >>> X.dep_delay.between(0, 30)
        """
        from .conditions import BetweenCondition

        return BetweenCondition(self, self.wrap(lower), self.wrap(upper))

    def desc(self) -> 'Desc':
        """Descending ordering wrapper, same as desc(self)."""
        return Desc(self)

    # ========== Arithmetic Operators ==========

    def __add__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('+', self, self.wrap(other))

    def __sub__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('-', self, self.wrap(other))

    def __mul__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('*', self, self.wrap(other))

    def __truediv__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('/', self, self.wrap(other))

    def __floordiv__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('//', self, self.wrap(other))

    def __mod__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('%', self, self.wrap(other))

    def __pow__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('**', self, self.wrap(other))

    # ========== Reverse Arithmetic Operators ==========

    def __radd__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('+', self.wrap(other), self)

    def __rsub__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('-', self.wrap(other), self)

    def __rmul__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('*', self.wrap(other), self)

    def __rtruediv__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('/', self.wrap(other), self)

    def __rfloordiv__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('//', self.wrap(other), self)

    def __rmod__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('%', self.wrap(other), self)

    def __rpow__(self, other: Any) -> 'ArithmeticExpression':
        return ArithmeticExpression('**', self.wrap(other), self)

    # ========== Unary Operators ==========

    def __neg__(self) -> 'UnaryExpression':
        return UnaryExpression('-', self)

    # ========== String/Utility Methods ==========

    def __str__(self) -> str:
        return self.deparse()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.deparse()!r})"

    def _child_text(self, child: 'Expression') -> str:
        """Deparse a child, parenthesizing compound operands."""
        from .conditions import BinaryCondition, CompoundCondition

        text = child.deparse()
        if isinstance(child, (ArithmeticExpression, BinaryCondition, CompoundCondition)):
            return f"({text})"
        return text


class Symbol(Expression):
    """
    A bare identifier.

    Resolves to a column position in selecting contexts and to a column
    vector (or an enclosing binding) in mutating contexts.

    Example:
        >>> Symbol('year')
        >>> X.year  # same thing
    """

    def __init__(self, name: str, alias: Optional[str] = None):
        super().__init__(alias)
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Symbol name must be a non-empty string, got {name!r}")
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def output_name(self) -> str:
        return self.alias or self._name

    def deparse(self) -> str:
        return format_identifier(self._name)

    def __copy__(self):
        return Symbol(self._name, self.alias)


class Literal(Expression):
    """
    Represents a literal value (constant).

    Example:
        >>> Literal(42)
        >>> Literal("hello")
        >>> Literal(None)
    """

    def __init__(self, value: Any, alias: Optional[str] = None):
        super().__init__(alias)
        self.value = value

    def deparse(self) -> str:
        if isinstance(self.value, str):
            escaped = self.value.replace('"', '\\"')
            return f'"{escaped}"'
        return repr(self.value)

    def __copy__(self):
        return Literal(self.value, self.alias)


class ArithmeticExpression(Expression):
    """
    Represents an arithmetic operation (e.g., a + b, x * 2).

    Example:
        >>> ArithmeticExpression('+', Symbol('a'), Literal(1))
        >>> X.distance / X.air_time * 60
    """

    OPERATORS = {'+', '-', '*', '/', '//', '%', '**'}

    def __init__(self, operator: str, left: Expression, right: Expression, alias: Optional[str] = None):
        super().__init__(alias)

        if operator not in self.OPERATORS:
            raise ValidationError(f"Invalid operator: {operator}")

        self.operator = operator
        self.left = left
        self.right = right

    def nodes(self) -> Iterator[Node]:
        """Traverse expression tree."""
        yield self
        yield from self.left.nodes()
        yield from self.right.nodes()

    def deparse(self) -> str:
        return f"{self._child_text(self.left)} {self.operator} {self._child_text(self.right)}"

    def __copy__(self):
        return ArithmeticExpression(self.operator, copy(self.left), copy(self.right), self.alias)


class UnaryExpression(Expression):
    """
    Unary minus.

    In mutating contexts this negates a vector; in selecting contexts it
    complements the inner column set.
    """

    def __init__(self, operator: str, operand: Expression, alias: Optional[str] = None):
        super().__init__(alias)
        if operator != '-':
            raise ValidationError(f"Invalid unary operator: {operator}")
        self.operator = operator
        self.operand = operand

    def nodes(self) -> Iterator[Node]:
        yield self
        yield from self.operand.nodes()

    def deparse(self) -> str:
        return f"-{self._child_text(self.operand)}"

    def __copy__(self):
        return UnaryExpression(self.operator, copy(self.operand), self.alias)


class Call(Expression):
    """
    A function invocation.

    ``func`` is either a Python callable or a name that is looked up in the
    enclosing environment and then in the function registry at evaluation
    time.

    Example:
        >>> Call('mean', X.dep_delay)
        >>> Call(np.log, X.distance)
        >>> Call('round', X.speed, digits=1)
    """

    def __init__(self, func: Union[str, Callable], *args: Any, alias: Optional[str] = None, **kwargs: Any):
        super().__init__(alias)
        if not (isinstance(func, str) or callable(func)):
            raise ValidationError(f"Call target must be a name or a callable, got {type(func).__name__}")
        self.func = func
        self.args = [self.wrap(arg) for arg in args]
        self.kwargs = {key: self.wrap(value) for key, value in kwargs.items()}

    @property
    def func_name(self) -> str:
        if isinstance(self.func, str):
            return self.func
        return getattr(self.func, '__name__', type(self.func).__name__)

    def nodes(self) -> Iterator[Node]:
        yield self
        for arg in self.args:
            yield from arg.nodes()
        for value in self.kwargs.values():
            yield from value.nodes()

    def deparse(self) -> str:
        parts = [arg.deparse() for arg in self.args]
        parts += [f"{key} = {value.deparse()}" for key, value in self.kwargs.items()]
        return f"{self.func_name}({', '.join(parts)})"

    def __copy__(self):
        return Call(
            self.func,
            *[copy(arg) for arg in self.args],
            alias=self.alias,
            **{key: copy(value) for key, value in self.kwargs.items()},
        )


class Span(Expression):
    """
    Inclusive range ``start:end``.

    Over columns in selecting contexts, over integers in mutating contexts.

    Example:
        >>> span(X.year, X.day)
        >>> span(5, 10)
    """

    def __init__(self, start: Any, end: Any, alias: Optional[str] = None):
        super().__init__(alias)
        self.start = self.wrap(start)
        self.end = self.wrap(end)

    def nodes(self) -> Iterator[Node]:
        yield self
        yield from self.start.nodes()
        yield from self.end.nodes()

    def deparse(self) -> str:
        return f"{self._child_text(self.start)}:{self._child_text(self.end)}"

    def __copy__(self):
        return Span(copy(self.start), copy(self.end), self.alias)


class Concat(Expression):
    """Concatenation ``c(a, b, ...)`` of selections or vectors."""

    def __init__(self, *items: Any, alias: Optional[str] = None):
        super().__init__(alias)
        self.items = [self.wrap(item) for item in items]

    def nodes(self) -> Iterator[Node]:
        yield self
        for item in self.items:
            yield from item.nodes()

    def deparse(self) -> str:
        return f"c({', '.join(item.deparse() for item in self.items)})"

    def __copy__(self):
        return Concat(*[copy(item) for item in self.items], alias=self.alias)


class DataRef(Expression):
    """Column-only reference (``data.x``): never falls back to the environment."""

    def __init__(self, name: str, alias: Optional[str] = None):
        super().__init__(alias)
        self.ref = name

    @property
    def output_name(self) -> str:
        return self.alias or self.ref

    def deparse(self) -> str:
        return f"data.{format_identifier(self.ref)}"

    def __copy__(self):
        return DataRef(self.ref, self.alias)


class EnvRef(Expression):
    """Environment-only reference (``env.x``): columns are never consulted."""

    def __init__(self, name: str, alias: Optional[str] = None):
        super().__init__(alias)
        self.ref = name

    @property
    def output_name(self) -> str:
        return self.alias or self.ref

    def deparse(self) -> str:
        return f"env.{format_identifier(self.ref)}"

    def __copy__(self):
        return EnvRef(self.ref, self.alias)


class Desc(Expression):
    """Descending-order wrapper used by arrange()."""

    def __init__(self, operand: Any, alias: Optional[str] = None):
        super().__init__(alias)
        self.operand = self.wrap(operand)

    def nodes(self) -> Iterator[Node]:
        yield self
        yield from self.operand.nodes()

    def deparse(self) -> str:
        return f"desc({self.operand.deparse()})"

    def __copy__(self):
        return Desc(copy(self.operand), self.alias)


# ========== Capture helpers ==========


class _SymbolFactory:
    """
    Attribute access builds bare identifiers.

    Example:
        >>> X.dep_delay          # Symbol('dep_delay')
        >>> X["dep delay"]       # non-syntactic names
    """

    def __init__(self, node_type: Type[Expression] = Symbol):
        self._node_type = node_type

    @ignore_copy
    def __getattr__(self, name: str) -> Expression:
        return self._node_type(name)

    def __getitem__(self, name: str) -> Expression:
        return self._node_type(name)

    def __repr__(self) -> str:
        return f"<{self._node_type.__name__} factory>"


X = _SymbolFactory(Symbol)
data = _SymbolFactory(DataRef)
env = _SymbolFactory(EnvRef)


def sym(name: str) -> Symbol:
    """Build a bare identifier from a string."""
    return Symbol(name)


def lit(value: Any) -> Literal:
    """Build a literal; useful for literals that would otherwise be taken as names."""
    return Literal(value)


def call(func: Union[str, Callable], *args: Any, **kwargs: Any) -> Call:
    """Build a function call node."""
    return Call(func, *args, **kwargs)


def c(*items: Any) -> Concat:
    """Concatenate selections (selecting) or vectors (mutating)."""
    return Concat(*items)


def span(start: Any, end: Any) -> Span:
    """Inclusive range, the equivalent of ``start:end``."""
    return Span(start, end)


def desc(expr: Any) -> Desc:
    """Order by ``expr`` in descending order."""
    return Desc(expr)
