"""
Condition system for tidyverbs (comparisons and boolean combinations)
"""

from typing import Optional, Iterator
from copy import copy

from .expressions import Expression, Node
from .exceptions import ValidationError

__all__ = [
    'Condition',
    'BinaryCondition',
    'CompoundCondition',
    'NotCondition',
    'UnaryCondition',
    'InCondition',
    'BetweenCondition',
]


class Condition(Expression):
    """Base class for all conditions (predicates evaluating to logical vectors)."""


class BinaryCondition(Condition):
    """
    Binary comparison condition (e.g., a == b, x > 5).

    Example:
        >>> BinaryCondition('==', Symbol('month'), Literal(1))
        >>> X.dep_delay > 60  # Uses operator overloading
    """

    OPERATORS = {'==', '!=', '>', '>=', '<', '<='}

    def __init__(self, operator: str, left: Expression, right: Expression, alias: Optional[str] = None):
        super().__init__(alias)

        if operator not in self.OPERATORS:
            raise ValidationError(f"Invalid comparison operator: {operator}")

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
        return BinaryCondition(self.operator, copy(self.left), copy(self.right), self.alias)


class CompoundCondition(Condition):
    """
    Compound condition combining two operands with &, | or ^.

    In selecting contexts & and | are intersection and union of column sets.

    Example:
        >>> (X.month == 1) & (X.day == 1)
        >>> starts_with("dep") | ends_with("delay")
    """

    OPERATORS = {'&', '|', '^'}

    def __init__(self, operator: str, left: Expression, right: Expression, alias: Optional[str] = None):
        super().__init__(alias)

        if operator not in self.OPERATORS:
            raise ValidationError(f"Invalid logical operator: {operator}")

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
        return CompoundCondition(self.operator, copy(self.left), copy(self.right), self.alias)


class NotCondition(Condition):
    """
    Negation.

    Example:
        >>> ~(X.dep_delay > 0)
        >>> ~starts_with("arr")  # complement in selecting contexts
    """

    def __init__(self, condition: Expression, alias: Optional[str] = None):
        super().__init__(alias)
        self.condition = condition

    def nodes(self) -> Iterator[Node]:
        """Traverse expression tree."""
        yield self
        yield from self.condition.nodes()

    def deparse(self) -> str:
        return f"~{self._child_text(self.condition)}"

    def __copy__(self):
        return NotCondition(copy(self.condition), self.alias)


class UnaryCondition(Condition):
    """
    Missing-value tests.

    Example:
        >>> X.dep_delay.isna()
        >>> X.tailnum.notna()
    """

    OPERATORS = {'isna', 'notna'}

    def __init__(self, operator: str, expr: Expression, alias: Optional[str] = None):
        super().__init__(alias)
        if operator not in self.OPERATORS:
            raise ValidationError(f"Invalid unary condition: {operator}")
        self.operator = operator
        self.expr = expr

    def nodes(self) -> Iterator[Node]:
        yield self
        yield from self.expr.nodes()

    def deparse(self) -> str:
        return f"{self.operator}({self.expr.deparse()})"

    def __copy__(self):
        return UnaryCondition(self.operator, copy(self.expr), self.alias)


class InCondition(Condition):
    """
    Membership condition.

    Example:
        >>> X.carrier.isin(["UA", "AA"])
        >>> X.carrier.notin(X.banned_carrier)
    """

    def __init__(self, expr: Expression, values: Expression, negate: bool = False, alias: Optional[str] = None):
        super().__init__(alias)
        self.expr = expr
        self.values = values
        self.negate = negate

    def nodes(self) -> Iterator[Node]:
        yield self
        yield from self.expr.nodes()
        yield from self.values.nodes()

    def deparse(self) -> str:
        op = 'notin' if self.negate else 'isin'
        return f"{self.expr.deparse()} %{op}% {self.values.deparse()}"

    def __copy__(self):
        return InCondition(copy(self.expr), copy(self.values), self.negate, self.alias)


class BetweenCondition(Condition):
    """Inclusive range condition: lower <= expr <= upper."""

    def __init__(self, expr: Expression, lower: Expression, upper: Expression, alias: Optional[str] = None):
        super().__init__(alias)
        self.expr = expr
        self.lower = lower
        self.upper = upper

    def nodes(self) -> Iterator[Node]:
        yield self
        yield from self.expr.nodes()
        yield from self.lower.nodes()
        yield from self.upper.nodes()

    def deparse(self) -> str:
        return f"between({self.expr.deparse()}, {self.lower.deparse()}, {self.upper.deparse()})"

    def __copy__(self):
        return BetweenCondition(copy(self.expr), copy(self.lower), copy(self.upper), self.alias)
