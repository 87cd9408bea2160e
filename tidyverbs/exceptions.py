"""
Exception classes for tidyverbs
"""

__all__ = [
    'TidyVerbsError',
    'UnknownColumnError',
    'OutOfRangeError',
    'RecycleLengthMismatchError',
    'SummariseLengthMismatchError',
    'AmbiguousBindingError',
    'TypeMismatchError',
    'ValidationError',
]


class TidyVerbsError(Exception):
    """Base exception for all tidyverbs errors."""

    pass


class ValidationError(TidyVerbsError, ValueError):
    """Raised when verb arguments are invalid."""

    pass


class UnknownColumnError(TidyVerbsError, KeyError):
    """Raised when an identifier matches no column and no enclosing binding.

    Provides the column name and optionally lists available columns.

    Example:
        raise UnknownColumnError(
            column="nonexistent_col",
            available_columns=["a", "b", "c"]
        )
    """

    def __init__(self, column: str, available_columns: list = None):
        self.column = column
        self.available_columns = available_columns

        msg = f"Column '{column}' not found"
        if available_columns:
            if len(available_columns) <= 10:
                cols_str = ", ".join(repr(c) for c in available_columns)
                msg += f". Available columns: [{cols_str}]"
            else:
                cols_str = ", ".join(repr(c) for c in available_columns[:10])
                msg += f". Available columns (first 10 of {len(available_columns)}): [{cols_str}, ...]"
        self.message = msg
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class OutOfRangeError(TidyVerbsError, IndexError):
    """Raised when an integer position falls outside the valid bounds."""

    def __init__(self, position: int, size: int, what: str = "column"):
        self.position = position
        self.size = size
        self.what = what
        super().__init__(f"Can't subset {what}s past the end: position {position} is outside [1, {size}]")


class RecycleLengthMismatchError(TidyVerbsError, ValueError):
    """Raised when a mutation-context value is neither length 1 nor the row count.

    Example:
        raise RecycleLengthMismatchError(name="ratio", length=3, expected=10)
    """

    def __init__(self, name: str, length: int, expected: int):
        self.name = name
        self.length = length
        self.expected = expected
        super().__init__(f"'{name}' must be size {expected} or 1, not {length}")


class SummariseLengthMismatchError(TidyVerbsError, ValueError):
    """Raised when a summarise expression yields more than one value for a group."""

    def __init__(self, name: str, length: int, group: tuple = None):
        self.name = name
        self.length = length
        self.group = group

        msg = f"'{name}' must be size 1, not {length}"
        if group:
            msg += f" (in group {group!r})"
        super().__init__(msg)


class AmbiguousBindingError(TidyVerbsError):
    """Raised when a name cannot be resolved deterministically."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Can't resolve '{name}': {reason}")


class TypeMismatchError(TidyVerbsError, TypeError):
    """Raised when an operation is applied to incompatible value kinds.

    Example:
        raise TypeMismatchError(operation="+", detail="can only concatenate str (not \"int\") to str")
    """

    def __init__(self, operation: str, detail: str = None):
        self.operation = operation
        self.detail = detail

        msg = f"Incompatible operands for '{operation}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
