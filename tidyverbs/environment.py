"""
Enclosing-scope bindings for expression evaluation.

Verbs receive their environment explicitly (``_env=``) instead of reading
the caller's frame implicitly. ``Env.capture()`` snapshots a frame when that
is what the caller wants.
"""

import builtins
import sys
from collections.abc import Mapping
from typing import Any, Iterator, Optional

__all__ = ['Env', 'EMPTY_ENV']

_MISSING = object()


class Env(Mapping):
    """
    A read-only chain of name bindings.

    Lookups fall through to the parent when a name is not bound locally.

    Example:
        >>> outer = Env({'year': 5})
        >>> inner = outer.child(prefix='dep')
        >>> inner['year'], inner['prefix']
        (5, 'dep')
    """

    def __init__(self, bindings: Optional[Mapping] = None, parent: Optional['Env'] = None):
        self._bindings = dict(bindings or {})
        self._parent = parent

    @property
    def parent(self) -> Optional['Env']:
        return self._parent

    def __getitem__(self, name: str) -> Any:
        env = self
        while env is not None:
            if name in env._bindings:
                return env._bindings[name]
            env = env._parent
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return self.lookup(name, _MISSING) is not _MISSING

    def __iter__(self) -> Iterator[str]:
        seen = set()
        env = self
        while env is not None:
            for name in env._bindings:
                if name not in seen:
                    seen.add(name)
                    yield name
            env = env._parent

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def lookup(self, name: str, default: Any = None) -> Any:
        try:
            return self[name]
        except KeyError:
            return default

    def child(self, bindings: Optional[Mapping] = None, **kwargs) -> 'Env':
        """New environment whose parent is this one."""
        merged = dict(bindings or {})
        merged.update(kwargs)
        return Env(merged, parent=self)

    def __repr__(self) -> str:
        names = list(self._bindings)
        shown = ", ".join(names[:5]) + (", ..." if len(names) > 5 else "")
        suffix = " -> parent" if self._parent is not None else ""
        return f"Env([{shown}]{suffix})"

    @classmethod
    def capture(cls, depth: int = 1) -> 'Env':
        """
        Snapshot the bindings visible in a caller's frame.

        Args:
            depth: 1 is the frame calling capture(), 2 its caller, and so on.

        Returns:
            Env of the frame's locals, chained to its globals and builtins.
        """
        frame = sys._getframe(depth)
        try:
            builtin_env = Env(vars(builtins))
            global_env = Env(frame.f_globals, parent=builtin_env)
            if frame.f_locals is frame.f_globals:
                return global_env
            return Env(frame.f_locals, parent=global_env)
        finally:
            del frame

    @classmethod
    def coerce(cls, value: Any) -> 'Env':
        """Accept None, an Env, or any mapping."""
        if value is None:
            return EMPTY_ENV
        if isinstance(value, Env):
            return value
        if isinstance(value, Mapping):
            return cls(value)
        raise TypeError(f"Expected a mapping for the environment, got {type(value).__name__}")


EMPTY_ENV = Env()
