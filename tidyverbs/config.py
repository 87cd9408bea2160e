"""
Configuration module for tidyverbs.

This module provides a centralized configuration mechanism for tidyverbs,
including logging, group dispatch, sampling defaults and profiling.
"""

import logging
import time
from typing import Optional, List, Dict
from contextlib import contextmanager

# Module-level logger for tidyverbs
_logger: Optional[logging.Logger] = None
_log_level: int = logging.WARNING
_log_format: str = "simple"  # "simple" or "verbose"

LOGGER_NAME = "tidyverbs"

# Log format templates
LOG_FORMATS = {
    "simple": "%(levelname).1s %(message)s",  # e.g., "D [Verb] filter: 24 x 9 -> 1 x 9"
    "verbose": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def _get_formatter() -> logging.Formatter:
    """Get formatter based on current format setting."""
    fmt = LOG_FORMATS.get(_log_format, LOG_FORMATS["simple"])
    if _log_format == "verbose":
        return logging.Formatter(fmt, datefmt='%Y-%m-%d %H:%M:%S')
    return logging.Formatter(fmt)


def get_logger() -> logging.Logger:
    """
    Get the tidyverbs logger.

    Returns:
        logging.Logger: The configured logger instance.
    """
    global _logger

    if _logger is None:
        _logger = logging.getLogger(LOGGER_NAME)
        _logger.setLevel(_log_level)

        if not _logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(_log_level)
            handler.setFormatter(_get_formatter())
            _logger.addHandler(handler)

    return _logger


def set_log_level(level: int) -> None:
    """
    Set the logging level for tidyverbs.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO, logging.WARNING)

    Example:
        >>> import logging
        >>> from tidyverbs.config import set_log_level
        >>> set_log_level(logging.DEBUG)  # Log every verb
        >>> set_log_level(logging.WARNING)  # Only warnings and errors
    """
    global _log_level

    _log_level = level

    if _logger is not None:
        _logger.setLevel(level)
        for handler in _logger.handlers:
            handler.setLevel(level)


def enable_debug() -> None:
    """Enable debug logging (shortcut for set_log_level(logging.DEBUG))."""
    set_log_level(logging.DEBUG)


def disable_debug() -> None:
    """Disable debug logging (set to WARNING level)."""
    set_log_level(logging.WARNING)


def set_log_format(format_name: str) -> None:
    """
    Set the log output format.

    Args:
        format_name: "simple" (default) for minimal output, "verbose" for full timestamp/level

    Example:
        >>> from tidyverbs.config import set_log_format
        >>> set_log_format("simple")   # "D [Verb] filter: 24 x 9 -> 1 x 9"
        >>> set_log_format("verbose")  # "2026-10-18 12:51:27 - tidyverbs - DEBUG - ..."
    """
    global _log_format

    if format_name not in LOG_FORMATS:
        raise ValueError(f"Unknown format: {format_name}. Use 'simple' or 'verbose'")

    _log_format = format_name

    if _logger is not None:
        for handler in _logger.handlers:
            handler.setFormatter(_get_formatter())


# =============================================================================
# EVALUATION CONFIGURATION
# =============================================================================

_max_workers: int = 1  # 1 means groups are evaluated sequentially
_random_state: Optional[int] = None
_sort_groups: bool = False


def get_max_workers() -> int:
    """Get the number of threads used to evaluate groups."""
    return _max_workers


def set_max_workers(workers: int) -> None:
    """
    Set the number of threads used for per-group evaluation.

    Results are always reassembled in group order, so this only affects speed.

    Example:
        >>> from tidyverbs.config import set_max_workers
        >>> set_max_workers(4)
    """
    global _max_workers
    if workers < 1:
        raise ValueError("max_workers must be >= 1")
    _max_workers = workers


def get_random_state() -> Optional[int]:
    """Get the default seed used by slice_sample (None = fresh entropy)."""
    return _random_state


def set_random_state(seed: Optional[int]) -> None:
    """Set the default seed used by slice_sample."""
    global _random_state
    _random_state = seed


def get_sort_groups() -> bool:
    """Whether group_by orders groups by sorted key (True) or first appearance (False)."""
    return _sort_groups


def set_sort_groups(sort: bool) -> None:
    """Set the default group ordering used by group_by."""
    global _sort_groups
    _sort_groups = bool(sort)


# =============================================================================
# PROFILER CONFIGURATION
# =============================================================================


class ProfileStep:
    """A single profiled step with timing information."""

    def __init__(self, name: str, parent: Optional['ProfileStep'] = None):
        self.name = name
        self.parent = parent
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.children: List['ProfileStep'] = []
        self.metadata: Dict[str, object] = {}

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return (self.end_time - self.start_time) * 1000

    def __repr__(self) -> str:
        return f"ProfileStep({self.name}, {self.duration_ms:.2f}ms)"


class Profiler:
    """
    A profiler for tracking execution timing of verbs.

    Usage:
        profiler = Profiler()
        with profiler.step("filter", rows=100):
            ...
        print(profiler.report())
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.steps: List[ProfileStep] = []
        self._stack: List[ProfileStep] = []

    @contextmanager
    def step(self, name: str, **metadata):
        """
        Context manager to profile a step.

        Args:
            name: Name of the step
            **metadata: Additional metadata to attach to the step
        """
        if not self.enabled:
            yield None
            return

        parent = self._stack[-1] if self._stack else None
        step = ProfileStep(name, parent)
        step.metadata = metadata
        step.start_time = time.perf_counter()

        if parent:
            parent.children.append(step)
        else:
            self.steps.append(step)

        self._stack.append(step)
        try:
            yield step
        finally:
            step.end_time = time.perf_counter()
            self._stack.pop()

    @property
    def total_duration_ms(self) -> float:
        """Total duration of all top-level steps in milliseconds."""
        return sum(s.duration_ms for s in self.steps)

    def report(self, min_duration_ms: float = 0.0) -> str:
        """
        Generate a human-readable report of all profiled steps.

        Args:
            min_duration_ms: Minimum duration to include in report

        Returns:
            Formatted string report
        """
        if not self.steps:
            return "No profiling data recorded."

        lines = ["=" * 70, "EXECUTION PROFILE", "=" * 70]

        def format_step(step: ProfileStep, indent: int = 0):
            if step.duration_ms < min_duration_ms:
                return
            prefix = "  " * indent
            total = step.parent.duration_ms if step.parent else self.total_duration_ms
            pct = (step.duration_ms / total * 100) if total > 0 else 0

            meta_str = ""
            if step.metadata:
                meta_parts = [f"{k}={v}" for k, v in step.metadata.items()]
                meta_str = f" [{', '.join(meta_parts)}]"

            lines.append(f"{prefix}{step.duration_ms:>8.2f}ms ({pct:>5.1f}%) {step.name}{meta_str}")

            for child in step.children:
                format_step(child, indent + 1)

        for step in self.steps:
            format_step(step)

        lines.append("-" * 70)
        lines.append(f"{'TOTAL:':>12} {self.total_duration_ms:>8.2f}ms")
        lines.append("=" * 70)

        return "\n".join(lines)

    def summary(self) -> Dict[str, float]:
        """Get a summary dict of step names to durations (ms)."""
        result = {}

        def collect(step: ProfileStep, prefix: str = ""):
            name = f"{prefix}{step.name}" if prefix else step.name
            result[name] = result.get(name, 0.0) + step.duration_ms
            for child in step.children:
                collect(child, f"{name}.")

        for step in self.steps:
            collect(step)

        return result


_profiling_enabled: bool = False
_current_profiler: Optional[Profiler] = None
_disabled_profiler = Profiler(enabled=False)


def is_profiling_enabled() -> bool:
    """Check if profiling is enabled."""
    return _profiling_enabled


def enable_profiling() -> None:
    """
    Enable verb profiling.

    Example:
        >>> from tidyverbs.config import enable_profiling, get_profiler
        >>> enable_profiling()
        >>> t.filter(X.month == 1).summarise(n=n())
        >>> print(get_profiler().report())
    """
    global _profiling_enabled
    _profiling_enabled = True


def disable_profiling() -> None:
    """Disable verb profiling."""
    global _profiling_enabled
    _profiling_enabled = False


def get_profiler() -> Optional[Profiler]:
    """Get the current profiler instance (if profiling is enabled)."""
    global _current_profiler
    if _profiling_enabled:
        if _current_profiler is None:
            _current_profiler = Profiler(enabled=True)
        return _current_profiler
    return None


def active_profiler() -> Profiler:
    """The current profiler, or a disabled one whose steps are no-ops."""
    return get_profiler() or _disabled_profiler


def reset_profiler() -> None:
    """Reset the current profiler (clear all recorded data)."""
    global _current_profiler
    _current_profiler = None


class TidyConfig:
    """
    Configuration class for tidyverbs.

    Example:
        >>> from tidyverbs import Table
        >>> import logging
        >>>
        >>> Table.config.log_level = logging.DEBUG
        >>> Table.config.max_workers = 4
        >>> Table.config.random_state = 42
    """

    @property
    def log_level(self) -> int:
        """Get current log level."""
        return _log_level

    @log_level.setter
    def log_level(self, level: int) -> None:
        set_log_level(level)

    def enable_debug(self) -> None:
        """Enable debug logging."""
        enable_debug()

    def disable_debug(self) -> None:
        """Disable debug logging."""
        disable_debug()

    @property
    def log_format(self) -> str:
        """Get current log format."""
        return _log_format

    @log_format.setter
    def log_format(self, format_name: str) -> None:
        set_log_format(format_name)

    @property
    def max_workers(self) -> int:
        return get_max_workers()

    @max_workers.setter
    def max_workers(self, workers: int) -> None:
        set_max_workers(workers)

    @property
    def random_state(self) -> Optional[int]:
        return get_random_state()

    @random_state.setter
    def random_state(self, seed: Optional[int]) -> None:
        set_random_state(seed)

    @property
    def sort_groups(self) -> bool:
        return get_sort_groups()

    @sort_groups.setter
    def sort_groups(self, sort: bool) -> None:
        set_sort_groups(sort)

    @property
    def profiling_enabled(self) -> bool:
        """Check if profiling is enabled."""
        return is_profiling_enabled()

    @profiling_enabled.setter
    def profiling_enabled(self, enabled: bool) -> None:
        if enabled:
            enable_profiling()
        else:
            disable_profiling()


# Global config instance
config = TidyConfig()
