"""
Pytest configuration for tidyverbs tests.

Provides a small flights-like table (24 rows: every month twice, three
carriers, a few missing delays) and a restore-defaults fixture for tests
that touch global configuration.
"""

import numpy as np
import pandas as pd
import pytest

from tidyverbs import Table
from tidyverbs.config import (
    config,
    get_max_workers,
    get_random_state,
    get_sort_groups,
    is_profiling_enabled,
    set_max_workers,
    set_random_state,
    set_sort_groups,
    set_log_level,
    enable_profiling,
    disable_profiling,
    reset_profiler,
)

DEP_DELAY = [2, 4, -1, np.nan, 10, 0, 33, -5, 7, 12, np.nan, 1, 5, -2, 8, 15, 3, 0, 20, -3, 6, 9, 11, 4]
ARR_DELAY = [11, 20, 33, np.nan, -18, 12, 19, -14, -8, 8, np.nan, -2, 0, 1, 5, 30, -4, 2, 25, -10, 3, 9, 14, 6]


def make_flights_frame() -> pd.DataFrame:
    """24 flights: months 1..12 on day 1, then again on day 2."""
    n = 24
    return pd.DataFrame(
        {
            'year': [2013] * n,
            'month': [i % 12 + 1 for i in range(n)],
            'day': [1] * 12 + [2] * 12,
            'dep_delay': DEP_DELAY,
            'arr_delay': ARR_DELAY,
            'carrier': [['UA', 'AA', 'DL'][i % 3] for i in range(n)],
            'tailnum': [f"N{100 + i}" for i in range(n)],
            'distance': [100.0 * (i + 1) for i in range(n)],
            'air_time': [10.0 + i for i in range(n)],
        }
    )


@pytest.fixture
def flights_df():
    return make_flights_frame()


@pytest.fixture
def flights(flights_df):
    return Table(flights_df)


@pytest.fixture
def small():
    """Five columns, six rows, two groups of three on g."""
    return Table(
        pd.DataFrame(
            {
                'g': ['a', 'b', 'a', 'b', 'a', 'b'],
                'x': [1, 2, 3, 4, 5, 6],
                'y': [10.0, 20.0, 30.0, 40.0, 50.0, 60.0],
                'z': ['p', 'q', 'r', 's', 't', 'u'],
                'w': [True, False, True, False, True, False],
            }
        )
    )


@pytest.fixture
def restore_config():
    """Put global configuration back the way it was after the test."""
    saved = (
        get_max_workers(),
        get_random_state(),
        get_sort_groups(),
        is_profiling_enabled(),
        config.log_level,
    )
    yield config
    set_max_workers(saved[0])
    set_random_state(saved[1])
    set_sort_groups(saved[2])
    if saved[3]:
        enable_profiling()
    else:
        disable_profiling()
    reset_profiler()
    set_log_level(saved[4])
