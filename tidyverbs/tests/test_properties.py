"""
Test general laws the verbs must obey, plus the documented worked scenarios
"""

import numpy as np
import pandas as pd
import pytest

from tidyverbs import Table, X, F, n, call, span, pull
from tidyverbs import filter, select, mutate, summarise, group_by, arrange, slice

FLIGHT_COLUMNS = ['year', 'month', 'day', 'dep_delay', 'arr_delay', 'carrier', 'tailnum', 'distance', 'air_time']


def identity(x):
    return x


@pytest.fixture
def calendar():
    days = pd.date_range('2013-01-01', periods=365, freq='D')
    return Table(pd.DataFrame({'year': days.year, 'month': days.month, 'day': days.day}))


class TestImmutability:
    """Verbs never modify their input"""

    @pytest.mark.parametrize(
        'apply',
        [
            lambda t: select(t, X.year, X.carrier),
            lambda t: select(t, -X.year),
            lambda t: mutate(t, year=X.year + 1, tailnum=None),
            lambda t: mutate(t, k=1, _keep='none'),
            lambda t: filter(t, X.month == 1),
            lambda t: arrange(t, X.dep_delay),
            lambda t: group_by(t, X.carrier).summarise(n=n()),
        ],
    )
    def test_input_unchanged(self, flights_df, flights, apply):
        before = flights_df.copy()
        apply(flights)
        after = flights.to_pandas()
        assert after.equals(before)
        assert list(after.columns) == list(before.columns)

    def test_to_pandas_hands_out_a_copy(self, flights):
        frame = flights.to_pandas()
        frame.loc[0, 'year'] = 1999
        assert pull(flights, X.year)[0] == 2013


class TestSelectByNameOrPosition:
    """select(T, name) equals select(T, position_of(name))"""

    @pytest.mark.parametrize('position,name', list(enumerate(FLIGHT_COLUMNS, start=1)))
    def test_equivalent(self, flights, position, name):
        assert select(flights, X[name]).equals(select(flights, position))
        assert select(flights, name).equals(select(flights, position))


class TestSummariseShape:
    """One row per group; grouping columns then summaries"""

    @pytest.mark.parametrize('keys', [['carrier'], ['month'], ['carrier', 'day'], ['day', 'month']])
    def test_rows_and_columns(self, flights_df, flights, keys):
        result = flights.group_by(*[X[k] for k in keys]).summarise(n=n(), top=F.max(X.distance))
        assert result.nrow == len(flights_df.drop_duplicates(subset=keys))
        assert result.columns == keys + ['n', 'top']


class TestArrangeStability:
    """Rows with equal keys keep their relative order"""

    @pytest.mark.parametrize('key', ['carrier', 'day', 'year'])
    def test_stable(self, flights, key):
        result = flights.arrange(X[key]).to_pandas()
        for _, part in result.groupby(key, sort=False):
            assert part['tailnum'].tolist() == sorted(part['tailnum'].tolist())


class TestRecycling:
    """mutate(T, x=literal) fills every row with the literal"""

    @pytest.mark.parametrize('rows', [0, 1, 7])
    @pytest.mark.parametrize('literal', [3, 2.5, 'a', True])
    def test_literal_fills_column(self, rows, literal):
        t = Table(pd.DataFrame({'a': np.arange(rows)}))
        values = pull(t.mutate(x=literal), X.x)
        assert len(values) == rows
        assert all(v == literal for v in values)


class TestShadowing:
    """Columns win for bare names; calls outside the combinators see the environment"""

    def test_column_position_wins(self, flights):
        assert select(flights, X.year, _env={'year': 5}).columns == ['year']

    def test_call_uses_enclosing_binding(self, flights):
        result = select(flights, X.year, call(identity, X.year), _env={'year': 5})
        assert result.columns == ['year', 'dep_delay']


class TestScenarios:
    """Worked examples"""

    def test_month_counts(self, calendar):
        result = calendar.group_by(X.month).summarise(n=n())
        assert result.nrow == 12
        assert result.columns == ['month', 'n']
        assert pull(result, X.n).sum() == 365
        assert pull(result, X.n)[1] == 28

    def test_slice_span_on_ten_rows(self):
        t = Table({'row': list(range(1, 11))})
        assert pull(slice(t, span(5, 10))).tolist() == [5, 6, 7, 8, 9, 10]

    def test_filter_arguments_are_anded(self, calendar):
        separate = filter(calendar, X.month == 1, X.day == 1)
        combined = filter(calendar, (X.month == 1) & (X.day == 1))
        assert separate.equals(combined)
        assert separate.nrow == 1
