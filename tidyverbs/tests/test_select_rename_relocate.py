"""
Test select(), rename(), rename_with() and relocate()
"""

import logging

import pandas as pd
import pytest

from tidyverbs import X, span, c, select, rename, rename_with, relocate
from tidyverbs.selectors import starts_with, ends_with, everything, last_col, where
from tidyverbs.exceptions import AmbiguousBindingError, UnknownColumnError, ValidationError

ALL = ['year', 'month', 'day', 'dep_delay', 'arr_delay', 'carrier', 'tailnum', 'distance', 'air_time']


class TestSelect:
    """Test select()"""

    def test_by_name(self, flights):
        assert select(flights, X.year, X.month, X.day).columns == ['year', 'month', 'day']

    def test_span(self, flights):
        assert flights.select(span(X.year, X.day)).columns == ['year', 'month', 'day']

    def test_exclusion(self, flights):
        assert flights.select(-span(X.year, X.day)).columns == ALL[3:]

    def test_select_and_rename(self, flights):
        result = flights.select(tail_num=X.tailnum)
        assert result.columns == ['tail_num']
        assert result.to_pandas()['tail_num'].iloc[0] == 'N100'

    def test_move_to_front_with_everything(self, flights):
        result = flights.select(X.carrier, everything())
        assert result.columns == ['carrier'] + [name for name in ALL if name != 'carrier']

    def test_where(self, flights):
        result = flights.select(where(pd.api.types.is_string_dtype))
        assert result.columns == ['carrier', 'tailnum']

    def test_nothing_selected(self, flights):
        result = flights.select(starts_with('zzz'))
        assert result.columns == []
        assert result.nrow == 24

    def test_unknown_column(self, flights):
        with pytest.raises(UnknownColumnError):
            flights.select(X.hour)

    def test_grouping_column_added(self, flights, caplog):
        caplog.set_level(logging.INFO, logger='tidyverbs')
        result = flights.group_by(X.carrier).select(X.dep_delay)
        assert result.columns == ['carrier', 'dep_delay']
        assert result.group_vars == ['carrier']
        assert 'Adding missing grouping variables: carrier' in caplog.text

    def test_renamed_grouping_column_is_followed(self, flights):
        result = flights.group_by(X.carrier).select(X.dep_delay, airline=X.carrier)
        assert result.columns == ['dep_delay', 'airline']
        assert result.group_vars == ['airline']

    def test_values_preserved(self, flights, flights_df):
        result = flights.select(X.distance, X.tailnum).to_pandas()
        assert result['distance'].tolist() == flights_df['distance'].tolist()


class TestRename:
    """Test rename() and rename_with()"""

    def test_keyword(self, flights):
        result = rename(flights, tail_num=X.tailnum)
        assert result.columns == ALL[:6] + ['tail_num'] + ALL[7:]

    def test_aliased_expression(self, flights):
        assert 'tail_num' in flights.rename(X.tailnum.as_('tail_num')).columns

    def test_string_and_position(self, flights):
        result = flights.rename(yr='year', mo=2)
        assert result.columns[:2] == ['yr', 'mo']

    def test_collision(self, flights):
        with pytest.raises(AmbiguousBindingError):
            flights.rename(month=X.day)

    def test_swap_is_allowed(self, flights):
        result = flights.rename(day=X.month, month=X.day)
        assert result.columns[1:3] == ['day', 'month']

    def test_needs_a_name(self, flights):
        with pytest.raises(ValidationError):
            flights.rename(X.tailnum)

    def test_grouping_follows(self, flights):
        result = flights.group_by(X.carrier).rename(airline=X.carrier)
        assert result.group_vars == ['airline']
        assert result.n_groups == 3

    def test_rename_with(self, flights):
        result = rename_with(flights, str.upper, starts_with('dep'))
        assert result.columns[3] == 'DEP_DELAY'
        assert result.columns[4] == 'arr_delay'

    def test_rename_with_all_columns(self, flights):
        assert flights.rename_with(str.upper).columns == [name.upper() for name in ALL]

    def test_rename_with_collision(self, flights):
        with pytest.raises(AmbiguousBindingError):
            flights.rename_with(lambda name: 'same', c(X.year, X.month))


class TestRelocate:
    """Test relocate()"""

    def test_to_front(self, flights):
        assert relocate(flights, X.carrier).columns[0] == 'carrier'

    def test_after(self, flights):
        result = flights.relocate(ends_with('delay'), _after=X.carrier)
        assert result.columns == [
            'year', 'month', 'day', 'carrier', 'dep_delay', 'arr_delay', 'tailnum', 'distance', 'air_time',
        ]

    def test_before(self, flights):
        result = flights.relocate(ends_with('delay'), _before=X.year)
        assert result.columns[:3] == ['dep_delay', 'arr_delay', 'year']

    def test_to_end(self, flights):
        assert flights.relocate(X.year, _after=last_col()).columns[-1] == 'year'

    def test_keeps_every_column(self, flights):
        result = flights.relocate(X.tailnum, X.distance, _after=X.month)
        assert sorted(result.columns) == sorted(ALL)
        assert result.columns[2:4] == ['tailnum', 'distance']

    def test_rename_while_moving(self, flights):
        result = flights.relocate(airline=X.carrier)
        assert result.columns[0] == 'airline'
        assert 'carrier' not in result.columns

    def test_both_anchors(self, flights):
        with pytest.raises(ValidationError):
            flights.relocate(X.carrier, _before=X.year, _after=X.day)

    def test_grouping_kept(self, flights):
        result = flights.group_by(X.month).relocate(X.carrier)
        assert result.group_vars == ['month']
