"""
Test summarise(), group_by(), ungroup(), count(), distinct() and pull()
"""

import logging

import numpy as np
import pandas as pd
import pytest

from tidyverbs import Table, X, F, n, summarise, group_by, ungroup, count, distinct, pull
from tidyverbs.exceptions import SummariseLengthMismatchError, UnknownColumnError, ValidationError


class TestSummarise:
    """Test summarise()"""

    def test_ungrouped_is_one_row(self, flights):
        result = summarise(flights, n=n(), delay=F.mean(X.dep_delay, na_rm=True))
        assert result.shape == (1, 2)
        frame = result.to_pandas()
        assert frame['n'].iloc[0] == 24
        assert frame['delay'].iloc[0] == pytest.approx(139 / 22)

    def test_missing_without_na_rm(self, flights):
        result = flights.summarise(delay=F.mean(X.dep_delay))
        assert np.isnan(pull(result)[0])

    def test_one_row_per_group(self, flights):
        result = flights.group_by(X.month).summarise(n=n())
        assert result.shape == (12, 2)
        assert result.columns == ['month', 'n']
        assert pull(result, X.month).tolist() == list(range(1, 13))
        assert pull(result, X.n).tolist() == [2] * 12
        assert not result.is_grouped

    def test_drop_last(self, flights, caplog):
        caplog.set_level(logging.INFO, logger='tidyverbs')
        result = flights.group_by(X.year, X.month, X.day).summarise(n=n())
        assert result.nrow == 24
        assert result.group_vars == ['year', 'month']
        assert result.n_groups == 12
        assert 'grouped output by year, month' in caplog.text

    def test_groups_drop_and_keep(self, flights):
        by_day = flights.group_by(X.month, X.day)
        assert by_day.summarise(n=n(), _groups='drop').group_vars == []
        assert by_day.summarise(n=n(), _groups='keep').group_vars == ['month', 'day']

    def test_invalid_groups_option(self, flights):
        with pytest.raises(ValidationError):
            flights.group_by(X.month).summarise(n=n(), _groups='rowwise')

    def test_later_summaries_see_earlier_ones(self, flights):
        result = flights.group_by(X.carrier).summarise(total=F.sum(X.distance), half=X.total / 2)
        frame = result.to_pandas()
        assert frame['total'].iloc[0] == 9200
        assert frame['half'].iloc[0] == 4600

    def test_summary_mixed_with_column(self, flights):
        result = flights.group_by(X.carrier).summarise(top=F.max(X.distance), gap=F.max(X.top - X.distance))
        assert pull(result, X.gap)[0] == 2100

    def test_length_mismatch(self, flights):
        with pytest.raises(SummariseLengthMismatchError) as exc_info:
            flights.group_by(X.carrier).summarise(d=X.distance)
        assert exc_info.value.length == 8
        assert exc_info.value.group == ('UA',)

    def test_length_mismatch_ungrouped(self, flights):
        with pytest.raises(SummariseLengthMismatchError):
            flights.summarise(d=X.distance)

    def test_summarising_grouping_column(self, flights):
        with pytest.raises(ValidationError):
            flights.group_by(X.carrier).summarise(carrier=F.first(X.carrier))

    def test_zero_rows_ungrouped(self, flights):
        result = flights.filter(False).summarise(n=n())
        assert result.nrow == 1
        assert pull(result)[0] == 0

    def test_zero_rows_grouped(self, flights):
        result = flights.filter(False).group_by(X.carrier).summarise(n=n())
        assert result.nrow == 0
        assert result.columns == ['carrier', 'n']

    def test_summarize_alias(self, flights):
        assert flights.summarize(n=n()).equals(flights.summarise(n=n()))

    def test_group_id(self, flights):
        result = flights.group_by(X.carrier).summarise(id=F.cur_group_id())
        assert pull(result, X.id).tolist() == [1, 2, 3]


class TestGroupBy:
    """Test group_by() and ungroup()"""

    def test_first_appearance_order(self, flights):
        by_carrier = group_by(flights, X.carrier)
        assert by_carrier.group_vars == ['carrier']
        assert by_carrier.n_groups == 3
        assert by_carrier.group_keys()['carrier'].tolist() == ['UA', 'AA', 'DL']

    def test_sorted(self, flights):
        by_carrier = flights.group_by(X.carrier, _sort=True)
        assert by_carrier.group_keys()['carrier'].tolist() == ['AA', 'DL', 'UA']

    def test_sort_from_config(self, flights, restore_config):
        Table.config.sort_groups = True
        assert flights.group_by(X.carrier).group_keys()['carrier'].tolist() == ['AA', 'DL', 'UA']

    def test_group_indices(self, flights):
        indices = flights.group_by(X.carrier).group_indices()
        assert indices[:4].tolist() == [1, 2, 3, 1]

    def test_group_rows(self, flights):
        rows = flights.group_by(X.carrier).group_rows()
        assert rows[1].tolist() == list(range(1, 24, 3))

    def test_rows_unchanged(self, flights, flights_df):
        assert flights.group_by(X.carrier).to_pandas().equals(flights_df)

    def test_derived_key(self, flights):
        result = flights.group_by(long=X.distance > 1200)
        assert 'long' in result.columns
        assert result.group_vars == ['long']
        assert result.group_keys()['long'].tolist() == [False, True]

    def test_positional_derived_key(self, flights):
        result = flights.group_by(X.month % 3)
        assert result.group_vars == ['month % 3']
        assert result.n_groups == 3

    def test_add(self, flights):
        result = flights.group_by(X.carrier).group_by(X.day, _add=True)
        assert result.group_vars == ['carrier', 'day']
        assert result.n_groups == 6

    def test_replace(self, flights):
        assert flights.group_by(X.carrier).group_by(X.day).group_vars == ['day']

    def test_missing_key_is_a_group(self):
        t = Table({'k': ['a', None, 'a', None], 'v': [1, 2, 3, 4]})
        result = t.group_by(X.k).summarise(total=F.sum(X.v))
        assert result.nrow == 2
        assert result.to_pandas()['k'].isna().tolist() == [False, True]
        assert pull(result, X.total).tolist() == [4, 6]

    def test_unknown_column(self, flights):
        with pytest.raises(UnknownColumnError):
            flights.group_by(X.hour)

    def test_ungroup(self, flights):
        assert not ungroup(flights.group_by(X.carrier)).is_grouped

    def test_ungroup_some(self, flights):
        result = flights.group_by(X.carrier, X.day).ungroup(X.day)
        assert result.group_vars == ['carrier']

    def test_grouping_follows_filter(self, flights):
        result = flights.group_by(X.carrier).filter(X.carrier != 'UA')
        assert result.n_groups == 2
        assert result.group_keys()['carrier'].tolist() == ['AA', 'DL']

    def test_repr_shows_groups(self, flights):
        text = repr(flights.group_by(X.carrier))
        assert text.startswith('# Table: 24 x 9')
        assert '# Groups: carrier [3]' in text


class TestCountDistinctPull:
    """Test count(), distinct() and pull()"""

    def test_count(self, flights):
        result = count(flights, X.carrier)
        assert result.columns == ['carrier', 'n']
        assert pull(result, X.n).tolist() == [8, 8, 8]
        assert not result.is_grouped

    def test_count_everything(self, flights):
        assert pull(flights.count())[0] == 24

    def test_count_weighted_and_sorted(self, flights):
        result = flights.count(X.month, _wt=X.distance, _sort=True)
        assert pull(result, X.month)[0] == 12
        assert pull(result, X.n)[0] == 3600

    def test_count_name(self, flights):
        assert flights.count(X.carrier, _name='flights').columns == ['carrier', 'flights']

    def test_count_columns_named_like_options(self, flights):
        result = flights.count(name=X.carrier, sort=X.day)
        assert result.columns == ['name', 'sort', 'n']
        assert result.nrow == 6

    def test_count_keeps_grouping(self, flights):
        result = flights.group_by(X.carrier).count(X.day)
        assert result.columns == ['carrier', 'day', 'n']
        assert result.nrow == 6
        assert result.group_vars == ['carrier']

    def test_distinct_columns(self, flights):
        result = distinct(flights, X.carrier)
        assert result.columns == ['carrier']
        assert pull(result).tolist() == ['UA', 'AA', 'DL']

    def test_distinct_keep_all(self, flights):
        result = flights.distinct(X.carrier, _keep_all=True)
        assert result.ncol == 9
        assert pull(result, X.tailnum).tolist() == ['N100', 'N101', 'N102']

    def test_distinct_rows(self):
        t = Table(pd.DataFrame({'a': [1, 1, 2], 'b': ['x', 'x', 'y']}))
        assert t.distinct().nrow == 2

    def test_distinct_computed(self, flights):
        result = flights.distinct(X.month % 2)
        assert result.columns == ['month % 2']
        assert result.nrow == 2

    def test_pull_defaults_to_last_column(self, flights):
        assert pull(flights).name == 'air_time'

    def test_pull_by_position(self, flights):
        assert pull(flights, 1).name == 'year'
        assert pull(flights, -2).name == 'distance'

    def test_pull_by_name(self, flights):
        assert pull(flights, 'carrier').tolist()[:3] == ['UA', 'AA', 'DL']

    def test_pull_named(self, flights):
        delays = pull(flights, X.dep_delay, name=X.tailnum)
        assert delays['N106'] == 33
