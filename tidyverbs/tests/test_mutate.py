"""
Test mutate() and transmute()
"""

import pytest

from tidyverbs import X, F, n, mutate, transmute, pull
from tidyverbs.exceptions import RecycleLengthMismatchError, UnknownColumnError, ValidationError


class TestMutate:
    """Test mutate()"""

    def test_later_columns_use_earlier_ones(self, flights):
        result = mutate(
            flights,
            gain=X.arr_delay - X.dep_delay,
            hours=X.air_time / 60,
            gain_per_hour=X.gain / X.hours,
        )
        frame = result.to_pandas()
        assert frame['gain'].iloc[0] == 9
        assert frame['hours'].iloc[0] == pytest.approx(10 / 60)
        assert frame['gain_per_hour'].iloc[0] == pytest.approx(54)
        assert result.columns[-3:] == ['gain', 'hours', 'gain_per_hour']

    def test_positional_expression_named_by_text(self, flights):
        result = flights.mutate(X.distance / 10)
        assert result.columns[-1] == 'distance / 10'
        assert pull(result)[0] == 10

    def test_aliased_positional_expression(self, flights):
        assert flights.mutate((X.distance / 10).as_('tens')).columns[-1] == 'tens'

    def test_overwrite_keeps_position(self, flights):
        result = flights.mutate(distance=X.distance / 1000)
        assert result.columns == flights.columns
        assert pull(result, X.distance)[0] == pytest.approx(0.1)

    def test_overwritten_column_visible_to_later_expressions(self, flights):
        result = flights.mutate(distance=X.distance * 2, d2=X.distance)
        assert pull(result, X.d2).tolist() == pull(result, X.distance).tolist()

    def test_none_removes(self, flights):
        result = flights.mutate(tailnum=None)
        assert 'tailnum' not in result.columns
        assert result.ncol == flights.ncol - 1

    def test_removed_column_not_visible(self, flights):
        with pytest.raises(UnknownColumnError):
            flights.mutate(tailnum=None, t2=X.tailnum)

    def test_scalar_recycled(self, flights):
        assert pull(flights.mutate(k=1), X.k).tolist() == [1] * 24

    def test_wrong_length(self, flights):
        with pytest.raises(RecycleLengthMismatchError) as exc_info:
            flights.mutate(bad=[1, 2, 3])
        assert exc_info.value.length == 3
        assert exc_info.value.expected == 24

    def test_env_values(self, flights):
        result = flights.mutate(adj=X.distance * X.factor, _env={'factor': 2})
        assert pull(result, X.adj)[0] == 200

    def test_zero_rows(self, flights):
        result = flights.filter(False).mutate(k=1)
        assert result.nrow == 0
        assert 'k' in result.columns

    def test_no_expressions(self, flights):
        assert flights.mutate().equals(flights)


class TestGroupedMutate:
    """Test mutate() on grouped tables"""

    def test_aggregate_is_per_group(self, flights):
        result = flights.group_by(X.carrier).mutate(centred=X.distance - F.mean(X.distance))
        centred = pull(result, X.centred)
        assert centred[0] == -1050
        assert centred[1] == -1050
        assert centred[21] == 1050

    def test_group_size(self, flights):
        result = flights.group_by(X.carrier).mutate(size=n())
        assert pull(result, X.size).tolist() == [8] * 24

    def test_row_order_preserved(self, flights):
        result = flights.group_by(X.carrier).mutate(k=1)
        assert pull(result, X.tailnum).tolist() == pull(flights, X.tailnum).tolist()
        assert result.group_vars == ['carrier']

    def test_wrong_length_per_group(self, flights):
        with pytest.raises(RecycleLengthMismatchError) as exc_info:
            flights.group_by(X.carrier).mutate(bad=[1, 2, 3])
        assert exc_info.value.expected == 8

    def test_cannot_remove_grouping_column(self, flights):
        with pytest.raises(ValidationError):
            flights.group_by(X.carrier).mutate(carrier=None)


class TestKeepAndPlacement:
    """Test _keep, _before and _after"""

    def test_keep_used(self, flights):
        result = flights.mutate(gain=X.arr_delay - X.dep_delay, _keep='used')
        assert result.columns == ['dep_delay', 'arr_delay', 'gain']

    def test_keep_unused(self, flights):
        result = flights.mutate(gain=X.arr_delay - X.dep_delay, _keep='unused')
        assert 'dep_delay' not in result.columns
        assert result.columns[-1] == 'gain'
        assert 'tailnum' in result.columns

    def test_keep_none(self, flights):
        assert flights.mutate(gain=X.arr_delay - X.dep_delay, _keep='none').columns == ['gain']

    def test_keep_none_keeps_grouping(self, flights):
        result = flights.group_by(X.carrier).mutate(gain=X.arr_delay - X.dep_delay, _keep='none')
        assert result.columns == ['carrier', 'gain']

    def test_invalid_keep(self, flights):
        with pytest.raises(ValidationError):
            flights.mutate(k=1, _keep='some')

    def test_before(self, flights):
        assert flights.mutate(k=1, _before=X.year).columns[0] == 'k'

    def test_after(self, flights):
        assert flights.mutate(k=1, _after=X.day).columns[3] == 'k'


class TestTransmute:
    """Test transmute()"""

    def test_only_new_columns(self, flights):
        result = transmute(flights, gain=X.arr_delay - X.dep_delay)
        assert result.columns == ['gain']
        assert result.nrow == 24

    def test_grouping_columns_kept(self, flights):
        result = flights.group_by(X.carrier).transmute(centred=X.distance - F.mean(X.distance))
        assert result.columns == ['carrier', 'centred']
        assert pull(result, X.centred)[0] == -1050

    def test_existing_column(self, flights):
        assert flights.transmute(X.tailnum).columns == ['tailnum']


def test_input_unchanged(flights, flights_df):
    flights.mutate(distance=X.distance * 2, tailnum=None)
    assert flights.to_pandas().equals(flights_df)
