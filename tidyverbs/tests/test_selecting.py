"""
Test selecting-context evaluation - names resolve to column positions
"""

import pandas as pd
import pytest

from tidyverbs import X, data, env, c, span, call
from tidyverbs.environment import Env
from tidyverbs.evaluator import evaluate_selecting, eval_select
from tidyverbs.selectors import (
    starts_with,
    ends_with,
    contains,
    matches,
    num_range,
    everything,
    last_col,
    all_of,
    any_of,
    where,
)
from tidyverbs.exceptions import (
    UnknownColumnError,
    OutOfRangeError,
    AmbiguousBindingError,
    ValidationError,
)

NAMES = ['year', 'month', 'day', 'dep_time', 'dep_delay', 'arr_time', 'arr_delay', 'carrier']


def identity(x):
    return x


class TestSymbolsAndLiterals:
    """Test bare names, strings and positions"""

    def test_column_name(self):
        assert evaluate_selecting(X.month, NAMES) == [2]

    def test_string_and_int_literals(self):
        assert evaluate_selecting('carrier', NAMES) == [8]
        assert evaluate_selecting(3, NAMES) == [3]

    def test_list_literal(self):
        assert evaluate_selecting(['day', 1], NAMES) == [3, 1]

    def test_unknown_name(self):
        with pytest.raises(UnknownColumnError):
            evaluate_selecting(X.hour, NAMES)

    def test_out_of_range(self):
        with pytest.raises(OutOfRangeError):
            evaluate_selecting(9, NAMES)

    def test_env_binding_holding_names(self):
        assert evaluate_selecting(X.cols, NAMES, Env({'cols': ['carrier', 'year']})) == [8, 1]

    def test_env_binding_holding_position(self):
        assert evaluate_selecting(X.pos, NAMES, Env({'pos': 4})) == [4]

    def test_env_binding_of_wrong_kind(self):
        with pytest.raises(AmbiguousBindingError):
            evaluate_selecting(X.cols, NAMES, Env({'cols': 2.5}))

    def test_pronouns(self):
        scope = Env({'month': 'carrier'})
        assert evaluate_selecting(data.month, NAMES, scope) == [2]
        assert evaluate_selecting(env.month, NAMES, scope) == [8]


class TestShadowing:
    """Columns win over environment bindings for bare names"""

    def test_column_shadows_env(self):
        assert evaluate_selecting(X.year, NAMES, Env({'year': 5})) == [1]

    def test_call_sees_only_env(self):
        positions, _ = eval_select([X.year, call(identity, X.year)], NAMES, Env({'year': 5}))
        assert positions == [1, 5]

    def test_arithmetic_sees_only_env(self):
        assert evaluate_selecting(X.k + 1, NAMES, Env({'k': 2})) == [3]

    def test_arithmetic_on_column_name_fails(self):
        # columns are not visible outside the whitelisted combinators
        with pytest.raises(UnknownColumnError):
            evaluate_selecting(X.year + 1, NAMES)


class TestCombinators:
    """Test span, c(), complement, intersection and union"""

    def test_span(self):
        assert evaluate_selecting(span(X.year, X.day), NAMES) == [1, 2, 3]

    def test_span_descending(self):
        assert evaluate_selecting(span(X.day, X.year), NAMES) == [3, 2, 1]

    def test_span_of_positions(self):
        assert evaluate_selecting(span(2, 4), NAMES) == [2, 3, 4]

    def test_concat(self):
        assert evaluate_selecting(c(X.carrier, span(1, 2), X.year), NAMES) == [8, 1, 2]

    def test_concat_of_exclusions(self):
        assert evaluate_selecting(c(-1, -2), NAMES) == [3, 4, 5, 6, 7, 8]
        assert evaluate_selecting(c(-X.year, -X.month), NAMES) == [3, 4, 5, 6, 7, 8]
        assert evaluate_selecting(c(-X.year, ~starts_with('arr')), NAMES) == [2, 3, 4, 5, 8]

    def test_concat_mixing_signs(self):
        with pytest.raises(ValidationError):
            evaluate_selecting(c(X.day, -X.year), NAMES)

    def test_complement(self):
        assert evaluate_selecting(-span(X.year, X.arr_delay), NAMES) == [8]
        assert evaluate_selecting(~starts_with('dep'), NAMES) == [1, 2, 3, 6, 7, 8]

    def test_intersection_and_union(self):
        assert evaluate_selecting(starts_with('dep') & ends_with('delay'), NAMES) == [5]
        assert evaluate_selecting(starts_with('arr') | X.year, NAMES) == [6, 7, 1]


class TestHelpers:
    """Test selection helpers"""

    def test_starts_ends_contains(self):
        assert evaluate_selecting(starts_with('arr'), NAMES) == [6, 7]
        assert evaluate_selecting(ends_with('TIME'), NAMES) == [4, 6]
        assert evaluate_selecting(contains('_'), NAMES) == [4, 5, 6, 7]

    def test_case_sensitive(self):
        assert evaluate_selecting(ends_with('TIME', ignore_case=False), NAMES) == []

    def test_matches(self):
        assert evaluate_selecting(matches(r'^(dep|arr)_delay$'), NAMES) == [5, 7]

    def test_num_range(self):
        names = ['x1', 'x2', 'x3', 'y']
        assert evaluate_selecting(num_range('x', range(2, 5)), names) == [2, 3]

    def test_everything_and_last_col(self):
        assert evaluate_selecting(everything(), NAMES) == list(range(1, 9))
        assert evaluate_selecting(last_col(), NAMES) == [8]
        assert evaluate_selecting(last_col(1), NAMES) == [7]

    def test_all_of_any_of(self):
        assert evaluate_selecting(all_of(['day', 'year']), NAMES) == [3, 1]
        assert evaluate_selecting(any_of(['day', 'hour']), NAMES) == [3]
        with pytest.raises(UnknownColumnError):
            evaluate_selecting(all_of(['day', 'hour']), NAMES)

    def test_helper_argument_reads_env(self):
        # a column named "prefix" must not capture the helper's argument
        names = ['prefix', 'dep_time', 'arr_time']
        assert evaluate_selecting(starts_with(X.prefix), names, Env({'prefix': 'dep'})) == [2]

    def test_where_needs_data(self):
        frame = pd.DataFrame({'a': [1, 2], 'b': ['x', 'y'], 'c': [1.5, 2.5]})
        positions = evaluate_selecting(where(pd.api.types.is_numeric_dtype), list(frame.columns), data=frame)
        assert positions == [1, 3]
        with pytest.raises(ValidationError):
            evaluate_selecting(where(pd.api.types.is_numeric_dtype), list(frame.columns))


class TestEvalSelect:
    """Test sequence-level selection"""

    def test_order_follows_expressions(self):
        positions, names = eval_select([X.carrier, X.year], NAMES, Env())
        assert positions == [8, 1]
        assert names == ['carrier', 'year']

    def test_leading_exclusion_starts_from_everything(self):
        positions, _ = eval_select([-X.year, -X.month], NAMES, Env())
        assert positions == [3, 4, 5, 6, 7, 8]

    def test_negative_literal_is_exclusion(self):
        positions, _ = eval_select([-1], NAMES, Env())
        assert positions == list(range(2, 9))

    def test_concat_of_exclusions_is_exclusion(self):
        positions, names = eval_select([c(-1, -2)], NAMES[:3], Env())
        assert positions == [3]
        assert names == ['day']
        positions, _ = eval_select([c(-X.year, -X.month)], NAMES[:3], Env())
        assert positions == [3]

    def test_later_exclusion_removes(self):
        positions, _ = eval_select([starts_with('dep'), starts_with('arr'), -X.arr_time], NAMES, Env())
        assert positions == [4, 5, 7]

    def test_duplicate_keeps_first_place_and_last_alias(self):
        positions, names = eval_select([X.year, X.month, X.year.as_('yr')], NAMES, Env())
        assert positions == [1, 2]
        assert names == ['yr', 'month']

    def test_renames(self):
        positions, names = eval_select([X.year], NAMES, Env(), renames={'airline': X.carrier})
        assert positions == [1, 8]
        assert names == ['year', 'airline']

    def test_alias_on_multiple_columns_numbers_them(self):
        _, names = eval_select([starts_with('dep').as_('d')], NAMES, Env())
        assert names == ['d1', 'd2']

    def test_conflicting_output_names(self):
        with pytest.raises(AmbiguousBindingError):
            eval_select([X.year.as_('day'), X.day], NAMES, Env())
