"""Series - construction, CRUD, conversion, ordering, search, aggregation"""
import warnings
from datetime import datetime
from decimal import Decimal

import pytest

from py_series import (
    ArgumentMismatchError,
    Char,
    DataType,
    IndexKind,
    InvalidArgumentError,
    InvalidCastError,
    InvalidOperationError,
    KeyNotFoundError,
    Kind,
    RangeIndex,
    Series,
    TypeMismatchError,
)


def assert_consistent(s):
    """Index and storage agree in length and the index partitions positions."""
    assert len(s.index) == len(s.storage)
    seen = []
    for label in s.index.distinct():
        seen.extend(s.index.positions(label))
    assert sorted(seen) == list(range(len(s)))


class TestConstruction:
    """Values, labels and dtype handling"""

    def test_default_range_index(self):
        s = Series([10, 20, 30])
        assert isinstance(s.index, RangeIndex)
        assert s.labels == [0, 1, 2]
        assert s.values == [10, 20, 30]

    def test_inferred_dtype_not_pinned(self):
        s = Series([1, 2, 3])
        assert s.dtype.kind is Kind.INT32
        assert not s.pinned

    def test_wider_integer(self):
        assert Series([1, 2, 3, 4000000000]).dtype.kind is Kind.INT64

    def test_mixed_numeric_values_converted(self):
        s = Series([1, Decimal("2.5")])
        assert s.dtype.kind is Kind.DECIMAL
        assert s.values == [Decimal(1), Decimal("2.5")]
        assert isinstance(s.values[0], Decimal)

    def test_generator_consumed_once(self):
        s = Series(x * 2 for x in range(3))
        assert s.values == [0, 2, 4]

    def test_label_length_mismatch(self):
        with pytest.raises(ArgumentMismatchError):
            Series([1, 2, 3], labels=["a", "b"])

    def test_pinned_dtype_converts(self):
        s = Series(["1", "2"], dtype=int)
        assert s.values == [1, 2]
        assert s.pinned
        assert s.dtype.kind is Kind.INT64

    def test_non_strict_maps_failures_to_none(self):
        with pytest.warns(UserWarning, match="1 value"):
            s = Series(["1", "x", "3"], dtype=int)
        assert s.values == [1, None, 3]

    def test_strict_raises(self):
        with pytest.raises(InvalidCastError):
            Series(["1", "x"], dtype=int, strict=True)

    def test_from_text(self):
        s = Series.from_text(["12", None, "abc"], name="raw")
        assert s.dtype.kind is Kind.STRING
        assert s.values == ["12", None, "abc"]
        assert s.name == "raw"
        assert s.value_at(2) == "abc"

    def test_copy_deep_copies_objects(self):
        payload = {"k": 1}
        s = Series([payload, "x"], copy=True)
        assert s.values[0] == payload
        assert s.values[0] is not payload

    def test_getitem_by_label(self):
        s = Series([1, 2, 3], labels=["a", "b", "a"])
        assert s["a"] == [1, 3]
        with pytest.raises(KeyNotFoundError):
            s["z"]


class TestAdd:
    """Appending values"""

    def test_add_on_default_range(self):
        s = Series([1, 2])
        s.add(3)
        assert s.values == [1, 2, 3]
        assert isinstance(s.index, RangeIndex)
        assert s.labels == [0, 1, 2]
        assert_consistent(s)

    def test_add_to_empty_infers_type(self):
        s = Series()
        s.add("x")
        assert s.dtype.kind is Kind.STRING
        assert s.values == ["x"]

    def test_unlabeled_add_requires_default_index(self):
        s = Series([1, 2], labels=["a", "b"])
        with pytest.raises(InvalidOperationError):
            s.add(3)
        assert len(s) == 2

    def test_labeled_add(self):
        s = Series([1, 2], labels=["a", "b"])
        s.add(3, "a")
        assert s["a"] == [1, 3]
        assert_consistent(s)

    def test_labeled_add_on_range_materializes(self):
        s = Series([1, 2])
        s.add(3, 10)
        assert s.index.kind is IndexKind.INT64
        assert s.labels == [0, 1, 10]
        with pytest.raises(InvalidOperationError):
            s.add(4)

    def test_label_of_new_kind_rebuilds_index(self):
        s = Series([1, 2], labels=[1, 2])
        s.add(3, "three")
        assert s.index.kind is IndexKind.OBJECT
        assert s["three"] == [3]
        assert_consistent(s)

    def test_promotes_numeric(self):
        s = Series([1, 2])
        s.add(2.5)
        assert s.dtype.kind is Kind.DOUBLE
        assert s.values == [1.0, 2.0, 2.5]

    def test_degrading_to_object_warns(self):
        s = Series([1, 2])
        with pytest.warns(UserWarning, match="Degrading"):
            s.add("x")
        assert s.dtype.kind is Kind.OBJECT
        assert s.values == [1, 2, "x"]

    def test_pinned_add_converts_strictly(self):
        s = Series([1, 2], dtype=int)
        s.add("3")
        assert s.values == [1, 2, 3]
        with pytest.raises(InvalidCastError):
            s.add("three")
        assert len(s) == 3
        assert_consistent(s)

    def test_add_none(self):
        s = Series([1, 2])
        s.add(None)
        assert s.values == [1, 2, None]
        assert s.dtype.kind is Kind.INT32


class TestRemove:
    """Removing values and compacting"""

    def test_remove_all_occurrences(self):
        s = Series([1, 2, 1, 3], labels=["a", "b", "c", "d"])
        assert s.remove(1)
        assert s.values == [2, 3]
        assert s.labels == ["b", "d"]
        assert s.index.positions("d") == [1]
        assert_consistent(s)

    def test_no_match_leaves_state(self):
        s = Series([1, 2], labels=["a", "b"])
        assert not s.remove(9)
        assert s.values == [1, 2]
        assert s.labels == ["a", "b"]

    def test_emptied_label_dropped(self):
        s = Series([10, 20, 30], labels=["x", "y", "x"])
        s.remove(20, delete_label_if_emptied=True)
        assert s.index.distinct() == ["x"]

    def test_emptied_label_kept(self):
        s = Series([10, 20, 30], labels=["x", "y", "x"])
        s.remove(20, delete_label_if_emptied=False)
        assert s.index.distinct() == ["x", "y"]
        assert s.index.positions("y") == []
        assert s["x"] == [10, 30]
        assert len(s.index) == len(s.storage) == 2

    def test_remove_on_range_index(self):
        s = Series([5, 6, 7])
        s.remove(6)
        assert s.labels == [0, 2]
        assert s[2] == [7]

    def test_remove_nulls(self):
        s = Series([1, None, 2, None])
        assert s.remove(None)
        assert s.values == [1, 2]

    def test_clear(self):
        s = Series([1, 2], labels=["a", "b"])
        s.clear()
        assert len(s) == 0
        assert s.labels == []
        s.add(5)
        assert s.values == [5]


class TestUpdateValues:
    """Overwriting values under a label"""

    def test_broadcast(self):
        s = Series([1, 2, 3], labels=["a", "b", "a"])
        s.update_values("a", [9])
        assert s.values == [9, 2, 9]

    def test_exact_count(self):
        s = Series([1, 2, 3], labels=["a", "b", "a"])
        s.update_values("a", [7, 8])
        assert s.values == [7, 2, 8]

    def test_scalar_accepted(self):
        s = Series(["p", "q"], labels=["a", "b"])
        s.update_values("b", "zz")
        assert s.values == ["p", "zz"]

    def test_count_mismatch(self):
        s = Series([1, 2, 3], labels=["a", "b", "a"])
        with pytest.raises(ArgumentMismatchError):
            s.update_values("a", [1, 2, 3])

    def test_unknown_label(self):
        s = Series([1], labels=["a"])
        with pytest.raises(KeyNotFoundError):
            s.update_values("b", [1])

    def test_update_promotes(self):
        s = Series([1, 2], labels=["a", "b"])
        s.update_values("a", [1.5])
        assert s.dtype.kind is Kind.DOUBLE
        assert s.values == [1.5, 2.0]


class TestAsType:
    """Conversion to a pinned type"""

    def test_pinned_result(self):
        s = Series([1, 2, 3]).as_type(float)
        assert s.values == [1.0, 2.0, 3.0]
        assert s.pinned
        assert s.dtype.kind is Kind.DOUBLE

    def test_round_trip(self):
        original = Series([1, 2, None, 4], labels=list("abcd"))
        back = original.as_type(str).as_type(original.dtype)
        assert back.values == original.values
        assert back.labels == original.labels

    def test_pin_survives_narrow_values(self):
        s = Series([1.0, 2.0]).as_type(Decimal)
        assert s.dtype.kind is Kind.DECIMAL

    def test_unconvertible_becomes_none(self):
        with pytest.warns(UserWarning):
            s = Series(["1", "x"]).as_type(int)
        assert s.values == [1, None]

    def test_force_cast_raises(self):
        with pytest.raises(InvalidCastError):
            Series(["1", "x"]).as_type(int, force_cast=True)

    def test_datetime_parse(self):
        s = Series(["2024-03-01", "2024-03-02T10:30:00"]).as_type(datetime)
        assert s.values == [datetime(2024, 3, 1), datetime(2024, 3, 2, 10, 30)]

    def test_as_typed(self):
        s = Series([1, None, 3])
        assert s.as_typed(int) == [1, None, 3]
        with pytest.raises(InvalidCastError):
            Series(["a"]).as_typed(int)


class TestSort:
    """Value and label ordering"""

    @pytest.mark.parametrize("ascending", [True, False])
    def test_nulls_always_last(self, ascending):
        s = Series([3, None, 1, None, 2])
        values = s.sort_values(ascending=ascending).values
        assert values[-2:] == [None, None]
        assert None not in values[:3]

    @pytest.mark.parametrize("ascending", [True, False])
    def test_nan_after_values_before_nulls(self, ascending):
        nan = float("nan")
        s = Series([3.0, nan, 1.0, None, 2.0, nan], labels=list("abcdef"))
        out = s.sort_values(ascending=ascending)
        present = out.values[:3]
        assert present == sorted(present, reverse=not ascending)
        assert out.labels[3:] == ["b", "f", "d"]
        assert out.values[-1] is None

    def test_descending(self):
        s = Series([3, 1, 2], labels=["c", "a", "b"])
        out = s.sort_values(ascending=False)
        assert out.values == [3, 2, 1]
        assert out.labels == ["c", "b", "a"]

    def test_stable(self):
        s = Series([2, 1, 2, 1], labels=["w", "x", "y", "z"])
        assert s.sort_values().labels == ["x", "z", "w", "y"]
        assert s.sort_values(ascending=False).labels == ["w", "y", "x", "z"]

    def test_comparer(self):
        s = Series(["bb", "a", "ccc"])
        out = s.sort_values(comparer=lambda a, b: len(b) - len(a))
        assert out.values == ["ccc", "bb", "a"]

    def test_unorderable_mix_does_not_raise(self):
        s = Series([1, "a", 2, "b"])
        out = s.sort_values()
        assert sorted(map(str, out.values)) == ["1", "2", "a", "b"]

    def test_sort_index(self):
        s = Series([1, 2, 3], labels=["c", "a", "b"])
        out = s.sort_index()
        assert out.labels == ["a", "b", "c"]
        assert out.values == [2, 3, 1]

    def test_sort_does_not_mutate(self):
        s = Series([2, 1])
        s.sort_values()
        assert s.values == [2, 1]

    def test_reverse(self):
        s = Series([1, 2, 3], labels=["a", "b", "c"])
        out = s.reverse()
        assert out.values == [3, 2, 1]
        assert out.labels == ["c", "b", "a"]


class TestHeadTail:
    """Bounded prefixes and suffixes"""

    def test_head(self):
        s = Series([1, 2, 3, 4], labels=list("abcd"))
        out = s.head(2)
        assert out.values == [1, 2]
        assert out.labels == ["a", "b"]

    def test_tail(self):
        s = Series([1, 2, 3, 4], labels=list("abcd"))
        out = s.tail(2)
        assert out.values == [3, 4]
        assert out.labels == ["c", "d"]

    @pytest.mark.parametrize("method", ["head", "tail"])
    def test_clamped(self, method):
        s = Series([1, 2])
        assert getattr(s, method)(10).values == [1, 2]
        assert getattr(s, method)(0).values == []

    @pytest.mark.parametrize("method", ["head", "tail"])
    def test_negative(self, method):
        with pytest.raises(InvalidArgumentError):
            getattr(Series([1]), method)(-1)


class TestSearch:
    """find / contains / filter"""

    def test_find_null(self):
        s = Series([1, None, "abc", None, 42, None])
        assert s.find(None) == [1, 3, 5]

    def test_find_value(self):
        s = Series([1, 2, 1])
        assert s.find(1) == [0, 2]
        assert s.find(5) == []

    def test_find_nan(self):
        s = Series([1.0, float("nan"), None])
        assert s.find(float("nan")) == [1]

    def test_contains(self):
        s = Series(["a", None])
        assert "a" in s
        assert s.contains(None)
        assert not s.contains("b")

    def test_filter_keeps_labels(self):
        s = Series([1, 5, 2, 8], labels=list("abcd"))
        out = s.filter(lambda v: v > 2)
        assert out.values == [5, 8]
        assert out.labels == ["b", "d"]


class TestAggregation:
    """sum / mean"""

    def test_sum_skips_nulls(self):
        assert Series([1, None, 2]).sum() == 3

    def test_sum_decimal(self):
        assert Series([Decimal("0.1"), Decimal("0.2")]).sum() == Decimal("0.3")

    def test_sum_strings_concatenate(self):
        assert Series(["a", None, "b"]).sum() == "ab"

    def test_sum_chars(self):
        assert Series([Char("x"), Char("y")]).sum() == "xy"

    def test_sum_all_null_numeric(self):
        assert Series([None, None], dtype=float).sum() == 0.0

    def test_sum_unsupported(self):
        with pytest.raises(TypeMismatchError):
            Series([True, False]).sum()

    def test_mean(self):
        assert Series([1, 2, None, 3]).mean() == 2.0


class TestCloneExtend:
    """Independent copies and concatenation"""

    def test_clone_independent(self):
        s = Series([[1], [2]], labels=["a", "b"])
        c = s.clone()
        assert c.values == s.values
        assert c.labels == s.labels
        assert c.storage is not s.storage
        assert c.index is not s.index
        assert c.values[0] is not s.values[0]
        c.update_values("a", [[9]])
        assert s["a"] == [[1]]

    def test_rename(self):
        s = Series([1], name="old")
        r = s.rename("new")
        assert r.name == "new"
        assert s.name == "old"

    def test_extend_default_ranges(self):
        out = Series([1, 2]).extend(Series([3]))
        assert out.values == [1, 2, 3]
        assert isinstance(out.index, RangeIndex)
        assert out.labels == [0, 1, 2]

    def test_extend_labels(self):
        out = Series([1], labels=["a"]).extend(Series([2.5], labels=["b"]))
        assert out.labels == ["a", "b"]
        assert out.dtype.kind is Kind.DOUBLE


class TestComposite:
    """Composite labels on a Series"""

    def test_scenario(self):
        s = Series([1, 2, 3], labels=[("A", 1), ("B", 2), ("A", 1)])
        assert len(s.index) == 3
        assert ("A", 1) in s.index
        assert len(s.index.distinct()) == 2
        assert s[("A", 1)] == [1, 3]

    def test_xs(self):
        s = Series([1, 2, 3], labels=[("A", 1), ("B", 1), ("A", 2)])
        out = s.xs("A", level=0)
        assert out.values == [1, 3]
        assert out.labels == [("A", 1), ("A", 2)]

    def test_xs_needs_composite(self):
        with pytest.raises(InvalidOperationError):
            Series([1]).xs("A")


class TestRepr:
    """Display"""

    def test_repr_contains_labels_and_footer(self):
        s = Series([1, None], labels=["a", "b"], name="n")
        text = repr(s)
        assert text.splitlines()[0] == "n"
        assert "null" in text
        assert "# 2 element series <int32 nullable>" in text

    def test_repr_truncates(self):
        text = repr(Series(range(30)))
        assert "..." in text
        assert "# 30 element series" in text

    def test_repr_empty(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert "empty" in repr(Series())

    def test_repr_non_string_name(self):
        text = repr(Series([1, 2], name=2024))
        assert text.splitlines()[0] == "2024"

    def test_repr_quotes_odd_string_name(self):
        assert repr(Series([1], name="my col")).splitlines()[0] == "'my col'"


class TestBufferExports:
    """A live storage export blocks storage replacement"""

    def test_remove_refused_while_exported(self):
        s = Series([1.0, 2.0, 3.0], labels=["a", "b", "c"])
        with s.storage.buffer() as view:
            with pytest.raises(InvalidOperationError):
                s.remove(2.0)
            assert view.tolist() == [1.0, 2.0, 3.0]
        assert s.values == [1.0, 2.0, 3.0]
        assert s.labels == ["a", "b", "c"]
        assert_consistent(s)
        assert s.remove(2.0)
        assert s.values == [1.0, 3.0]

    def test_promoting_add_refused_while_exported(self):
        s = Series([1, 2])
        with s.storage.buffer() as view:
            with pytest.raises(InvalidOperationError):
                s.add(2.5)
            assert view.tolist() == [1, 2]
        assert s.values == [1, 2]
        assert s.dtype.kind is Kind.INT32
        assert_consistent(s)

    def test_promoting_update_refused_while_exported(self):
        s = Series([1, 2], labels=["a", "b"])
        with s.storage.buffer():
            with pytest.raises(InvalidOperationError):
                s.update_values("a", [1.5])
        assert s.values == [1, 2]

    def test_in_place_write_allowed_while_exported(self):
        s = Series([1, 2], labels=["a", "b"])
        with s.storage.buffer() as view:
            s.update_values("a", [7])
            assert view.tolist() == [7, 2]


class TestBoolProbes:
    """bool is not an integer label"""

    def test_range_index(self):
        s = Series([10, 20])
        with pytest.raises(InvalidArgumentError):
            s[True]

    def test_int_index(self):
        s = Series([10, 20], labels=[0, 1])
        with pytest.raises(InvalidArgumentError):
            s.index.positions(False)
        assert s[1] == [20]
