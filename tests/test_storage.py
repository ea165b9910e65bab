"""ColumnStorage variants - typed get/set, nulls, growth, buffer scope"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from py_series import (
    BoolStorage,
    Char,
    CharStorage,
    DataType,
    DateTimeStorage,
    DecimalStorage,
    DoubleStorage,
    IndexOutOfRangeError,
    IntStorage,
    InvalidOperationError,
    Kind,
    ObjectStorage,
    StringStorage,
    TypeMismatchError,
    UnsupportedOperationError,
    create_storage,
)


class TestSelection:
    """Kind tag picks the variant"""

    @pytest.mark.parametrize("kind,values,cls", [
        (Kind.BOOL, [True, None], BoolStorage),
        (Kind.CHAR, [Char("a")], CharStorage),
        (Kind.INT32, [1, 2], IntStorage),
        (Kind.UINT64, [2 ** 63], IntStorage),
        (Kind.DOUBLE, [1.5], DoubleStorage),
        (Kind.DECIMAL, [Decimal("1.5")], DecimalStorage),
        (Kind.STRING, ["x"], StringStorage),
        (Kind.DATETIME, [datetime(2024, 1, 1)], DateTimeStorage),
        (Kind.VALUE, [1, True], ObjectStorage),
        (Kind.OBJECT, [object()], ObjectStorage),
    ])
    def test_variant_for_kind(self, kind, values, cls):
        storage = create_storage(values, DataType(kind))
        assert type(storage) is cls
        assert storage.to_list() == values

    def test_int_typecodes(self):
        assert create_storage([1], DataType(Kind.INT32))._data.typecode == "i"
        assert create_storage([1], DataType(Kind.INT64))._data.typecode == "q"


class TestAccess:
    """get_value / set_value contract"""

    def test_null_reads_none_and_cell_holds_default(self):
        s = create_storage([1, None, 3], DataType(Kind.INT64))
        assert s.get_value(1) is None
        assert s._data[1] == 0
        assert s.null_count == 1

    def test_set_none_resets_cell(self):
        s = create_storage([1.5, 2.5], DataType(Kind.DOUBLE))
        s.set_value(0, None)
        assert s.get_value(0) is None
        assert s._data[0] == 0.0
        s.set_value(0, 9.5)
        assert s.get_value(0) == 9.5
        assert s.null_count == 0

    def test_string_null_default(self):
        s = create_storage(["a", None], DataType(Kind.STRING))
        assert s._data[1] == ""
        assert s[1] is None

    @pytest.mark.parametrize("kind,bad", [
        (Kind.INT32, "x"),
        (Kind.INT32, 2 ** 40),
        (Kind.DOUBLE, 1),
        (Kind.BOOL, 1),
        (Kind.STRING, 5),
        (Kind.CHAR, "ab"),
        (Kind.DATETIME, "2024-01-01"),
    ])
    def test_type_mismatch(self, kind, bad):
        s = create_storage([None], DataType(kind))
        with pytest.raises(TypeMismatchError):
            s.set_value(0, bad)

    @pytest.mark.parametrize("pos", [-1, 3, 10])
    def test_out_of_range(self, pos):
        s = create_storage([1, 2, 3], DataType(Kind.INT32))
        with pytest.raises(IndexOutOfRangeError):
            s.get_value(pos)
        with pytest.raises(IndexOutOfRangeError):
            s.set_value(pos, 1)

    def test_construction_rejects_mismatch(self):
        with pytest.raises(TypeMismatchError):
            create_storage([1, "two"], DataType(Kind.INT64))

    def test_null_positions_restartable(self):
        s = create_storage([None, 1, None], DataType(Kind.INT32))
        assert list(s.null_positions()) == [0, 2]
        assert list(s.null_positions()) == [0, 2]

    def test_non_null_values(self):
        s = create_storage([None, "a", None, "b"], DataType(Kind.STRING))
        assert list(s.non_null_values()) == ["a", "b"]

    def test_dtype_reports_nullability(self):
        s = create_storage([1, 2], DataType(Kind.INT32))
        assert not s.dtype.nullable
        s.set_value(0, None)
        assert s.dtype.nullable


class TestVariants:
    """Encoding specifics"""

    def test_char_round_trip(self):
        s = create_storage([Char("é"), None], DataType(Kind.CHAR))
        assert s.get_value(0) == "é"
        assert isinstance(s.get_value(0), Char)

    def test_bool_round_trip(self):
        s = create_storage([True, False, None], DataType(Kind.BOOL))
        assert s.to_list() == [True, False, None]
        assert s.get_value(0) is True

    def test_datetime_keeps_microseconds_and_zone(self):
        tz = timezone(timedelta(hours=2))
        values = [datetime(2024, 2, 29, 13, 5, 7, 123456, tzinfo=tz), datetime(1, 1, 1)]
        s = create_storage(values, DataType(Kind.DATETIME))
        assert s.to_list() == values
        assert s.get_value(0).tzinfo is tz

    def test_object_deep_copy(self):
        payload = [1, 2]
        s = create_storage([payload], DataType(Kind.OBJECT))
        deep = s.copy(deep=True)
        assert deep.get_value(0) == payload
        assert deep.get_value(0) is not payload
        assert s.copy().get_value(0) is payload


class TestGrowth:
    """append / take / clear"""

    def test_append_value_and_null(self):
        s = create_storage([1], DataType(Kind.INT32))
        s.append(2)
        s.append(None)
        assert s.to_list() == [1, 2, None]
        assert len(s) == 3

    def test_take_reorders_values_and_nulls(self):
        s = create_storage([10, None, 30], DataType(Kind.INT64))
        taken = s.take([2, 1, 0, 0])
        assert taken.to_list() == [30, None, 10, 10]
        assert type(taken) is IntStorage
        assert s.to_list() == [10, None, 30]

    def test_clear(self):
        s = create_storage(["a", None], DataType(Kind.STRING))
        s.clear()
        assert len(s) == 0
        assert s.null_count == 0


class TestBufferScope:
    """Deterministic export and release"""

    def test_buffer_exports_raw_values(self):
        s = create_storage([1.0, 2.0], DataType(Kind.DOUBLE))
        with s.buffer() as view:
            assert view.tolist() == [1.0, 2.0]
            assert s.export_count == 1
        assert s.export_count == 0

    def test_view_released_on_exit(self):
        s = create_storage([1, 2], DataType(Kind.INT64))
        with s.buffer() as view:
            pass
        with pytest.raises(ValueError):
            view.tolist()

    def test_no_resize_while_exported(self):
        s = create_storage([1, 2], DataType(Kind.INT64))
        with s.buffer():
            with pytest.raises(InvalidOperationError):
                s.append(3)
            s.set_value(0, 5)
        s.append(3)
        assert s.to_list() == [5, 2, 3]

    def test_release_on_error(self):
        s = create_storage([1], DataType(Kind.INT32))
        with pytest.raises(RuntimeError):
            with s.buffer():
                raise RuntimeError("boom")
        assert s.export_count == 0

    def test_list_storage_has_no_buffer(self):
        s = create_storage(["a"], DataType(Kind.STRING))
        with pytest.raises(UnsupportedOperationError):
            with s.buffer():
                pass

    def test_close_is_idempotent_and_final(self):
        with create_storage([1, 2], DataType(Kind.INT32)) as s:
            assert s.get_value(1) == 2
        assert s.closed
        s.close()
        with pytest.raises(InvalidOperationError):
            s.get_value(0)

    def test_close_releases_live_exports(self):
        s = create_storage([1, 2], DataType(Kind.INT32))
        cm = s.buffer()
        view = cm.__enter__()
        s.close()
        assert s.export_count == 0
        with pytest.raises(ValueError):
            view.tolist()
