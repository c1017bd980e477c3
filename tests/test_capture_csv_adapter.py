import io

import pytest

from canvass_app.reconciliation.adapters import CaptureCSVAdapter, CSVDecodeError, CSVHeaderError


def _make_csv(contents: str) -> io.StringIO:
    stream = io.StringIO(contents)
    stream.seek(0)
    return stream


def test_adapter_maps_spanish_headers_and_ignores_unknown_columns():
    csv_stream = _make_csv("Lider,CC,Nombres,Apellidos,Observaciones\n" "L1,123, Ana ,Perez,llamar\n")

    adapter = CaptureCSVAdapter(csv_stream)
    records = list(adapter.iter_records())

    assert records == [{"leader_id": "L1", "reported_id": "123", "first_name": " Ana ", "last_name": "Perez"}]
    assert adapter.statistics.ignored_columns == ("Observaciones",)
    assert adapter.statistics.rows_processed == 1


def test_adapter_rejects_missing_identifier_columns():
    adapter = CaptureCSVAdapter(_make_csv("lider,nombres\nL1,Ana\n"))

    with pytest.raises(CSVHeaderError) as excinfo:
        list(adapter.iter_rows())

    assert "reported_id" in excinfo.value.missing
    assert "Missing required columns" in str(excinfo.value)


def test_adapter_rejects_duplicate_canonical_columns():
    adapter = CaptureCSVAdapter(_make_csv("lider,cc,nombre,nombres\nL1,1,Ana,Ana\n"))

    with pytest.raises(CSVHeaderError) as excinfo:
        list(adapter.iter_rows())

    assert excinfo.value.duplicates == ("first_name",)


def test_adapter_requires_a_field_column():
    adapter = CaptureCSVAdapter(_make_csv("lider,cc\nL1,1\n"))

    with pytest.raises(CSVHeaderError, match="At least one voter field column"):
        list(adapter.iter_rows())


def test_adapter_skips_blank_rows_and_keeps_sequence():
    csv_stream = _make_csv("lider,cc,nombres\n" "L1,1,Ana\n" ",,\n" "L1,2,Luis\n")

    adapter = CaptureCSVAdapter(csv_stream)
    rows = list(adapter.iter_rows())

    assert [row.sequence_number for row in rows] == [1, 3]
    assert adapter.statistics.rows_skipped_blank == 1


def test_adapter_handles_byte_order_mark():
    adapter = CaptureCSVAdapter(_make_csv("\ufefflider,cc,correo\nL1,1,a@b.co\n"))

    assert list(adapter.iter_records()) == [{"leader_id": "L1", "reported_id": "1", "email": "a@b.co"}]


class _UndecodableAfter(io.StringIO):
    """Text stream whose n-th line fails to decode."""

    def __init__(self, contents: str, failing_line: int) -> None:
        super().__init__(contents)
        self._lines_read = 0
        self._failing_line = failing_line

    def __next__(self):
        self._lines_read += 1
        if self._lines_read == self._failing_line:
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        return super().__next__()


def test_adapter_wraps_decode_errors_after_yielded_rows():
    adapter = CaptureCSVAdapter(_UndecodableAfter("lider,cc,nombres\nL1,1,Ana\nL1,2,Luis\n", failing_line=3))
    rows = adapter.iter_records()

    assert next(rows)["reported_id"] == "1"
    with pytest.raises(CSVDecodeError) as excinfo:
        next(rows)
    assert "invalid start byte" in str(excinfo.value)
    assert adapter.statistics.rows_processed == 1


def test_adapter_wraps_decode_errors_in_header():
    adapter = CaptureCSVAdapter(_UndecodableAfter("lider,cc,nombres\nL1,1,Ana\n", failing_line=1))

    with pytest.raises(CSVDecodeError):
        list(adapter.iter_rows())
