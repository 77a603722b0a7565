"""Tests for dataset fetching and loading."""

import pytest
import requests

from volcanoml import io_http
from volcanoml.exceptions import DataLoadError, SchemaError
from volcanoml.io_df import ensure_pandas, load_tabular, load_volcanoes, quick_profile
from volcanoml.io_http import get_bytes, is_url


class _FakeResponse:
    def __init__(self, status_code=200, content=b""):
        self.status_code = status_code
        self.content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class _FakeSession:
    """Replays a scripted sequence of responses or exceptions."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    def get(self, url, timeout=None):
        self.calls += 1
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    monkeypatch.setattr(io_http.time, "sleep", lambda s: None)


class TestGetBytes:
    def test_success(self):
        session = _FakeSession([_FakeResponse(200, b"a,b\n1,2\n")])
        assert get_bytes("https://example.org/x.csv", session=session) == b"a,b\n1,2\n"
        assert session.calls == 1

    def test_retries_transient_errors(self):
        session = _FakeSession([
            requests.ConnectionError("reset"),
            _FakeResponse(503),
            _FakeResponse(200, b"ok"),
        ])
        assert get_bytes("https://example.org/x.csv", retries=3, session=session) == b"ok"
        assert session.calls == 3

    def test_gives_up_after_bounded_retries(self):
        session = _FakeSession([requests.Timeout("slow")] * 3)
        with pytest.raises(DataLoadError) as exc:
            get_bytes("https://example.org/x.csv", retries=2, session=session)
        assert session.calls == 3
        assert exc.value.source == "https://example.org/x.csv"

    def test_client_error_is_not_retried(self):
        session = _FakeSession([_FakeResponse(404), _FakeResponse(200, b"never")])
        with pytest.raises(DataLoadError):
            get_bytes("https://example.org/missing.csv", retries=3, session=session)
        assert session.calls == 1

    def test_is_url(self):
        assert is_url("https://example.org/v.csv")
        assert is_url("HTTP://example.org/v.csv")
        assert not is_url("/tmp/volcano.csv")


class TestLoadTabular:
    def test_csv_with_mixed_column(self):
        data = b"volcano_number,last_eruption_year,elevation\n1,Unknown,100\n2,1990,NA\n"
        df = load_tabular(data, "volcano.csv")
        pdf = ensure_pandas(df)

        assert list(pdf.columns) == ["volcano_number", "last_eruption_year", "elevation"]
        assert pdf["last_eruption_year"].tolist() == ["Unknown", "1990"]
        assert pdf["elevation"].isna().tolist() == [False, True]

    def test_quick_profile(self, raw_records):
        prof = quick_profile(raw_records)

        assert prof["rows"] == 20
        assert prof["cols"] == raw_records.shape[1]
        roles = {s["name"]: s["role"] for s in prof["schema"]}
        assert roles["latitude"] == "numeric"
        assert roles["tectonic_settings"] == "categorical"


class TestLoadVolcanoes:
    def test_local_csv(self, tmp_path, raw_records):
        path = tmp_path / "volcano.csv"
        raw_records.to_csv(path, index=False)

        df = load_volcanoes(str(path))

        assert len(df) == 20
        assert "volcano_name" in df.columns

    def test_missing_required_column(self, tmp_path, raw_records):
        path = tmp_path / "volcano.csv"
        raw_records.drop(columns=["major_rock_1"]).to_csv(path, index=False)

        with pytest.raises(SchemaError) as exc:
            load_volcanoes(str(path))
        assert exc.value.column == "major_rock_1"

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataLoadError):
            load_volcanoes(str(tmp_path / "nope.csv"))

    def test_remote_source_uses_http(self, monkeypatch, raw_records):
        payload = raw_records.to_csv(index=False).encode("utf-8")
        seen = []

        def fake_get_bytes(url):
            seen.append(url)
            return payload

        monkeypatch.setattr("volcanoml.io_df.get_bytes", fake_get_bytes)
        df = load_volcanoes("https://example.org/volcano.csv")

        assert seen == ["https://example.org/volcano.csv"]
        assert len(df) == 20
