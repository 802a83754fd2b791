from __future__ import annotations

import pytest
import requests

from pnl_sync.sheets.fetch import SheetFetchError, fetch_csv_grid, fetch_sheet_values_grid


class StubResponse:
    def __init__(self, status_code: int = 200, text: str = "", payload=None) -> None:
        self.status_code = status_code
        self.text = text
        self._payload = payload
        self.encoding = "ISO-8859-1"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class StubSession:
    def __init__(self, response=None, exc: Exception | None = None) -> None:
        self.response = response
        self.exc = exc
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


def test_fetch_csv_grid_parses_and_forces_utf8():
    resp = StubResponse(text='"","","Gross Sales","","","3,500"\n')
    session = StubSession(resp)
    grid = fetch_csv_grid("https://example.test/pub?output=csv", session=session, timeout=5)
    assert grid == [["", "", "Gross Sales", "", "", "3,500"]]
    assert resp.encoding == "utf-8"
    assert session.calls[0][1]["timeout"] == 5


def test_fetch_csv_grid_http_error():
    with pytest.raises(SheetFetchError, match="CSV fetch error"):
        fetch_csv_grid("https://example.test/x", session=StubSession(StubResponse(404)))


def test_fetch_csv_grid_network_error():
    session = StubSession(exc=requests.ConnectionError("refused"))
    with pytest.raises(SheetFetchError, match="refused"):
        fetch_csv_grid("https://example.test/x", session=session)


def test_fetch_values_grid_builds_range_url():
    payload = {"values": [["", "", "", "", "", "Jan 25"], ["1.", "", "Gross Sales", "", "", "1.000"]]}
    session = StubSession(StubResponse(payload=payload))
    grid = fetch_sheet_values_grid("SHEET", "PnL 2026", "KEY", cell_range="A1:AZ100", session=session)
    assert grid[1][2] == "Gross Sales"
    url, kwargs = session.calls[0]
    assert url.endswith("/spreadsheets/SHEET/values/PnL%202026%21A1%3AAZ100")
    assert kwargs["params"] == {"key": "KEY", "valueRenderOption": "FORMATTED_VALUE"}


def test_fetch_values_grid_requires_key():
    with pytest.raises(SheetFetchError, match="GOOGLE_API_KEY"):
        fetch_sheet_values_grid("SHEET", "PnL 2026", "", session=StubSession())


def test_fetch_values_grid_api_error_and_bad_json():
    with pytest.raises(SheetFetchError, match=r"\(403\)"):
        fetch_sheet_values_grid("S", "PnL", "K", session=StubSession(StubResponse(403, text="denied")))
    with pytest.raises(SheetFetchError, match="not valid JSON"):
        fetch_sheet_values_grid("S", "PnL", "K", session=StubSession(StubResponse(200)))
