from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from .reader import Grid, GridReadError, grid_from_values_response, parse_csv_text

"""Upstream fetchers for the P&L grid.

One blocking request per sync. Timeouts are per request; there is no retry or
backoff here, a failed fetch aborts the sync.
"""

__all__ = [
    "SHEETS_VALUES_URL",
    "SheetFetchError",
    "fetch_csv_grid",
    "fetch_sheet_values_grid",
]

logger = logging.getLogger(__name__)

SHEETS_VALUES_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}"


class SheetFetchError(RuntimeError):
    """Raised when the upstream sheet cannot be fetched or decoded."""


def fetch_csv_grid(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: float = 30.0,
) -> Grid:
    """Fetch a published-sheet CSV export and parse it.

    The CSV export bypasses the values API cache, which can serve stale
    numbers for several minutes after an edit.
    """
    http = session or requests.Session()
    logger.info("fetching CSV export url=%s", url)
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise SheetFetchError(f"CSV fetch error: {e}") from e
    response.encoding = "utf-8"
    try:
        grid = parse_csv_text(response.text)
    except GridReadError as e:
        raise SheetFetchError(str(e)) from e
    logger.info("parsed %d rows from CSV", len(grid))
    return grid


def fetch_sheet_values_grid(
    sheet_id: str,
    sheet_name: str,
    api_key: str,
    *,
    cell_range: str = "A1:AZ100",
    session: requests.Session | None = None,
    timeout: float = 30.0,
) -> Grid:
    """Fetch ``{sheet_name}!{cell_range}`` from the Sheets values API."""
    if not api_key:
        raise SheetFetchError("GOOGLE_API_KEY not configured")
    http = session or requests.Session()
    a1 = f"{sheet_name}!{cell_range}"
    url = SHEETS_VALUES_URL.format(sheet_id=sheet_id, range=quote(a1, safe=""))
    logger.info("fetching values range=%s", a1)
    try:
        response = http.get(
            url,
            params={"key": api_key, "valueRenderOption": "FORMATTED_VALUE"},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise SheetFetchError(f"Sheets API error: {e}") from e
    if not response.ok:
        raise SheetFetchError(f"Sheets API error ({response.status_code}): {response.text[:500]}")
    try:
        payload = response.json()
    except ValueError as e:
        raise SheetFetchError("Sheets API response was not valid JSON") from e
    try:
        grid = grid_from_values_response(payload)
    except GridReadError as e:
        raise SheetFetchError(str(e)) from e
    logger.info("fetched %d rows from %s", len(grid), sheet_name)
    return grid
