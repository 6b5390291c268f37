"""Search Console search-analytics client."""

from __future__ import annotations

import json
from http.client import HTTPException
from typing import Any, Callable, Dict, List, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..errors import ExternalServiceError
from ..logging import get_logger
from ..models import AnalyticsRow, DateRange

DEFAULT_BASE_URL = "https://searchconsole.googleapis.com/webmasters/v3"
_ROW_LIMIT = 25000

# (url, payload, headers, timeout) -> decoded JSON response
Transport = Callable[[str, Dict[str, Any], Dict[str, str], float], Dict[str, Any]]


class SearchConsoleClient:
    """Queries click/impression rows for a verified property."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str | None = None,
        request_timeout: float = 30.0,
        transport: Transport | None = None,
    ) -> None:
        self._token = token
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = request_timeout
        self._transport = transport or _http_transport
        self.logger = get_logger("analytics.search_console")

    def query(
        self, property_id: str, date_range: DateRange, group_by: Sequence[str]
    ) -> List[AnalyticsRow]:
        url = f"{self._base_url}/sites/{quote(property_id, safe='')}/searchAnalytics/query"
        payload = {
            "startDate": date_range.start.isoformat(),
            "endDate": date_range.end.isoformat(),
            "dimensions": list(group_by),
            "rowLimit": _ROW_LIMIT,
        }
        headers = {"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"}
        response = self._transport(url, payload, headers, self._timeout)

        rows: List[AnalyticsRow] = []
        for raw in response.get("rows") or []:
            if not isinstance(raw, dict):
                continue
            keys = raw.get("keys") or []
            try:
                row = AnalyticsRow(
                    key=str(keys[0]) if keys else "",
                    clicks=int(raw.get("clicks") or 0),
                    impressions=int(raw.get("impressions") or 0),
                    ctr=float(raw.get("ctr") or 0.0),
                    position=float(raw.get("position") or 0.0),
                )
            except (TypeError, ValueError) as exc:
                raise ExternalServiceError(f"Search Console returned a malformed row: {raw!r}") from exc
            rows.append(row)
        self.logger.debug(
            "Fetched %d rows for %s %s..%s", len(rows), property_id, date_range.start, date_range.end
        )
        return rows


def _http_transport(
    url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float
) -> Dict[str, Any]:
    request = Request(url, data=json.dumps(payload).encode("utf-8"), headers=headers, method="POST")
    try:
        with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:  # pragma: no cover - depends on remote service
        raise ExternalServiceError(f"Search Console query failed with status {exc.code}") from exc
    except URLError as exc:  # pragma: no cover - depends on network
        raise ExternalServiceError(f"Search Console query failed: {exc.reason}") from exc
    except (TimeoutError, HTTPException, OSError) as exc:
        raise ExternalServiceError(f"Search Console query failed: {exc}") from exc
    try:
        decoded = json.loads(raw.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise ExternalServiceError("Search Console returned invalid JSON") from exc
    return decoded if isinstance(decoded, dict) else {}


__all__ = ["DEFAULT_BASE_URL", "SearchConsoleClient"]
