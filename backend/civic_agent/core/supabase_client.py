from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import certifi
import requests

from .config import get_env
from .models import WorkItem


def _require_env(name: str) -> str:
    value = get_env(name)
    if not value:
        raise ValueError(f"Missing required .env var: {name}")
    return value


def _client_config() -> Dict[str, str]:
    url = _require_env("SUPABASE_URL")
    key = _require_env("SUPABASE_SERVICE_ROLE_KEY")
    reports_table = get_env("SUPABASE_REPORTS_TABLE") or "reports"
    return {
        "url": url.rstrip("/"),
        "key": key,
        "reports_table": reports_table,
    }


def _headers(api_key: str) -> Dict[str, str]:
    return {
        "apikey": api_key,
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _row_to_report(row: Dict[str, Any]) -> WorkItem:
    data = dict(row)
    if data.get("lat") is not None and data.get("lon") is not None:
        data["location"] = {"lat": data["lat"], "lon": data["lon"], "address": data.get("address")}
    return WorkItem.from_dict(data)


class SupabaseReportStore:
    """
    Reads reports from a Supabase (PostgREST) table with flat lat/lon columns.
    Only coarse filters run server-side; exact radius checks happen in
    dedup_search.
    """

    SELECT = "id,category,title,description,severity,status,lat,lon,address,created_at"

    def __init__(self, timeout: int = 10):
        self.timeout = timeout

    def _get(self, params: List[tuple]) -> List[Dict[str, Any]]:
        cfg = _client_config()
        endpoint = f"{cfg['url']}/rest/v1/{cfg['reports_table']}"
        resp = requests.get(endpoint, headers=_headers(cfg["key"]), params=params, timeout=self.timeout,
                            verify=certifi.where())
        resp.raise_for_status()
        return resp.json()

    def reports_in_box(
        self,
        min_lat: float,
        max_lat: float,
        min_lon: float,
        max_lon: float,
        since: datetime,
        statuses: Sequence[str],
        limit: int = 200,
    ) -> List[WorkItem]:
        params = [
            ("select", self.SELECT),
            ("lat", f"gte.{min_lat}"),
            ("lat", f"lte.{max_lat}"),
            ("lon", f"gte.{min_lon}"),
            ("lon", f"lte.{max_lon}"),
            ("created_at", f"gte.{since.isoformat()}"),
            ("status", f"in.({','.join(statuses)})"),
            ("order", "created_at.desc"),
            ("limit", str(limit)),
        ]
        return [_row_to_report(r) for r in self._get(params)]

    def list_reports(
        self,
        statuses: Sequence[str],
        category: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[WorkItem]:
        params = [
            ("select", self.SELECT),
            ("status", f"in.({','.join(statuses)})"),
            ("order", "created_at.desc"),
            ("limit", str(limit)),
        ]
        if category:
            params.append(("category", f"eq.{category}"))
        if since:
            params.append(("created_at", f"gte.{since.isoformat()}"))
        return [_row_to_report(r) for r in self._get(params)]
