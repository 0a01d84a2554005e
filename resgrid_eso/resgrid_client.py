"""
Resgrid v4 API client.

Token handling: password grant against ``Connect/token``, cached until 15
minutes before expiry, and refreshed once on a 401 before the request is
replayed. All responses are normalized into ``records`` shapes here.
"""

import time
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .errors import SourceError
from .records import (
    RawActivityEntry,
    RawDispatchEntry,
    RawIncident,
    normalize_call,
    normalize_extra,
    unwrap,
)

logger = logging.getLogger("resgrid_eso.resgrid")

TOKEN_REFRESH_MARGIN = 900  # seconds


class TokenManager:
    """Bearer token valid for N seconds, refreshable on demand."""

    def __init__(self, http: requests.Session, base_url: str, token_endpoint: str,
                 username: str, password: str, timeout: float = 10,
                 clock: Callable[[], float] = time.time):
        self.http = http
        self.token_url = f"{base_url.rstrip('/')}/{token_endpoint}"
        self.username = username
        self.password = password
        self.timeout = timeout
        self.clock = clock
        self.token: Optional[str] = None
        self.expires_at = 0.0

    def invalidate(self) -> None:
        self.token = None
        self.expires_at = 0.0

    def get_token(self, force_refresh: bool = False) -> str:
        now = self.clock()
        if not force_refresh and self.token and self.expires_at > now + TOKEN_REFRESH_MARGIN:
            return self.token

        if not force_refresh and self.token and self.expires_at > now:
            logger.debug("Token nearing expiry, refreshing proactively")
        else:
            logger.info("Fetching new Resgrid API token...")

        try:
            resp = self.http.post(
                self.token_url,
                data={"grant_type": "password", "username": self.username, "password": self.password},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            raise SourceError(f"Failed to obtain API token: {e}", status_code=status) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise SourceError("No access_token in token response")

        self.token = access_token
        self.expires_at = now + float(payload.get("expires_in") or 0)
        logger.info("Successfully obtained new API token")
        return access_token


class ResgridClient:
    def __init__(self, resgrid_cfg: Dict[str, Any], http: Optional[requests.Session] = None,
                 tokens: Optional[TokenManager] = None):
        self.base_url = resgrid_cfg["base_url"].rstrip("/")
        self.timeout = resgrid_cfg.get("timeout", 10)
        self.http = http or requests.Session()
        self.tokens = tokens or TokenManager(
            self.http,
            self.base_url,
            resgrid_cfg.get("token_endpoint", "Connect/token"),
            resgrid_cfg.get("username", ""),
            resgrid_cfg.get("password", ""),
            timeout=self.timeout,
        )

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path}"
        for attempt in range(2):
            token = self.tokens.get_token(force_refresh=attempt > 0)
            try:
                resp = self.http.get(
                    url,
                    params=params,
                    headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise SourceError(f"GET {path} failed: {e}") from e

            if resp.status_code == 401 and attempt == 0:
                logger.warning("Received 401 error, refreshing token and retrying request")
                self.tokens.invalidate()
                continue
            if resp.status_code >= 400:
                raise SourceError(f"GET {path} returned {resp.status_code}", status_code=resp.status_code)
            try:
                return resp.json()
            except ValueError as e:
                raise SourceError(f"GET {path} returned invalid JSON: {e}") from e
        raise SourceError(f"GET {path} unauthorized after token refresh", status_code=401)

    # ---- calls ----

    def fetch_active(self) -> List[RawIncident]:
        data = unwrap(self._get("Calls/GetActiveCalls"))
        if not isinstance(data, list):
            raise SourceError("Unexpected response format from GetActiveCalls endpoint")
        return [normalize_call(c) for c in data]

    def fetch_recent(self, days_back: int = 7, now: Optional[datetime] = None) -> List[RawIncident]:
        now = now or datetime.now(timezone.utc)
        start = (now - timedelta(days=days_back)).strftime("%Y-%m-%d")
        end = now.strftime("%Y-%m-%d")
        logger.info(f"Fetching calls from {start} to {end}")

        try:
            data = unwrap(self._get("Calls/GetCallsInDateRange", {"startDate": start, "endDate": end}))
            if isinstance(data, list):
                logger.info(f"Retrieved {len(data)} calls from date range {start} to {end}")
                return [normalize_call(c) for c in data]
            logger.warning("Unexpected response format from GetCallsInDateRange, trying active calls")
        except SourceError as e:
            logger.warning(f"Failed with GetCallsInDateRange: {e}, trying active calls")

        try:
            calls = self.fetch_active()
        except SourceError as e:
            logger.error(f"Failed with active calls endpoint: {e}")
            return []

        cutoff = now - timedelta(days=days_back)
        recent = [c for c in calls if within_window(c.logged_on, cutoff)]
        logger.info(f"Filtered {len(calls)} active calls to {len(recent)} within the last {days_back} days")
        return recent

    def fetch_call(self, call_id: str) -> RawIncident:
        return normalize_call(self._get("Calls/GetCall", {"callId": call_id}))

    def fetch_extra(self, call_id: str) -> Tuple[List[RawActivityEntry], List[RawDispatchEntry]]:
        logger.info(f"Fetching extra data for Call ID: {call_id}")
        payload = self._get("Calls/GetCallExtraData", {"callId": call_id})
        activity, dispatches = normalize_extra(payload)
        logger.info(f"Found {len(activity)} activity entries and {len(dispatches)} dispatch entries for call {call_id}")
        return activity, dispatches


def within_window(logged_on: str, cutoff: datetime) -> bool:
    if not logged_on:
        return False
    try:
        dt = datetime.fromisoformat(logged_on.replace("Z", "+00:00"))
    except ValueError:
        return False
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt >= cutoff
