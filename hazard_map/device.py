"""
Browser location device
=======================

Streamlit runs on the server, so the browser's Geolocation API is reached
through a small injected script. The script asks the browser for a position
(which shows the browser's own permission prompt), then reloads the page with
the outcome in `geo_*` query parameters. The next script run hands those
parameters to `BrowserDevice.deliver`, which wakes whoever is waiting.

While a request is waiting, `BrowserDevice.pending` is true and the surface
must render `locator_html()`.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from .config import PositionOptions
from .errors import (
    PositionError,
    PositionPermissionDenied,
    PositionTimeout,
    PositionUnavailable,
    SettingsUnavailable,
)
from .models import Coordinate
from .permissions import PermissionStatus

logger = logging.getLogger(__name__)

GEO_PARAMS = ("geo_status", "geo_perm", "geo_lat", "geo_lng", "geo_ts", "geo_code", "geo_message")

_ERRORS = {1: PositionPermissionDenied, 2: PositionUnavailable, 3: PositionTimeout}


@dataclass(frozen=True)
class LocationReport:
    status: str                       # granted | denied | unsupported
    permission: str = "unknown"       # Permissions API state before the request
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp_ms: Optional[float] = None
    error_code: Optional[int] = None
    error_message: str = ""

    @property
    def has_fix(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def age(self, now: Optional[float] = None) -> float:
        if self.timestamp_ms is None:
            return float("inf")
        now = time.time() if now is None else now
        return max(0.0, now - self.timestamp_ms / 1000.0)


def _first(value):
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_report(params: Mapping) -> Optional[LocationReport]:
    """Read a LocationReport out of query parameters; None if there is none."""
    status = _first(params.get("geo_status"))
    if not status:
        return None

    def num(key, cast=float):
        raw = _first(params.get(key))
        if raw in (None, ""):
            return None
        try:
            return cast(float(raw)) if cast is int else cast(raw)
        except (TypeError, ValueError):
            logger.warning("ignoring bad %s=%r", key, raw)
            return None

    lat, lng = num("geo_lat"), num("geo_lng")
    if lat is None or lng is None:
        lat = lng = None
    return LocationReport(
        status=str(status),
        permission=str(_first(params.get("geo_perm")) or "unknown"),
        latitude=lat,
        longitude=lng,
        timestamp_ms=num("geo_ts"),
        error_code=num("geo_code", int),
        error_message=str(_first(params.get("geo_message")) or ""),
    )


_LOCATOR_TEMPLATE = """
<script>
(function(){
  const loc = window.parent.location;
  function report(values){
    const q = new URLSearchParams(loc.search);
    for (const k of %(keys)s) q.delete(k);
    for (const [k, v] of Object.entries(values)) q.set(k, String(v));
    loc.replace(loc.pathname + '?' + q.toString());
  }
  function locate(perm){
    if (!navigator.geolocation) { report({geo_status: 'unsupported', geo_perm: perm}); return; }
    navigator.geolocation.getCurrentPosition(function(p){
      report({geo_status: 'granted', geo_perm: perm, geo_lat: p.coords.latitude,
              geo_lng: p.coords.longitude, geo_ts: p.timestamp});
    }, function(err){
      report({geo_status: err.code === 1 ? 'denied' : 'granted', geo_perm: perm,
              geo_code: err.code, geo_message: err.message || ''});
    }, %(options)s);
  }
  if (navigator.permissions && navigator.permissions.query) {
    navigator.permissions.query({name: 'geolocation'})
      .then(function(s){ locate(s.state); }, function(){ locate('unknown'); });
  } else {
    locate('unknown');
  }
})();
</script>
"""


class BrowserDevice:
    """Location capability set backed by the visitor's browser."""

    def __init__(self, options: PositionOptions = PositionOptions()):
        self.options = options
        self._report: Optional[LocationReport] = None
        self._unclaimed = False
        self._waiters: List[asyncio.Future] = []

    @property
    def pending(self) -> bool:
        return any(not w.done() for w in self._waiters)

    def locator_html(self) -> str:
        opts = {
            "enableHighAccuracy": self.options.enable_high_accuracy,
            "timeout": int(self.options.timeout * 1000),
            "maximumAge": int(self.options.maximum_age * 1000),
        }
        return _LOCATOR_TEMPLATE % {"keys": json.dumps(list(GEO_PARAMS)), "options": json.dumps(opts)}

    def deliver(self, report: LocationReport) -> None:
        """Record a report from the browser. Must run on the event loop."""
        self._report = report
        waiters, self._waiters = self._waiters, []
        live = [w for w in waiters if not w.done()]
        self._unclaimed = not live
        for w in live:
            w.set_result(report)

    async def _next_report(self) -> LocationReport:
        if self._unclaimed and self._report is not None:
            self._unclaimed = False
            return self._report
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            return await asyncio.wait_for(fut, self.options.prompt_timeout)
        except asyncio.TimeoutError:
            # page closed or reloaded without answering
            raise PositionTimeout("browser did not answer the location request") from None
        finally:
            if fut in self._waiters:
                self._waiters.remove(fut)

    # ---- prompt-based capability set ----
    async def check_permission(self) -> bool:
        return self._report is not None and self._report.permission == "granted"

    async def request_permission(self) -> PermissionStatus:
        report = await self._next_report()
        if report.status == "granted":
            return PermissionStatus.GRANTED
        if report.status == "denied" and report.permission == "denied":
            # blocked before we asked: the browser will not prompt again
            return PermissionStatus.NEVER_ASK_AGAIN
        return PermissionStatus.DENIED

    # ---- authorization-based capability set ----
    async def request_authorization(self) -> PermissionStatus:
        report = await self._next_report()
        if report.status == "granted":
            return PermissionStatus.GRANTED
        if report.status == "unsupported":
            return PermissionStatus.DISABLED
        return PermissionStatus.DENIED

    async def open_settings(self) -> None:
        raise SettingsUnavailable("browsers do not expose location settings to pages")

    async def get_current_position(self, options: PositionOptions) -> Coordinate:
        report = self._report
        if report is None or not self._usable(report, options):
            self._unclaimed = False
            report = await self._next_report()
        if report.has_fix:
            if report.age() > options.maximum_age:
                raise PositionUnavailable("cached position is older than the maximum age")
            return Coordinate(report.latitude, report.longitude)
        raise _ERRORS.get(report.error_code, PositionError)(
            report.error_message or "position unavailable", report.error_code
        )

    @staticmethod
    def _usable(report: LocationReport, options: PositionOptions) -> bool:
        if report.has_fix:
            return report.age() <= options.maximum_age
        return report.error_code is not None

    def close(self) -> None:
        waiters, self._waiters = self._waiters, []
        for w in waiters:
            if not w.done():
                w.cancel()


_ANDROID = re.compile(r"Android (\d+)")
_IOS = re.compile(r"(?:iPhone|iPad|iPod).*? OS (\d+)_")


def detect_platform(user_agent: Optional[str]) -> Tuple[str, Optional[int]]:
    """Map a User-Agent string to (platform, major version)."""
    ua = user_agent or ""
    m = _ANDROID.search(ua)
    if m:
        return "android", int(m.group(1))
    if any(dev in ua for dev in ("iPhone", "iPad", "iPod")):
        m = _IOS.search(ua)
        return "ios", int(m.group(1)) if m else None
    return "web", None
