"""Bearer token handling for report sources and image URL downloads.

Token acquisition itself (interactive sign-in) happens elsewhere; this module
only knows about cloud profiles, scope parsing and expiry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Callable, Dict, List, Optional

from .errors import PreconditionError

DEFAULT_CLOUD = "commercial"
EXPIRY_SKEW = timedelta(minutes=2)


@dataclass(frozen=True)
class CloudProfile:
    id: str
    authority_base: str
    default_scope: str


CLOUD_PROFILES: Dict[str, CloudProfile] = {
    "commercial": CloudProfile(
        "commercial",
        "https://login.microsoftonline.com",
        "https://analysis.windows.net/powerbi/api/Report.Read.All",
    ),
    "gcc": CloudProfile(
        "gcc",
        "https://login.microsoftonline.com",
        "https://analysis.usgovcloudapi.net/powerbi/api/Report.Read.All",
    ),
    "gccHigh": CloudProfile(
        "gccHigh",
        "https://login.microsoftonline.us",
        "https://high.analysis.usgovcloudapi.net/powerbi/api/Report.Read.All",
    ),
    "dod": CloudProfile(
        "dod",
        "https://login.microsoftonline.us",
        "https://mil.analysis.usgovcloudapi.net/powerbi/api/Report.Read.All",
    ),
    "china": CloudProfile(
        "china",
        "https://login.chinacloudapi.cn",
        "https://analysis.chinacloudapi.cn/powerbi/api/Report.Read.All",
    ),
}


def cloud_profile(cloud: Optional[str]) -> CloudProfile:
    return CLOUD_PROFILES.get(str(cloud or "").strip(), CLOUD_PROFILES[DEFAULT_CLOUD])


def parse_scopes(raw: Optional[str], cloud: Optional[str] = None) -> List[str]:
    value = (raw or "").strip()
    if not value:
        return [cloud_profile(cloud).default_scope]
    return [scope for scope in re.split(r"[\s,]+", value) if scope]


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_on: Optional[datetime] = None

    def is_expiring(self, *, now: Optional[datetime] = None, skew: timedelta = EXPIRY_SKEW) -> bool:
        if self.expires_on is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current > self.expires_on - skew


Refresher = Callable[[CloudProfile, List[str]], AccessToken]


def resolve_access_token(
    manual_token: Optional[str] = None,
    *,
    cached: Optional[AccessToken] = None,
    refresh: Optional[Callable[[], AccessToken]] = None,
    now: Optional[datetime] = None,
) -> AccessToken:
    """Pick the token to use: refreshed when a refresher exists, else cached, else manual."""
    if refresh is not None:
        if cached is None or not cached.value or cached.is_expiring(now=now):
            return refresh()
        return cached

    if cached is not None and cached.value:
        return cached

    token = (manual_token or "").strip()
    if not token:
        raise PreconditionError("Access token is required.")
    return AccessToken(token)


class TokenProvider:
    """Bearer token source for image downloads.

    Returns ``None`` when neither a token nor a refresher is configured, so
    anonymous URLs still download. With a refresher, an expiring token is
    replaced before it is handed out; the refresher receives the cloud
    profile and the scopes to request.
    """

    def __init__(
        self,
        token: Optional[AccessToken] = None,
        *,
        refresh: Optional[Refresher] = None,
        cloud: Optional[str] = None,
        scopes: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.token = token
        self.refresh = refresh
        self.profile = cloud_profile(cloud)
        self.scopes = parse_scopes(scopes, cloud)
        self._clock = clock

    def __call__(self) -> Optional[str]:
        if self.refresh is None and (self.token is None or not self.token.value):
            return None
        refresh = partial(self.refresh, self.profile, self.scopes) if self.refresh is not None else None
        now = self._clock() if self._clock else None
        self.token = resolve_access_token(cached=self.token, refresh=refresh, now=now)
        return self.token.value
