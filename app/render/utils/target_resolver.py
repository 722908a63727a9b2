"""Capture target resolution and allowlist policy.

This module turns a request's ``url`` or ``html``/``baseUrl`` pair into a
navigable target and enforces the operator allowlist. Two allowlist
semantics are supported as configuration:

* ``origin`` (default): scheme, host and port of the candidate must equal
  those of an allowlist entry, independent of path.
* ``prefix``: an allowlist entry must be a string prefix of the raw URL.

Loopback hosts can optionally be rewritten to an internal hostname before
the allowlist is evaluated, so a containerized service can reach a target
running on its host machine.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from ..errors import InvalidTargetUrlError, MissingTargetError, TargetNotAllowedError
from ..models.capture import InlineTarget, RemoteTarget, TargetSpec

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
DEFAULT_INTERNAL_HOST = "host.docker.internal"
DEFAULT_PORTS = {"http": 80, "https": 443}
NGROK_HOST_SUFFIXES = (".ngrok-free.app", ".ngrok.io")
NGROK_SKIP_HEADER = "ngrok-skip-browser-warning"

Origin = Tuple[str, str, int]


class MatchPolicy(str, Enum):
    """Allowlist matching semantics."""
    ORIGIN = "origin"
    PREFIX = "prefix"


def parse_origin(url: str) -> Optional[Origin]:
    """Return ``(scheme, host, port)`` for an http(s) URL, or None if invalid.

    Default ports are made explicit so ``https://a.com`` and
    ``https://a.com:443`` share an origin.
    """
    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        host = (parts.hostname or "").lower()
        port = parts.port
    except (ValueError, AttributeError):
        return None

    if scheme not in DEFAULT_PORTS or not host:
        return None

    return scheme, host, port if port is not None else DEFAULT_PORTS[scheme]


def rewrite_loopback(url: str, internal_host: str = DEFAULT_INTERNAL_HOST) -> str:
    """Rewrite a loopback hostname to ``internal_host``, keeping everything else."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return url

    if not hostname or hostname.lower() not in LOOPBACK_HOSTS:
        return url

    userinfo = parts.netloc.rpartition("@")[0]
    netloc = internal_host if port is None else f"{internal_host}:{port}"
    if userinfo:
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class UrlAllowlist:
    """Operator allowlist for remote capture targets.

    An empty allowlist rejects every remote URL. Entries that do not parse
    as http(s) URLs never match under the origin policy.
    """

    def __init__(self, entries: Optional[Iterable[str]] = None, policy: MatchPolicy = MatchPolicy.ORIGIN):
        """Initialize the allowlist.

        Args:
            entries: Allowed origins (origin policy) or URL prefixes (prefix policy)
            policy: Matching semantics to apply
        """
        self.policy = MatchPolicy(policy)
        self.entries: List[str] = [e.strip() for e in (entries or []) if e and e.strip()]

        self._origins: List[Origin] = []
        for entry in self.entries:
            origin = parse_origin(entry)
            if origin is None:
                if self.policy == MatchPolicy.ORIGIN:
                    logger.warning(f"Ignoring allowlist entry that is not an http(s) origin: {entry}")
                continue
            self._origins.append(origin)

    def is_allowed(self, url: str) -> bool:
        """Check whether ``url`` matches an allowlist entry under the configured policy."""
        if self.policy == MatchPolicy.PREFIX:
            return any(url.startswith(entry) for entry in self.entries)

        origin = parse_origin(url)
        if origin is None:
            return False
        return origin in self._origins

    def get_allowlist_info(self) -> Dict[str, object]:
        """Describe the allowlist for logs and health output."""
        return {
            "policy": self.policy.value,
            "entries": list(self.entries),
            "valid_origins": len(self._origins),
        }

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"UrlAllowlist(policy={self.policy.value}, entries={len(self.entries)})"


class TargetResolver:
    """Validates request targets and produces ``TargetSpec`` values."""

    def __init__(
        self,
        allowlist: UrlAllowlist,
        force_internal_host: bool = False,
        internal_host: str = DEFAULT_INTERNAL_HOST
    ):
        """Initialize target resolver.

        Args:
            allowlist: Allowlist applied to remote targets
            force_internal_host: Rewrite loopback hosts to ``internal_host``
            internal_host: Hostname that reaches the machine running the service
        """
        self.allowlist = allowlist
        self.force_internal_host = force_internal_host
        self.internal_host = internal_host

    def resolve(
        self,
        url: Optional[str] = None,
        html: Optional[str] = None,
        base_url: Optional[str] = None
    ) -> TargetSpec:
        """Resolve request fields into a target.

        ``url`` wins when both ``url`` and ``html`` are supplied.

        Raises:
            MissingTargetError: Neither url nor html present
            InvalidTargetUrlError: url is not an http(s) URL
            TargetNotAllowedError: url does not match the allowlist
        """
        if url and url.strip():
            return self._resolve_remote(url.strip())

        if html:
            return InlineTarget(html=str(html), base_url=base_url.strip() if base_url and base_url.strip() else None)

        raise MissingTargetError()

    def _resolve_remote(self, url: str) -> RemoteTarget:
        if parse_origin(url) is None:
            raise InvalidTargetUrlError(target_url=url)

        target_url = url
        if self.force_internal_host:
            target_url = rewrite_loopback(url, self.internal_host)
            if target_url != url:
                logger.debug(f"Rewrote loopback target {url} -> {target_url}")

        if not self.allowlist.is_allowed(target_url):
            logger.warning(
                f"Rejected target not in allowlist: {target_url}",
                extra={"target_url": target_url, "policy": self.allowlist.policy.value}
            )
            raise TargetNotAllowedError(target_url=target_url)

        return RemoteTarget(url=target_url)


def build_extra_headers(target: TargetSpec, extra_headers: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Headers forwarded to the target page.

    ngrok tunnels serve an interstitial warning page unless the skip header
    is present, so it is added for ngrok hosts when the caller did not set it.
    """
    headers = {str(k): str(v) for k, v in (extra_headers or {}).items()}

    if isinstance(target, RemoteTarget):
        host = (urlsplit(target.url).hostname or "").lower()
        if host.endswith(NGROK_HOST_SUFFIXES):
            headers.setdefault(NGROK_SKIP_HEADER, "1")

    return headers
