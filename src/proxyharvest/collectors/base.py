from __future__ import annotations

import http
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .. import utils
from .fetch import DEFAULT_TIMEOUT, FetchResult, fetch_page
from .sources import REGEX, SELECTOR, SourceSpec, normalize_type
from .stream import RecordStream

logger = logging.getLogger("proxyharvest.collectors")

# Shared proxy pattern: IPv4:port
PROXY_PATTERN = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}:\d+\b")


class CollectError(Exception):
    pass


@dataclass(frozen=True)
class CandidateRecord:
    address: str
    port: int
    location: str
    latency: float
    source_url: str

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Collector(Protocol):
    def next(self) -> bool:
        ...

    def name(self) -> str:
        ...

    def collect(self, output: RecordStream[CandidateRecord]) -> List[Exception]:
        """Emit records for the current url into `output` and close it."""
        ...


class PageCollector:
    """
    Cursor over a fixed list of page urls plus the fetch/close skeleton
    shared by concrete collectors. Subclasses implement `_extract`.
    """

    def __init__(
        self,
        spec: SourceSpec,
        urls: Sequence[str],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
    ) -> None:
        self.spec = spec
        self.urls: List[str] = list(urls)
        self.current_url: Optional[str] = None
        self.timeout = float(timeout)
        self.verify_ssl = bool(verify_ssl)
        self._index = 0

    def next(self) -> bool:
        if self._index >= len(self.urls):
            return False
        self.current_url = self.urls[self._index]
        self._index += 1
        logger.debug("%s: current url %s", self.spec.name, self.current_url)
        return True

    def name(self) -> str:
        return self.spec.name

    def _fetch(self, url: str) -> FetchResult:
        return fetch_page(
            url,
            user_agent=utils.random_user_agent(),
            timeout=self.timeout,
            verify_ssl=self.verify_ssl,
        )

    def collect(self, output: RecordStream[CandidateRecord]) -> List[Exception]:
        try:
            if self.current_url is None:
                raise RuntimeError(f"{self.spec.name}: collect() called before next()")
            url = self.current_url
            try:
                resp = self._fetch(url)
            except Exception as e:
                logger.error("%s: GET %s failed: %r", self.spec.name, url, e)
                return [e]

            if resp.status != 200:
                reason = resp.reason or _status_text(resp.status)
                msg = f"GET {url} failed, status code: {reason}"
                logger.error("%s: %s", self.spec.name, msg)
                return [CollectError(msg)]

            try:
                text = resp.body.decode(self.spec.charset or "utf-8", errors="replace")
                emitted = self._extract(text, url, output)
            except CollectError as e:
                logger.error("%s: %s", self.spec.name, e)
                return [e]

            logger.debug("%s: finished %s emitted=%d", self.spec.name, url, emitted)
            return []
        finally:
            output.close()

    def _extract(self, text: str, url: str, output: RecordStream[CandidateRecord]) -> int:
        raise NotImplementedError


def _status_text(code: int) -> str:
    try:
        return http.HTTPStatus(code).phrase
    except ValueError:
        return str(code)


def make_collector(spec: Optional[SourceSpec], **kwargs: Any) -> Optional[Collector]:
    """Pick the collector variant from the spec's type tag. None if unusable."""
    from .regex import RegexCollector
    from .selector import SelectorCollector

    if spec is None:
        logger.error("collector: no source spec given")
        return None
    kind = normalize_type(spec.type)
    if kind == SELECTOR:
        return SelectorCollector.from_spec(spec, **kwargs)
    if kind == REGEX:
        return RegexCollector.from_spec(spec, **kwargs)
    logger.error("source %s: unknown collector type %r", spec.name, spec.type)
    return None
