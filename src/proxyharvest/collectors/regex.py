from __future__ import annotations

import logging
from typing import Any, Optional, Set

from .. import utils
from .base import PROXY_PATTERN, CandidateRecord, PageCollector
from .sources import REGEX, SourceSpec, normalize_type
from .stream import RecordStream

logger = logging.getLogger("proxyharvest.collectors.regex")


class RegexCollector(PageCollector):
    """Emits every unique ip:port found anywhere in the page text."""

    def __init__(self, spec: SourceSpec, **kwargs: Any) -> None:
        super().__init__(spec, spec.urls(), **kwargs)

    @classmethod
    def from_spec(cls, spec: Optional[SourceSpec], **kwargs: Any) -> Optional["RegexCollector"]:
        if spec is None:
            return None
        if not spec.verify() or normalize_type(spec.type) != REGEX:
            logger.error("source %s is unavailable, check its type, url and charset", spec.name)
            return None
        return cls(spec, **kwargs)

    def _extract(self, text: str, url: str, output: RecordStream[CandidateRecord]) -> int:
        seen: Set[str] = set()
        emitted = 0
        for m in PROXY_PATTERN.finditer(text or ""):
            val = m.group(0)
            if val in seen:
                continue
            seen.add(val)
            address, _, port_s = val.rpartition(":")
            port = int(port_s)
            if not utils.is_ipv4(address) or port <= 0:
                continue
            output.put(CandidateRecord(address=address, port=port, location="", latency=0.0, source_url=url))
            emitted += 1
        return emitted
