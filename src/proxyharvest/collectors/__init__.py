from .base import PROXY_PATTERN, CandidateRecord, Collector, CollectError, make_collector
from .regex import RegexCollector
from .selector import SelectorCollector
from .sources import FieldRule, SourceSpec, normalize_sources
from .stream import RecordStream, StreamClosedError

__all__ = [
    "PROXY_PATTERN",
    "CandidateRecord",
    "Collector",
    "CollectError",
    "FieldRule",
    "RecordStream",
    "RegexCollector",
    "SelectorCollector",
    "SourceSpec",
    "StreamClosedError",
    "make_collector",
    "normalize_sources",
]
