from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional, Tuple

from parsel import Selector, SelectorList

from .. import utils
from .base import CandidateRecord, CollectError, PageCollector
from .sources import SELECTOR, SourceSpec, normalize_type
from .stream import RecordStream

logger = logging.getLogger("proxyharvest.collectors.selector")

ROW_FIELD = "table"
MIN_RULES = 3
MAX_LATENCY_SECONDS = 3.0

# Names used by older source files
FIELD_ALIASES = {"ip": "address", "speed": "latency"}

SECONDS_MARKER = "秒"
_LATENCY_NUMBER = re.compile(r"^[1-9]\d*\.*\d*|0\.\d*[1-9]\d*")


def _is_xpath(path: str) -> bool:
    p = path.strip()
    return p.startswith("/") or p.startswith("./") or p.startswith("(")


def _select(node: Selector, path: str) -> SelectorList:
    if _is_xpath(path):
        return node.xpath(path)
    return node.css(path)


def parse_latency(text: str) -> float:
    """
    Seconds parsed from text like '0.5秒'. Text without the seconds marker,
    or without a leading number, counts as 0.
    """
    if SECONDS_MARKER not in text:
        return 0.0
    m = _LATENCY_NUMBER.search(text)
    if not m:
        return 0.0
    try:
        return float(m.group(0))
    except ValueError:
        return 0.0


def parse_port(text: str) -> int:
    # plain ASCII digits only; int() would also take "+80", "8_080" and non-ASCII digits
    if not (text.isascii() and text.isdigit()):
        return 0
    return int(text)


class SelectorCollector(PageCollector):
    """
    Collector driven by per-field CSS/XPath rules.

    The 'table' rule selects one element per candidate row; every other rule
    is evaluated relative to that row and yields either the element text or,
    when an attribute is named, that attribute's value.
    """

    def __init__(self, spec: SourceSpec, row_path: str, fields: Dict[str, Tuple[str, ...]], **kwargs: Any) -> None:
        super().__init__(spec, spec.urls(), **kwargs)
        self.row_path = row_path
        self.fields = fields

    @classmethod
    def from_spec(cls, spec: Optional[SourceSpec], **kwargs: Any) -> Optional["SelectorCollector"]:
        if spec is None:
            return None
        if not spec.verify() or normalize_type(spec.type) != SELECTOR or len(spec.rules) < MIN_RULES:
            logger.error("source %s is unavailable, check its type, url, charset and field rules", spec.name)
            return None

        rules = spec.rule_map()
        row = rules.pop(ROW_FIELD, None)
        if row is None or not row.path.strip():
            logger.error("source %s: table selector's path should not be empty", spec.name)
            return None

        fields: Dict[str, Tuple[str, ...]] = {}
        for name, rule in rules.items():
            fields[FIELD_ALIASES.get(name, name)] = rule.parts
        if len(fields) < MIN_RULES - 1:
            logger.error("source %s: needs at least %d named field rules besides the table", spec.name, MIN_RULES - 1)
            return None
        return cls(spec, row.path.strip(), fields, **kwargs)

    def _row_values(self, row: Selector) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for name, parts in self.fields.items():
            nodes = _select(row, parts[0])
            if len(parts) == 1:
                raw = "".join(n.xpath("string(.)").get() or "" for n in nodes)
            else:
                raw = nodes.attrib.get(parts[1], "")
            raw = raw.strip()
            if raw:
                values[name] = raw
        return values

    def _to_record(self, values: Dict[str, str], url: str) -> Optional[CandidateRecord]:
        address = values.get("address", "")
        if not utils.is_ipv4(address):
            return None
        port = parse_port(values.get("port", ""))
        latency = parse_latency(values.get("latency", ""))
        if port <= 0 or not (0 <= latency < MAX_LATENCY_SECONDS):
            return None
        return CandidateRecord(
            address=address,
            port=port,
            location=values.get("location", ""),
            latency=latency,
            source_url=url,
        )

    def _extract(self, text: str, url: str, output: RecordStream[CandidateRecord]) -> int:
        try:
            doc = Selector(text=text)
            rows = _select(doc, self.row_path)
        except Exception as e:
            raise CollectError(f"parse {url} error: {e}") from e

        emitted = 0
        for row in rows:
            try:
                values = self._row_values(row)
            except (ValueError, SyntaxError) as e:
                # invalid field selector (cssselect raises SyntaxError subclasses)
                raise CollectError(f"parse {url} error: {e}") from e
            record = self._to_record(values, url)
            if record is not None:
                output.put(record)
                emitted += 1
        return emitted
