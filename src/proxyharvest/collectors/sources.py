from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger("proxyharvest.collectors.sources")

SELECTOR = "selector"
REGEX = "regex"

# Type tags accepted in source files, mapped to the collector variant
_TYPE_ALIASES = {
    "selector": SELECTOR,
    "selector-based": SELECTOR,
    "html": SELECTOR,
    "regex": REGEX,
    "regex-based": REGEX,
    "text": REGEX,
}

_RANGE_TOKEN = re.compile(r"^(\d+)\s*-\s*(\d+)$")


def normalize_type(value: Any) -> Optional[str]:
    return _TYPE_ALIASES.get(str(value or "").strip().lower())


@dataclass(frozen=True)
class FieldRule:
    name: str
    path: str
    attr: Optional[str] = None

    @property
    def parts(self) -> Tuple[str, ...]:
        if self.attr:
            return (self.path, self.attr)
        return (self.path,)


@dataclass(frozen=True)
class SourceSpec:
    name: str
    type: str = SELECTOR
    url_template: str = ""
    url_parameters: str = ""
    charset: str = "utf-8"
    rules: Tuple[FieldRule, ...] = ()

    def verify(self) -> bool:
        if not self.name or not self.url_template:
            return False
        if normalize_type(self.type) is None:
            return False
        try:
            codecs.lookup(self.charset or "utf-8")
        except LookupError:
            return False
        return True

    def rule_map(self) -> Dict[str, FieldRule]:
        out: Dict[str, FieldRule] = {}
        for rule in self.rules:
            if not rule.name or not rule.path:
                logger.warning(
                    "source %s: field rule with empty name or path ignored (name=%r path=%r)",
                    self.name,
                    rule.name,
                    rule.path,
                )
                continue
            out[rule.name] = rule
        return out

    def urls(self) -> List[str]:
        return make_urls(self.url_template, expand_parameters(self.url_parameters))


def expand_parameters(raw: Any) -> List[str]:
    """
    Split a comma-separated parameter string into its values.

    Numeric range tokens such as '1-5' expand to every value in the range,
    inclusive. A list or tuple is accepted as already split.
    """
    if isinstance(raw, (list, tuple)):
        tokens = [str(t) for t in raw]
    else:
        tokens = str(raw or "").split(",")
    out: List[str] = []
    for tok in tokens:
        tok = tok.strip()
        if not tok:
            continue
        m = _RANGE_TOKEN.match(tok)
        if m:
            lo, hi = int(m.group(1)), int(m.group(2))
            step = 1 if hi >= lo else -1
            out.extend(str(i) for i in range(lo, hi + step, step))
        else:
            out.append(tok)
    return out


def make_urls(template: str, parameters: Sequence[str]) -> List[str]:
    if "{}" in template:
        placeholder = "{}"
    elif "%s" in template:
        placeholder = "%s"
    else:
        return [template]
    if not parameters:
        return [template.replace(placeholder, "")]
    return [template.replace(placeholder, p) for p in parameters]


def _parse_rules(fields: Any) -> Tuple[FieldRule, ...]:
    rules: List[FieldRule] = []
    if isinstance(fields, Mapping):
        for name, rule in fields.items():
            if isinstance(rule, str):
                rules.append(FieldRule(name=str(name), path=rule.strip()))
            elif isinstance(rule, Mapping):
                attr = rule.get("attr")
                rules.append(FieldRule(
                    name=str(name),
                    path=str(rule.get("path", "")).strip(),
                    attr=str(attr).strip() if attr else None,
                ))
    elif isinstance(fields, (list, tuple)):
        for rule in fields:
            if not isinstance(rule, Mapping):
                continue
            attr = rule.get("attr")
            rules.append(FieldRule(
                name=str(rule.get("name", "")).strip(),
                path=str(rule.get("path", "")).strip(),
                attr=str(attr).strip() if attr else None,
            ))
    return tuple(rules)


def normalize_sources(sources: Any) -> List[SourceSpec]:
    if isinstance(sources, Mapping):
        items = sources.get("sources", [])
    else:
        items = sources or []
    result: List[SourceSpec] = []
    for it in items:
        if not isinstance(it, Mapping):
            continue
        url = str(it.get("url", "")).strip()
        if not url:
            continue
        params = it.get("parameters", "")
        if isinstance(params, (list, tuple)):
            params = ",".join(str(p) for p in params)
        result.append(SourceSpec(
            name=str(it.get("name", "")).strip() or url,
            type=str(it.get("type", SELECTOR)).strip().lower(),
            url_template=url,
            url_parameters=str(params or ""),
            charset=str(it.get("charset", "utf-8") or "utf-8").strip().lower(),
            rules=_parse_rules(it.get("fields")),
        ))
    return result
