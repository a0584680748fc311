import ipaddress
import json
import random
from typing import Any, Dict, List

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:124.0) Gecko/20100101 Firefox/124.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.2478.51",
)


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def is_ipv4(value: str) -> bool:
    """True for a dotted-quad IPv4 address such as '192.168.1.1'."""
    try:
        ipaddress.IPv4Address((value or "").strip())
    except ValueError:
        return False
    return True


def load_source_file(path: str = "sources.json") -> List[Dict[str, Any]]:
    with open(path, 'r', encoding='utf-8') as file:
        data = json.load(file)
    # Accept {"sources": [...]}, a bare list, or a single source object
    if isinstance(data, dict):
        items = data.get("sources", [data] if "url" in data else [])
    else:
        items = data
    if isinstance(items, (tuple, set)):
        items = list(items)
    if not isinstance(items, list):
        return []
    return [it for it in items if isinstance(it, dict)]
