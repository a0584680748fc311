from __future__ import annotations

import threading
from typing import List

import pytest

from proxyharvest.bloom import TimeWindowBloom
from proxyharvest.collectors import CandidateRecord, CollectError, FieldRule, RecordStream, SourceSpec
from proxyharvest.orchestrator import build_collectors, harvest
from proxyharvest.storage import ProxyStore, decode_value


class FakeCollector:
    """In-memory collector: one list of records (or an error) per page."""

    def __init__(self, name: str, pages: List[object]) -> None:
        self._name = name
        self._pages = list(pages)
        self._i = -1

    def next(self) -> bool:
        if self._i + 1 >= len(self._pages):
            return False
        self._i += 1
        return True

    def name(self) -> str:
        return self._name

    def collect(self, output: RecordStream) -> list:
        try:
            page = self._pages[self._i]
            if isinstance(page, Exception):
                return [page]
            for r in page:
                output.put(r)
            return []
        finally:
            output.close()


def _rec(addr: str, port: int = 80) -> CandidateRecord:
    return CandidateRecord(address=addr, port=port, location="", latency=0.1, source_url="http://x")


@pytest.fixture
def store(tmp_path):
    s = ProxyStore(str(tmp_path / "h.db"), "proxies")
    try:
        yield s
    finally:
        s.close()


def test_harvest_stores_records_by_endpoint(store):
    collectors = [
        FakeCollector("a", [[_rec("1.1.1.1"), _rec("2.2.2.2")], [_rec("3.3.3.3")]]),
        FakeCollector("b", [CollectError("GET x failed"), [_rec("1.1.1.1", 8080)]]),
    ]
    report = harvest(collectors, store, workers=2)
    assert report.collectors == 2
    assert report.pages == 4
    assert report.accepted == 4
    assert report.stored == 4
    assert report.errors == 1
    assert set(store.get_all()) == {"1.1.1.1:80", "2.2.2.2:80", "3.3.3.3:80", "1.1.1.1:8080"}
    assert decode_value(store.get("3.3.3.3:80"))["address"] == "3.3.3.3"


def test_harvest_skips_recently_seen_endpoints(store):
    seen = TimeWindowBloom(window_seconds=60, slices=2, capacity_per_slice=1000)
    first = harvest([FakeCollector("a", [[_rec("1.1.1.1"), _rec("1.1.1.1")]])], store, seen=seen, workers=1)
    assert first.stored == 1
    assert first.duplicates == 1
    second = harvest([FakeCollector("a", [[_rec("1.1.1.1")]])], store, seen=seen, workers=1)
    assert second.stored == 0
    assert second.duplicates == 1
    assert store.count == 1


def test_harvest_with_no_collectors(store):
    report = harvest([], store)
    assert report.collectors == 0 and report.stored == 0


def test_harvest_stops_between_pages(store):
    stop = threading.Event()
    stop.set()
    report = harvest([FakeCollector("a", [[_rec("1.1.1.1")]])], store, stop_event=stop)
    assert report.pages == 0
    assert store.count == 0


def test_crashing_collector_is_counted(store):
    class Crashing(FakeCollector):
        def collect(self, output):
            output.close()
            raise RuntimeError("boom")

    report = harvest([Crashing("c", [[]]), FakeCollector("ok", [[_rec("4.4.4.4")]])], store, workers=2)
    assert report.errors == 1
    assert store.exist("4.4.4.4:80")


def test_build_collectors_skips_unusable_specs(page_server, proxy_table, store):
    page_server.add("/nn/1", proxy_table)
    page_server.add("/nn/2", proxy_table.replace("192.168.1.1", "172.16.0.9"))
    specs = [
        SourceSpec(
            name="table",
            url_template=page_server.url("/nn/{}"),
            url_parameters="1-2",
            rules=(
                FieldRule("table", "tr.row"),
                FieldRule("ip", "td:nth-child(1)"),
                FieldRule("port", "td:nth-child(2)"),
                FieldRule("speed", "td:nth-child(4) div", "title"),
            ),
        ),
        SourceSpec(name="broken", url_template=page_server.url("/x"), rules=(FieldRule("table", "tr"),)),
    ]
    collectors = build_collectors(specs, timeout=5.0)
    assert [c.name() for c in collectors] == ["table"]

    report = harvest(collectors, store)
    assert report.pages == 2
    assert set(store.get_all()) == {"192.168.1.1:8080", "172.16.0.9:8080", "10.0.0.5:1080"}
