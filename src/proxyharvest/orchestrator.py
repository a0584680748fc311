from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .bloom import TimeWindowBloom
from .collectors import CandidateRecord, Collector, RecordStream, SourceSpec, make_collector
from .storage import ProxyStore, StorageError

logger = logging.getLogger("proxyharvest.orchestrator")


@dataclass(frozen=True)
class HarvestReport:
    collectors: int
    pages: int
    accepted: int
    stored: int
    duplicates: int
    errors: int


@dataclass
class _Tally:
    pages: int = 0
    accepted: int = 0
    stored: int = 0
    duplicates: int = 0
    errors: int = 0


def build_collectors(specs: Iterable[SourceSpec], **kwargs) -> List[Collector]:
    out: List[Collector] = []
    for spec in specs:
        c = make_collector(spec, **kwargs)
        if c is not None:
            out.append(c)
    return out


def _store_record(store: ProxyStore, record: CandidateRecord, seen: Optional[TimeWindowBloom], tally: _Tally) -> None:
    key = record.endpoint
    tally.accepted += 1
    if seen is not None and key in seen:
        tally.duplicates += 1
        return
    try:
        store.add_or_update(key, record)
    except StorageError as e:
        logger.error("store: add %s failed: %s", key, e)
        tally.errors += 1
        return
    tally.stored += 1
    if seen is not None:
        seen.add(key)


def _run_collector(
    collector: Collector,
    store: ProxyStore,
    seen: Optional[TimeWindowBloom],
    stop_event: Optional[threading.Event],
) -> _Tally:
    tally = _Tally()
    cname = collector.name()
    t0 = time.perf_counter()
    while not (stop_event is not None and stop_event.is_set()) and collector.next():
        stream: RecordStream[CandidateRecord] = RecordStream()
        errs: List[Exception] = []

        def _produce() -> None:
            try:
                errs.extend(collector.collect(stream))
            except Exception as e:
                logger.exception("collect.%s: crashed", cname)
                errs.append(e)

        # records are stored while the producer is still parsing rows
        producer = threading.Thread(target=_produce, name=f"collect-{cname}", daemon=True)
        producer.start()
        for record in stream:
            _store_record(store, record, seen, tally)
        producer.join()
        tally.pages += 1
        if errs:
            tally.errors += len(errs)
            logger.warning("collect.%s: page failed: %s", cname, "; ".join(str(e) for e in errs))
    logger.debug(
        "collect.%s: pages=%d accepted=%d stored=%d dupes=%d errors=%d in %.2fs",
        cname, tally.pages, tally.accepted, tally.stored, tally.duplicates, tally.errors,
        time.perf_counter() - t0,
    )
    return tally


def harvest(
    collectors: Sequence[Collector],
    store: ProxyStore,
    *,
    workers: int = 8,
    seen: Optional[TimeWindowBloom] = None,
    stop_event: Optional[threading.Event] = None,
) -> HarvestReport:
    """
    Run every collector over all of its pages and upsert accepted records,
    keyed by 'address:port'. Collector failures are counted, never raised.
    """
    total = _Tally()
    if not collectors:
        logger.warning("harvest: no usable collectors")
        return HarvestReport(collectors=0, pages=0, accepted=0, stored=0, duplicates=0, errors=0)

    t0 = time.perf_counter()
    with ThreadPoolExecutor(max_workers=max(1, int(workers)), thread_name_prefix="harvest") as ex:
        futs = {ex.submit(_run_collector, c, store, seen, stop_event): c for c in collectors}
        for fut in as_completed(futs):
            try:
                t = fut.result()
            except Exception:
                logger.exception("collect.%s: failed", futs[fut].name())
                total.errors += 1
                continue
            total.pages += t.pages
            total.accepted += t.accepted
            total.stored += t.stored
            total.duplicates += t.duplicates
            total.errors += t.errors

    report = HarvestReport(
        collectors=len(collectors),
        pages=total.pages,
        accepted=total.accepted,
        stored=total.stored,
        duplicates=total.duplicates,
        errors=total.errors,
    )
    logger.info(
        "harvest: done in %.2fs collectors=%d pages=%d accepted=%d stored=%d dupes=%d errors=%d size=%d",
        time.perf_counter() - t0, report.collectors, report.pages, report.accepted,
        report.stored, report.duplicates, report.errors, store.count,
    )
    return report
