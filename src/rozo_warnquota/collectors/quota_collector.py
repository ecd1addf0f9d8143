from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

from rozo_warnquota.collectors.export_registry import ExportRegistry
from rozo_warnquota.collectors.quota_store import DiskTableQuotaStore, QuotaStore
from rozo_warnquota.context import RunContext
from rozo_warnquota.errors import ExportNotFoundError
from rozo_warnquota.models.common import StageResult
from rozo_warnquota.models.quota import QuotaType
from rozo_warnquota.observability.logging import get_logger
from rozo_warnquota.services.policy import should_notify
from rozo_warnquota.services.registry import OffenderRegistry

log = get_logger(__name__)


def parse_export_id(arg: str) -> int | None:
    try:
        return int(arg, 0)
    except ValueError:
        return None


class QuotaCollector:
    def __init__(
        self,
        ctx: RunContext,
        exports: ExportRegistry,
        store: QuotaStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ctx = ctx
        self.exports = exports
        self.store = store or DiskTableQuotaStore()
        self.clock = clock

    def collect(self, export_args: list[str]) -> StageResult[OffenderRegistry]:
        ts = datetime.now()
        warnings: list[str] = []
        registry = self.ctx.registry

        for arg in export_args:
            eid = parse_export_id(arg)
            if eid is None:
                warnings.append(f"Invalid export id {arg!r}, skipping")
                log.warning(warnings[-1])
                continue
            try:
                path = self.exports.resolve(eid)
            except ExportNotFoundError as e:
                warnings.append(str(e))
                log.warning(warnings[-1])
                continue

            for qtype in self.ctx.options.quota_types:
                self._scan(path, eid, qtype)

        registry.seal()
        warnings.extend(registry.unresolved)

        status = "OK" if not warnings else "WARN"
        return StageResult(
            ts=ts,
            status=status,
            warning_count=len(warnings),
            warnings=warnings,
            data=registry,
        )

    def _scan(self, path: str, eid: int, qtype: QuotaType) -> int:
        if not self.store.enabled(path, qtype):
            log.debug("%s quota not enabled on export %d (%s)", qtype.name.lower(), eid, path)
            return 0

        maildev = self.ctx.config.maildev
        now = self.clock()
        hits = 0
        for record in self.store.records(path, qtype):
            if should_notify(record, maildev, now):
                if self.ctx.registry.add_offence(record) is not None:
                    hits += 1
        log.info("Export %d (%s): %d %s violation(s)", eid, path, hits, qtype.name.lower())
        return hits
