from __future__ import annotations

from typing import Callable, Iterator

from rozo_warnquota.collectors.identity import account_name
from rozo_warnquota.errors import ResolutionError
from rozo_warnquota.models.quota import Offender, QuotaRecord, QuotaType, UsageEntry
from rozo_warnquota.observability.logging import get_logger

log = get_logger(__name__)

NameLookup = Callable[[QuotaType, int], str]


class OffenderRegistry:
    def __init__(self, name_lookup: NameLookup | None = None) -> None:
        self._name_lookup = name_lookup or account_name
        self._failed: set[tuple[QuotaType, int]] = set()
        self._offenders: dict[tuple[QuotaType, int], Offender] = {}
        self._sealed = False
        self.unresolved: list[str] = []

    def find_or_create(self, qtype: QuotaType, qid: int, name: str | None = None) -> Offender | None:
        key = (qtype, qid)
        offender = self._offenders.get(key)
        if offender is not None:
            return offender

        self._check_open()
        if key in self._failed:
            return None
        if not name:
            try:
                name = self._name_lookup(qtype, qid)
            except ResolutionError as e:
                self._failed.add(key)
                self.unresolved.append(str(e))
                log.error("%s, dropping record", e)
                return None

        offender = Offender(qtype=qtype, qid=qid, name=name)
        self._offenders[key] = offender
        return offender

    def add_usage(self, offender: Offender, record: QuotaRecord) -> UsageEntry:
        self._check_open()
        entry = UsageEntry(label=record.label, quota=record.quota)
        offender.usage.append(entry)
        return entry

    def add_offence(self, record: QuotaRecord, name: str | None = None) -> Offender | None:
        offender = self.find_or_create(record.qtype, record.qid, name)
        if offender is None:
            return None
        self.add_usage(offender, record)
        return offender

    def get(self, qtype: QuotaType, qid: int) -> Offender | None:
        return self._offenders.get((qtype, qid))

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def offenders(self) -> Iterator[Offender]:
        return iter(tuple(self._offenders.values()))

    def __iter__(self) -> Iterator[Offender]:
        return self.offenders()

    def __len__(self) -> int:
        return len(self._offenders)

    def _check_open(self) -> None:
        if self._sealed:
            raise RuntimeError("offender registry is sealed; scan phase is over")
