from __future__ import annotations

import time

from rozo_warnquota.models.quota import Offender, QuotaRecord

MAILDEV_ANY = "any"


def is_violation(record: QuotaRecord) -> bool:
    q = record.quota
    return q.over_block_soft or q.over_inode_soft


def is_deliverable(record: QuotaRecord, maildev: str | None, now: float | None = None) -> bool:
    if not maildev:
        return True

    now = time.time() if now is None else now
    q = record.quota
    if maildev.lower() == MAILDEV_ANY:
        # judged against the record itself, not a separate mail device quota
        grace_over = bool(q.btime) and q.btime <= now
        if q.over_block_hard or (q.over_block_soft and grace_over):
            return False
        return True

    # named devices are never resolved to a quota handle, so nothing can exempt them
    return True


def should_notify(record: QuotaRecord, maildev: str | None, now: float | None = None) -> bool:
    return is_violation(record) and is_deliverable(record, maildev, now)


def should_cc(offender: Offender, cc_before: int | None, now: float | None = None) -> bool:
    if cc_before is None:
        return True

    now = time.time() if now is None else now
    for entry in offender.usage:
        q = entry.quota
        if q.over_block_soft and q.btime - cc_before <= now:
            return True
        if q.over_inode_soft and q.itime - cc_before <= now:
            return True
    return False
