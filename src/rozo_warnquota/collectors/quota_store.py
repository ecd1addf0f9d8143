"""Reader for the per-export quota disk tables kept by the export daemon.

Each export root carries ``quota/usrquota/`` and ``quota/grpquota/``.  A
table directory holds an ``enable`` file (``1`` when quota accounting is on
for that type) and one or more ``*.tbl`` files made of fixed-size
little-endian records::

    u8  type        0 = user, 1 = group
    u8  pad
    u16 eid
    u32 qid
    u64 bhardlimit  quota blocks
    u64 bsoftlimit  quota blocks
    u64 curspace    bytes
    u64 ihardlimit
    u64 isoftlimit
    u64 curinodes
    i64 btime       epoch seconds, 0 when not running
    i64 itime
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Iterator, Protocol

from rozo_warnquota.models.quota import DiskQuota, QuotaRecord, QuotaType
from rozo_warnquota.observability.logging import get_logger

log = get_logger(__name__)

RECORD = struct.Struct("<BxHI6Q2q")


class QuotaStore(Protocol):
    def enabled(self, root: str, qtype: QuotaType) -> bool: ...

    def records(self, root: str, qtype: QuotaType) -> Iterator[QuotaRecord]: ...


def encode_record(record: QuotaRecord) -> bytes:
    q = record.quota
    return RECORD.pack(
        int(record.qtype),
        record.eid,
        record.qid,
        q.bhardlimit,
        q.bsoftlimit,
        q.curspace,
        q.ihardlimit,
        q.isoftlimit,
        q.curinodes,
        q.btime,
        q.itime,
    )


def decode_record(raw: bytes) -> QuotaRecord:
    qtype, eid, qid, bhard, bsoft, curspace, ihard, isoft, curinodes, btime, itime = RECORD.unpack(raw)
    return QuotaRecord(
        qtype=QuotaType(qtype),
        qid=qid,
        eid=eid,
        quota=DiskQuota(
            bhardlimit=bhard,
            bsoftlimit=bsoft,
            curspace=curspace,
            btime=btime,
            ihardlimit=ihard,
            isoftlimit=isoft,
            curinodes=curinodes,
            itime=itime,
        ),
    )


class DiskTableQuotaStore:
    def table_dir(self, root: str, qtype: QuotaType) -> Path:
        return Path(root) / "quota" / qtype.table_dir

    def enabled(self, root: str, qtype: QuotaType) -> bool:
        flag = self.table_dir(root, qtype) / "enable"
        try:
            return flag.read_text(encoding="utf-8").strip() not in ("", "0")
        except OSError:
            return False

    def records(self, root: str, qtype: QuotaType) -> Iterator[QuotaRecord]:
        d = self.table_dir(root, qtype)
        if not d.is_dir():
            return
        for p in sorted(d.glob("*.tbl")):
            yield from self._read_table(p, qtype)

    def _read_table(self, p: Path, qtype: QuotaType) -> Iterator[QuotaRecord]:
        with open(p, "rb") as f:
            while True:
                raw = f.read(RECORD.size)
                if not raw:
                    break
                if len(raw) != RECORD.size:
                    log.warning("Short record in %s (%d bytes), stopping", p, len(raw))
                    break
                try:
                    rec = decode_record(raw)
                except ValueError:
                    log.warning("Unknown quota type in %s, skipping record", p)
                    continue
                if rec.qtype is not qtype:
                    log.debug("Skipping %s record for id %d in %s table", rec.qtype.name, rec.qid, qtype.name)
                    continue
                yield rec
