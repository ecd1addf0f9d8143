"""
Shared fixtures for rozo_warnquota tests

Everything runs against a fixed clock and an in-memory name lookup so
no test depends on the host's passwd database or wall time.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from rozo_warnquota.collectors.quota_store import encode_record
from rozo_warnquota.context import RunContext, RunOptions
from rozo_warnquota.errors import ResolutionError
from rozo_warnquota.models.quota import DiskQuota, QuotaRecord, QuotaType
from rozo_warnquota.services.config_service import WarnQuotaConfig
from rozo_warnquota.services.registry import OffenderRegistry
from rozo_warnquota.services.table_service import AdminDirectory, DescriptionTable

NOW = 1_700_000_000
DAY = 86400

NAMES = {
    (QuotaType.USER, 1000): "alice",
    (QuotaType.USER, 1001): "bob",
    (QuotaType.GROUP, 2000): "staff",
    (QuotaType.GROUP, 2001): "lab",
}


def fake_lookup(qtype: QuotaType, qid: int) -> str:
    try:
        return NAMES[(qtype, qid)]
    except KeyError:
        raise ResolutionError(f"Cannot get name for id {qid}") from None


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_ctx():
    def _make(
        config: WarnQuotaConfig | None = None,
        options: RunOptions | None = None,
        descriptions: DescriptionTable | None = None,
        admins: AdminDirectory | None = None,
    ) -> RunContext:
        return RunContext(
            config=config or WarnQuotaConfig(),
            options=options or RunOptions(),
            descriptions=descriptions or DescriptionTable(),
            admins=admins or AdminDirectory(),
            registry=OffenderRegistry(name_lookup=fake_lookup),
            hostname="srv1",
            domainname="example.com",
        )

    return _make


@pytest.fixture
def make_record():
    def _make(
        qid: int = 1000,
        eid: int = 1,
        qtype: QuotaType = QuotaType.USER,
        blocks: int = 0,
        **quota,
    ) -> QuotaRecord:
        if blocks:
            quota.setdefault("curspace", blocks * 1024)
        return QuotaRecord(qtype=qtype, qid=qid, eid=eid, quota=DiskQuota(**quota))

    return _make


@pytest.fixture
def write_table():
    def _write(root: Path, qtype: QuotaType, records: list[QuotaRecord], name: str = "0.tbl", enabled: bool = True) -> Path:
        d = root / "quota" / qtype.table_dir
        d.mkdir(parents=True, exist_ok=True)
        (d / "enable").write_text("1\n" if enabled else "0\n")
        p = d / name
        p.write_bytes(b"".join(encode_record(r) for r in records))
        return p

    return _write
