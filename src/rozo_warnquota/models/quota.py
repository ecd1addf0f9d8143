from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

QUOTABLOCK_BITS = 10
QUOTABLOCK_SIZE = 1 << QUOTABLOCK_BITS


def to_quota_blocks(space: int) -> int:
    return (int(space) + QUOTABLOCK_SIZE - 1) >> QUOTABLOCK_BITS


class QuotaType(IntEnum):
    USER = 0
    GROUP = 1

    @property
    def table_dir(self) -> str:
        return "usrquota" if self is QuotaType.USER else "grpquota"


@dataclass(frozen=True)
class DiskQuota:
    # block limits are quota blocks, curspace is bytes, times are epoch seconds (0 = unset)
    bhardlimit: int = 0
    bsoftlimit: int = 0
    curspace: int = 0
    btime: int = 0
    ihardlimit: int = 0
    isoftlimit: int = 0
    curinodes: int = 0
    itime: int = 0

    @property
    def curblocks(self) -> int:
        return to_quota_blocks(self.curspace)

    @property
    def over_block_soft(self) -> bool:
        return bool(self.bsoftlimit) and self.curblocks >= self.bsoftlimit

    @property
    def over_block_hard(self) -> bool:
        return bool(self.bhardlimit) and self.curblocks >= self.bhardlimit

    @property
    def over_inode_soft(self) -> bool:
        return bool(self.isoftlimit) and self.curinodes >= self.isoftlimit


@dataclass(frozen=True)
class QuotaRecord:
    qtype: QuotaType
    qid: int
    eid: int
    quota: DiskQuota

    @property
    def label(self) -> str:
        return f"eid_{self.eid}"


@dataclass(frozen=True)
class UsageEntry:
    label: str
    quota: DiskQuota


@dataclass
class Offender:
    qtype: QuotaType
    qid: int
    name: str
    usage: list[UsageEntry] = field(default_factory=list)

    @property
    def key(self) -> tuple[QuotaType, int]:
        return (self.qtype, self.qid)
