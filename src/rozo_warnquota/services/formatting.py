from __future__ import annotations

import time

from rozo_warnquota.models.quota import QUOTABLOCK_BITS

_SPACE_SUFFIX = " MGT"
_NUMBER_SUFFIX = " kmgt"


def format_space(blocks: int, short: bool = False) -> str:
    # quota blocks are KiB
    if short:
        for i in range(3, 0, -1):
            unit = 1 << (QUOTABLOCK_BITS * i)
            if blocks >= unit * 100:
                return f"{(blocks + unit - 1) >> (QUOTABLOCK_BITS * i)}{_SPACE_SUFFIX[i]}"
        return f"{blocks}K"
    return str(blocks)


def format_number(num: int, short: bool = False) -> str:
    if short:
        div = 10**12
        for i in range(4, 0, -1):
            if num >= 100 * div:
                return f"{(num + div - 1) // div}{_NUMBER_SUFFIX[i]}"
            div //= 1000
    return str(num)


def format_duration(seconds: int) -> str:
    minutes = (seconds + 30) // 60
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days >= 2:
        return f"{days}days"
    return f"{hours + days * 24:02d}:{minutes:02d}"


def format_grace(deadline: int, now: float | None = None) -> str:
    if not deadline:
        return ""
    now = time.time() if now is None else now
    if deadline <= now:
        return "none"
    return format_duration(int(deadline - now))
