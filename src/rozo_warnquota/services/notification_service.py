from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from rozo_warnquota.context import RunContext
from rozo_warnquota.models.quota import Offender, QuotaType, UsageEntry
from rozo_warnquota.services.config_service import render_template
from rozo_warnquota.services.formatting import format_grace, format_number, format_space
from rozo_warnquota.services.policy import should_cc

DEFAULT_USER_MESSAGE = (
    "Hi,\n\nWe noticed that you are in violation with the quotasystem\n"
    "used on this system. We have found the following violations:\n\n"
)
DEFAULT_USER_SIGNATURE = (
    "\nWe hope that you will cleanup before your grace period expires.\n"
    "\nBasically, this means that the system thinks you are using more disk space\n"
    "on the above partition(s) than you are allowed.  If you do not delete files\n"
    "and get below your quota before the grace period expires, the system will\n"
    "prevent you from creating new files.\n\n"
    "For additional assistance, please contact us at {support}\nor via "
    "phone at {phone}.\n"
)
DEFAULT_GROUP_MESSAGE = (
    "Hi,\n\nWe noticed that the group {name} you are member of violates the quotasystem\n"
    "used on this system. We have found the following violations:\n\n"
)
DEFAULT_GROUP_SIGNATURE = (
    "\nPlease cleanup the group data before the grace period expires.\n"
    "\nBasically, this means that the system thinks group is using more disk space\n"
    "on the above partition(s) than it is allowed.  If you do not delete files\n"
    "and get below group quota before the grace period expires, the system will\n"
    "prevent you and other members of the group from creating new files owned by\n"
    "the group.\n\n"
    "For additional assistance, please contact us at {support}\nor via "
    "phone at {phone}.\n"
)

TABLE_HEADER = (
    "\n                        Block limits               File limits\n"
    "Filesystem           used    soft    hard  grace    used  soft  hard  grace\n"
)
LABEL_WIDTH = 15


@dataclass(frozen=True)
class Notification:
    recipient: str
    headers: list[tuple[str, str]]
    body: str
    charset: str = ""

    @property
    def text(self) -> str:
        head = "".join(f"{k}: {v}\n" for k, v in self.headers)
        return f"{head}\n{self.body}"

    def header(self, name: str) -> str | None:
        return next((v for k, v in self.headers if k == name), None)

    def to_bytes(self) -> bytes:
        return self.text.encode(self.charset or "utf-8", errors="replace")


class NotificationComposer:
    def __init__(self, ctx: RunContext, clock: Callable[[], float] = time.time) -> None:
        self.ctx = ctx
        self.clock = clock

    def compose(self, offender: Offender, recipient: str) -> Notification:
        now = self.clock()
        body = [self._message(offender)]
        if not self.ctx.options.no_details:
            body.extend(self._usage_section(u, now) for u in offender.usage)
        body.append(self._signature(offender))
        return Notification(
            recipient=recipient,
            headers=self._headers(offender, recipient, now),
            body="".join(body),
            charset=self.ctx.config.charset,
        )

    def _headers(self, offender: Offender, recipient: str, now: float) -> list[tuple[str, str]]:
        cfg = self.ctx.config
        headers = [
            ("From", cfg.from_addr),
            ("Reply-To", cfg.support),
            ("Subject", cfg.subject),
            ("To", cfg.to or recipient),
        ]
        if should_cc(offender, cfg.cc_before, now):
            headers.append(("Cc", cfg.cc_to))
        if cfg.charset:
            headers.append(("Content-Type", f"text/plain; charset={cfg.charset}"))
            headers.append(("Content-Disposition", "inline"))
            headers.append(("Content-Transfer-Encoding", "8bit"))
        return headers

    def _render(self, template: str, name: str) -> str:
        return render_template(template, name, self.ctx.hostname, self.ctx.domainname)

    def _message(self, offender: Offender) -> str:
        cfg = self.ctx.config
        if offender.qtype is QuotaType.USER:
            if cfg.user_message is not None:
                return self._render(cfg.user_message, offender.name)
            return DEFAULT_USER_MESSAGE
        if cfg.group_message is not None:
            return self._render(cfg.group_message, offender.name)
        return DEFAULT_GROUP_MESSAGE.format(name=offender.name)

    def _signature(self, offender: Offender) -> str:
        cfg = self.ctx.config
        if offender.qtype is QuotaType.USER:
            template, default = cfg.user_signature, DEFAULT_USER_SIGNATURE
        else:
            template, default = cfg.group_signature, DEFAULT_GROUP_SIGNATURE
        if template is not None:
            return self._render(template, offender.name)
        return default.format(support=cfg.support, phone=cfg.phone)

    def _usage_section(self, entry: UsageEntry, now: float) -> str:
        short = self.ctx.options.short_numbers
        q = entry.quota
        desc = self.ctx.descriptions.describe(entry.label)
        title = f"{desc.description} ({entry.label})" if desc else entry.label

        if len(entry.label) > LABEL_WIDTH:
            label = f"{entry.label}\n{'':{LABEL_WIDTH}}"
        else:
            label = f"{entry.label:<{LABEL_WIDTH}}"

        bgrace = format_grace(q.btime, now) if q.over_block_soft else ""
        igrace = format_grace(q.itime, now) if q.over_inode_soft else ""
        bmark = "+" if q.over_block_soft else "-"
        imark = "+" if q.over_inode_soft else "-"

        block_cols = (
            f"{bmark}{imark} "
            f"{format_space(q.curblocks, short):>7} "
            f"{format_space(q.bsoftlimit, short):>7} "
            f"{format_space(q.bhardlimit, short):>7} "
            f"{bgrace:>6}"
        )
        inode_cols = (
            f" {format_number(q.curinodes, short):>7} "
            f"{format_number(q.isoftlimit, short):>5} "
            f"{format_number(q.ihardlimit, short):>5} "
            f"{igrace:>6}"
        )
        return f"\n{title}\n{TABLE_HEADER}{label}{block_cols}{inode_cols}\n\n"
