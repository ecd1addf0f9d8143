from __future__ import annotations

import grp
import platform
import pwd
import socket
from pathlib import Path

from rozo_warnquota.errors import ResolutionError
from rozo_warnquota.models.quota import QuotaType

_DOMAINNAME_PATH = "/proc/sys/kernel/domainname"


def account_name(qtype: QuotaType, qid: int) -> str:
    try:
        if qtype is QuotaType.USER:
            return pwd.getpwuid(qid).pw_name
        return grp.getgrgid(qid).gr_name
    except KeyError as e:
        kind = "uid" if qtype is QuotaType.USER else "gid"
        raise ResolutionError(f"Cannot get name for {kind} {qid}") from e


def host_names() -> tuple[str, str]:
    hostname = platform.node() or socket.gethostname()
    return hostname, _domain_name(hostname)


def _domain_name(hostname: str) -> str:
    p = Path(_DOMAINNAME_PATH)
    try:
        value = p.read_text(encoding="utf-8").strip()
    except OSError:
        value = ""
    if value:
        return value

    fqdn = socket.getfqdn(hostname)
    if "." in fqdn:
        return fqdn.split(".", 1)[1]
    return "(none)"
