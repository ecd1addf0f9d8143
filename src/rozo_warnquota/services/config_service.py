from __future__ import annotations

import codecs
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from rozo_warnquota.errors import ConfigError, ValidationError
from rozo_warnquota.observability.logging import get_logger

log = get_logger(__name__)

WARNQUOTA_CONF = "/etc/warnquota.conf"
QUOTATAB = "/etc/quotatab"
ADMINSFILE = "/etc/quotagrpadmins"
EXPORT_CONF = "/etc/rozofs/export.conf"

TEMPLATE_SPECIFIERS = frozenset("sihd%")
_TEMPLATE_RX = re.compile(r"%(.?)", re.DOTALL)
_CC_BEFORE_RX = re.compile(r"\s*([+-]?\d+)\s*(\S+)")
_STRIP_CHARS = " \t\r\n\v\f\"'"

_TIME_UNITS = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}

_PLAIN_KEYS = {
    "MAIL_CMD": "mail_cmd",
    "FROM": "from_addr",
    "SUBJECT": "subject",
    "CC_TO": "cc_to",
    "SUPPORT": "support",
    "PHONE": "phone",
    "CHARSET": "charset",
    "MAILDEV": "maildev",
    "TO": "to",
}

_TEMPLATE_KEYS = {
    "MESSAGE": "user_message",
    "SIGNATURE": "user_signature",
    "GROUP_MESSAGE": "group_message",
    "GROUP_SIGNATURE": "group_signature",
}

_LDAP_KEYS = {
    "LDAP_HOST": "host",
    "LDAP_URI": "uri",
    "LDAP_BINDDN": "binddn",
    "LDAP_BINDPW": "bindpw",
    "LDAP_BASEDN": "basedn",
    "LDAP_SEARCH_ATTRIBUTE": "search_attr",
    "LDAP_MAIL_ATTRIBUTE": "mail_attr",
    "LDAP_DEFAULT_MAIL_DOMAIN": "default_domain",
}


@dataclass(frozen=True)
class ConfigPaths:
    config: Path = Path(WARNQUOTA_CONF)
    quotatab: Path = Path(QUOTATAB)
    admins: Path = Path(ADMINSFILE)
    exports: Path = Path(EXPORT_CONF)


@dataclass(frozen=True)
class LdapSettings:
    host: str = ""
    port: int = 0
    uri: str = ""
    binddn: str = ""
    bindpw: str = ""
    basedn: str = ""
    search_attr: str = "uid"
    mail_attr: str = "mail"
    default_domain: str = ""


@dataclass(frozen=True)
class WarnQuotaConfig:
    mail_cmd: str = "/usr/lib/sendmail -t"
    from_addr: str = "support@localhost"
    subject: str = "Disk Quota usage on system"
    cc_to: str = "root"
    support: str = "support@localhost"
    phone: str = "(xxx) xxx-xxxx or (yyy) yyy-yyyy"
    charset: str = ""
    maildev: str = ""
    to: str = ""
    user_message: str | None = None
    user_signature: str | None = None
    group_message: str | None = None
    group_signature: str | None = None
    use_ldap_mail: bool = False
    cc_before: int | None = None
    ldap: LdapSettings = field(default_factory=LdapSettings)


def strip_value(value: str) -> str:
    return value.strip(_STRIP_CHARS)


def expand_newlines(value: str) -> str:
    return value.replace("|", "\n")


def verify_template(template: str, varname: str) -> None:
    for m in _TEMPLATE_RX.finditer(template):
        spec = m.group(1)
        if spec not in TEMPLATE_SPECIFIERS:
            raise ValidationError(
                f"Incorrect format string for variable {varname}. Unrecognized expression %{spec}."
            )


def render_template(template: str, name: str, hostname: str, domainname: str) -> str:
    values = {"s": name, "i": name, "h": hostname, "d": domainname, "%": "%"}
    return _TEMPLATE_RX.sub(lambda m: values.get(m.group(1), ""), template)


def parse_cc_before(value: str) -> int:
    m = _CC_BEFORE_RX.match(value)
    if not m:
        raise ValidationError(f"Cannot parse time at CC_BEFORE variable: {value!r}")
    mult = _TIME_UNITS.get(m.group(2))
    if mult is None:
        raise ValidationError(f"Cannot parse time at CC_BEFORE variable: unknown unit {m.group(2)!r}")
    return int(m.group(1)) * mult


def logical_lines(lines: Iterable[str], warn: Callable[[str], None]) -> Iterator[tuple[int, str]]:
    buf = ""
    joining = False
    lineno = 0
    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not joining:
            if line.startswith(("#", ";")):
                continue
            if not line.strip():
                continue
        if line.endswith("\\"):
            buf += line[:-1]
            joining = True
            continue
        yield lineno, buf + line
        buf = ""
        joining = False
    if joining:
        warn(f"Unterminated last line (line {lineno}), ignoring")


class ConfigService:
    def __init__(self, path: str | Path = WARNQUOTA_CONF) -> None:
        self.path = Path(path)
        self.warnings: list[str] = []

    def load(self) -> WarnQuotaConfig:
        try:
            with open(self.path, "r", encoding="utf-8", errors="replace") as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot open {self.path}: {e.strerror or e}") from e
        return self.parse(text)

    def parse(self, text: str) -> WarnQuotaConfig:
        self.warnings = []
        values: dict[str, Any] = {}
        ldap: dict[str, Any] = {}

        for lineno, line in logical_lines(text.splitlines(), self._warn):
            if "=" not in line:
                self._warn(f"Possible error in config file (line {lineno}), ignoring")
                continue
            var, value = line.split("=", 1)
            var = strip_value(var)
            value = strip_value(value)

            if var == "CHARSET" and value:
                try:
                    codecs.lookup(value)
                except LookupError as e:
                    raise ValidationError(f"Unsupported CHARSET {value!r} (line {lineno})") from e
            if var in _PLAIN_KEYS:
                values[_PLAIN_KEYS[var]] = value
            elif var in _TEMPLATE_KEYS:
                template = expand_newlines(value)
                verify_template(template, var)
                values[_TEMPLATE_KEYS[var]] = template
            elif var == "LDAP_MAIL":
                values["use_ldap_mail"] = value.lower() == "true"
            elif var == "CC_BEFORE":
                try:
                    values["cc_before"] = parse_cc_before(value)
                except ValidationError as e:
                    raise ValidationError(f"{e} (line {lineno})") from e
            elif var == "LDAP_PORT":
                try:
                    ldap["port"] = int(value)
                except ValueError:
                    self._warn(f"Invalid LDAP_PORT {value!r} (line {lineno}), ignoring")
            elif var in _LDAP_KEYS:
                ldap[_LDAP_KEYS[var]] = value
            else:
                self._warn(f"Error in config file (line {lineno}), ignoring")

        settings = LdapSettings(**ldap)
        if values.get("use_ldap_mail") and not settings.uri:
            settings = replace(settings, uri=f"ldap://{settings.host}:{settings.port}")
            self._warn(f"LDAP_URI not set, generated URI {settings.uri} from LDAP_HOST and LDAP_PORT")

        return WarnQuotaConfig(ldap=settings, **values)

    def _warn(self, msg: str) -> None:
        self.warnings.append(msg)
        log.warning(msg)
