from __future__ import annotations

import bisect
from pathlib import Path

from rozo_warnquota.errors import ConfigError
from rozo_warnquota.models.tables import AdminEntry, DeviceDescription
from rozo_warnquota.observability.logging import get_logger
from rozo_warnquota.services.config_service import expand_newlines, strip_value

log = get_logger(__name__)


class DescriptionTable:
    def __init__(self, entries: list[DeviceDescription] | None = None) -> None:
        self.entries = list(entries or [])

    def describe(self, label: str) -> DeviceDescription | None:
        return next((e for e in self.entries if e.label == label), None)

    def __len__(self) -> int:
        return len(self.entries)


class AdminDirectory:
    def __init__(self, entries: list[AdminEntry] | None = None) -> None:
        self.entries = sorted(entries or [], key=lambda e: e.group)
        self._keys = [e.group for e in self.entries]

    def lookup(self, group: str) -> str | None:
        i = bisect.bisect_left(self._keys, group)
        if i < len(self._keys) and self._keys[i] == group:
            return self.entries[i].admin
        return None

    def __len__(self) -> int:
        return len(self.entries)


class TableService:
    def __init__(self) -> None:
        self.warnings: list[str] = []

    def load_descriptions(self, path: str | Path) -> DescriptionTable:
        p = Path(path)
        try:
            with open(p, "r", encoding="utf-8", errors="replace") as f:
                lines = f.readlines()
        except FileNotFoundError:
            self._warn(f"Cannot open {p}: no such file. Will use device names.")
            return DescriptionTable()
        except OSError as e:
            raise ConfigError(f"Cannot read quotatab {p}: {e.strerror or e}") from e
        return DescriptionTable(self.parse_descriptions(lines))

    def parse_descriptions(self, lines: list[str]) -> list[DeviceDescription]:
        rows: list[DeviceDescription] = []
        for lineno, line in enumerate(lines, start=1):
            if line.startswith(("#", ";")) or not line.strip():
                continue
            if ":" not in line:
                self._warn(f"Cannot parse line {lineno} in quotatab (missing ':')")
                continue
            label, desc = line.split(":", 1)
            rows.append(
                DeviceDescription(
                    label=strip_value(label),
                    description=expand_newlines(strip_value(desc)),
                )
            )
        return rows

    def load_admins(self, path: str | Path) -> AdminDirectory:
        p = Path(path)
        try:
            with open(p, "r", encoding="utf-8", errors="replace") as f:
                lines = f.readlines()
        except OSError as e:
            raise ConfigError(f"Cannot open file with group administrators {p}: {e.strerror or e}") from e
        return AdminDirectory(self.parse_admins(lines))

    def parse_admins(self, lines: list[str]) -> list[AdminEntry]:
        rows: list[AdminEntry] = []
        for lineno, line in enumerate(lines, start=1):
            if line.startswith(("#", ";")) or not line.strip():
                continue
            group, sep, rest = line.strip().partition(":")
            group = group.rstrip()
            if not sep or not group:
                self._warn(f"Parse error at line {lineno}. Cannot find end of group name.")
                continue
            parts = rest.split()
            if not parts:
                self._warn(f"Parse error at line {lineno}. Cannot find administrators name.")
                continue
            if len(parts) > 1:
                self._warn(f"Parse error at line {lineno}. Trailing characters after administrators name.")
                continue
            rows.append(AdminEntry(group=group, admin=parts[0]))
        return rows

    def _warn(self, msg: str) -> None:
        self.warnings.append(msg)
        log.warning(msg)
