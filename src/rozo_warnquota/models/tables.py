from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DeviceDescription:
    label: str
    description: str


@dataclass(frozen=True)
class AdminEntry:
    group: str
    admin: str
