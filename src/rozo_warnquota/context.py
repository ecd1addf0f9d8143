from __future__ import annotations

from dataclasses import dataclass, field

from rozo_warnquota.collectors.identity import host_names
from rozo_warnquota.models.quota import QuotaType
from rozo_warnquota.services.config_service import ConfigPaths, ConfigService, WarnQuotaConfig
from rozo_warnquota.services.registry import OffenderRegistry
from rozo_warnquota.services.table_service import AdminDirectory, DescriptionTable, TableService


@dataclass(frozen=True)
class RunOptions:
    users: bool = True
    groups: bool = False
    short_numbers: bool = False
    no_details: bool = False
    no_autofs: bool = False

    @property
    def quota_types(self) -> tuple[QuotaType, ...]:
        types: list[QuotaType] = []
        if self.users or not self.groups:
            types.append(QuotaType.USER)
        if self.groups:
            types.append(QuotaType.GROUP)
        return tuple(types)


@dataclass
class RunContext:
    config: WarnQuotaConfig
    options: RunOptions = field(default_factory=RunOptions)
    descriptions: DescriptionTable = field(default_factory=DescriptionTable)
    admins: AdminDirectory = field(default_factory=AdminDirectory)
    registry: OffenderRegistry = field(default_factory=OffenderRegistry)
    hostname: str = "localhost"
    domainname: str = "(none)"

    @classmethod
    def build(cls, paths: ConfigPaths, options: RunOptions) -> RunContext:
        config = ConfigService(paths.config).load()
        tables = TableService()
        descriptions = tables.load_descriptions(paths.quotatab)
        admins = tables.load_admins(paths.admins) if options.groups else AdminDirectory()
        hostname, domainname = host_names()
        return cls(
            config=config,
            options=options,
            descriptions=descriptions,
            admins=admins,
            hostname=hostname,
            domainname=domainname,
        )
