from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn, Sequence

from rozo_warnquota.collectors.export_registry import ExportRegistry
from rozo_warnquota.collectors.quota_collector import QuotaCollector
from rozo_warnquota.collectors.quota_store import QuotaStore
from rozo_warnquota.context import RunContext, RunOptions
from rozo_warnquota.errors import ConfigError
from rozo_warnquota.observability.logging import get_logger
from rozo_warnquota.services.config_service import ADMINSFILE, EXPORT_CONF, QUOTATAB, WARNQUOTA_CONF, ConfigPaths
from rozo_warnquota.services.directory_service import AddressResolver, LdapAddressResolver, PlainAddressResolver
from rozo_warnquota.services.mail_service import MailDispatcher, MessageSink, SubprocessSink

__version__ = "1.0.0"
PROG = "rozo_warnquota"
BUGS_TO = "john.doe@example.com"

log = get_logger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    p = _ArgumentParser(
        prog=PROG,
        description="Mail users and group administrators who are over their export quota.",
        epilog=f"Bugs to {BUGS_TO}",
    )
    p.add_argument("-u", "--user", action="store_true", help="warn users")
    p.add_argument("-g", "--group", action="store_true", help="warn groups")
    p.add_argument(
        "-s", "--human-readable", dest="short_numbers", action="store_true",
        help="send information in more human friendly units",
    )
    p.add_argument("-i", "--no-autofs", action="store_true", help="avoid autofs mountpoints")
    p.add_argument("-d", "--no-details", action="store_true", help="do not send quota information itself")
    p.add_argument("-f", "--exportconf", default=EXPORT_CONF, metavar="PATH", help="pathname of the export configuration")
    p.add_argument("-c", "--config", default=WARNQUOTA_CONF, metavar="PATH", help="non-default config file")
    p.add_argument("-q", "--quota-tab", default=QUOTATAB, metavar="PATH", help="non-default quotatab")
    p.add_argument("-a", "--admins-file", default=ADMINSFILE, metavar="PATH", help="non-default admins file")
    p.add_argument("-v", "--version", action="version", version=f"{PROG} {__version__}")
    p.add_argument("exports", nargs="*", metavar="EXPORT_ID", help="export identifiers to scan")
    return p


def options_from(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        users=args.user or not args.group,
        groups=args.group,
        short_numbers=args.short_numbers,
        no_details=args.no_details,
        no_autofs=args.no_autofs,
    )


def paths_from(args: argparse.Namespace) -> ConfigPaths:
    return ConfigPaths(
        config=Path(args.config),
        quotatab=Path(args.quota_tab),
        admins=Path(args.admins_file),
        exports=Path(args.exportconf),
    )


def make_resolver(ctx: RunContext) -> AddressResolver:
    if ctx.config.use_ldap_mail:
        return LdapAddressResolver(ctx.config.ldap)
    return PlainAddressResolver()


def execute(
    ctx: RunContext,
    exports: ExportRegistry,
    export_args: list[str],
    sink: MessageSink,
    resolver: AddressResolver,
    store: QuotaStore | None = None,
) -> int:
    scan = QuotaCollector(ctx, exports, store).collect(export_args)
    log.info("Scan finished: %d offender(s), %d warning(s)", len(scan.data), scan.warning_count)

    result = MailDispatcher(ctx, sink, resolver).dispatch()
    summary = result.data
    log.info("Dispatch finished: %d sent, %d failed", len(summary.sent), summary.failures)

    if scan.data.unresolved or summary.failures:
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        paths = paths_from(args)
        exports = ExportRegistry.load(paths.exports)
        ctx = RunContext.build(paths, options_from(args))
    except ConfigError as e:
        log.error("%s", e)
        return 1

    resolver = make_resolver(ctx)
    try:
        return execute(ctx, exports, list(args.exports), SubprocessSink(ctx.config.mail_cmd), resolver)
    finally:
        if isinstance(resolver, LdapAddressResolver):
            resolver.close()
