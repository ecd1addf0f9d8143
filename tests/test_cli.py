"""End-to-end runs of the scan-then-notify pipeline against on-disk fixtures."""

from pathlib import Path

import pytest

from conftest import DAY, fake_lookup
from rozo_warnquota import cli
from rozo_warnquota.collectors.export_registry import ExportRegistry
from rozo_warnquota.collectors.quota_collector import QuotaCollector
from rozo_warnquota.context import RunContext, RunOptions
from rozo_warnquota.models.quota import QuotaType
from rozo_warnquota.services.config_service import ConfigPaths
from rozo_warnquota.services.directory_service import LdapAddressResolver, PlainAddressResolver
from rozo_warnquota.services.mail_service import RecordingSink
from rozo_warnquota.services.registry import OffenderRegistry


@pytest.fixture
def site(tmp_path: Path):
    export_root = tmp_path / "export_1"
    export_root.mkdir()
    conf = tmp_path / "export.conf"
    conf.write_text(f'exports = ( {{ eid = 1; root = "{export_root}"; vid = 1; }} );\n')
    warnquota = tmp_path / "warnquota.conf"
    warnquota.write_text('FROM = "quota@example.com"\nSUBJECT = Over quota\n')
    admins = tmp_path / "quotagrpadmins"
    admins.write_text("staff: staff-admin@example.com\n")
    paths = ConfigPaths(
        config=warnquota,
        quotatab=tmp_path / "quotatab",
        admins=admins,
        exports=conf,
    )
    return paths, export_root


def build(paths: ConfigPaths, options: RunOptions | None = None) -> RunContext:
    ctx = RunContext.build(paths, options or RunOptions())
    ctx.registry = OffenderRegistry(name_lookup=fake_lookup)
    return ctx


def test_single_violation_end_to_end(site, write_table, make_record, now):
    paths, root = site
    write_table(
        root,
        QuotaType.USER,
        [
            make_record(qid=1000, blocks=120, bsoftlimit=100, bhardlimit=150, btime=now + 7 * DAY, curinodes=3, isoftlimit=100),
            make_record(qid=1001, blocks=50, bsoftlimit=100, bhardlimit=150, curinodes=3, isoftlimit=100),
        ],
    )
    ctx = build(paths)
    sink = RecordingSink()

    code = cli.execute(ctx, ExportRegistry.load(paths.exports), ["1"], sink, PlainAddressResolver())

    assert code == 0
    assert [m.recipient for m in sink.messages] == ["alice"]
    text = sink.messages[0].text
    assert "From: quota@example.com\n" in text
    assert "Subject: Over quota\n" in text
    assert "eid_1" in text
    assert "     120     100     150" in text


def test_human_readable_end_to_end(site, write_table, make_record):
    paths, root = site
    write_table(root, QuotaType.USER, [make_record(qid=1000, blocks=120, bsoftlimit=100, bhardlimit=150)])
    ctx = build(paths, RunOptions(short_numbers=True))
    sink = RecordingSink()

    cli.execute(ctx, ExportRegistry.load(paths.exports), ["1"], sink, PlainAddressResolver())

    assert "    120K    100K    150K" in sink.messages[0].text


def test_group_scan_mails_admin(site, write_table, make_record):
    paths, root = site
    write_table(root, QuotaType.GROUP, [make_record(qid=2000, qtype=QuotaType.GROUP, curinodes=20, isoftlimit=10)])
    write_table(root, QuotaType.USER, [make_record(qid=1000, blocks=120, bsoftlimit=100)])
    ctx = build(paths, RunOptions(users=False, groups=True))
    sink = RecordingSink()

    code = cli.execute(ctx, ExportRegistry.load(paths.exports), ["1"], sink, PlainAddressResolver())

    assert code == 0
    assert [m.recipient for m in sink.messages] == ["staff-admin@example.com"]


def test_bad_and_unknown_export_ids_are_skipped(site, write_table, make_record):
    paths, root = site
    write_table(root, QuotaType.USER, [make_record(qid=1000, blocks=120, bsoftlimit=100)])
    ctx = build(paths)

    scan = QuotaCollector(ctx, ExportRegistry.load(paths.exports)).collect(["abc", "9", "1"])

    assert scan.status == "WARN"
    assert scan.warning_count == 2
    assert "export 9 does not exist" in scan.warnings
    assert len(scan.data) == 1
    assert scan.data.sealed


def test_disabled_quota_type_is_not_scanned(site, write_table, make_record):
    paths, root = site
    write_table(root, QuotaType.USER, [make_record(qid=1000, blocks=120, bsoftlimit=100)], enabled=False)
    ctx = build(paths)
    scan = QuotaCollector(ctx, ExportRegistry.load(paths.exports)).collect(["1"])
    assert len(scan.data) == 0


def test_unresolved_account_sets_failure_status(site, write_table, make_record):
    paths, root = site
    write_table(
        root,
        QuotaType.USER,
        [make_record(qid=4242, blocks=120, bsoftlimit=100), make_record(qid=1000, blocks=120, bsoftlimit=100)],
    )
    ctx = build(paths)
    sink = RecordingSink()

    code = cli.execute(ctx, ExportRegistry.load(paths.exports), ["1"], sink, PlainAddressResolver())

    assert code == 1
    assert [m.recipient for m in sink.messages] == ["alice"]


def test_delivery_failure_sets_failure_status(site, write_table, make_record):
    paths, root = site
    write_table(root, QuotaType.USER, [make_record(qid=1000, blocks=120, bsoftlimit=100)])
    ctx = build(paths)
    code = cli.execute(ctx, ExportRegistry.load(paths.exports), ["1"], RecordingSink(fail_open=True), PlainAddressResolver())
    assert code == 1


def test_main_runs_mail_command(site, write_table, make_record, tmp_path, monkeypatch):
    paths, root = site
    out = tmp_path / "outbox"
    paths.config.write_text(f"MAIL_CMD = cat >> {out}\n")
    write_table(root, QuotaType.USER, [make_record(qid=1000, blocks=120, bsoftlimit=100)])
    monkeypatch.setattr("rozo_warnquota.services.registry.account_name", fake_lookup)

    code = cli.main(["-c", str(paths.config), "-q", str(paths.quotatab), "-f", str(paths.exports), "1"])

    assert code == 0
    assert "To: alice\n" in out.read_text()


def test_main_invalid_config_exits_1(site):
    paths, _ = site
    paths.config.write_text("MESSAGE = Hello %q\n")
    assert cli.main(["-c", str(paths.config), "-f", str(paths.exports), "1"]) == 1


def test_main_missing_export_conf_exits_1(site, tmp_path):
    paths, _ = site
    assert cli.main(["-c", str(paths.config), "-f", str(tmp_path / "missing.conf"), "1"]) == 1


def test_main_missing_admins_with_group_flag_exits_1(site, tmp_path):
    paths, _ = site
    args = ["-g", "-c", str(paths.config), "-f", str(paths.exports), "-a", str(tmp_path / "none"), "1"]
    assert cli.main(args) == 1


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["-v"])
    assert exc.value.code == 0
    assert cli.__version__ in capsys.readouterr().out


def test_unknown_flag_exits_1():
    with pytest.raises(SystemExit) as exc:
        cli.main(["--bogus"])
    assert exc.value.code == 1


def test_options_default_to_users():
    args = cli.build_parser().parse_args(["-s", "-d", "-i", "3"])
    opts = cli.options_from(args)
    assert opts.quota_types == (QuotaType.USER,)
    assert opts.short_numbers and opts.no_details and opts.no_autofs
    args = cli.build_parser().parse_args(["-u", "-g"])
    assert cli.options_from(args).quota_types == (QuotaType.USER, QuotaType.GROUP)


def test_resolver_selection(site):
    paths, _ = site
    ctx = build(paths)
    assert isinstance(cli.make_resolver(ctx), PlainAddressResolver)
    paths.config.write_text("LDAP_MAIL = true\nLDAP_URI = ldap://dir.example.com\n")
    ctx = build(paths)
    assert isinstance(cli.make_resolver(ctx), LdapAddressResolver)
