from pathlib import Path

import pytest

from rozo_warnquota.collectors.export_registry import ExportRegistry
from rozo_warnquota.collectors.quota_collector import parse_export_id
from rozo_warnquota.errors import ConfigError, ExportNotFoundError

EXPORT_CONF = """
layout = 1;
volumes = (
  { vid = 1; cids = ( { cid = 1; sids = ( { sid = 1; host = "localhost"; } ); } ); }
);
exports = (
  { eid = 1; bsize = "4K"; root = "/srv/rozofs/exports/export_1"; md5 = ""; squota = ""; hquota = ""; vid = 1; },
  { eid = 2; bsize = "4K"; root = "/srv/rozofs/exports/export_2"; md5 = ""; squota = ""; hquota = ""; vid = 1; }
);
"""


def test_load_export_conf(tmp_path: Path):
    p = tmp_path / "export.conf"
    p.write_text(EXPORT_CONF)
    reg = ExportRegistry.load(p)
    assert reg.resolve(1) == "/srv/rozofs/exports/export_1"
    assert reg.resolve(2) == "/srv/rozofs/exports/export_2"
    assert 3 not in reg


def test_unknown_export(tmp_path: Path):
    reg = ExportRegistry({1: "/a"})
    with pytest.raises(ExportNotFoundError, match="export 5 does not exist"):
        reg.resolve(5)


def test_missing_export_conf(tmp_path: Path):
    with pytest.raises(ConfigError):
        ExportRegistry.load(tmp_path / "export.conf")


def test_malformed_export_conf(tmp_path: Path):
    p = tmp_path / "export.conf"
    p.write_text("exports = ( { eid = 1; root = ; } );\n")
    with pytest.raises(ConfigError):
        ExportRegistry.load(p)


def test_entry_without_root_is_ignored(tmp_path: Path):
    p = tmp_path / "export.conf"
    p.write_text('exports = ( { eid = 1; }, { eid = 2; root = "/b"; } );\n')
    reg = ExportRegistry.load(p)
    assert reg.exports == {2: "/b"}


@pytest.mark.parametrize("arg,expected", [("1", 1), ("0x10", 16), ("12a", None), ("", None)])
def test_parse_export_id(arg, expected):
    assert parse_export_id(arg) == expected
