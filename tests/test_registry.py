import pytest

from conftest import fake_lookup
from rozo_warnquota.models.quota import QuotaType
from rozo_warnquota.services.registry import OffenderRegistry


def make_registry() -> OffenderRegistry:
    return OffenderRegistry(name_lookup=fake_lookup)


def test_two_exports_aggregate_into_one_offender(make_record):
    reg = make_registry()
    reg.add_offence(make_record(qid=1000, eid=1, blocks=120, bsoftlimit=100))
    reg.add_offence(make_record(qid=1000, eid=7, curinodes=20, isoftlimit=10))

    assert len(reg) == 1
    alice = reg.get(QuotaType.USER, 1000)
    assert alice.name == "alice"
    assert [u.label for u in alice.usage] == ["eid_1", "eid_7"]
    assert alice.usage[0].quota.curspace == 120 * 1024


def test_user_and_group_with_same_id_are_distinct(make_record):
    reg = OffenderRegistry(name_lookup=lambda qtype, qid: f"{qtype.name.lower()}{qid}")
    reg.add_offence(make_record(qid=5, qtype=QuotaType.USER))
    reg.add_offence(make_record(qid=5, qtype=QuotaType.GROUP))
    assert [o.name for o in reg] == ["user5", "group5"]


def test_discovery_order_is_kept(make_record):
    reg = make_registry()
    reg.add_offence(make_record(qid=1001))
    reg.add_offence(make_record(qid=1000))
    reg.add_offence(make_record(qid=1001, eid=2))
    assert [o.name for o in reg.offenders()] == ["bob", "alice"]


def test_supplied_name_skips_lookup(make_record):
    reg = OffenderRegistry(name_lookup=lambda qtype, qid: pytest.fail("lookup called"))
    off = reg.add_offence(make_record(qid=4242), name="carol")
    assert off.name == "carol"


def test_unknown_id_is_dropped(make_record):
    reg = make_registry()
    assert reg.add_offence(make_record(qid=9999)) is None
    assert len(reg) == 0
    assert len(reg.unresolved) == 1
    assert "9999" in reg.unresolved[0]


def test_find_or_create_returns_existing():
    reg = make_registry()
    first = reg.find_or_create(QuotaType.USER, 1000)
    again = reg.find_or_create(QuotaType.USER, 1000, "ignored")
    assert first is again
    assert again.name == "alice"


def test_sealed_registry_rejects_mutation(make_record):
    reg = make_registry()
    off = reg.add_offence(make_record(qid=1000))
    reg.seal()
    assert reg.sealed
    with pytest.raises(RuntimeError):
        reg.add_offence(make_record(qid=1001))
    with pytest.raises(RuntimeError):
        reg.add_usage(off, make_record(qid=1000, eid=3))
    assert len(off.usage) == 1


def test_failed_lookup_is_remembered(make_record):
    calls = []

    def lookup(qtype, qid):
        calls.append(qid)
        return fake_lookup(qtype, qid)

    reg = OffenderRegistry(name_lookup=lookup)
    for eid in (1, 2, 3):
        assert reg.add_offence(make_record(qid=9999, eid=eid)) is None

    assert calls == [9999]
    assert len(reg.unresolved) == 1
    assert len(reg) == 0
