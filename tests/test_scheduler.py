import pytest

import DSKE.validate as validate
from DSKE.key import RecordType, Role, State
from DSKE.misc import ConsistencyViolation
from DSKE.scheduler import RolloverScheduler, Timing


def zsk_rollover(established_key, new_key):
    return [established_key('k1', Role.KSK),
            established_key('z1', Role.ZSK, introducing=False),
            new_key('z2', Role.ZSK)]


def byId(keys, id):
    return [k for k in keys if k.id == id][0]


def drive(scheduler, keys, now=0):
    """run passes at every wake time until the rollover rests"""
    history = []
    while True:
        transitions = scheduler.run(keys, now)
        history.extend(transitions)
        assert validate.coverageGaps(keys) == set()
        wake = scheduler.nextWake(keys, now)
        if wake is None:
            return history
        now = wake


def test_interval_is_ttl_plus_delay(timing):
    assert timing.interval(RecordType.DNSKEY) == 3900
    t = Timing({RecordType.DS: 86400}, 60, 7200)
    assert t.interval(RecordType.DS) == 86400 + 7200
    assert t.interval(RecordType.RRSIG) == t.ttl[RecordType.RRSIG] + 60


def test_timing_from_zone_config(cfg):
    t = Timing.fromConfig(cfg['Timing'])
    assert t.ttl[RecordType.RRSIG_DNSKEY] == 3600
    assert t.interval(RecordType.DS) == 3900


def test_rumoured_becomes_omnipresent_only_after_interval(timing, established_key, new_key):
    keys = zsk_rollover(established_key, new_key)
    s = RolloverScheduler(timing, 'example.com')
    s.run(keys, 0)
    z2 = byId(keys, 'z2')
    assert z2.state(RecordType.DNSKEY) == State.RUMOURED
    assert z2.record(RecordType.DNSKEY).last_change == 0

    s.run(keys, 3899)
    assert z2.state(RecordType.DNSKEY) == State.RUMOURED

    s.run(keys, 3900)
    assert z2.state(RecordType.DNSKEY) == State.OMNIPRESENT
    assert z2.record(RecordType.DNSKEY).last_change == 3900


def test_no_state_is_skipped_even_long_after(timing, new_key):
    keys = [new_key('z1', Role.ZSK)]
    transitions = RolloverScheduler(timing).run(keys, 10 ** 9)
    dnskey = [t for t in transitions if t.rrtype == RecordType.DNSKEY]
    assert [(t.old, t.new) for t in dnskey] == [(State.HIDDEN, State.RUMOURED)]


def test_zsk_rollover(timing, established_key, new_key):
    keys = zsk_rollover(established_key, new_key)
    history = drive(RolloverScheduler(timing, 'example.com'), keys)

    # every record walks the states in order, one step at a time
    seen = {}
    for t in history:
        assert t.new == t.old + 1
        if (t.key_id, t.rrtype) in seen:
            assert seen[(t.key_id, t.rrtype)] == t.old
        seen[(t.key_id, t.rrtype)] = t.new

    def when(key_id, rrtype, new):
        return [t.time for t in history if (t.key_id, t.rrtype, t.new) == (key_id, rrtype, new)][0]

    # pre-publication: new DNSKEY first, then new signatures, then the old ones go
    assert when('z2', RecordType.RRSIG, State.RUMOURED) >= when('z2', RecordType.DNSKEY, State.OMNIPRESENT)
    assert when('z1', RecordType.RRSIG, State.UNRETENTIVE) >= when('z2', RecordType.RRSIG, State.OMNIPRESENT)
    assert when('z1', RecordType.DNSKEY, State.UNRETENTIVE) >= when('z1', RecordType.RRSIG, State.UNRETENTIVE)
    assert when('z1', RecordType.RRSIG, State.UNRETENTIVE) == 7800
    assert when('z1', RecordType.DNSKEY, State.NA) == 11700

    z1 = byId(keys, 'z1')
    z2 = byId(keys, 'z2')
    assert z1.purgeable()
    assert z2.state(RecordType.DNSKEY) == State.OMNIPRESENT
    assert z2.state(RecordType.RRSIG) == State.OMNIPRESENT
    assert z2.active_zsk and z2.publish
    assert not z1.active_zsk and not z1.publish
    assert byId(keys, 'k1').active_ksk


def test_transitions_are_ordered_by_record_type_then_key(timing, new_key):
    keys = [new_key('b', Role.ZSK), new_key('a', Role.ZSK)]
    transitions = RolloverScheduler(timing).run(keys, 0)
    assert [(t.key_id, t.rrtype) for t in transitions] == [
        ('a', RecordType.DNSKEY), ('b', RecordType.DNSKEY),
        ('a', RecordType.RRSIG_DNSKEY), ('b', RecordType.RRSIG_DNSKEY),
        ('a', RecordType.DS), ('b', RecordType.DS)]


def test_identical_input_gives_identical_output(timing, established_key, new_key):
    keys1 = zsk_rollover(established_key, new_key)
    keys2 = [k.copy() for k in reversed(keys1)]
    s = RolloverScheduler(timing, 'example.com')
    for now in (0, 3900, 7800):
        t1 = s.run(keys1, now)
        t2 = s.run(keys2, now)
        assert t1 == t2
    for k in keys1:
        assert k == byId(keys2, k.id)


def test_next_wake(timing, established_key, new_key):
    keys = zsk_rollover(established_key, new_key)
    s = RolloverScheduler(timing)
    s.run(keys, 0)
    assert s.nextWake(keys, 0) == 3900
    assert s.nextWake([established_key('z3', Role.ZSK)], 0) is None


def test_missing_replacement_raises_before_any_change(timing, established_key):
    keys = [established_key('k1', Role.KSK),
            established_key('z1', Role.ZSK, introducing=False)]
    before = [k.to_dict() for k in keys]
    with pytest.raises(ConsistencyViolation):
        RolloverScheduler(timing, 'example.com').run(keys, 0)
    assert [k.to_dict() for k in keys] == before


def test_replacement_must_have_same_algorithm(timing, established_key, new_key):
    keys = [established_key('k1', Role.KSK),
            established_key('z1', Role.ZSK, introducing=False),
            new_key('z2', Role.ZSK, algorithm=13)]
    with pytest.raises(ConsistencyViolation):
        RolloverScheduler(timing).run(keys, 0)


def test_standby_key_is_published_but_never_signs(timing, established_key, new_key):
    keys = [established_key('k1', Role.KSK),
            established_key('z1', Role.ZSK),
            new_key('z2', Role.ZSK, standby=True)]
    drive(RolloverScheduler(timing), keys)
    z2 = byId(keys, 'z2')
    assert z2.state(RecordType.DNSKEY) == State.OMNIPRESENT
    assert z2.state(RecordType.RRSIG) == State.HIDDEN
    assert z2.publish and not z2.active_zsk

    byId(keys, 'z1').introducing = False        # standby keys don't replace
    with pytest.raises(ConsistencyViolation):
        RolloverScheduler(timing).run(keys, 10 ** 6)


def test_blocked_reports_waiting_prerequisites(timing, established_key, new_key):
    keys = zsk_rollover(established_key, new_key)
    s = RolloverScheduler(timing)
    s.run(keys, 0)
    blocked = dict(((node.key_id, node.rrtype), unmet) for (node, unmet) in s.blocked(keys, 0))
    assert ('z1', RecordType.RRSIG) in blocked
    assert 'ZSK successor ready' in str(blocked[('z1', RecordType.RRSIG)][0])
    assert ('z2', RecordType.DNSKEY) in blocked


def test_coverage_check_rejects_new_gaps_only(established_key):
    z1 = established_key('z1', Role.ZSK)
    keys = [z1]
    assert validate.coverageGaps(keys) == set()
    z1.record(RecordType.DNSKEY).state = State.UNRETENTIVE
    assert validate.coverageGaps(keys) == {8}
    with pytest.raises(ConsistencyViolation):
        validate.checkCoverage('example.com', set(), keys, 'test')
    validate.checkCoverage('example.com', {8}, keys, 'test')
    z1.should_revoke = True
    z1.record(RecordType.DNSKEY).state = State.OMNIPRESENT
    assert validate.coverageGaps(keys) == {8}


def test_check_key_set(established_key, new_key):
    validate.checkKeySet('example.com', [established_key('k1', Role.KSK), new_key('k2', Role.KSK)])
    with pytest.raises(ConsistencyViolation):
        validate.checkKeySet('example.com', [new_key('k1', Role.KSK), new_key('k1', Role.ZSK)])
    k = new_key('k3', Role.KSK)
    k.record(RecordType.DS).state = State.RUMOURED
    with pytest.raises(ConsistencyViolation):
        validate.checkKeySet('example.com', [k])
    z = new_key('z1', Role.ZSK)
    del z.states[RecordType.RRSIG]
    with pytest.raises(ConsistencyViolation):
        validate.checkKeySet('example.com', [z])
    a = new_key('z2', Role.ZSK)
    b = new_key('z3', Role.ZSK)
    b.states[RecordType.DNSKEY] = a.states[RecordType.DNSKEY]
    with pytest.raises(ConsistencyViolation):
        validate.checkKeySet('example.com', [a, b])
