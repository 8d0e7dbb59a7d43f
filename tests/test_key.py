import pytest

from DSKE.key import KeyRecord, RecordState, RecordType, Role, State, DsAtParent, \
                     roleFromText, stateFromText, recordTypeFromText, dsAtParentFromText


def test_new_key_is_hidden_and_unsubmitted(new_key):
    k = new_key('k1', Role.KSK)
    assert all(k.state(rt) == State.HIDDEN for rt in RecordType)
    assert all(k.record(rt).last_change == 0 for rt in RecordType)
    assert k.ds_at_parent == DsAtParent.UNSUBMITTED
    assert k.introducing
    assert not k.publish


def test_record_states_are_never_shared(new_key):
    k1 = new_key('k1', Role.KSK)
    k2 = k1.copy()
    k2.record(RecordType.DNSKEY).state = State.RUMOURED
    assert k1.state(RecordType.DNSKEY) == State.HIDDEN

    shared = RecordState(State.OMNIPRESENT, 5)
    k3 = KeyRecord('k3', 'loc', 8, 0, Role.ZSK, states={rt: shared for rt in RecordType})
    assert len(set(id(rs) for rs in k3.states.values())) == 4
    assert shared.state == State.OMNIPRESENT


def test_roles_use_their_record_types(new_key):
    ksk = new_key('k', Role.KSK)
    zsk = new_key('z', Role.ZSK)
    csk = new_key('c', Role.CSK)
    assert ksk.uses(RecordType.DS) and not ksk.uses(RecordType.RRSIG)
    assert zsk.uses(RecordType.RRSIG) and not zsk.uses(RecordType.DS)
    assert all(csk.uses(rt) for rt in RecordType)
    assert ksk.hasDS() and csk.hasDS() and not zsk.hasDS()
    assert csk.duties() == ('ksk', 'zsk')


def test_dict_conversion_keeps_everything(established_key):
    k = established_key('k1', Role.CSK, keytag=4711, should_revoke=True)
    k.record(RecordType.DS).last_change = 1234
    d = k.to_dict()
    assert d['role'] == 'CSK'
    assert d['ds_at_parent'] == 'seen'
    assert d['states']['RRSIG-DNSKEY'] == {'state': 'omnipresent', 'last_change': -100000}
    assert d['states']['DS']['last_change'] == 1234
    assert d['should_revoke'] is True and d['standby'] is False
    assert KeyRecord.from_dict(d) == k
    d['introducing'] = 0
    assert KeyRecord.from_dict(d).introducing is False


def test_from_dict_keeps_missing_record_types_missing(established_key):
    d = established_key('z1', Role.ZSK).to_dict()
    del d['states']['DS']
    k = KeyRecord.from_dict(d)
    assert RecordType.DS not in k.states


def test_text_tables_reject_unknown_values():
    assert roleFromText('ZSK') == Role.ZSK
    assert stateFromText('NA') == State.NA
    assert recordTypeFromText('RRSIG-DNSKEY') == RecordType.RRSIG_DNSKEY
    assert dsAtParentFromText('retract') == DsAtParent.RETRACT
    with pytest.raises(ValueError):
        stateFromText('gone')
    with pytest.raises(ValueError):
        roleFromText('KSK2')


def test_matches_by_keytag_or_locator(new_key):
    k = new_key('k1', Role.KSK, keytag=100)
    assert k.matches(keytag=100)
    assert k.matches(keytag='100')
    assert k.matches(locator='loc-k1')
    assert not k.matches(keytag=100, locator='other')
    assert not k.matches()


def test_purgeable(established_key, new_key):
    z = established_key('z1', Role.ZSK, introducing=False)
    assert not z.purgeable()
    for rt in RecordType:
        z.record(rt).state = State.NA
    assert z.purgeable()
    z.introducing = True
    assert not z.purgeable()

    k = established_key('k1', Role.KSK, introducing=False)
    for rt in RecordType:
        k.record(rt).state = State.NA
    assert not k.purgeable()                # DS still seen at parent
    k.ds_at_parent = DsAtParent.RETRACTED
    assert k.purgeable()

    never_used = new_key('k2', Role.KSK, introducing=False)
    assert never_used.purgeable()


def test_usage_flags_follow_record_states(new_key):
    k = new_key('c1', Role.CSK)
    k.updateUsageFlags()
    assert (k.publish, k.active_zsk, k.active_ksk) == (False, False, False)
    k.record(RecordType.DNSKEY).state = State.RUMOURED
    k.record(RecordType.RRSIG_DNSKEY).state = State.OMNIPRESENT
    k.updateUsageFlags()
    assert (k.publish, k.active_zsk, k.active_ksk) == (True, False, True)
    k.record(RecordType.RRSIG).state = State.RUMOURED
    k.record(RecordType.DNSKEY).state = State.UNRETENTIVE
    k.updateUsageFlags()
    assert (k.publish, k.active_zsk, k.active_ksk) == (False, True, True)
