from DSKE.key import RecordType, Role, State
from DSKE.signer import keySetEvent, CallbackNotifier, RndcNotifier


def test_key_set_event(established_key, new_key):
    k1 = established_key('k1', Role.KSK, should_revoke=True)
    z2 = new_key('z2', Role.ZSK)
    z2.record(RecordType.DNSKEY).state = State.RUMOURED
    z2.updateUsageFlags()
    e = keySetEvent('example.com', [z2, k1, established_key('z1', Role.ZSK)], 42)
    assert e.zone == 'example.com'
    assert e.time == 42
    assert e.records['DNSKEY'] == {'omnipresent': ['k1', 'z1'], 'rumoured': ['z2']}
    assert e.records['RRSIG'] == {'omnipresent': ['z1'], 'rumoured': []}
    assert e.records['DS'] == {'omnipresent': ['k1'], 'rumoured': []}
    assert e.keys['z2']['publish'] and not e.keys['z2']['active_zsk']
    assert e.revoke == ['k1']


def test_callback_notifier(established_key):
    got = []
    e = keySetEvent('example.com', [established_key('z1', Role.ZSK)], 0)
    assert CallbackNotifier(got.append).notify(e)
    assert got == [e]


def test_rndc_notifier(tmp_path, established_key):
    rndc = tmp_path / 'rndc'
    rndc.write_text('#!/bin/sh\necho "$@" > %s/called\n' % (tmp_path,))
    rndc.chmod(0o755)
    e = keySetEvent('example.com', [established_key('z1', Role.ZSK)], 0)
    assert RndcNotifier(str(rndc)).notify(e)
    assert (tmp_path / 'called').read_text() == 'loadkeys example.com\n'


def test_rndc_notifier_failure_is_logged(established_key, quiet_logger):
    e = keySetEvent('example.com', [established_key('z1', Role.ZSK)], 0)
    assert not RndcNotifier('/nonexistent/rndc').notify(e)
    assert 'rndc loadkeys' in quiet_logger.lastError


def test_rndc_notifier_reports_rndc_errors(tmp_path, established_key, quiet_logger):
    rndc = tmp_path / 'rndc'
    rndc.write_text('#!/bin/sh\necho "zone not found" >&2\nexit 1\n')
    rndc.chmod(0o755)
    e = keySetEvent('example.com', [established_key('z1', Role.ZSK)], 0)
    assert not RndcNotifier(str(rndc)).notify(e)
    assert quiet_logger.lastError.startswith('?Error during rndc loadkeys of example.com')
