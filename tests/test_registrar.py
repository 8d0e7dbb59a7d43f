import types

import pytest

import DSKE.conf as conf
import DSKE.registrar as reg
from DSKE.key import Role


def zoneWith(**pcfg):
    cfg = {'Registrar': 'by hand', 'SubmitCommand': '', 'RetractCommand': ''}
    cfg.update(pcfg)
    return types.SimpleNamespace(name='example.com', pcfg=cfg)


@pytest.fixture
def command(tmp_path):
    """external DS command appending its arguments to a file"""
    def make(rc=0):
        script = tmp_path / ('ds-command-%d' % rc)
        script.write_text('#!/bin/sh\necho "$@" >> %s/args\nexit %d\n' % (tmp_path, rc))
        script.chmod(0o755)
        return str(script)
    return make


def test_hand_over_by_email_without_mail_relay(new_key, quiet_logger):
    k = new_key('k2', Role.KSK, keytag=2222)
    assert reg.regAddDS(zoneWith(), [k]) is None
    assert 'keytag\t2222' in quiet_logger.lastWarning
    assert '--ds-seen' in quiet_logger.lastWarning


def test_hand_over_by_email_is_mailed(new_key, mails):
    res = reg.regRemoveDS(zoneWith(), [new_key('k1', Role.KSK, keytag=1111)])
    assert res == {'TID': 'E-Mail sent'}
    assert mails[0][0] == 'Deletion of DS-RR of zone example.com required'
    assert 'remove DS-RR' in mails[0][1]
    assert '--ds-gone' in mails[0][1]


def test_command_registrar(new_key, command, tmp_path):
    z = zoneWith(Registrar='Command', SubmitCommand=command(0))
    res = reg.regAddDS(z, [new_key('k2', Role.KSK, keytag=2222),
                           new_key('k3', Role.CSK, algorithm=13, keytag=3333)])
    assert res is not None
    assert (tmp_path / 'args').read_text() == 'example.com 2222 8 loc-k2\nexample.com 3333 13 loc-k3\n'


def test_only_the_command_registrar_removes_ds():
    assert reg.removesDS(zoneWith(Registrar='Command'))
    assert not reg.removesDS(zoneWith())


def test_failing_command_registrar(new_key, command, monkeypatch, quiet_logger):
    z = zoneWith(Registrar='Command', RetractCommand=command(1))
    assert reg.regRemoveDS(z, [new_key('k1', Role.KSK)]) is None
    assert 'failed' in quiet_logger.lastWarning

    z = zoneWith(Registrar='Command', RetractCommand='/nonexistent/ds-command')
    assert reg.regRemoveDS(z, [new_key('k1', Role.KSK)]) is None

    monkeypatch.setattr(conf, 'DS_SUBMIT_COMMAND', '')
    z = zoneWith(Registrar='Command')
    assert reg.regAddDS(z, [new_key('k1', Role.KSK)]) is None


def test_unknown_registrar(new_key):
    assert reg.regAddDS(zoneWith(Registrar='Joker'), [new_key('k1', Role.KSK)]) is None
