import pytest

import DSKE.conf as conf
import DSKE.logger as logger
from DSKE.key import KeyRecord, RecordState, RecordType, Role, State, DsAtParent
from DSKE.misc import ExternalQueryTimeout
from DSKE.repository import MemoryRepository
from DSKE.scheduler import Timing
from DSKE.signer import CallbackNotifier


@pytest.fixture(autouse=True)
def quiet_logger(monkeypatch):
    monkeypatch.setattr(conf, 'mailRelay', '')
    l = logger.Logger()
    l.reset()
    logger.Logger.verbose = False
    logger.Logger.debug = False
    logger.Logger.cron = False
    yield l
    l.reset()


@pytest.fixture
def mails(monkeypatch):
    """hand-over mails, sent to a list instead of the mail relay"""
    sent = []
    monkeypatch.setattr(logger.Logger, 'sendMail',
                        lambda self, subject, body, onlyCron=False: sent.append((subject, body)) or True)
    return sent


@pytest.fixture
def timing():
    """every record type needs 3600 + 300 seconds to propagate"""
    return Timing({rt: 3600 for rt in RecordType}, 300, 300)


@pytest.fixture
def cfg():
    return {'Registrar': 'by hand',
            'AutoDS': True,
            'Timing': {'TTL': {'DS': 3600, 'DNSKEY': 3600, 'RRSIG': 3600, 'RRSIG-DNSKEY': 3600},
                       'PropagationDelay': 300,
                       'ParentPropagationDelay': 300,
                       'ParentCheckInterval': 600}}


def _states(default, last_change, **kw):
    states = {rt: RecordState(default, last_change) for rt in RecordType}
    for name, state in kw.items():
        states[RecordType[name]] = RecordState(state, last_change)
    return states


@pytest.fixture
def new_key():
    """a freshly generated key: everything hidden"""
    def make(id, role, algorithm=8, keytag=None, **kw):
        if keytag is None:
            keytag = sum(ord(c) for c in id)
        return KeyRecord(id, 'loc-' + id, algorithm, 0, role, keytag=keytag, **kw)
    return make


@pytest.fixture
def established_key():
    """a key in use for a long time: every record omnipresent"""
    def make(id, role, algorithm=8, keytag=None, introducing=True, **kw):
        if keytag is None:
            keytag = sum(ord(c) for c in id)
        ds = DsAtParent.SEEN if role in (Role.KSK, Role.CSK) else DsAtParent.UNSUBMITTED
        k = KeyRecord(id, 'loc-' + id, algorithm, -100000, role, introducing=introducing,
                      keytag=keytag, ds_at_parent=ds,
                      states=_states(State.OMNIPRESENT, -100000), **kw)
        k.updateUsageFlags()
        return k
    return make


class FakeParent(object):
    """stands in for the DS query at the parent's name servers"""

    def __init__(self):
        self.keytags = set()
        self.calls = 0
        self.timeout = False

    def __call__(self, zone_name):
        self.calls += 1
        if self.timeout:
            raise ExternalQueryTimeout('Failed to query DS of %s: timeout' % (zone_name,))
        return set(self.keytags)


@pytest.fixture
def parent():
    return FakeParent()


@pytest.fixture
def events():
    return []


@pytest.fixture
def notifier(events):
    return CallbackNotifier(events.append)


@pytest.fixture
def repo():
    return MemoryRepository()
