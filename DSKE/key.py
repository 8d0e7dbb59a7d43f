"""
 DSKE DNSsec Key Enforcer

 Copyright (c) 2012 Axel Rau, axel.rau@chaos1.de

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <http://www.gnu.org/licenses/>.

# -----------------------------------------
key.py - KeyRecord and RecordState class module

# -----------------------------------------
Each key carries one RecordState per record type it may cause to appear
in caches of resolvers:

    DS              DS RR of the key at the parent
    DNSKEY          the DNSKEY RR of the key in the zone apex
    RRSIG           signatures over zone data made by the key
    RRSIG-DNSKEY    signature over the DNSKEY RRset made by the key

A RecordState walks strictly linearly through

    hidden -> rumoured -> omnipresent -> unretentive -> NA

    hidden:       never published
    rumoured:     published, some caches may still hold the old view
    omnipresent:  published and every cache has seen it
    unretentive:  withdrawn, some caches may still hold it
    NA:           withdrawn and expired from every cache

Keys are never re-introduced: a new KeyRecord is created instead.
"""

import copy
import enum

#--------------------------
#   enumerations and their text tables
#--------------------------

class RecordType(enum.IntEnum):     # order is the order of evaluation
    DS = 0
    DNSKEY = 1
    RRSIG = 2
    RRSIG_DNSKEY = 3

class State(enum.IntEnum):
    HIDDEN = 0
    RUMOURED = 1
    OMNIPRESENT = 2
    UNRETENTIVE = 3
    NA = 4

class Role(enum.IntEnum):
    KSK = 1
    ZSK = 2
    CSK = 3

class DsAtParent(enum.IntEnum):
    UNSUBMITTED = 0
    SUBMIT = 1
    SUBMITTED = 2
    SEEN = 3
    RETRACT = 4
    RETRACTED = 5

RECORD_TYPE_TEXT = {
    RecordType.DS: 'DS',
    RecordType.DNSKEY: 'DNSKEY',
    RecordType.RRSIG: 'RRSIG',
    RecordType.RRSIG_DNSKEY: 'RRSIG-DNSKEY',
}
STATE_TEXT = {
    State.HIDDEN: 'hidden',
    State.RUMOURED: 'rumoured',
    State.OMNIPRESENT: 'omnipresent',
    State.UNRETENTIVE: 'unretentive',
    State.NA: 'NA',
}
ROLE_TEXT = {
    Role.KSK: 'KSK',
    Role.ZSK: 'ZSK',
    Role.CSK: 'CSK',
}
DS_AT_PARENT_TEXT = {
    DsAtParent.UNSUBMITTED: 'unsubmitted',
    DsAtParent.SUBMIT: 'submit',
    DsAtParent.SUBMITTED: 'submitted',
    DsAtParent.SEEN: 'seen',
    DsAtParent.RETRACT: 'retract',
    DsAtParent.RETRACTED: 'retracted',
}

RECORD_TYPE_BY_TEXT = {v: k for k, v in RECORD_TYPE_TEXT.items()}
STATE_BY_TEXT = {v: k for k, v in STATE_TEXT.items()}
ROLE_BY_TEXT = {v: k for k, v in ROLE_TEXT.items()}
DS_AT_PARENT_BY_TEXT = {v: k for k, v in DS_AT_PARENT_TEXT.items()}


def fromText(table, text, what):
    try:
        return table[text]
    except KeyError:
        raise ValueError('Unknown %s "%s"' % (what, text))

def roleFromText(text):
    return fromText(ROLE_BY_TEXT, text, 'key role')

def stateFromText(text):
    return fromText(STATE_BY_TEXT, text, 'record state')

def recordTypeFromText(text):
    return fromText(RECORD_TYPE_BY_TEXT, text, 'record type')

def dsAtParentFromText(text):
    return fromText(DS_AT_PARENT_BY_TEXT, text, 'ds-at-parent state')


# record types, whose state is constrained by the role of the key
ROLE_RECORD_TYPES = {
    Role.KSK: (RecordType.DS, RecordType.DNSKEY, RecordType.RRSIG_DNSKEY),
    Role.ZSK: (RecordType.DNSKEY, RecordType.RRSIG),
    Role.CSK: (RecordType.DS, RecordType.DNSKEY, RecordType.RRSIG, RecordType.RRSIG_DNSKEY),
}

# duties a role performs: 'zsk' signs zone data, 'ksk' anchors the chain of trust
ROLE_DUTIES = {
    Role.KSK: ('ksk',),
    Role.ZSK: ('zsk',),
    Role.CSK: ('ksk', 'zsk'),
}

# states in which the record is (or may be) in caches and is not on its way out
PRESENT = (State.RUMOURED, State.OMNIPRESENT)
# states in which the record is no longer published
WITHDRAWN = (State.HIDDEN, State.UNRETENTIVE, State.NA)


#--------------------------
#   classes
#--------------------------

class RecordState(object):
    """propagation state of one record type of one key"""

    __slots__ = ('state', 'last_change')

    def __init__(self, state=State.HIDDEN, last_change=0):
        self.state = State(state)
        self.last_change = int(last_change)

    def copy(self):
        return RecordState(self.state, self.last_change)

    def __eq__(self, other):
        if not isinstance(other, RecordState):
            return NotImplemented
        return self.state == other.state and self.last_change == other.last_change

    def __repr__(self):
        return 'RecordState(%s, %d)' % (STATE_TEXT[self.state], self.last_change)

    def to_dict(self):
        return {'state': STATE_TEXT[self.state], 'last_change': self.last_change}

    @classmethod
    def from_dict(cls, d):
        return cls(stateFromText(d['state']), d.get('last_change', 0))


# the one description of a persisted KeyRecord: (attribute, to storage, from storage)
KEY_FIELDS = (
    ('id',              str,                            str),
    ('locator',         str,                            str),
    ('algorithm',       int,                            int),
    ('inception',       int,                            int),
    ('role',            ROLE_TEXT.__getitem__,          roleFromText),
    ('introducing',     bool,                           bool),
    ('should_revoke',   bool,                           bool),
    ('standby',         bool,                           bool),
    ('active_zsk',      bool,                           bool),
    ('publish',         bool,                           bool),
    ('active_ksk',      bool,                           bool),
    ('keytag',          int,                            int),
    ('ds_at_parent',    DS_AT_PARENT_TEXT.__getitem__,  dsAtParentFromText),
)


class KeyRecord(object):
    """KeyRecord - policy attributes of one zone key with its record states"""

    def __init__(self, id, locator, algorithm, inception, role,
                 introducing=True, should_revoke=False, standby=False,
                 active_zsk=False, publish=False, active_ksk=False,
                 keytag=0, ds_at_parent=DsAtParent.UNSUBMITTED, states=None):
        self.id = str(id)
        self.locator = locator
        self.algorithm = algorithm
        self.inception = inception
        self.role = Role(role)
        self.introducing = introducing
        self.should_revoke = should_revoke
        self.standby = standby
        self.active_zsk = active_zsk
        self.publish = publish
        self.active_ksk = active_ksk
        self.keytag = keytag
        self.ds_at_parent = DsAtParent(ds_at_parent)
        if states is None:
            states = {rt: RecordState(State.HIDDEN, inception) for rt in RecordType}
        # always our own copies: no two keys may share a RecordState
        self.states = {RecordType(rt): rs.copy() for rt, rs in states.items()}

    def __str__(self):
        return str('%s/%s/%d(%s ds-at-parent:%s%s)' % (self.id, ROLE_TEXT[self.role], self.keytag,
                    ', '.join('%s:%s' % (RECORD_TYPE_TEXT[rt], STATE_TEXT[self.states[rt].state])
                                for rt in RecordType if rt in self.states),
                    DS_AT_PARENT_TEXT[self.ds_at_parent],
                    '' if self.introducing else ' retiring'))

    def __repr__(self):
        return '<KeyRecord %s>' % (self.__str__(),)

    def __eq__(self, other):
        if not isinstance(other, KeyRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def copy(self):
        k = copy.copy(self)
        k.states = {rt: rs.copy() for rt, rs in self.states.items()}
        return k

    def record(self, rrtype):
        return self.states[rrtype]

    def state(self, rrtype):
        return self.states[rrtype].state

    def uses(self, rrtype):         # is rrtype constrained by our role?
        return rrtype in ROLE_RECORD_TYPES[self.role]

    def duties(self):
        return ROLE_DUTIES[self.role]

    def hasDS(self):                # ds-at-parent meaningful?
        return self.role in (Role.KSK, Role.CSK)

    def matches(self, keytag=None, locator=None):
        if locator is not None and self.locator != locator:
            return False
        if keytag is not None and self.keytag != int(keytag):
            return False
        return keytag is not None or locator is not None

    def purgeable(self):
        """fully withdrawn from every cache and no longer wanted"""
        if self.introducing:
            return False
        for rs in self.states.values():
            if rs.state not in (State.HIDDEN, State.NA):
                return False
        if self.hasDS():
            return self.ds_at_parent in (DsAtParent.UNSUBMITTED, DsAtParent.RETRACTED)
        return True

    def updateUsageFlags(self):
        """derive what the signer should currently do with this key"""
        self.publish = self.state(RecordType.DNSKEY) in PRESENT
        self.active_zsk = self.uses(RecordType.RRSIG) and self.state(RecordType.RRSIG) in PRESENT
        self.active_ksk = self.uses(RecordType.RRSIG_DNSKEY) and \
                          self.state(RecordType.RRSIG_DNSKEY) in PRESENT

    def to_dict(self):
        d = {}
        for (name, to_storage, from_storage) in KEY_FIELDS:
            d[name] = to_storage(getattr(self, name))
        d['states'] = {RECORD_TYPE_TEXT[rt]: rs.to_dict() for rt, rs in sorted(self.states.items())}
        return d

    @classmethod
    def from_dict(cls, d):
        kwargs = {}
        for (name, to_storage, from_storage) in KEY_FIELDS:
            kwargs[name] = from_storage(d[name])
        # a missing record type is kept missing; validate.py reports it
        kwargs['states'] = {recordTypeFromText(t): RecordState.from_dict(s)
                                for t, s in d.get('states', {}).items()}
        return cls(**kwargs)
