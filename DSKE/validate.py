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
validate.py - invariants of a zone's key set
"""

from DSKE.key import RecordType, State, DsAtParent, PRESENT, RECORD_TYPE_TEXT, STATE_TEXT, \
                     DS_AT_PARENT_TEXT
from DSKE.misc import ConsistencyViolation

import DSKE.logger as logger
l = logger.Logger()

# record types, which perform a duty (DNSKEY is needed by both)
DUTY_RECORD_TYPES = {
    'zsk': (RecordType.RRSIG,),
    'ksk': (RecordType.RRSIG_DNSKEY, RecordType.DS),
}

# ds-at-parent states, in which the DS can't be in caches of resolvers yet
_DS_NOT_YET_SEEN = (DsAtParent.UNSUBMITTED, DsAtParent.SUBMIT, DsAtParent.SUBMITTED)


#--------------------------
#   functions
#--------------------------

def checkKeySet(zone_name, keys):
    """Raise ConsistencyViolation if the loaded key set can't be reasoned about"""
    seen_ids = set()
    seen_states = set()
    for k in keys:
        if k.id in seen_ids:
            raise ConsistencyViolation('%s: duplicate key id %s' % (zone_name, k.id))
        seen_ids.add(k.id)
        for rt in RecordType:
            if rt not in k.states:
                raise ConsistencyViolation('%s: key %s is missing its %s state' %
                                            (zone_name, k.id, RECORD_TYPE_TEXT[rt]))
            if id(k.states[rt]) in seen_states:
                raise ConsistencyViolation('%s: key %s shares its %s state with another key' %
                                            (zone_name, k.id, RECORD_TYPE_TEXT[rt]))
            seen_states.add(id(k.states[rt]))
        if k.hasDS() and k.uses(RecordType.DS) and \
                k.state(RecordType.DS) != State.HIDDEN and k.ds_at_parent in _DS_NOT_YET_SEEN:
            raise ConsistencyViolation('%s: DS of key %s is %s, but ds-at-parent is only %s' %
                    (zone_name, k.id, STATE_TEXT[k.state(RecordType.DS)],
                     DS_AT_PARENT_TEXT[k.ds_at_parent]))

def performed(key, duty):           # has key ever done duty?
    for rt in DUTY_RECORD_TYPES[duty]:
        if key.uses(rt) and key.state(rt) != State.HIDDEN:
            return True
    return False

def pendingDuties(key):
    """duties of a retiring key, which need a successor before the key may go"""
    if key.introducing:
        return []
    result = []
    for duty in key.duties():
        if not performed(key, duty):
            continue
        types = DUTY_RECORD_TYPES[duty] + (RecordType.DNSKEY,)
        if any(key.uses(rt) and key.state(rt) in PRESENT for rt in types):
            result.append(duty)
    return result

def successorCandidates(keys, key, duty):
    """keys, which may take over duty from key, sorted by id"""
    return sorted((c for c in keys
                    if c.id != key.id and
                        duty in c.duties() and
                        c.algorithm == key.algorithm and
                        c.introducing and
                        not c.standby and
                        not c.should_revoke),
                  key=lambda c: c.id)

def ready(key, duty):               # is key fully in place for duty?
    if key.state(RecordType.DNSKEY) != State.OMNIPRESENT:
        return False
    if duty == 'zsk':
        return key.state(RecordType.RRSIG) == State.OMNIPRESENT
    return key.state(RecordType.RRSIG_DNSKEY) == State.OMNIPRESENT and \
           key.state(RecordType.DS) == State.OMNIPRESENT and \
           key.ds_at_parent == DsAtParent.SEEN

def checkReplacements(zone_name, keys):
    """Raise ConsistencyViolation, if a retiring key has nobody to hand over to"""
    for k in sorted(keys, key=lambda k: k.id):
        for duty in pendingDuties(k):
            if not successorCandidates(keys, k, duty):
                raise ConsistencyViolation('%s: no replacement key for %s duty of retiring key %s (algorithm %d)' %
                                            (zone_name, duty.upper(), k.id, k.algorithm))

def coverageGaps(keys):
    """Set of algorithms with omnipresent signatures over zone data, but
    without an omnipresent DNSKEY + RRSIG pair able to validate them."""
    gaps = set()
    signed = set(k.algorithm for k in keys
                    if k.uses(RecordType.RRSIG) and k.state(RecordType.RRSIG) == State.OMNIPRESENT)
    for alg in signed:
        if not any(k.algorithm == alg and
                   not k.should_revoke and
                   k.uses(RecordType.RRSIG) and
                   k.state(RecordType.DNSKEY) == State.OMNIPRESENT and
                   k.state(RecordType.RRSIG) == State.OMNIPRESENT for k in keys):
            gaps.add(alg)
    return gaps

def checkCoverage(zone_name, gaps_before, keys, what):
    """Raise ConsistencyViolation if what has opened a new coverage gap"""
    new_gaps = coverageGaps(keys) - gaps_before
    if new_gaps:
        raise ConsistencyViolation('%s: %s would leave signatures of algorithm %s without a validating DNSKEY' %
                                    (zone_name, what, ', '.join(str(a) for a in sorted(new_gaps))))
