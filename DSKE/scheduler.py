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
scheduler.py - RolloverScheduler class module

# -----------------------------------------
Pre-Publication with ZSK, Double-KSK with KSK (RFC 6781, 4.1):

   ZSK:  DNSKEY(new) --> RRSIG(new) --> RRSIG(old) withdrawn --> DNSKEY(old) withdrawn
   KSK:  DNSKEY(new) + RRSIG-DNSKEY(new) --> DS(new) submitted/seen at parent
              --> RRSIG-DNSKEY(old) withdrawn --> DNSKEY(old) withdrawn --> DS(old) retracted

Every record of every key is a node (key, record type). A node may move
to its next state, if all of its prerequisites hold:

    hidden -> rumoured          publish decision, ordered by the rules below
    rumoured -> omnipresent     TTL + propagation delay elapsed
    omnipresent -> unretentive  replacement omnipresent, ordered by the rules below
    unretentive -> NA           TTL + propagation delay elapsed

Before a transition is committed, the coverage invariant is checked again:
no algorithm may end up with omnipresent signatures, but without an
omnipresent DNSKEY + RRSIG pair to validate them.
"""

import collections

from DSKE.key import RecordType, State, DsAtParent, WITHDRAWN, RECORD_TYPE_TEXT, STATE_TEXT, \
                     DS_AT_PARENT_TEXT, recordTypeFromText
import DSKE.validate as validate

import DSKE.logger as logger
l = logger.Logger()

# -----------------------------------------
# Configurables
# -----------------------------------------
import DSKE.conf as conf

#--------------------------
#   classes
#--------------------------

class Timing(object):
    """TTLs and propagation delays of a zone (seconds)"""

    def __init__(self, ttl=None, propagation_delay=None, parent_propagation_delay=None):
        self.ttl = {
            RecordType.DS: conf.TTL_DS,
            RecordType.DNSKEY: conf.TTL_DNSKEY,
            RecordType.RRSIG: conf.TTL_RRSIG,
            RecordType.RRSIG_DNSKEY: conf.TTL_DNSKEY,
        }
        if ttl:
            self.ttl.update(ttl)
        self.propagation_delay = conf.PROPAGATION_DELAY
        if propagation_delay is not None:
            self.propagation_delay = propagation_delay
        self.parent_propagation_delay = conf.PARENT_PROPAGATION_DELAY
        if parent_propagation_delay is not None:
            self.parent_propagation_delay = parent_propagation_delay

    @classmethod
    def fromConfig(cls, timing):
        """from the 'Timing' dict of a zone config"""
        ttl = {recordTypeFromText(t): int(v) for t, v in timing.get('TTL', {}).items()}
        return cls(ttl, timing.get('PropagationDelay'), timing.get('ParentPropagationDelay'))

    def interval(self, rrtype):
        """time a record needs to become omnipresent or to vanish from caches"""
        if rrtype == RecordType.DS:
            return self.ttl[rrtype] + self.parent_propagation_delay
        return self.ttl[rrtype] + self.propagation_delay


class Transition(collections.namedtuple('Transition', 'key_id rrtype old new time')):
    """One committed state change. rrtype None means ds-at-parent."""

    def __str__(self):
        if self.rrtype is None:
            return '%s/ds-at-parent: %s -> %s' % (self.key_id,
                        DS_AT_PARENT_TEXT[self.old], DS_AT_PARENT_TEXT[self.new])
        return '%s/%s: %s -> %s' % (self.key_id, RECORD_TYPE_TEXT[self.rrtype],
                        STATE_TEXT[self.old], STATE_TEXT[self.new])

# -----------------------------
# prerequisites of a node (edges of the dependency graph)
# -----------------------------

class Prerequisite(object):

    def satisfied(self, key, keys, now):
        raise NotImplementedError

    def wakeTime(self, key):         # when will we become true by time alone?
        return None


class Elapsed(Prerequisite):
    def __init__(self, rrtype, interval):
        self.rrtype = rrtype
        self.interval = interval

    def due(self, key):
        return key.record(self.rrtype).last_change + self.interval

    def satisfied(self, key, keys, now):
        return now >= self.due(key)

    def wakeTime(self, key):
        return self.due(key)

    def __str__(self):
        return '%s interval of %ds' % (RECORD_TYPE_TEXT[self.rrtype], self.interval)


class OwnState(Prerequisite):
    def __init__(self, rrtype, states, text):
        self.rrtype = rrtype
        self.states = states
        self.text = text

    def satisfied(self, key, keys, now):
        return key.state(self.rrtype) in self.states

    def __str__(self):
        return 'own %s %s' % (RECORD_TYPE_TEXT[self.rrtype], self.text)


class Workflow(Prerequisite):
    def __init__(self, ds_at_parent):
        self.ds_at_parent = ds_at_parent

    def satisfied(self, key, keys, now):
        return key.ds_at_parent == self.ds_at_parent

    def __str__(self):
        return 'ds-at-parent %s' % (DS_AT_PARENT_TEXT[self.ds_at_parent],)


class Successor(Prerequisite):
    def __init__(self, duty, candidates):
        self.duty = duty
        self.candidates = candidates        # key ids

    def satisfied(self, key, keys, now):
        for k in keys:
            if k.id in self.candidates and validate.ready(k, self.duty):
                return True
        return False

    def __str__(self):
        return '%s successor ready (one of %s)' % (self.duty.upper(), ', '.join(self.candidates))


Node = collections.namedtuple('Node', 'key_id rrtype target prerequisites')


class RolloverScheduler(object):
    """RolloverScheduler - advances the record states of a zone's keys"""

    MAX_SWEEPS = 32                 # each record has at most 4 transitions

    def __init__(self, timing, zone_name=''):
        self.timing = timing
        self.zone_name = zone_name

    #-----------------------------
    # dependency graph
    #-----------------------------
    def prerequisites(self, keys, key, rrtype):
        """Node for the next transition of (key, rrtype) or None if it has none"""
        state = key.state(rrtype)
        elapsed = Elapsed(rrtype, self.timing.interval(rrtype))

        if state == State.RUMOURED:
            return Node(key.id, rrtype, State.OMNIPRESENT, [elapsed])
        if state == State.UNRETENTIVE:
            return Node(key.id, rrtype, State.NA, [elapsed])

        if state == State.HIDDEN and key.introducing:
            if not key.uses(rrtype):            # follows our DNSKEY
                return Node(key.id, rrtype, State.RUMOURED,
                            [OwnState(RecordType.DNSKEY, (State.RUMOURED, State.OMNIPRESENT), 'published')])
            if rrtype == RecordType.DNSKEY:     # the publish decision
                return Node(key.id, rrtype, State.RUMOURED, [])
            if key.standby:                     # standby keys don't sign
                return None
            if rrtype == RecordType.RRSIG_DNSKEY:
                return Node(key.id, rrtype, State.RUMOURED,
                            [OwnState(RecordType.DNSKEY, (State.RUMOURED, State.OMNIPRESENT), 'published')])
            if rrtype == RecordType.RRSIG:      # pre-publication
                return Node(key.id, rrtype, State.RUMOURED,
                            [OwnState(RecordType.DNSKEY, (State.OMNIPRESENT,), 'omnipresent')])
            if rrtype == RecordType.DS:
                return Node(key.id, rrtype, State.RUMOURED,
                            [OwnState(RecordType.DNSKEY, (State.OMNIPRESENT,), 'omnipresent'),
                             Workflow(DsAtParent.SEEN)])

        if state == State.OMNIPRESENT and not key.introducing:
            own_dnskey_gone = OwnState(RecordType.DNSKEY, WITHDRAWN, 'withdrawn')
            if not key.uses(rrtype):
                return Node(key.id, rrtype, State.UNRETENTIVE, [own_dnskey_gone])
            if rrtype == RecordType.RRSIG:
                return Node(key.id, rrtype, State.UNRETENTIVE,
                            [Successor('zsk', self._candidates(keys, key, 'zsk'))])
            if rrtype == RecordType.RRSIG_DNSKEY:
                return Node(key.id, rrtype, State.UNRETENTIVE,
                            [Successor('ksk', self._candidates(keys, key, 'ksk'))])
            if rrtype == RecordType.DNSKEY:
                pre = []
                for rt in (RecordType.RRSIG, RecordType.RRSIG_DNSKEY):
                    if key.uses(rt):
                        pre.append(OwnState(rt, WITHDRAWN, 'withdrawn'))
                for duty in key.duties():
                    if validate.performed(key, duty):
                        pre.append(Successor(duty, self._candidates(keys, key, duty)))
                return Node(key.id, rrtype, State.UNRETENTIVE, pre)
            if rrtype == RecordType.DS:
                return Node(key.id, rrtype, State.UNRETENTIVE,
                            [own_dnskey_gone, Workflow(DsAtParent.RETRACTED)])
        return None

    def _candidates(self, keys, key, duty):
        return [c.id for c in validate.successorCandidates(keys, key, duty)]

    def dependencyGraph(self, keys):
        """{(key id, record type): Node} of every record with a pending transition"""
        graph = collections.OrderedDict()
        for rrtype in RecordType:
            for key in sorted(keys, key=lambda k: k.id):
                node = self.prerequisites(keys, key, rrtype)
                if node:
                    graph[(key.id, rrtype)] = node
        return graph

    #-----------------------------
    # running
    #-----------------------------
    def run(self, keys, now):
        """Apply all currently legal transitions to keys (the snapshot) and
        return them in the order applied. Raises ConsistencyViolation before
        changing anything, if a rollover misses its replacement key."""
        validate.checkReplacements(self.zone_name, keys)
        transitions = []
        for i in range(self.MAX_SWEEPS):
            t = self.sweep(keys, now)
            if not t:
                break
            transitions.extend(t)
        for key in keys:
            key.updateUsageFlags()
        return transitions

    def sweep(self, keys, now):     # one pass over all nodes in fixed order
        transitions = []
        for rrtype in RecordType:
            for key in sorted(keys, key=lambda k: k.id):
                node = self.prerequisites(keys, key, rrtype)
                if not node:
                    continue
                if not all(p.satisfied(key, keys, now) for p in node.prerequisites):
                    continue
                transitions.append(self.commit(keys, key, node, now))
        return transitions

    def commit(self, keys, key, node, now):
        record = key.record(node.rrtype)
        gaps_before = validate.coverageGaps(keys)
        old = record.state
        record.state = node.target
        record.last_change = now
        t = Transition(key.id, node.rrtype, old, node.target, now)
        validate.checkCoverage(self.zone_name, gaps_before, keys, str(t))
        l.logVerbose('State transition of %s %s' % (self.zone_name, t))
        return t

    def nextWake(self, keys, now):
        """earliest time after now, at which a transition becomes eligible by
        time alone, or None"""
        wake = None
        for node in self.dependencyGraph(keys).values():
            key = [k for k in keys if k.id == node.key_id][0]
            for p in node.prerequisites:
                t = p.wakeTime(key)
                if t is not None and t > now and (wake is None or t < wake):
                    wake = t
        return wake

    def blocked(self, keys, now):
        """[(Node, [unmet prerequisites])] for logging and --list"""
        result = []
        for node in self.dependencyGraph(keys).values():
            key = [k for k in keys if k.id == node.key_id][0]
            unmet = [p for p in node.prerequisites if not p.satisfied(key, keys, now)]
            if unmet:
                result.append((node, unmet))
        return result
