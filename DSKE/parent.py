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
parent.py - ParentSubmissionWorkflow class module - the DS of a KSK at the parent

    unsubmitted --> submit --> submitted --> seen --> retract --> retracted
                 ^                                 ^             ^
        ds-submit / auto                   ds-retract / auto   ds-gone

submit -> submitted and seen -> retract are only taken after the
registrar action reported the hand-over. submitted -> seen only after the
parent has been seen serving the DS (or by ds-seen of the operator).
retract -> retracted is taken at once if the registrar removes the DS
itself (Command), else the key rests in retract until ds-gone.
"""

import collections

from DSKE.key import RecordType, State, DsAtParent, DS_AT_PARENT_TEXT, ROLE_TEXT
from DSKE.misc import ValidationError, ExternalQueryTimeout
from DSKE.scheduler import Transition

import DSKE.logger as logger
l = logger.Logger()

# -----------------------------------------
# Configurables
# -----------------------------------------
import DSKE.conf as conf

#--------------------------
#   classes
#--------------------------

CommandResult = collections.namedtuple('CommandResult', 'ok changed message')


class ParentSubmissionWorkflow(object):
    """ParentSubmissionWorkflow"""

    def __init__(self, zone_name, submit, retract, parent_query, auto=True,
                 recheck_interval=None, retract_confirms=False):
        self.zone_name = zone_name
        self.submit = submit                # callable(list of keys) -> true on success
        self.retract = retract              # callable(list of keys) -> true on success
        self.parent_query = parent_query    # callable(zone name) -> set of keytags
        self.auto = auto
        self.retract_confirms = retract_confirms    # retract action itself removes the DS
        self.recheck_interval = recheck_interval
        if recheck_interval is None:
            self.recheck_interval = conf.PARENT_CHECK_INTERVAL
        self._parent_keytags = None         # one parent query per pass

    # -----------------------------
    # Tests for state transitions
    # -----------------------------
    def test_ready_to_submit(self, key, explicit):
        if not explicit and not self.auto:
            return False
        return key.introducing and not key.standby and \
               key.state(RecordType.DNSKEY) == State.OMNIPRESENT

    def test_if_seen(self, key, explicit):
        if self._parent_keytags is None:
            try:
                self._parent_keytags = self.parent_query(self.zone_name)
            except ExternalQueryTimeout as e:
                l.logVerbose('%s: DS not yet seen at parent (%s)' % (self.zone_name, e))
                self._parent_keytags = set()
        return key.keytag in self._parent_keytags

    def test_ready_to_retract(self, key, explicit):
        if not explicit and not self.auto:
            return False
        return not key.introducing and \
               key.state(RecordType.DNSKEY) in (State.UNRETENTIVE, State.NA)

    def test_if_removed(self, key, explicit):
        return self.retract_confirms

    # -----------------------------
    # Actions on state transitions (transition only taken if true is returned)
    # -----------------------------
    def submit_ds(self, key, explicit):
        l.logDebug('submit_ds(%s) called' % (key.id))
        return self.submit([key])

    def retract_ds(self, key, explicit):
        l.logDebug('retract_ds(%s) called' % (key.id))
        return self.retract([key])

    # -----------------------------
    # State table
    # -----------------------------
    #   s = state  c = check cond. for transition  a = action, must succeed  ns = next state
    DSTT = {
        DsAtParent.UNSUBMITTED: { 's': 'unsubmitted', 'c': test_ready_to_submit,                      'ns': DsAtParent.SUBMIT },
        DsAtParent.SUBMIT:      { 's': 'submit',                                  'a': submit_ds,     'ns': DsAtParent.SUBMITTED },
        DsAtParent.SUBMITTED:   { 's': 'submitted',   'c': test_if_seen,                              'ns': DsAtParent.SEEN },
        DsAtParent.SEEN:        { 's': 'seen',        'c': test_ready_to_retract, 'a': retract_ds,    'ns': DsAtParent.RETRACT },
        DsAtParent.RETRACT:     { 's': 'retract',     'c': test_if_removed,                           'ns': DsAtParent.RETRACTED },
        DsAtParent.RETRACTED:   { 's': 'retracted' },
    }

    # operator commands:  accepted in 'from', no-op in 'done'
    CMDS = {
        'ds-submit':  { 'from': (DsAtParent.UNSUBMITTED, DsAtParent.SUBMIT), 'done': (DsAtParent.SUBMITTED,) },
        'ds-seen':    { 'from': (DsAtParent.SUBMIT, DsAtParent.SUBMITTED),   'done': (DsAtParent.SEEN,) },
        'ds-retract': { 'from': (DsAtParent.SEEN,),                          'done': (DsAtParent.RETRACT, DsAtParent.RETRACTED) },
        'ds-gone':    { 'from': (DsAtParent.SEEN, DsAtParent.RETRACT),       'done': (DsAtParent.RETRACTED,) },
    }

    def state_transition(self, key, now, explicit=False):
        """Try one transition of key's ds-at-parent. Returns Transition or None"""
        entry = self.DSTT[key.ds_at_parent]
        if 'ns' not in entry:
            return None
        if 'c' in entry and not entry['c'](self, key, explicit):
            return None
        if 'a' in entry and not entry['a'](self, key, explicit):
            l.logWarn('%s: DS action of key %s in state %s failed, retrying later' %
                        (self.zone_name, key.id, entry['s']))
            return None
        return self._advance(key, entry['ns'], now)

    def _advance(self, key, new, now):
        t = Transition(key.id, None, key.ds_at_parent, new, now)
        key.ds_at_parent = new
        l.logVerbose('State transition of %s %s' % (self.zone_name, t))
        return t

    def step(self, keys, now):
        """Take all automatic transitions. Returns list of Transitions."""
        self._parent_keytags = None
        transitions = []
        for key in sorted(keys, key=lambda k: k.id):
            if not key.hasDS():
                continue
            while True:
                t = self.state_transition(key, now)
                if not t:
                    break
                transitions.append(t)
        return transitions

    def nextWake(self, keys, now):
        """Time of the next recheck while an action or the parent is awaited.
        A key resting in retract waits for ds-gone and needs no recheck."""
        for key in keys:
            if not key.hasDS():
                continue
            if key.ds_at_parent in (DsAtParent.SUBMIT, DsAtParent.SUBMITTED) or \
                    (key.ds_at_parent == DsAtParent.SEEN and self.test_ready_to_retract(key, False)):
                return now + self.recheck_interval
        return None

    #-----------------------------
    # operator commands
    #-----------------------------
    def eligibleKeys(self, keys, cmd):
        """Keys cmd may be applied to, by key id"""
        if cmd not in self.CMDS:
            raise ValidationError('Unknown command %s' % (cmd,))

        def eligible(k):
            if not k.hasDS() or k.ds_at_parent not in self.CMDS[cmd]['from']:
                return False
            if k.ds_at_parent == DsAtParent.UNSUBMITTED:
                return self.test_ready_to_submit(k, True)
            if k.ds_at_parent == DsAtParent.SEEN:
                return self.test_ready_to_retract(k, True)
            return True

        return sorted((k for k in keys if eligible(k)), key=lambda k: k.id)

    def selectKey(self, keys, keytag=None, locator=None):
        if keytag is None and locator is None:
            raise ValidationError('Need keytag or locator to select a key')
        found = [k for k in keys if k.matches(keytag, locator)]
        if not found:
            raise ValidationError('No key with keytag %s / locator %s in zone %s' %
                                    (keytag, locator, self.zone_name))
        if len(found) > 1:
            raise ValidationError('Keytag %s is ambiguous in zone %s, use the locator' %
                                    (keytag, self.zone_name))
        return found[0]

    def command(self, keys, cmd, now, keytag=None, locator=None):
        """Apply operator command cmd to the selected key.
        Returns (CommandResult, list of Transitions).
        Raises ValidationError without changing anything if the key is not
        in a state cmd applies to."""
        if cmd not in self.CMDS:
            raise ValidationError('Unknown command %s' % (cmd,))
        c = self.CMDS[cmd]
        key = self.selectKey(keys, keytag, locator)
        if not key.hasDS():
            raise ValidationError('%s: key %s is a %s, it has no DS at the parent' %
                                    (cmd, key.id, ROLE_TEXT[key.role]))
        if key.ds_at_parent in c['done']:
            return (CommandResult(True, False, '%s: key %s is already %s' %
                                    (cmd, key.id, DS_AT_PARENT_TEXT[key.ds_at_parent])), [])
        if key.ds_at_parent not in c['from']:
            raise ValidationError('%s: key %s is %s, expected %s' % (cmd, key.id,
                            DS_AT_PARENT_TEXT[key.ds_at_parent],
                            ' or '.join(DS_AT_PARENT_TEXT[s] for s in c['from'])))
        if cmd in ('ds-retract', 'ds-gone') and key.ds_at_parent == DsAtParent.SEEN and \
                not self.test_ready_to_retract(key, True):
            raise ValidationError('%s: retirement of DNSKEY of key %s has not yet begun' %
                                    (cmd, key.id))

        transitions = []
        if cmd == 'ds-submit':
            if key.ds_at_parent == DsAtParent.UNSUBMITTED:
                if not self.test_ready_to_submit(key, True):
                    raise ValidationError('%s: DNSKEY of key %s is not yet omnipresent or key is not to be introduced' %
                                            (cmd, key.id))
                transitions.append(self._advance(key, DsAtParent.SUBMIT, now))
            t = self.state_transition(key, now, True)
            if t:
                transitions.append(t)
        elif cmd == 'ds-retract':
            t = self.state_transition(key, now, True)      # seen -> retract, hands the retraction over
            if t:
                transitions.append(t)
                t = self.state_transition(key, now, True)  # retract -> retracted if the registrar removed it
                if t:
                    transitions.append(t)
        elif cmd == 'ds-gone':              # the operator removed the DS and is our witness
            if key.ds_at_parent == DsAtParent.SEEN:
                transitions.append(self._advance(key, DsAtParent.RETRACT, now))
            transitions.append(self._advance(key, DsAtParent.RETRACTED, now))
        else:                               # ds-seen: the operator is our witness
            transitions.append(self._advance(key, DsAtParent.SEEN, now))
        if key.ds_at_parent in c['done']:
            return (CommandResult(True, True, '%s: key %s is now %s' %
                                    (cmd, key.id, DS_AT_PARENT_TEXT[key.ds_at_parent])), transitions)
        if transitions:
            return (CommandResult(True, True, '%s: key %s is %s, action failed and will be retried' %
                                    (cmd, key.id, DS_AT_PARENT_TEXT[key.ds_at_parent])), transitions)
        return (CommandResult(False, False, '%s: action for key %s failed, will be retried' %
                                    (cmd, key.id)), transitions)
