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
signer.py - telling the signer about a changed key set
"""

import collections

from script import shell
import script

from DSKE.key import RecordType, State, RECORD_TYPE_TEXT

import DSKE.logger as logger
l = logger.Logger()

# -----------------------------------------
# Configurables
# -----------------------------------------
import DSKE.conf as conf

#--------------------------
#   classes
#--------------------------

# records: {'DNSKEY': {'omnipresent': [key ids], 'rumoured': [key ids]}, ...}
# keys:    {key id: {'locator':, 'publish':, 'active_zsk':, 'active_ksk':, 'revoke':}}
KeySetChanged = collections.namedtuple('KeySetChanged', 'zone time records keys revoke')


def keySetEvent(zone_name, keys, now):
    """KeySetChanged describing keys after a pass"""
    records = {}
    for rt in RecordType:
        records[RECORD_TYPE_TEXT[rt]] = {
            'omnipresent': sorted(k.id for k in keys if k.uses(rt) and k.state(rt) == State.OMNIPRESENT),
            'rumoured': sorted(k.id for k in keys if k.uses(rt) and k.state(rt) == State.RUMOURED),
        }
    flags = {}
    for k in keys:
        flags[k.id] = {'locator': k.locator, 'publish': k.publish, 'active_zsk': k.active_zsk,
                       'active_ksk': k.active_ksk, 'revoke': k.should_revoke}
    revoke = sorted(k.id for k in keys if k.should_revoke and k.publish)
    return KeySetChanged(zone_name, now, records, flags, revoke)


class SignerNotifier(object):
    """Base of signer notifiers. notify() must not raise on signer trouble:
    the key set has already been saved."""

    def notify(self, event):
        raise NotImplementedError


class CallbackNotifier(SignerNotifier):
    def __init__(self, callback):
        self.callback = callback

    def notify(self, event):
        self.callback(event)
        return True


class RndcNotifier(SignerNotifier):
    """Let named re-read the keys of the zone (rndc loadkeys)"""

    def __init__(self, rndc=None):
        self.rndc = rndc
        if rndc is None:
            self.rndc = conf.BIND_TOOLS + 'rndc'

    def notify(self, event):
        s = '%s loadkeys %s' % (self.rndc, event.zone)
        l.logDebug('RndcNotifier: %s' % (s,))
        try:
            res = shell(s, stderr='PIPE').stderr
        except script.CommandFailed:
            l.logError('Error during rndc loadkeys of %s' % (event.zone,))
            return False
        if res:
            l.logVerbose('rndc loadkeys %s: %s' % (event.zone, str(res).strip()))
        return True
