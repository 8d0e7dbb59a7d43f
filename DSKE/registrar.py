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
registrar.py - DS submission and retraction at the parent (registrar hand-over)
"""

# -----------------------------------------
import shlex

from script import shell
import script
# -----------------------------------------

import DSKE.logger as logger
l = logger.Logger()
# -----------------------------------------


# -----------------------------------------
# Configurables
# -----------------------------------------
import DSKE.conf as conf

REGISTRARS = ('by hand', 'Command')

#------------------------------------------------------------------------------

# -----------------------------------------
# Functions
# -----------------------------------------
def regAddDS(zone, keys):
    """Hand over DS of keys to the parent. Returns result dict or None on failure"""
    zone_name = zone.name
    if zone.pcfg['Registrar'] == 'Command':
        return runCommand(zone_name, zone.pcfg.get('SubmitCommand') or conf.DS_SUBMIT_COMMAND, keys)
    elif zone.pcfg['Registrar'] == 'by hand':
        return handOverByEmail(zone_name, keys, str('DS-RR handover to parent of zone %s required' % zone_name), True)
    else:
        l.logError('Internal inconsistency: Unknown registrar "%s" in config' % (zone.pcfg['Registrar']))
    return None

def regRemoveDS(zone, keys):
    """Ask parent to delete DS of keys. Returns result dict or None on failure"""
    zone_name = zone.name
    if zone.pcfg['Registrar'] == 'Command':
        return runCommand(zone_name, zone.pcfg.get('RetractCommand') or conf.DS_RETRACT_COMMAND, keys)
    elif zone.pcfg['Registrar'] == 'by hand':
        return handOverByEmail(zone_name, keys, str('Deletion of DS-RR of zone %s required' % zone_name), False)
    else:
        l.logError('Internal inconsistency: Unknown registrar "%s" in config' % (zone.pcfg['Registrar']))
    return None

def removesDS(zone):
    """True if a successful regRemoveDS has removed the DS (no operator confirmation needed)"""
    return zone.pcfg['Registrar'] == 'Command'

def keyArgs(key):
    return '%d %d %s' % (key.keytag, key.algorithm, shlex.quote(key.locator))

def runCommand(zone_name, cmd, keys):
    """Run cmd once per key as: cmd <zone> <keytag> <algorithm> <locator>"""
    if not cmd:
        l.logError('No DS command configured for zone %s' % (zone_name))
        return None
    results = []
    for k in keys:
        s = '%s %s %s' % (cmd, shlex.quote(zone_name), keyArgs(k))
        l.logDebug('runCommand(): %s' % (s))
        try:
            results.append(shell(s, stdout='PIPE').stdout.strip())
        except script.CommandFailed:
            l.logWarn('DS command "%s" for zone %s failed' % (s, zone_name))
            return None
    return {'TID': 'Command %s' % (cmd), 'result': results}

def handOverByEmail(zone_name, keys, subject, add):
    """Mail the hand-over to the DS maintainer. None if no mail has been sent"""
    if add:
        body = str('Please ask parent zone operator to add DS-RR for the following keys of zone\n\t%s\n.\n' % (zone_name))
    else:
        body = str('Please ask parent zone operator to remove DS-RR for the following keys of zone\n\t%s\n from parent zone.\n' % (zone_name))
    body = body + 'Confirm with operate_dske --zone %s --ds-%s --keytag <keytag> when done.\n' % (
                    zone_name, 'seen' if add else 'gone')
    i = 1
    for k in keys:
        body = body + str('\n\nKey %d -------------------------------------\n' % (i))
        body = body + str('keytag\t%d\nalgorithm\t%d\nlocator\t%s\n' % (k.keytag, k.algorithm, k.locator))
        i = i + 1
    body = body + str('\nEnd of message ----------------------------------\n')
    if not l.sendMail(subject, body):
        l.logWarn('%s (no mail sent, hand over yourself):\n%s' % (subject, body))
        return None
    return {'TID': 'E-Mail sent'}
