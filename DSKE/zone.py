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
zone.py - the managedZone class module - enforcement passes of a zone
"""

import collections
import concurrent.futures
import copy
import json
import threading
import time
from datetime import datetime

from pathlib import Path

# -----------------------------------------

import DSKE.registrar as reg
import DSKE.validate as validate
from DSKE.key import RECORD_TYPE_BY_TEXT
from DSKE.parent import ParentSubmissionWorkflow
from DSKE.scheduler import RolloverScheduler, Timing
from DSKE.signer import keySetEvent

import DSKE.logger as logger
l = logger.Logger()

# -----------------------------------------

import DSKE.misc as misc

# -----------------------------------------
# Configurables
# -----------------------------------------
import DSKE.conf as conf
#------------------------------------------------------------------------------

CONFIG_FILE_PREFIX = 'dnssec-conf-'

PassResult = collections.namedtuple('PassResult', 'zone transitions purged next_wake')

_zone_locks = {}
_zone_locks_lock = threading.Lock()


def zoneLock(zone_name):
    """the lock serializing passes and commands of one zone"""
    with _zone_locks_lock:
        if zone_name not in _zone_locks:
            _zone_locks[zone_name] = threading.RLock()
        return _zone_locks[zone_name]


def defaultConfig():
    return {'Registrar': conf.DEFAULT_REGISTRAR,    # by hand, Command
            'AutoDS': True,                         # submit/retract DS without operator
            'SubmitCommand': conf.DS_SUBMIT_COMMAND,
            'RetractCommand': conf.DS_RETRACT_COMMAND,
            'Timing': {'TTL': {'DS': conf.TTL_DS,
                               'DNSKEY': conf.TTL_DNSKEY,
                               'RRSIG': conf.TTL_RRSIG,
                               'RRSIG-DNSKEY': conf.TTL_DNSKEY
                               },
                       'PropagationDelay': conf.PROPAGATION_DELAY,
                       'ParentPropagationDelay': conf.PARENT_PROPAGATION_DELAY,
                       'ParentCheckInterval': conf.PARENT_CHECK_INTERVAL
                       }
            }


def mergeConfig(cfg, defaults=None):
    """defaults overlaid with cfg, checked. Raises ConfigError"""
    result = defaults or defaultConfig()
    for k, v in cfg.items():
        if k not in result:
            raise misc.ConfigError('Garbage found: unknown option %s in zone configuration' % (k,))
        if isinstance(result[k], dict):
            if not isinstance(v, dict):
                raise misc.ConfigError('Option %s must be a dictionary' % (k,))
            result[k] = mergeConfig(v, result[k])
        else:
            result[k] = v
    return result


def checkConfig(zone_name, cfg):
    if cfg['Registrar'] not in reg.REGISTRARS:
        raise misc.ConfigError('Wrong Registrar "%s" in zone config of %s' % (cfg['Registrar'], zone_name))
    if not isinstance(cfg['AutoDS'], bool):
        raise misc.ConfigError('AutoDS must be true or false in zone config of %s' % (zone_name,))
    timing = cfg['Timing']
    for t, v in timing['TTL'].items():
        if t not in RECORD_TYPE_BY_TEXT:
            raise misc.ConfigError('Unknown record type %s in Timing:TTL of %s' % (t, zone_name))
        if not isinstance(v, int) or v < 0:
            raise misc.ConfigError('Timing:TTL:%s of %s must be a positive integer' % (t, zone_name))
    for k in ('PropagationDelay', 'ParentPropagationDelay', 'ParentCheckInterval'):
        if not isinstance(timing[k], int) or timing[k] < 0:
            raise misc.ConfigError('Timing:%s of %s must be a positive integer' % (k, zone_name))
    if cfg['Registrar'] == 'Command' and not (cfg['SubmitCommand'] and cfg['RetractCommand']):
        raise misc.ConfigError('Registrar Command needs SubmitCommand and RetractCommand in zone config of %s' % (zone_name,))


def readConfig(zone_name, root=None):
    """Read dnssec-conf-<zone> from the zone directory, create it with
    defaults if missing. Raises ZoneGone or ConfigError"""
    zone_dir = Path(root or conf.ROOT_PATH) / zone_name
    if not zone_dir.is_dir():
        raise misc.ZoneGone('Zone directory %s does not exist (any more)' % (zone_dir,))
    file_name = zone_dir / (CONFIG_FILE_PREFIX + zone_name)
    l.logDebug('Opening ' + zone_name + '/' + file_name.name)
    cfg = defaultConfig()
    try:
        with file_name.open() as fd:        # open config file for read
            try:
                tstcfg = json.load(fd)
            except ValueError as e:
                raise misc.ConfigError('Garbage found in configuration file "%s/%s": %s' %
                                        (zone_name, file_name.name, e))
        for k in cfg:                       # do simple syntax check
            if k != 'Timing' and k not in tstcfg:
                raise misc.ConfigError('Missing option %s in configuration file "%s/%s"' %
                                        (k, zone_name, file_name.name))
        cfg = mergeConfig(tstcfg, cfg)
    except FileNotFoundError:
        try:
            with file_name.open('w') as fd:
                json.dump(cfg, fd, indent=8)
        except OSError as e:                # no write permission
            raise misc.ConfigError("Can't create file %s, because %s" % (file_name, e))
    except OSError as e:
        raise misc.ConfigError("Can't read file %s, because %s" % (file_name, e))
    l.logDebug('Config ' + zone_name + '/' + file_name.name + ' contains:\n' + str(cfg))
    return cfg


#--------------------------
#   classes
#--------------------------

#------------------------------------------------------------------------------
# class managedZone
#------------------------------------------------------------------------------
class managedZone(object):
    """managedZone"""

    def __init__(self, name, repository, cfg=None, parent_query=None, notifier=None):
        self.name = name
        self.repository = repository
        self.notifier = notifier

        self.pcfg = mergeConfig(copy.deepcopy(cfg or {}))
        checkConfig(name, self.pcfg)

        self.timing = Timing.fromConfig(self.pcfg['Timing'])
        self.scheduler = RolloverScheduler(self.timing, name)
        self.workflow = ParentSubmissionWorkflow(name, self.submitDS, self.retractDS,
                                    parent_query or misc.queryParentDS,
                                    auto=self.pcfg['AutoDS'],
                                    retract_confirms=reg.removesDS(self),
                                    recheck_interval=self.pcfg['Timing']['ParentCheckInterval'])

    #-----------------------------
    # registrar actions
    #-----------------------------
    def submitDS(self, keys):
        return reg.regAddDS(self, keys)

    def retractDS(self, keys):
        return reg.regRemoveDS(self, keys)

    #-----------------------------
    # enforcement
    #-----------------------------
    def loadSnapshot(self):
        keys = [k.copy() for k in self.repository.load_keys(self.name)]
        validate.checkKeySet(self.name, keys)
        for key in keys:
            l.logDebug(key.__str__())
        return keys

    def advance(self, keys, now):
        """scheduler and workflow until neither changes anything"""
        transitions = []
        while True:
            transitions.extend(self.scheduler.run(keys, now))
            t = self.workflow.step(keys, now)
            if not t:
                break
            transitions.extend(t)
        return transitions

    def nextWake(self, keys, now):
        wakes = [w for w in (self.scheduler.nextWake(keys, now), self.workflow.nextWake(keys, now))
                    if w is not None]
        if wakes:
            return min(wakes)
        return None

    def enforce(self, now=None):
        """One enforcement pass. Returns PassResult.
        Raises AbortedZone (nothing written) on failure."""
        with zoneLock(self.name):
            try:
                return self._enforce(now)
            except misc.ZoneGone as e:
                l.logVerbose('Pass of %s abandoned: %s' % (self.name, e.data))
                raise
            except misc.AbortedZone as e:
                l.alert('Aborting zone %s' % (self.name,), e.data)
                raise

    def _enforce(self, now):
        if now is None:
            now = int(time.time())
        l.logVerbose('Working at %s on %s' %
                (datetime.fromtimestamp(now).isoformat(), self.name))
        keys = self.loadSnapshot()
        transitions = self.advance(keys, now)
        purged = [k for k in keys if k.purgeable()]
        remaining = [k for k in keys if not k.purgeable()]
        if transitions or purged:
            self.repository.save_keys(self.name, remaining)
            for k in purged:
                l.logVerbose('Purging key %s of %s' % (k.id, self.name))
                try:
                    self.repository.delete_key(k.id, self.name)
                except misc.RepositoryError as e:
                    l.logWarn('Purge of key %s of %s not confirmed by repository: %s' %
                                (k.id, self.name, e.data))
        if transitions:
            self.notify(remaining, now)
        next_wake = self.nextWake(remaining, now)
        if next_wake is not None:
            l.logVerbose('Next pass of %s due at %s' %
                    (self.name, datetime.fromtimestamp(next_wake).isoformat()))
        return PassResult(self.name, transitions, [k.id for k in purged], next_wake)

    def notify(self, keys, now):
        event = keySetEvent(self.name, keys, now)
        if not self.notifier:
            l.logDebug('No signer notifier for %s, key set changed: %s' % (self.name, event.records))
            return
        try:
            self.notifier.notify(event)
        except Exception as e:
            l.logError('Signer notification of %s failed: %s' % (self.name, e))

    #-----------------------------
    # operator commands
    #-----------------------------
    def command(self, cmd, keytag=None, locator=None, now=None):
        """ds-submit, ds-seen, ds-retract or ds-gone for one key.
        Returns CommandResult. Raises ValidationError or AbortedZone"""
        with zoneLock(self.name):
            if now is None:
                now = int(time.time())
            try:
                keys = self.loadSnapshot()
                (result, transitions) = self.workflow.command(keys, cmd, now, keytag, locator)
                l.logVerbose(result.message)
                if transitions:
                    self.repository.save_keys(self.name, keys)
                    self._enforce(now)
            except misc.ValidationError as e:
                l.logVerbose('Command rejected: %s' % (e,))
                raise
            except misc.ZoneGone as e:
                l.logVerbose('Command on %s abandoned: %s' % (self.name, e.data))
                raise
            except misc.AbortedZone as e:
                l.alert('Aborting zone %s' % (self.name,), e.data)
                raise
            return result

    def eligibleKeys(self, cmd):
        """keys cmd may be applied to"""
        with zoneLock(self.name):
            return self.workflow.eligibleKeys(self.loadSnapshot(), cmd)

    def listKeys(self, now=None):
        """lines describing keys and what their rollover waits for"""
        if now is None:
            now = int(time.time())
        keys = self.loadSnapshot()
        lines = ['Zone %s' % (self.name,)]
        for k in sorted(keys, key=lambda k: k.id):
            lines.append('  %s' % (k,))
        for (node, unmet) in self.scheduler.blocked(keys, now):
            lines.append('  %s %s waits for %s' % (node.key_id, node.rrtype.name,
                        ', '.join(str(p) for p in unmet)))
        next_wake = self.nextWake(keys, now)
        if next_wake is not None:
            lines.append('  next pass due at %s' % (datetime.fromtimestamp(next_wake).isoformat(),))
        return lines


#------------------------------------------------------------------------------
# parallel passes
#------------------------------------------------------------------------------
def enforceZones(names, factory, workers=None, now=None):
    """Run one pass per zone in parallel. factory(name) -> managedZone.
    Returns {zone name: PassResult or the AbortedZone exception}"""

    def run(name):
        try:
            z = factory(name)
        except misc.ZoneGone as e:
            l.logVerbose('Pass of %s abandoned: %s' % (name, e.data))
            raise
        except misc.AbortedZone as e:
            l.alert('Skipping zone %s' % (name,), e.data)
            raise
        return z.enforce(now)

    results = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers or conf.WORKERS) as ex:
        futures = {ex.submit(run, name): name for name in names}
        for f in concurrent.futures.as_completed(futures):
            name = futures[f]
            try:
                results[name] = f.result()
            except misc.AbortedZone as e:
                results[name] = e
    return results
