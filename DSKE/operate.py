"""
Copyright (C) 2015-2018  Axel Rau <axel.rau@chaos1.de>

This file is part of DSKE.

DSKE is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

DSKE is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with DSKE.  If not, see <http://www.gnu.org/licenses/>.
"""

# commandline interface module

import sys
from datetime import datetime

from pathlib import Path

from DSKE.utils import parse_options
import DSKE.conf as conf
import DSKE.config as config

import DSKE.logger as logger
import DSKE.misc as misc
import DSKE.repository as repository
import DSKE.signer as signer
import DSKE.zone as zone

def execute_from_command_line(argv=None):

    (opts, args) = parse_options(argv)
    l = logger.Logger(opts.verbose, opts.debug, opts.cron)

    site = config.load()
    l.logDebug('operate_dske started. Site config is %s. Options are %s.' % (site, opts))

    root = Path(conf.ROOT_PATH)
    if not root.exists():
        l.logWarn('No key root directory; creating one.')
        root.mkdir(mode=0o750, parents=True)

    repo = repository.JsonRepository(root)
    notifier = signer.RndcNotifier()

    def factory(zone_name):
        return zone.managedZone(zone_name, repo, cfg=zone.readConfig(zone_name, root),
                                notifier=notifier)

    l.logVerbose('Scanning ' + str(root))
    try:
        zone_names = opts.zones or repo.zones()
    except misc.RepositoryError as e:
        l.logError(e.data)
        return 1
    l.logDebug('[ Doing zones: ]')
    l.logDebug(zone_names)

    if opts.command:
        zone_name = zone_names[0]
        if opts.keytag is None and opts.locator is None:
            try:
                eligible = factory(zone_name).eligibleKeys(opts.command)
            except misc.AbortedZone as a:
                print(a.data)
                print('%Skipping zone ' + zone_name)
                return 1
            print('Keys of %s eligible for %s:' % (zone_name, opts.command))
            for k in eligible:
                print('  %s' % (k,))
            if not eligible:
                print('  none')
            return 0
        try:
            res = factory(zone_name).command(opts.command, opts.keytag, opts.locator)
        except misc.ValidationError as e:
            print('?%s' % (e,))
            return 1
        except misc.AbortedZone as a:
            print(a.data)
            print('%Failed ' + opts.command + ' on zone ' + zone_name)
            l.mailErrors()
            return 1
        print(res.message)
        l.mailErrors()
        return 0 if res.ok else 1

    if opts.list:
        rc = 0
        for zone_name in zone_names:
            try:
                for line in factory(zone_name).listKeys():
                    print(line)
            except misc.AbortedZone as a:
                print(a.data)
                print('%Skipping zone ' + zone_name)
                rc = 1
        return rc

    rc = 0
    results = zone.enforceZones(zone_names, factory, opts.workers)
    for zone_name in sorted(results):
        res = results[zone_name]
        if isinstance(res, misc.AbortedZone):
            print('%Skipping zone ' + zone_name)
            if not isinstance(res, misc.ZoneGone):
                rc = 1
            continue
        if res.next_wake is None:
            print('%s: %d transitions, idle' % (zone_name, len(res.transitions)))
        else:
            print('%s: %d transitions, next pass due at %s' % (zone_name, len(res.transitions),
                    datetime.fromtimestamp(res.next_wake).isoformat()))
    l.mailErrors()
    return rc


if __name__ == '__main__':
    sys.exit(execute_from_command_line())
