"""
 DSKE DNSsec Key Enforcer

 Copyright (c) 2012-2019 Axel Rau, axel.rau@chaos1.de

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
# utility module of DSKE (commandline parsing)
# -----------------------------------------
"""



#--------------- imported modules --------------
import optparse


#--------------- command line options --------------

COMMANDS = ('ds_submit', 'ds_seen', 'ds_retract', 'ds_gone')

parser = optparse.OptionParser(description='DSKE DNSsec Key Enforcer\n'
                    'Advance the rollover states of DNSsec keys.\n'
                    'Publish/withdraw DNSKEY, RRSIG and DS only when caches allow it.\n'
                    'Submit/retract DS-RR to/at parent registrar.')

parser.add_option('--cron', '-c', dest='cron', action='store_true',
                   default=False,
                   help='Run as cronjob. Errors are mailed.')

parser.add_option('--zone', '-z', action='append', dest='zones',
                   help='Work on this zone only (may be repeated). Default: all zones.')

parser.add_option('--workers', '-w', action='store', type='int',
                   default=None,
                   help='Number of zones to enforce in parallel.')

parser.add_option('--list', '-l', action='store_true',
                   default=False,
                   help='List keys and what their rollover waits for and terminate.')

parser.add_option('--ds-submit', dest='ds_submit', action='store_true',
                   default=False,
                   help='Submit DS of the selected KSK to the parent.')

parser.add_option('--ds-seen', dest='ds_seen', action='store_true',
                   default=False,
                   help='Confirm that the parent publishes the DS of the selected KSK.')

parser.add_option('--ds-retract', dest='ds_retract', action='store_true',
                   default=False,
                   help='Retract DS of the selected KSK from the parent.')

parser.add_option('--ds-gone', dest='ds_gone', action='store_true',
                   default=False,
                   help='Confirm that the parent no longer publishes the DS of the selected KSK.')

parser.add_option('--keytag', '-k', action='store', type='int',
                   help='Select key by keytag for --ds-* commands. Without --keytag or --locator, eligible keys are listed.')

parser.add_option('--locator', '-L', action='store',
                   help='Select key by locator for --ds-* commands.')

parser.add_option('--debug', '-d', action='store_true',
                   default=False,
                   help='Turn on debugging.'),
parser.add_option('--verbose', '-v', dest='verbose', action='store_true',
                   default=False,
                   help='Be more verbose.')


def parse_options(argv=None):
    options, args = parser.parse_args(argv)
    options.zones = options.zones or []
    if options.debug: options.verbose = True
    commands = [c for c in COMMANDS if getattr(options, c)]
    if len(commands) > 1:
        parser.error('Only one of --ds-submit, --ds-seen, --ds-retract, --ds-gone at a time')
    options.command = None
    if commands:
        options.command = commands[0].replace('_', '-')
        if len(options.zones) != 1:
            parser.error('--%s needs exactly one --zone' % (options.command,))
    return options, args
