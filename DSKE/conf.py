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
conf.py - configuration module - default configuration parameters
          (overlaid by the site module dske_conf, see config.py)
"""

#------------------------------------------------------------------------------
# DNS servers
# -----------------------------------------

# recursive resolvers used to locate the parent's authoritative servers
# (empty: use the system resolver configuration)
external_recursives = ()

NS_TIMEOUT = 10                 # name server timeout (seconds)

#--------------------------
# registrars
#--------------------------
#   'by hand':  DS hand-over to parent zone operator by e-mail
#   'Command':  DS hand-over by external command (SubmitCommand / RetractCommand)

DEFAULT_REGISTRAR = 'by hand'

# external commands are run once per key with the arguments
#   <zone> <keytag> <algorithm> <locator>
# a successful RetractCommand means the DS has been removed at the parent
DS_SUBMIT_COMMAND = ''
DS_RETRACT_COMMAND = ''

#--------------------------
# Email addresses for mailing error messages
#--------------------------

sender = 'hostmaster@my.net'
recipients = ('me@my.net', )
mailRelay = ''                  # no mail if empty

#------------------------------------------------------------------------------
#   Root of key management directories (one sub directory per zone)
#--------------------------
ROOT_PATH = '/var/named/master/signed'

#------------------------------------------------------------------------------
#   path to bind tools (rndc, used to tell the signer about changed keys)
#--------------------------
BIND_TOOLS = '/usr/local/sbin/'

#------------------------------------------------------------------------------
#   timing constants (in seconds)
#--------------------------
# TTLs should be the larger of the positive TTL of the RRset and the
# negative cache TTL (SOA minimum) of the zone

TTL_DS = 86400                  # DS at parent
TTL_DNSKEY = 3600               # DNSKEY RRset (and its RRSIG)
TTL_RRSIG = 86400               # maximum TTL of signed zone data

PROPAGATION_DELAY = 3600        # until all our secondaries have the new zone
PARENT_PROPAGATION_DELAY = 3600 # until all secondaries of the parent have the new DS

PARENT_CHECK_INTERVAL = 3600    # re-query parent / retry registrar after this

#--------------------------
#   parallel enforcement passes
#--------------------------
WORKERS = 4
