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
misc.py - exceptions and the parent DS query
"""

import dns.exception
import dns.name
import dns.resolver

import threading

import DSKE.conf as conf

import DSKE.logger as logger
l = logger.Logger()


#--------------------------

auth_NS = {}
auth_resolver = {}
_cache_lock = threading.Lock()

#--------------------------
#   classes
#--------------------------
# exceptions

class AbortedZone(Exception):
    """Enforcement pass of a zone aborted, nothing has been written"""
    def __init__(self, x):
        super(AbortedZone, self).__init__(x)
        self.data = x

class ConsistencyViolation(AbortedZone):
    """Applying a transition would leave a coverage gap or a rollover
    misses its replacement. The rollover of the zone is frozen."""
    pass

class RepositoryError(AbortedZone):
    """Persistence I/O failed. Retried with the next pass."""
    pass

class ZoneGone(AbortedZone):
    """Zone has been deleted while a pass was running."""
    pass

class ConfigError(AbortedZone):
    pass

class ValidationError(Exception):
    """Operator command not applicable to current state of key"""
    pass

class ExternalQueryTimeout(Exception):
    """Parent DS query failed or timed out. Means: not yet seen."""
    pass



#--------------------------
#   functions
#--------------------------

def recursiveResolver():
    r = dns.resolver.Resolver(configure=not conf.external_recursives)
    if conf.external_recursives:
        r.nameservers = list(conf.external_recursives)
    r.lifetime = conf.NS_TIMEOUT
    r.use_edns(edns=0, ednsflags=0, payload=4096)
    return r

def doQuery(resolver, theQuery, theRRtype):
    try:
        answer = resolver.resolve(theQuery, theRRtype)
        return answer
    except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN):
        l.logDebug('doQuery(): Query: %s %s failed with no data' % (theQuery, theRRtype))
        return None
    except (dns.exception.Timeout, dns.resolver.NoNameservers) as e:
        raise ExternalQueryTimeout('Failed to query %s of %s: %s' % (theRRtype, theQuery, e))

def authNS(theZone):        # return list of NS addresses, authoritative for theZone
    with _cache_lock:
        if theZone in auth_NS:
            return auth_NS[theZone]

    r = recursiveResolver()
    nslist = []
    n = dns.name.from_text(theZone)
    a1 = None
    while True:             # walk up until some zone cut has NS
        a1 = doQuery(r, n, 'NS')
        if a1 or n == dns.name.root:
            break
        n = n.parent()
    if a1:
        for ns in a1:
            for rrtype in ('A', 'AAAA'):
                a2 = doQuery(r, ns.target, rrtype)
                if a2:
                    nslist.append(a2[0].address)
    if not nslist:
        raise ExternalQueryTimeout("Unable to find NS of zone %s (or it's parent)" % (theZone,))
    with _cache_lock:
        auth_NS[theZone] = nslist
    return nslist

def authResolver(theZone):        # return a resolver bound to NS addresses, authoritative for theZone
    with _cache_lock:
        if theZone in auth_resolver:
            return auth_resolver[theZone]
    my_resolver = dns.resolver.Resolver(configure=False)
    my_resolver.lifetime = conf.NS_TIMEOUT
    my_resolver.nameservers = authNS(theZone)
    my_resolver.use_edns(edns=0, ednsflags=0, payload=4096)
    with _cache_lock:
        auth_resolver[theZone] = my_resolver
    return my_resolver

def parentOf(zone_name):
    (x, y, parent) = zone_name.rstrip('.').partition('.')
    if not parent:
        parent = '.'
    return parent

def queryParentDS(zone_name):
    """Return the set of keytags of the DS RRs the parent of zone_name
    currently publishes. Raises ExternalQueryTimeout if the parent can't
    be asked."""
    r = authResolver(parentOf(zone_name))
    l.logDebug('queryParentDS(): List of auth NS to query: %s' % (repr(r.nameservers)))
    res = doQuery(r, zone_name, 'DS')
    if not res:
        return set()
    keytags = set()
    for ds in res.rrset:
        keytags.add(ds.key_tag)
    l.logDebug('queryParentDS(%s): parent has DS for %s' % (zone_name, sorted(keytags)))
    return keytags
