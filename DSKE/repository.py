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
repository.py - persistence of KeyRecords

Repositories hand out fresh KeyRecords on every load_keys() and store
copies on save_keys(): a pass never shares objects with the store.
"""

import copy
import json
import os
import tempfile
import threading

from pathlib import Path

from DSKE.key import KeyRecord
from DSKE.misc import RepositoryError, ZoneGone

import DSKE.logger as logger
l = logger.Logger()

# -----------------------------------------
# Configurables
# -----------------------------------------
import DSKE.conf as conf

KEYS_FILE_PREFIX = 'dnssec-keys-'

#--------------------------
#   classes
#--------------------------

class Repository(object):
    """CRUD interface to the stored KeyRecords of all zones"""

    def load_keys(self, zone_name):
        """list of KeyRecords of zone. Raises ZoneGone or RepositoryError"""
        raise NotImplementedError

    def save_keys(self, zone_name, keys):
        """replace the stored KeyRecords of zone by keys (all or nothing)"""
        raise NotImplementedError

    def delete_key(self, key_id, zone_name=None):
        """remove one KeyRecord. Without zone_name, all zones are searched."""
        raise NotImplementedError

    def zones(self):
        raise NotImplementedError


class MemoryRepository(Repository):
    """keeps the KeyRecords as dicts, for tests and embedding"""

    def __init__(self, zones=None):
        self._lock = threading.Lock()
        self._zones = {}
        for zone_name, keys in (zones or {}).items():
            self._zones[zone_name] = {k.id: k.to_dict() for k in keys}

    def add_zone(self, zone_name, keys=()):
        with self._lock:
            self._zones[zone_name] = {k.id: k.to_dict() for k in keys}

    def remove_zone(self, zone_name):
        with self._lock:
            del self._zones[zone_name]

    def zones(self):
        with self._lock:
            return sorted(self._zones)

    def _zone(self, zone_name):
        if zone_name not in self._zones:
            raise ZoneGone('Zone %s does not exist (any more)' % (zone_name,))
        return self._zones[zone_name]

    def load_keys(self, zone_name):
        with self._lock:
            return [KeyRecord.from_dict(d) for (i, d) in sorted(self._zone(zone_name).items())]

    def save_keys(self, zone_name, keys):
        with self._lock:
            z = self._zone(zone_name)
            z.clear()
            for k in keys:
                z[k.id] = copy.deepcopy(k.to_dict())

    def delete_key(self, key_id, zone_name=None):
        with self._lock:
            names = [zone_name] if zone_name else sorted(self._zones)
            for name in names:
                z = self._zone(name)
                if key_id in z:
                    del z[key_id]
                    return True
        return False


class JsonRepository(Repository):
    """one JSON file dnssec-keys-<zone> per zone directory below root"""

    def __init__(self, root=None):
        self.root = Path(root or conf.ROOT_PATH)

    def zones(self):
        try:
            return sorted(d.name for d in self.root.iterdir() if d.is_dir())
        except OSError as e:
            raise RepositoryError("Can't scan %s, because %s" % (self.root, e))

    def zoneDir(self, zone_name):
        d = self.root / zone_name
        if not d.is_dir():
            raise ZoneGone('Zone directory %s does not exist (any more)' % (d,))
        return d

    def keysFile(self, zone_name):
        return self.zoneDir(zone_name) / (KEYS_FILE_PREFIX + zone_name)

    def _read(self, zone_name):
        file_name = self.keysFile(zone_name)
        l.logDebug('Opening %s' % (file_name,))
        if not file_name.exists():
            return []
        try:
            with file_name.open() as fd:
                return json.load(fd)['keys']
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise RepositoryError("Can't read %s, because %s" % (file_name, e))

    def _write(self, zone_name, dicts):
        file_name = self.keysFile(zone_name)
        try:
            fd, tmp_name = tempfile.mkstemp(prefix='.' + file_name.name + '.', dir=str(file_name.parent))
            try:
                with os.fdopen(fd, 'w') as f:
                    json.dump({'keys': dicts}, f, indent=8)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, str(file_name))
            except BaseException:
                os.unlink(tmp_name)
                raise
        except OSError as e:
            raise RepositoryError("Can't write %s, because %s" % (file_name, e))
        l.logDebug('Saved %d keys of %s' % (len(dicts), zone_name))

    def load_keys(self, zone_name):
        try:
            return [KeyRecord.from_dict(d) for d in self._read(zone_name)]
        except (ValueError, KeyError, TypeError) as e:
            raise RepositoryError('Garbage found in key file of %s: %s' % (zone_name, e))

    def save_keys(self, zone_name, keys):
        self._write(zone_name, [k.to_dict() for k in sorted(keys, key=lambda k: k.id)])

    def delete_key(self, key_id, zone_name=None):
        names = [zone_name] if zone_name else self.zones()
        for name in names:
            dicts = self._read(name)
            remaining = [d for d in dicts if d.get('id') != key_id]
            if len(remaining) != len(dicts):
                self._write(name, remaining)
                return True
        return False
