"""
Copyright (C) 2015-2017  Axel Rau <axel.rau@chaos1.de>

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


# Module to make site config settings available to members of package

import importlib.util
import sys

from pathlib import Path

import DSKE.conf as conf

# name of our config module
CONFIG_MODULE = 'dske_conf'

# place where to find it (sys.prefix point at venve if we are in a venv)
CONFIG_MODULE_DIRS =(   sys.prefix + '/etc',
                        '/usr/local/etc/DSKE')


def load(dirs=CONFIG_MODULE_DIRS):
    """Overlay the first site config module found in dirs onto DSKE.conf.
    Returns the path of the module used or None."""
    for d in dirs:
        p = Path(d) / (CONFIG_MODULE + '.py')
        if not p.is_file():
            continue
        spec = importlib.util.spec_from_file_location(CONFIG_MODULE, str(p))
        site = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(site)
        for name in dir(site):
            if not name.startswith('_'):
                setattr(conf, name, getattr(site, name))
        return p
    return None
