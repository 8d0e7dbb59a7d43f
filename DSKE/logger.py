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
logger.py - Logger class module - centraliced logging and alarming
"""

import smtplib
import threading
from email.mime.text import MIMEText

# -----------------------------------------
import DSKE.conf as conf

#--------------------------
#   classes
#--------------------------

class Logger():
    """Log"""

    _singleton = None
    _lock = threading.RLock()           # zone passes log from worker threads
    debug = False
    verbose = False
    cron = False
    debugText = ''
    verboseText = ''
    lastError = ''
    lastWarning = ''
    alerts = []                         # (subject, text) for the operator

    def __new__(cls, *args, **kwargs):
        if not cls._singleton:
            cls._singleton = super(Logger, cls ).__new__(cls)
        return cls._singleton


    def __init__(self, verbose=None, debug=None, cron=None):
        # module level instances do not change the settings of operate
        if debug is not None:
            Logger.debug = debug
        if verbose is not None:
            Logger.verbose = verbose
        if cron is not None:
            Logger.cron = cron

    def reset(self):                    # forget all collected text
        with Logger._lock:
            Logger.debugText = ''
            Logger.verboseText = ''
            Logger.lastError = ''
            Logger.lastWarning = ''
            Logger.alerts = []

    def logError(self, text):           # Fatal error
        with Logger._lock:
            Logger.lastError = '?%s' % (text)
            print(Logger.lastError)
            Logger.verboseText = Logger.verboseText + Logger.lastError + '\n'
            Logger.debugText = Logger.debugText + Logger.lastError + '\n'


    def logWarn(self, text):            # Warning
        with Logger._lock:
            Logger.lastWarning = '%%%s' % (text)
            print(Logger.lastWarning)
            Logger.verboseText = Logger.verboseText + Logger.lastWarning + '\n'
            Logger.debugText = Logger.debugText + Logger.lastWarning + '\n'

    def logVerbose(self, text):
        im = '[%s]' % (text)            # informal message
        with Logger._lock:
            if Logger.verbose:
                print(im)
            Logger.verboseText = Logger.verboseText + im + '\n'
            Logger.debugText = Logger.debugText + im + '\n'

    def logDebug(self, text, level=0):
        dm = '[%s]' % (text)            # debug message
        with Logger._lock:
            if Logger.debug:
                print(dm)
            Logger.debugText = Logger.debugText + dm + '\n'

    def alert(self, subject, text):     # operator visible: logged and mailed on exit
        with Logger._lock:
            self.logError('%s: %s' % (subject, text))
            Logger.alerts.append((subject, text))

    def mailErrors(self):               # called by main on exit
        if len(Logger.alerts) > 0:
            subject = Logger.alerts[0][0]
            if len(Logger.alerts) > 1:
                subject = '%s (and %d more)' % (subject, len(Logger.alerts) - 1)
            self.sendMail(subject, Logger.debugText, True)


    def sendMail(self, subject, body, onlyCron=False):
        if not conf.mailRelay:           # done, if not configured
            return False
        if onlyCron and not Logger.cron: # mail only if cronjob, if so requested
            return False
        msg = MIMEText(body)
        msg['Subject'] = '[DSKE] ' + subject
        msg['From'] = conf.sender
        msg['To'] = ', '.join(conf.recipients)
        s = smtplib.SMTP(conf.mailRelay)
        try:
            s.send_message(msg)
        finally:
            s.quit()
        return True

    def cronjob(self):
        return Logger.cron
