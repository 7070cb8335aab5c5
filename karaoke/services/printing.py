"""
Receipt printing through the print server.

One PrintQueue is built per application (see create_app) and stored in
app.extensions['print_queue']. Jobs run one at a time and consecutive
prints are spaced by a cooldown so the printer can keep up.
"""
import logging
import threading
import time

import requests

from karaoke.exceptions import InternalError, ErrorCode

logger = logging.getLogger(__name__)


class HttpPrintTransport:
    """Sends receipt text to the print server's /print endpoint"""

    def __init__(self, base_url, printer_id, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.printer_id = printer_id
        self.timeout = timeout

    def send(self, content):
        try:
            response = requests.post(
                f'{self.base_url}/print',
                json={'printerId': self.printer_id, 'content': content},
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error('Print request to %s failed: %s', self.base_url, exc)
            raise InternalError('Could not reach the print server', ErrorCode.PRINT_FAILED,
                                {'printer_id': self.printer_id})
        try:
            return response.json()
        except ValueError:
            return {'status': response.status_code}


class PrintQueue:

    def __init__(self, transport, cooldown_seconds=3.0, clock=time.monotonic, sleep=time.sleep):
        self.transport = transport
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_print = None

    @classmethod
    def from_config(cls, config):
        transport = HttpPrintTransport(
            config['PRINT_API_URL'],
            config['PRINTER_ID'],
            timeout=config.get('PRINT_TIMEOUT_SECONDS', 10)
        )
        return cls(transport, cooldown_seconds=config.get('PRINT_COOLDOWN_SECONDS', 3))

    def submit(self, content):
        """Print content, blocking until the job has been sent"""
        with self._lock:
            if self._last_print is not None:
                wait = self.cooldown_seconds - (self._clock() - self._last_print)
                if wait > 0:
                    logger.debug('Waiting %.2fs before next print', wait)
                    self._sleep(wait)
            try:
                return self.transport.send(content)
            finally:
                self._last_print = self._clock()
