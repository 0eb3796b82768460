from __future__ import annotations

import socket
import threading
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from eventlogging.utils.logger_util import get_logger
from eventlogging.wire import ORIGIN_KEY, QS_TERMINATOR, SCHEMA_KEY, build_query

logger = get_logger(__name__)


class ServerSideEventWriter:
    """Writes events as ``?<query string>;`` lines to a file or a socket.

    ``destination`` is a file path, ``udp://host:port`` or ``tcp://host:port``.
    With no destination every write returns False and nothing is written.
    """

    def __init__(self, destination: Optional[str], origin: Optional[str] = None, timeout: float = 5.0):
        self.destination = destination or None
        self.origin = origin
        self.timeout = timeout
        self._lock = threading.Lock()

    def log_event(self, schema_name: str, event: Mapping[str, Any]) -> bool:
        """Encode and write a server-side event. Returns whether it was written."""
        if not self.destination:
            return False
        payload = build_query([(ORIGIN_KEY, self.origin), (SCHEMA_KEY, schema_name), *event.items()]) + QS_TERMINATOR
        return self.write_line(payload)

    def write_line(self, payload: str) -> bool:
        if not self.destination:
            return False
        line = "?" + payload.lstrip("?") + "\n"
        target = urlsplit(self.destination)
        try:
            if target.scheme == "udp":
                self._send_udp(target.hostname, target.port, line)
            elif target.scheme == "tcp":
                self._send_tcp(target.hostname, target.port, line)
            else:
                with self._lock, open(self.destination, "a", encoding="utf-8") as fh:
                    fh.write(line)
        except OSError as exc:
            logger.warning("failed to write event to %s: %s", self.destination, exc)
            return False
        return True

    def _send_udp(self, host, port, line: str) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.sendto(line.encode("utf-8"), (host, port))

    def _send_tcp(self, host, port, line: str) -> None:
        with socket.create_connection((host, port), timeout=self.timeout) as sock:
            sock.sendall(line.encode("utf-8"))
