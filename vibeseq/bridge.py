"""
Line Bridge for vibeseq
Relays newline-delimited JSON position lines from an external sensor to the
session's actuator as linear moves
"""

import json
import logging
import math
import socketserver
from typing import Optional

from .actuator import DeviceSession

logger = logging.getLogger(__name__)


DEFAULT_BRIDGE_PORT = 8765
DEFAULT_MOVE_MS = 400   # Duration passed with every linear move


class LineBridge:
    """
    Decodes a byte stream of JSON lines such as {"p": 0.42}.

    Chunks may split lines anywhere; incomplete lines are buffered until the
    newline arrives. Lines that fail to parse are logged and skipped.
    """

    def __init__(self, session: DeviceSession, move_ms: int = DEFAULT_MOVE_MS):
        self.session = session
        self.move_ms = move_ms
        self._buffer = ""
        self.relayed = 0
        self.rejected = 0

    def feed(self, chunk: bytes) -> int:
        """Consume a chunk; returns the number of positions relayed"""
        self._buffer += chunk.decode('utf-8', errors='replace')
        count = 0
        while '\n' in self._buffer:
            line, self._buffer = self._buffer.split('\n', 1)
            if self.handle_line(line):
                count += 1
        return count

    def handle_line(self, line: str) -> bool:
        """Relay one line; returns True if a command was sent"""
        line = line.strip()
        if not line:
            return False
        try:
            position = float(json.loads(line)['p'])
        except (ValueError, KeyError, TypeError) as e:
            logger.error("bad line %r: %s", line, e)
            self.rejected += 1
            return False
        if not math.isfinite(position):
            logger.error("bad line %r: position is not finite", line)
            self.rejected += 1
            return False

        if not self.session.is_open:
            return False
        sink = self.session.sink
        if not sink.supports_linear_move:
            return False

        sink.send_linear(max(0.0, min(1.0, position)), self.move_ms)
        self.relayed += 1
        return True


class _BridgeHandler(socketserver.BaseRequestHandler):
    def handle(self):
        server = self.server
        logger.info("Sensor connected from %s", self.client_address)
        bridge = LineBridge(server.session, server.move_ms)
        while True:
            chunk = self.request.recv(4096)
            if not chunk:
                break
            bridge.feed(chunk)
        logger.info("Sensor disconnected (%d relayed, %d rejected)",
                    bridge.relayed, bridge.rejected)


class BridgeServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, session: DeviceSession, host: str = "0.0.0.0",
                 port: int = DEFAULT_BRIDGE_PORT, move_ms: int = DEFAULT_MOVE_MS):
        self.session = session
        self.move_ms = move_ms
        super().__init__((host, port), _BridgeHandler)


def serve_bridge(session: DeviceSession, host: str = "0.0.0.0",
                 port: int = DEFAULT_BRIDGE_PORT, move_ms: int = DEFAULT_MOVE_MS,
                 server: Optional[BridgeServer] = None):
    """Run the bridge until interrupted"""
    if server is None:
        server = BridgeServer(session, host, port, move_ms)
    with server:
        logger.info("TCP bridge listening on %s:%d", host, server.server_address[1])
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("TCP bridge shutting down")
