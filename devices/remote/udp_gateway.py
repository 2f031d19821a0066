# devices/remote/udp_gateway.py

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Union

Payload = Union[bytes, bytearray, memoryview, str]

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class UdpEndpoint:
    """Represents a UDP target."""
    host: str
    port: int = 4210

    @property
    def key(self) -> str:
        return f"{self.host}:{self.port}"


class UdpGateway:
    """
    UDP transport for light frames.

    - Reuses a single UDP socket.
    - Async mode keeps only the newest payload per endpoint: a slow link skips
      stale frames instead of queueing them.
    - Sync mode sends on the caller's thread.
    """

    def __init__(
        self,
        *,
        bind_host: str = "0.0.0.0",
        bind_port: int = 0,
        async_send: bool = True,
        encoding: str = "utf-8",
    ) -> None:
        self._encoding = encoding
        self._async_send = async_send

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind((bind_host, bind_port))

        self._cond = threading.Condition()
        self._latest: Dict[UdpEndpoint, bytes] = {}
        self._in_flight = 0
        self._stop = False
        self.sent = 0
        self.superseded = 0
        self._worker: Optional[threading.Thread] = None

        if self._async_send:
            self._worker = threading.Thread(target=self._run, name="UdpGatewayWorker", daemon=True)
            self._worker.start()

    def close(self) -> None:
        """Stop worker (if any) and close the socket. Unsent payloads are discarded."""
        with self._cond:
            self._stop = True
            self._cond.notify_all()
        if self._worker and self._worker.is_alive():
            self._worker.join(timeout=1.0)
        try:
            self._sock.close()
        except OSError:
            pass

    def __enter__(self) -> "UdpGateway":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def flush(self, timeout: float = 2.0) -> bool:
        """Wait until every pending payload went out. True if drained in time."""
        if not self._async_send:
            return True
        with self._cond:
            return self._cond.wait_for(lambda: not self._latest and not self._in_flight, timeout=timeout)

    def send(self, endpoint: UdpEndpoint, payload: Payload, *, encoding: Optional[str] = None) -> bool:
        """
        Send payload to endpoint.
        Returns False once the gateway is closed.
        """
        data = self._to_bytes(payload, encoding=encoding)

        if not self._async_send:
            if self._stop:
                return False
            self._send_now(endpoint, data)
            return True

        with self._cond:
            if self._stop:
                return False
            if endpoint in self._latest:
                self.superseded += 1
                _LOG.debug("Replacing unsent payload for %s", endpoint.key)
            self._latest[endpoint] = data
            self._cond.notify()
        return True

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._latest or self._stop)
                if self._stop:
                    return
                batch = list(self._latest.items())
                self._latest.clear()
                self._in_flight = len(batch)

            for endpoint, data in batch:
                self._send_now(endpoint, data)

            with self._cond:
                self._in_flight = 0
                self._cond.notify_all()

    def _send_now(self, endpoint: UdpEndpoint, data: bytes) -> None:
        try:
            self._sock.sendto(data, (endpoint.host, endpoint.port))
            self.sent += 1
        except OSError as e:
            _LOG.warning("Could not send UDP packet to %s: %s", endpoint.key, e)

    def _to_bytes(self, payload: Payload, *, encoding: Optional[str] = None) -> bytes:
        if isinstance(payload, (bytes, bytearray, memoryview)):
            return bytes(payload)
        if isinstance(payload, str):
            return payload.encode(encoding or self._encoding)
        raise TypeError(f"Unsupported payload type: {type(payload)!r}")
