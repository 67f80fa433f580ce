"""ICMP echo (ping) prober.

One call to :meth:`EchoProber.probe` sends a single echo request and waits for
the matching echo reply, returning the round-trip time in seconds. Every read
is bounded by a deadline so an unanswered probe cannot stall its caller.

Raw ICMP sockets need CAP_NET_RAW; without it the prober falls back to the
unprivileged ``SOCK_DGRAM`` ICMP socket Linux offers when
``net.ipv4.ping_group_range`` covers the process group.
"""

from __future__ import annotations

import contextlib
import ipaddress
import itertools
import os
import socket
import struct
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from netsmog.errors import ProbeTimeout, ResolutionError, TransportError
from netsmog.util.logging import get_logger

logger = get_logger(__name__)

ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8
ICMP6_ECHO_REQUEST = 128
ICMP6_ECHO_REPLY = 129

# Conventional 56 data bytes, same as ping(8).
PAYLOAD = b"ping" * 14
DEFAULT_TIMEOUT = 2.0
RECV_BUFSIZE = 1500

_HEADER = struct.Struct("!BBHHH")
_sequence = itertools.count(1)

SocketFactory = Callable[[int, int, int], socket.socket]


@dataclass(frozen=True)
class IcmpMessage:
    type: int
    code: int
    ident: int
    seq: int


def process_identifier() -> int:
    """Echo identifier that separates this process's traffic from other pingers."""
    return os.getpid() & 0xFFFF


def next_sequence() -> int:
    return next(_sequence) & 0xFFFF


def checksum(data: bytes) -> int:
    """Internet checksum (RFC 1071) over ``data``."""
    if len(data) % 2:
        data += b"\x00"
    total = 0
    for i in range(0, len(data), 2):
        total += (data[i] << 8) + data[i + 1]
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


def build_echo_request(family: int, ident: int, seq: int, payload: bytes = PAYLOAD) -> bytes:
    """Build an ICMP (IPv4) or ICMPv6 echo request.

    The ICMPv6 checksum covers a pseudo-header only the kernel knows, so it is
    left zero and filled in on transmit.
    """
    if family == socket.AF_INET6:
        return _HEADER.pack(ICMP6_ECHO_REQUEST, 0, 0, ident, seq) + payload
    header = _HEADER.pack(ICMP_ECHO_REQUEST, 0, 0, ident, seq)
    csum = checksum(header + payload)
    return _HEADER.pack(ICMP_ECHO_REQUEST, 0, csum, ident, seq) + payload


def parse_icmp(data: bytes, family: int, *, has_ip_header: bool) -> Optional[IcmpMessage]:
    """Decode the ICMP header of an inbound packet, or None if it is truncated."""
    if family == socket.AF_INET and has_ip_header:
        if not data:
            return None
        ihl = (data[0] & 0x0F) * 4
        data = data[ihl:]
    if len(data) < _HEADER.size:
        return None
    icmp_type, code, _csum, ident, seq = _HEADER.unpack_from(data)
    return IcmpMessage(type=icmp_type, code=code, ident=ident, seq=seq)


def resolve_host(host: str) -> Tuple[int, str]:
    """Return ``(address_family, address)`` for ``host``.

    Literal addresses are used as-is without a lookup.
    """
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        family = socket.AF_INET6 if ip.version == 6 else socket.AF_INET
        return family, str(ip)

    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, UnicodeError) as exc:
        raise ResolutionError(f"cannot resolve {host}: {exc}") from exc
    for family, _type, _proto, _canon, sockaddr in infos:
        if family in (socket.AF_INET, socket.AF_INET6):
            return family, sockaddr[0]
    raise ResolutionError(f"no A or AAAA record found for {host}")


class EchoProber:
    """Send single ICMP echo requests and time the replies."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        socket_factory: Optional[SocketFactory] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = float(timeout)
        self._socket_factory: SocketFactory = socket_factory or socket.socket
        self.ident = process_identifier()

    def _open_socket(self, family: int) -> Tuple[socket.socket, bool]:
        """Open an ICMP socket for ``family``; returns (socket, is_raw)."""
        proto = socket.IPPROTO_ICMPV6 if family == socket.AF_INET6 else socket.IPPROTO_ICMP
        try:
            return self._socket_factory(family, socket.SOCK_RAW, proto), True
        except PermissionError:
            logger.debug("raw ICMP socket not permitted, trying datagram ICMP")
        except OSError as exc:
            raise TransportError(f"could not open raw ICMP socket: {exc}") from exc
        try:
            return self._socket_factory(family, socket.SOCK_DGRAM, proto), False
        except OSError as exc:
            raise TransportError(f"could not open ICMP socket: {exc}") from exc

    def probe(self, host: str, timeout: Optional[float] = None) -> float:
        """Ping ``host`` once and return the round-trip time in seconds.

        Raises:
            ResolutionError: ``host`` has no usable address.
            ProbeTimeout: no matching reply within the deadline.
            TransportError: the socket could not be opened, written or read.
        """
        family, address = resolve_host(host)
        deadline_s = self.timeout if timeout is None else float(timeout)
        reply_type = ICMP6_ECHO_REPLY if family == socket.AF_INET6 else ICMP_ECHO_REPLY

        sock, is_raw = self._open_socket(family)
        with contextlib.closing(sock):
            seq = next_sequence()
            packet = build_echo_request(family, self.ident, seq)

            start = time.perf_counter()
            try:
                sent = sock.sendto(packet, (address, 0))
            except OSError as exc:
                raise TransportError(f"send to {address} failed: {exc}") from exc
            if sent != len(packet):
                raise TransportError(f"short write to {address}: sent {sent} of {len(packet)} bytes")

            deadline = time.monotonic() + deadline_s
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ProbeTimeout(f"no echo reply from {address} within {deadline_s:.3f}s")
                sock.settimeout(remaining)
                try:
                    data, peer = sock.recvfrom(RECV_BUFSIZE)
                except socket.timeout:
                    raise ProbeTimeout(f"no echo reply from {address} within {deadline_s:.3f}s") from None
                except OSError as exc:
                    raise TransportError(f"read from {address} failed: {exc}") from exc
                end = time.perf_counter()

                msg = parse_icmp(data, family, has_ip_header=is_raw)
                if msg is None:
                    continue
                if msg.type != reply_type:
                    logger.debug("got ICMP type %d code %d from %s; want echo reply", msg.type, msg.code, peer[0])
                    continue
                # Datagram ICMP sockets rewrite the identifier and demultiplex replies in the kernel.
                if msg.seq != seq or (is_raw and msg.ident != self.ident):
                    logger.debug("ignoring echo reply id=%d seq=%d from %s", msg.ident, msg.seq, peer[0])
                    continue
                logger.debug("got reply from %s seq=%d", peer[0], seq)
                return end - start
