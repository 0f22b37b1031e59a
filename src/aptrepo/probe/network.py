"""Bounded-latency TCP reachability checks."""

from __future__ import annotations

import errno
import os
import select
import socket
import time
from collections.abc import Callable
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

from aptrepo.errors import ProbeTimeoutError
from aptrepo.probe.models import Reachability

DEFAULT_TIMEOUT_MS = 3000

AddressInfo = tuple[int, int, int, str, tuple[object, ...]]
Resolver = Callable[..., list[AddressInfo]]

_IN_PROGRESS = {0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN}


@dataclass(slots=True, frozen=True)
class Endpoint:
    """Host and service parsed out of a repository URI."""

    host: str
    port: str


def parse_endpoint(uri: str) -> Endpoint:
    """Extract host and port; https defaults to 443, everything else to 80."""
    port = "443" if uri.startswith("https") else "80"
    scheme_end = uri.find("://")
    authority = uri[scheme_end + 3 :] if scheme_end != -1 else uri
    slash = authority.find("/")
    if slash != -1:
        authority = authority[:slash]
    if authority.startswith("["):
        closing = authority.find("]")
        if closing != -1:
            host = authority[1:closing]
            rest = authority[closing + 1 :]
            if rest.startswith(":") and rest[1:]:
                port = rest[1:]
            return Endpoint(host=host, port=port)
    colon = authority.rfind(":")
    if colon != -1:
        port = authority[colon + 1 :]
        authority = authority[:colon]
    return Endpoint(host=authority, port=port)


def _resolve(
    endpoint: Endpoint,
    resolver: Executor,
    resolve: Resolver,
    timeout: float,
) -> list[AddressInfo]:
    future = resolver.submit(resolve, endpoint.host, endpoint.port, 0, socket.SOCK_STREAM)
    try:
        return future.result(timeout=max(timeout, 0.0))
    except FutureTimeoutError:
        # The lookup cannot be interrupted; its late result is dropped.
        future.cancel()
        raise ProbeTimeoutError(f"Name resolution for {endpoint.host} timed out") from None


def _connect(address: AddressInfo, timeout: float) -> Reachability:
    family, socktype, proto, _, sockaddr = address
    with socket.socket(family, socktype, proto) as sock:
        sock.setblocking(False)
        code = sock.connect_ex(sockaddr)
        if code not in _IN_PROGRESS:
            return Reachability(reachable=False, detail=os.strerror(code))
        if code != 0:
            _, writable, _ = select.select([], [sock], [], max(timeout, 0.0))
            if not writable:
                raise ProbeTimeoutError("Connection attempt timed out")
        so_error = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if so_error:
            return Reachability(reachable=False, detail=os.strerror(so_error))
    return Reachability(reachable=True, detail="connected")


def check_reachable(
    uri: str,
    resolver: Executor,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    resolve: Resolver = socket.getaddrinfo,
) -> Reachability:
    """Resolve then connect within one shared deadline; no retries."""
    deadline = time.monotonic() + timeout_ms / 1000
    endpoint = parse_endpoint(uri)
    if not endpoint.host:
        return Reachability(reachable=False, detail="URI has no host")
    try:
        addresses = _resolve(endpoint, resolver, resolve, deadline - time.monotonic())
        if not addresses:
            return Reachability(reachable=False, detail=f"No address for {endpoint.host}")
        return _connect(addresses[0], deadline - time.monotonic())
    except ProbeTimeoutError as error:
        return Reachability(reachable=False, detail=error.message)
    except OSError as error:
        return Reachability(reachable=False, detail=str(error))
