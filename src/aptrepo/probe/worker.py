"""Single-flight background metadata probe with a one-slot mailbox."""

from __future__ import annotations

import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

from aptrepo.probe.cache import cache_lookup
from aptrepo.probe.models import ProbeResult, ReleaseFields
from aptrepo.probe.network import DEFAULT_TIMEOUT_MS, Resolver, check_reachable
from aptrepo.sources.models import Entry


class ProbeMailbox:
    """The only cross-thread object: one result slot plus a readiness flag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._result: ProbeResult | None = None
        self._ready = False

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._ready

    def put(self, result: ProbeResult) -> None:
        with self._lock:
            self._result = result
            self._ready = True

    def take(self) -> ProbeResult | None:
        """Drain the slot; returns None when nothing is ready."""
        with self._lock:
            if not self._ready:
                return None
            result = self._result
            self._result = None
            self._ready = False
            return result

    def clear(self) -> None:
        with self._lock:
            self._result = None
            self._ready = False


class MetadataProbe:
    """Runs cache lookup plus reachability for one entry at a time.

    A request made while a probe is in flight is dropped. Each request carries
    its own cancellation token; a cancelled probe still runs to completion but
    its result never reaches the mailbox. Resolution runs on a bounded pool so
    abandoned lookups cannot accumulate threads without limit.
    """

    def __init__(
        self,
        cache_root: Path,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        resolver_workers: int = 2,
        resolve: Resolver = socket.getaddrinfo,
    ) -> None:
        self._cache_root = cache_root
        self._timeout_ms = timeout_ms
        self._resolve = resolve
        self._runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aptrepo-probe")
        self._resolver = ThreadPoolExecutor(
            max_workers=resolver_workers, thread_name_prefix="aptrepo-resolve"
        )
        self._mailbox = ProbeMailbox()
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._token: threading.Event | None = None

    @property
    def running(self) -> bool:
        return not self._idle.is_set()

    @property
    def mailbox(self) -> ProbeMailbox:
        return self._mailbox

    def request(self, entry: Entry) -> bool:
        """Start a probe; returns False when one is already running."""
        with self._lock:
            if not self._idle.is_set():
                return False
            self._idle.clear()
            self._mailbox.clear()
            token = threading.Event()
            self._token = token
        self._runner.submit(self._run, entry, token)
        return True

    def cancel(self) -> None:
        """Discard the in-flight result, if any."""
        with self._lock:
            if self._token is not None:
                self._token.set()

    def poll(self) -> ProbeResult | None:
        """Consume the ready result once."""
        return self._mailbox.take()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no probe is running; returns False on timeout."""
        return self._idle.wait(timeout)

    def shutdown(self) -> None:
        self.cancel()
        self._runner.shutdown(wait=False, cancel_futures=True)
        self._resolver.shutdown(wait=False, cancel_futures=True)

    def probe_now(self, entry: Entry) -> ProbeResult:
        """Run one probe synchronously on the calling thread."""
        result = cache_lookup(entry, self._cache_root)
        reachability = check_reachable(
            entry.uri,
            resolver=self._resolver,
            timeout_ms=self._timeout_ms,
            resolve=self._resolve,
        )
        return replace(result, reachable=reachability.reachable, detail=reachability.detail)

    def _run(self, entry: Entry, token: threading.Event) -> None:
        try:
            try:
                result = self.probe_now(entry)
            except Exception as error:
                result = ProbeResult(
                    uri=entry.uri,
                    suite=entry.suite,
                    fields=ReleaseFields(),
                    last_update=None,
                    reachable=False,
                    error=f"Probe failed: {error}",
                )
            if not token.is_set():
                self._mailbox.put(result)
        finally:
            self._idle.set()
