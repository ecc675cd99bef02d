"""HTTP probes and the per-run check cycle."""

import logging
import threading
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

from .alerter import Alerter
from .config import Config, ProbeConfig
from .content import contains_keyword, extract_content
from .database import ResultStore
from .digest import build_failure_digest, resolve_recipients
from .dns import DEFAULT_DOH_URL, resolve_dns
from .metrics import compute_summary
from .models import CheckResult, FailureDigest, MetricsSummary
from .records import ProbeOutcome, build_record
from .retention import prune
from .urls import get_hostname, normalize_url

logger = logging.getLogger(__name__)

# Follows redirects (GET) by default; 4xx/5xx surface as HTTPError and are
# turned back into ordinary responses in _fetch().
_opener = urllib.request.build_opener()

DEFAULT_USER_AGENT = "webprobe/0.1"

TIMEOUT_ERROR = "timeout"
NOT_STARTED_ERROR = "not started"

_READ_CHUNK = 64 * 1024

# Two DoH lookups and the fetch, each bounded by the probe timeout.
PROBE_PHASES = 3


def _now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def _read_body(response, deadline: float) -> bytes:
    """Read a response body in chunks, giving up once ``deadline`` passes."""
    chunks = []
    while True:
        chunk = response.read(_READ_CHUNK)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise TimeoutError("response body not received within the probe timeout")


def _fetch(request: urllib.request.Request, timeout: float) -> tuple[int, object, bytes]:
    """Fetch a URL without raising on HTTP error statuses.

    ``timeout`` bounds each socket operation and the body read as a whole, so
    a server that trickles its body cannot hold the probe open.

    Returns:
        Tuple of (status, headers, body).

    Raises:
        HTTPError: For a 3xx the redirect handler refused to follow.
    """
    deadline = time.monotonic() + timeout
    try:
        with _opener.open(request, timeout=timeout) as response:
            return response.status, response.headers, _read_body(response, deadline)
    except urllib.error.HTTPError as e:
        try:
            if 300 <= e.code < 400:
                # Redirect loop, or a redirect without a usable Location.
                raise
            return e.code, e.headers, _read_body(e, deadline)
        finally:
            e.close()


def _error_message(error: Exception) -> str:
    if isinstance(error, TimeoutError):
        return TIMEOUT_ERROR
    if isinstance(error, urllib.error.HTTPError):
        return f"Unresolved redirect (HTTP {error.code})"
    if isinstance(error, urllib.error.URLError):
        if isinstance(error.reason, TimeoutError):
            return TIMEOUT_ERROR
        return str(error.reason) if error.reason else "Connection failed"
    return str(error) or error.__class__.__name__


def _inspect_body(outcome: ProbeOutcome, body: bytes, content_type: str | None) -> None:
    """Fill in extraction fields. Parse problems leave them unset."""
    try:
        content = extract_content(body, content_type)
    except Exception as e:
        logger.warning("Content extraction failed for %s: %s", outcome.url, e)
        return

    if not content.is_html:
        return

    outcome.title = content.title
    outcome.meta_description = content.meta_description
    if outcome.keyword:
        outcome.keyword_present = contains_keyword(content.text, outcome.keyword)


def check_url(
    url: str,
    keyword: str | None = None,
    timeout: float = 10,
    user_agent: str = DEFAULT_USER_AGENT,
    doh_url: str = DEFAULT_DOH_URL,
) -> CheckResult:
    """Probe a single URL.

    Resolves the hostname over DoH, then issues one GET that follows
    redirects. Non-2xx/3xx statuses are recorded as data. Any exception is
    caught and recorded in ``error``; this function never raises for a
    failing target.

    ``response_time_ms`` covers the fetch only, not the DNS lookup.

    Args:
        url: Absolute URL to probe.
        keyword: Optional keyword to look for in HTML bodies.
        timeout: Seconds allowed for each DNS lookup and for the fetch.
        user_agent: User-Agent header.
        doh_url: DNS-over-HTTPS JSON endpoint.

    Returns:
        CheckResult for this probe.
    """
    outcome = ProbeOutcome(timestamp=_now(), url=url, keyword=keyword or None)

    try:
        hostname = get_hostname(url)
        if hostname:
            addresses = resolve_dns(hostname, doh_url=doh_url, timeout=timeout, user_agent=user_agent)
            outcome.dns_a = list(addresses.a)
            outcome.dns_aaaa = list(addresses.aaaa)

        request = urllib.request.Request(url, method="GET", headers={"User-Agent": user_agent})

        start = time.monotonic()
        status, headers, body = _fetch(request, timeout)
        outcome.response_time_ms = int((time.monotonic() - start) * 1000)

        outcome.status = status
        # Always the requested URL, even after a redirect.
        outcome.final_url = url
        outcome.payload_bytes = len(body) if body is not None else None

        content_type = headers.get("Content-Type") if headers else None
        _inspect_body(outcome, body or b"", content_type)

    except Exception as e:
        outcome.error = _error_message(e)
        logger.debug("Probe for %s failed: %s", url, outcome.error)

    return build_record(outcome)


def failed_result(url: str, keyword: str | None, timestamp: datetime, error: str) -> CheckResult:
    """Build a failed record that carries only the error and input fields."""
    return build_record(ProbeOutcome(timestamp=timestamp, url=url, keyword=keyword or None, error=error))


class _Progress:
    """Monotonic time of the last probe start or finish across the pool."""

    def __init__(self) -> None:
        self.last = time.monotonic()

    def touch(self) -> None:
        self.last = time.monotonic()


class _ProbeTask:
    """A queued probe that notes when a worker picks it up."""

    def __init__(self, url: str, keyword: str | None, probe: ProbeConfig, progress: _Progress) -> None:
        self.url = url
        self.keyword = keyword
        self.timestamp = _now()
        self.started = threading.Event()
        self.started_at = 0.0
        self._probe = probe
        self._progress = progress

    def __call__(self) -> CheckResult:
        self.timestamp = _now()
        self.started_at = time.monotonic()
        self.started.set()
        self._progress.touch()
        try:
            return check_url(self.url, self.keyword, self._probe.timeout, self._probe.user_agent, self._probe.doh_url)
        finally:
            self._progress.touch()

    def wait_started(self, progress: _Progress, stall: float) -> bool:
        """Wait for a worker to pick this task up.

        Gives up once no probe in the pool has started or finished for
        ``stall`` seconds.
        """
        while not self.started.is_set():
            remaining = progress.last + stall - time.monotonic()
            if remaining <= 0:
                return False
            self.started.wait(remaining)
        return True


def probe_targets(urls: list[str], keyword: str | None, probe: ProbeConfig) -> list[CheckResult]:
    """Probe URLs concurrently and return results in input order.

    Each probe gets ``probe.timeout * PROBE_PHASES`` seconds from the moment a
    worker starts it; one still running after that is recorded with error
    ``"timeout"``. Time spent queued behind other targets does not count.

    Queued probes are abandoned with error ``"not started"`` only when the
    pool stops making progress: no probe has started or finished within one
    per-probe budget plus ``probe.run_timeout`` seconds of grace.

    Abandoned worker threads are not awaited here, but the interpreter joins
    them at exit. Every phase of a probe is bounded by ``probe.timeout``, so
    they finish on their own.

    Args:
        urls: Absolute URLs to probe.
        keyword: Optional keyword for every probe.
        probe: Worker pool and timeout settings.

    Returns:
        One CheckResult per URL, same order as ``urls``.
    """
    if not urls:
        return []

    budget = probe.timeout * PROBE_PHASES
    progress = _Progress()
    executor = ThreadPoolExecutor(max_workers=min(probe.max_workers, len(urls)), thread_name_prefix="probe")
    results: list[CheckResult] = []
    try:
        submitted = []
        for url in urls:
            task = _ProbeTask(url, keyword, probe, progress)
            submitted.append((task, executor.submit(task)))

        for task, future in submitted:
            if not task.wait_started(progress, budget + probe.run_timeout) and future.cancel():
                logger.warning("Probe for %s never started; worker pool stalled", task.url)
                results.append(failed_result(task.url, keyword, task.timestamp, NOT_STARTED_ERROR))
                continue

            task.started.wait()
            remaining = max(0.0, task.started_at + budget - time.monotonic())
            try:
                results.append(future.result(timeout=remaining))
            except TimeoutError:
                logger.warning("Probe for %s did not finish within %ds", task.url, budget)
                results.append(failed_result(task.url, keyword, task.timestamp, TIMEOUT_ERROR))
            except Exception as e:
                logger.error("Probe for %s failed: %s", task.url, e)
                results.append(failed_result(task.url, keyword, task.timestamp, str(e) or e.__class__.__name__))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return results


@dataclass(frozen=True)
class RunReport:
    """Outcome of one run of the check cycle."""

    records: list[CheckResult]
    digest: FailureDigest | None
    recipients: list[str] = field(default_factory=list)
    delivered: bool | None = None
    summary: MetricsSummary | None = None
    pruned: int = 0

    @property
    def failures(self) -> int:
        return sum(1 for record in self.records if not record.ok)


class Monitor:
    """Runs one check cycle over the configured targets.

    The monitor does not schedule itself; an external scheduler calls
    ``run_once`` (for example through ``webprobe run`` from cron). Each
    invocation should pass a freshly loaded Config.

    Example:
        store = ResultStore.open(config.database.path)
        report = Monitor(config, store, Alerter(config.notifications)).run_once()
    """

    def __init__(
        self,
        config: Config,
        store: ResultStore,
        alerter: Alerter | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Configuration for this run.
            store: Result store that receives the batch.
            alerter: Digest delivery; None skips delivery.
        """
        self._config = config
        self._store = store
        self._alerter = alerter

    def run_once(self, now: datetime | None = None) -> RunReport:
        """Probe every target, store the batch, alert, summarize and prune.

        Args:
            now: Reference time for aggregation and pruning (defaults to the
                time the run finishes probing).

        Returns:
            RunReport describing this run.

        Raises:
            DatabaseError: If the store cannot be written or read.
        """
        config = self._config
        urls = [normalize_url(target, config.base_url) for target in config.targets]
        logger.info("Probing %d target(s)", len(urls))

        records = probe_targets(urls, config.keyword, config.probe)
        for record in records:
            logger.debug(
                "%s: %s status=%s (%sms)",
                record.url,
                "UP" if record.ok else "DOWN",
                record.status,
                record.response_time_ms,
            )

        digest = build_failure_digest(records, location=self._store.location)
        self._store.append(records)

        recipients: list[str] = []
        delivered: bool | None = None
        if digest is not None:
            logger.warning("%d of %d target(s) failed", len(digest.failures), len(records))
            recipients = resolve_recipients(config.recipients, config.notifications.owner)
            if self._alerter is not None:
                delivered = self._alerter.send(digest, recipients)

        now = now or _now()
        summary = compute_summary(self._store.read_all(), now)
        pruned = prune(self._store, config.retention_days, now)

        return RunReport(
            records=records,
            digest=digest,
            recipients=recipients,
            delivered=delivered,
            summary=summary,
            pruned=pruned,
        )
