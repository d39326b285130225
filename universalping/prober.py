"""Single-endpoint HTTP probe with timeout handling."""

import http.client
import logging
import socket
import threading
import time
import urllib.error
import urllib.request
from functools import partial

from .config import DEFAULT_USER_AGENT
from .models import TIMEOUT_REASON, ProbeOutcome
from .validator import InvalidEndpointError, parse_endpoint

logger = logging.getLogger(__name__)


class _Deadline:
    """Overall request deadline that shuts down the connection when it expires.

    urllib's timeout only bounds each socket operation, so a server that
    trickles bytes never trips it. A timer thread shuts the socket down at
    the deadline, which unblocks any pending read.
    """

    def __init__(self, seconds: float) -> None:
        self.expired = False
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()
        self._timer = threading.Timer(seconds, self._expire)
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def attach(self, sock: socket.socket) -> None:
        """Track the connected socket; shut it down at once if already expired."""
        with self._lock:
            self._sock = sock
            if self.expired:
                self._shutdown()

    def _expire(self) -> None:
        with self._lock:
            self.expired = True
            self._shutdown()

    def _shutdown(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Socket shutdown at deadline failed: %s", e)


class _DeadlineConnectionMixin:
    """Hands the connected socket to the request's deadline."""

    def __init__(self, *args, deadline: _Deadline | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._deadline = deadline

    def connect(self) -> None:
        super().connect()
        if self._deadline is not None:
            self._deadline.attach(self.sock)


class _DeadlineHTTPConnection(_DeadlineConnectionMixin, http.client.HTTPConnection):
    pass


class _DeadlineHTTPSConnection(_DeadlineConnectionMixin, http.client.HTTPSConnection):
    pass


class _DeadlineHTTPHandler(urllib.request.HTTPHandler):
    def http_open(self, req):
        connection_class = partial(_DeadlineHTTPConnection, deadline=getattr(req, "deadline", None))
        return self.do_open(connection_class, req)


class _DeadlineHTTPSHandler(urllib.request.HTTPSHandler):
    def https_open(self, req):
        connection_class = partial(_DeadlineHTTPSConnection, deadline=getattr(req, "deadline", None))
        return self.do_open(connection_class, req, context=self._context)


class _NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Redirect handler that reports 3xx responses instead of following them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        """Decline every redirect so urllib raises HTTPError with the 3xx code."""
        return None


# Create opener that never follows redirects and enforces the overall deadline
_opener = urllib.request.build_opener(_NoRedirectHandler(), _DeadlineHTTPHandler(), _DeadlineHTTPSHandler())

# Chunk size used when draining response bodies.
DRAIN_CHUNK_SIZE = 64 * 1024


def is_success_status(status_code: int) -> bool:
    """Check if a status code counts as success: 2xx and 3xx are up."""
    return 200 <= status_code < 400


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))


def _drain(response, until: float) -> None:
    """Read and discard the response body until EOF or the deadline.

    The outcome is already decided by the status line, so body errors
    only end the drain.
    """
    try:
        while time.monotonic() < until:
            if not response.read(DRAIN_CHUNK_SIZE):
                break
    except (OSError, http.client.HTTPException) as e:
        logger.debug("Response body read ended early: %s", e)


def _failed(endpoint: str, start: float, reason: str) -> ProbeOutcome:
    return ProbeOutcome(
        endpoint=endpoint,
        succeeded=False,
        status_code=None,
        elapsed_ms=_elapsed_ms(start),
        failure_reason=reason,
    )


def _responded(endpoint: str, status_code: int, elapsed_ms: int) -> ProbeOutcome:
    return ProbeOutcome(
        endpoint=endpoint,
        succeeded=is_success_status(status_code),
        status_code=status_code,
        elapsed_ms=elapsed_ms,
    )


def probe(endpoint: str, timeout_ms: int, user_agent: str = DEFAULT_USER_AGENT) -> ProbeOutcome:
    """Perform a single GET request against an endpoint.

    Never raises: parse failures, timeouts and transport errors are all
    reported as failed outcomes.

    Args:
        endpoint: URL to request.
        timeout_ms: Hard ceiling in milliseconds from dispatch until the
            response headers arrive. Headers that complete after it are
            reported as a timeout, and the body is drained only until then.
        user_agent: User-Agent header sent with the request.

    Returns:
        ProbeOutcome with status, elapsed time and any failure reason.
    """
    start = time.monotonic()

    try:
        parse_endpoint(endpoint)
    except InvalidEndpointError as e:
        return _failed(endpoint, start, f"invalid URL: {e}")

    timeout_seconds = timeout_ms / 1000
    until = start + timeout_seconds
    deadline = _Deadline(timeout_seconds)

    try:
        request = urllib.request.Request(
            endpoint,
            method="GET",
            headers={"User-Agent": user_agent, "Accept": "*/*"},
        )
        request.deadline = deadline
        deadline.start()
        with _opener.open(request, timeout=timeout_seconds) as response:
            # A shut-down socket can end the header block early
            if deadline.expired:
                return _failed(endpoint, start, TIMEOUT_REASON)
            elapsed_ms = _elapsed_ms(start)
            status_code = response.status
            _drain(response, until)
        return _responded(endpoint, status_code, elapsed_ms)

    except urllib.error.HTTPError as e:
        # 3xx (redirects are not followed) and 4xx/5xx arrive as HTTPError
        try:
            if deadline.expired:
                return _failed(endpoint, start, TIMEOUT_REASON)
            elapsed_ms = _elapsed_ms(start)
            _drain(e, until)
        finally:
            e.close()
        return _responded(endpoint, e.code, elapsed_ms)

    except urllib.error.URLError as e:
        if deadline.expired or isinstance(e.reason, TimeoutError):
            return _failed(endpoint, start, TIMEOUT_REASON)
        reason = str(e.reason) if e.reason else "Connection failed"
        return _failed(endpoint, start, reason)

    except TimeoutError:
        return _failed(endpoint, start, TIMEOUT_REASON)

    except Exception as e:
        if deadline.expired:
            return _failed(endpoint, start, TIMEOUT_REASON)
        return _failed(endpoint, start, str(e) or e.__class__.__name__)

    finally:
        deadline.cancel()
