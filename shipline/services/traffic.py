from __future__ import annotations

from shipline.core.config import SmokeCase
from shipline.core.result import Err, Ok, Result
from shipline.platform.process import ProcessRunner
from shipline.services.errors import TrafficFailure

_TRANSPORT_FLAGS = {"udp": "--udp", "tcp": "--tcp"}
_FORMAT_FLAGS = {"rfc5424": "--rfc5424", "rfc3164": "--rfc3164"}

SYSLOG_TAG = "shipline"


def logger_command(case: SmokeCase, *, host: str, port: int, message: str) -> list[str]:
    """util-linux ``logger`` invocation sending one message in the case's format."""
    return [
        "logger",
        _TRANSPORT_FLAGS[case.transport],
        _FORMAT_FLAGS[case.format],
        "--server",
        host,
        "--port",
        str(port),
        "--tag",
        SYSLOG_TAG,
        message,
    ]


def send_syslog(
    runner: ProcessRunner,
    case: SmokeCase,
    *,
    port: int,
    marker: str,
    host: str = "localhost",
    count: int = 3,
) -> Result[int, TrafficFailure]:
    """Send ``count`` tagged messages to the subject's published port.

    Several messages are sent since a single UDP datagram may be dropped while
    the daemon is still binding.
    """
    for i in range(1, count + 1):
        message = f"smoke test {case} {marker} #{i}"
        result = runner.run(logger_command(case, host=host, port=port, message=message))
        if isinstance(result, Err):
            return Err(TrafficFailure(case=case, error=result.error))
    return Ok(count)
