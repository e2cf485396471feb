"""
accesslog — Log Line Formatters
================================

What:  Pure functions rendering a finalized RequestRecord as one log line.
Why:   The pipeline is format-agnostic; a formatter is just `record -> str`.
       Custom formatters (JSON, extra metadata columns) plug in the same way.

Log Formats:

    COMMON (Apache "common"):
    127.0.0.1 - frank [10/Oct/2000:13:55:36 +0000] "GET /a.gif HTTP/1.1" 200 2326

    COMBINED (common + referer + user agent):
    127.0.0.1 - frank [10/Oct/2000:13:55:36 +0000] "GET /a.gif HTTP/1.1" 200 2326 "http://x/" "curl/8.0"

Contract:
    - Never mutate the record
    - Same record in, same line out (no clock reads, no locale lookups)
    - Empty identity / auth user / remote address render as "-"
"""

from datetime import datetime
from typing import Callable, Dict

from accesslog.record import RequestRecord

Formatter = Callable[[RequestRecord], str]

# Apache's %t layout: 10/Oct/2000:13:55:36 -0700
# Month names are spelled out here because strftime("%b") follows the locale.
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def format_clf_time(moment: datetime) -> str:
    """Render a datetime in common log format, e.g. 10/Oct/2000:13:55:36 +0000."""
    return "{:02d}/{}/{:04d}:{:%H:%M:%S} {}".format(
        moment.day,
        _MONTHS[moment.month - 1],
        moment.year,
        moment,
        moment.strftime("%z") or "+0000",
    )


def _or_dash(value: str) -> str:
    return value if value else "-"


def format_common(record: RequestRecord) -> str:
    """Apache common log format. The timestamp is the completion time."""
    moment = record.done if record.done is not None else record.start
    return '{} {} {} [{}] "{} {} {}" {:d} {:d}'.format(
        _or_dash(record.remote_addr or ""),
        _or_dash(record.identity),
        _or_dash(record.auth_user),
        format_clf_time(moment),
        record.method,
        record.request_uri,
        record.protocol,
        record.status,
        record.size,
    )


def format_combined(record: RequestRecord) -> str:
    """Common format followed by the quoted Referer and User-Agent headers."""
    return '{} "{}" "{}"'.format(
        format_common(record),
        record.headers.get("referer", ""),
        record.headers.get("user-agent", ""),
    )


FORMATTERS: Dict[str, Formatter] = {
    "common": format_common,
    "combined": format_combined,
}
