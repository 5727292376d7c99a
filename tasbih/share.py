"""
Share codes for a counter.

The counter id is the join code. It also travels inside a join link
(``<base>/?join=<id>``), which is what the QR code encodes; both forms must
lead to the same counter.
"""

from urllib.parse import parse_qs, urlencode, urlsplit


def build_join_url(base_url, counter_id):
    return f"{base_url.rstrip('/')}/?{urlencode({'join': counter_id})}"


def parse_join_code(text):
    """Return the counter id from a raw code or a join link.

    Returns None when a link carries no ``join`` parameter or the input is
    blank.
    """
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None

    parts = urlsplit(text)
    if parts.scheme or parts.query or text.startswith("?"):
        values = parse_qs(parts.query).get("join")
        if not values or not values[0].strip():
            return None
        return values[0].strip()
    return text
