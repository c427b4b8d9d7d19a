"""Shared utility functions used across route modules."""
import ipaddress

import bleach
from flask import request

STATUS_FILTER_CHOICES = ('All', 'Active', 'Inactive')
ALLOWED_RICH_TEXT_TAGS = [
    'p', 'br', 'strong', 'em', 'b', 'i', 'u', 'blockquote', 'code', 'pre',
    'ul', 'ol', 'li', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'a', 'img', 'table', 'thead', 'tbody', 'tr', 'th', 'td', 'hr', 'div', 'span'
]
ALLOWED_RICH_TEXT_ATTRIBUTES = {
    '*': ['class'],
    'a': ['href', 'title', 'target', 'rel'],
    'img': ['src', 'alt', 'title', 'width', 'height'],
}
ALLOWED_RICH_TEXT_PROTOCOLS = ['http', 'https', 'mailto']


def clean_text(value, max_length=255):
    return (value or '').strip()[:max_length]


def is_valid_url(value):
    return not value or value.startswith('https://') or value.startswith('http://')


def parse_int(value, default=0, min_value=None, max_value=None):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    if min_value is not None and parsed < min_value:
        return min_value
    if max_value is not None and parsed > max_value:
        return max_value
    return parsed


def parse_positive_int(value):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    if parsed <= 0:
        return None
    return parsed


def as_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value or '').strip().lower() in {'1', 'true', 'yes', 'on', 'active'}


def sanitize_html(value, max_length=100000):
    html = (value or '').strip()
    cleaned = bleach.clean(
        html,
        tags=ALLOWED_RICH_TEXT_TAGS,
        attributes=ALLOWED_RICH_TEXT_ATTRIBUTES,
        protocols=ALLOWED_RICH_TEXT_PROTOCOLS,
        strip=True,
    )
    return cleaned[:max_length]


def normalized_ip(value):
    candidate = (value or '').split(',', 1)[0].strip()
    if not candidate:
        return ''
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return ''


def get_request_ip():
    # request.remote_addr is proxy-aware when ProxyFix is enabled by app config.
    remote_ip = normalized_ip(request.remote_addr)
    return remote_ip or 'unknown'


def search_rows(rows, term, keys):
    needle = (term or '').strip().lower()
    if not needle:
        return list(rows)
    matched = []
    for row in rows:
        for key in keys:
            value = row.get(key)
            if value is not None and needle in str(value).lower():
                matched.append(row)
                break
    return matched


def filter_active(rows, status, key='IsActive'):
    if status not in ('Active', 'Inactive'):
        return list(rows)
    wanted = status == 'Active'
    return [row for row in rows if as_bool(row.get(key)) == wanted]


def distinct_values(rows, key):
    seen = []
    for row in rows:
        value = row.get(key)
        if value and value not in seen:
            seen.append(value)
    return sorted(seen, key=lambda item: str(item).lower())


def record_id(record, *keys):
    for key in keys or ('id', 'Id'):
        value = record.get(key)
        if value not in (None, ''):
            return value
    return None
