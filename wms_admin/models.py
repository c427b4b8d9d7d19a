from datetime import datetime, timezone

from flask import current_app
from flask_login import UserMixin

USER_TYPE_SUPER_ADMIN = 'SA'
USER_TYPE_ORG_ADMIN = 'Admin'
USER_TYPE_USER = 'User'
USER_TYPE_CHOICES = (USER_TYPE_SUPER_ADMIN, USER_TYPE_ORG_ADMIN, USER_TYPE_USER)
USER_TYPE_LABELS = {
    USER_TYPE_SUPER_ADMIN: 'Super Admin',
    USER_TYPE_ORG_ADMIN: 'Organization Admin',
    USER_TYPE_USER: 'User',
}
API_ROLE_TO_USER_TYPE = {
    'SuperAdmin': USER_TYPE_SUPER_ADMIN,
    'OrgAdmin': USER_TYPE_ORG_ADMIN,
}

MODULE_CRM = 'CMSCRM'
MODULE_HR = 'CMSHR'
MODULE_NEWSLETTER = 'CMSNL'
MODULE_BLOG = 'CMSBlog'
MODULE_PRODUCTS = 'CMSProducts'

NOTIFICATION_TYPE_GENERAL = 1
NOTIFICATION_TYPE_PERSONAL = 2
NOTIFICATION_STATUS_UPCOMING = 'upcoming'
NOTIFICATION_STATUS_ACTIVE = 'active'
NOTIFICATION_STATUS_EXPIRED = 'expired'

EMAIL_STATUS_SENT = 'Sent'
EMAIL_STATUS_FAILED = 'Failed'


def utc_now():
    return datetime.now(timezone.utc)


def user_type_for_role(role):
    return API_ROLE_TO_USER_TYPE.get((role or '').strip(), USER_TYPE_USER)


def normalize_user_type(value, default=USER_TYPE_USER):
    candidate = (value or '').strip()
    for choice in USER_TYPE_CHOICES:
        if candidate.lower() == choice.lower():
            return choice
    return default


def parse_api_datetime(value):
    """Parse the ISO-ish timestamps the API returns; naive values are UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = (str(value) if value is not None else '').strip()
        if not raw:
            return None
        if raw.endswith('Z'):
            raw = raw[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            try:
                parsed = datetime.strptime(raw[:10], '%Y-%m-%d')
            except ValueError:
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def notification_status(notification, now=None):
    now = now or utc_now()
    valid_from = parse_api_datetime(notification.get('ValidFrom'))
    valid_to = parse_api_datetime(notification.get('ValidTo'))
    if valid_from and now < valid_from:
        return NOTIFICATION_STATUS_UPCOMING
    if valid_to and now > valid_to:
        return NOTIFICATION_STATUS_EXPIRED
    return NOTIFICATION_STATUS_ACTIVE


def notification_type_label(value):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = NOTIFICATION_TYPE_GENERAL
    return 'General' if parsed == NOTIFICATION_TYPE_GENERAL else 'Personal'


def group_sent_emails(rows):
    """Collapse per-recipient send rows into one row per template, subject and day."""
    grouped = {}
    for row in rows:
        sent_at = parse_api_datetime(row.get('SentAt'))
        day = sent_at.date().isoformat() if sent_at else ''
        template_name = row.get('TemplateName') or f"Template #{row.get('TemplateId') or '?'}"
        key = (template_name, row.get('Subject') or 'No Subject', day)
        bucket = grouped.get(key)
        if bucket is None:
            bucket = {
                'TemplateName': key[0],
                'Subject': key[1],
                'Date': day,
                'total': 0,
                'sent': 0,
                'failed': 0,
            }
            grouped[key] = bucket
        bucket['total'] += 1
        status = row.get('Status')
        if status == EMAIL_STATUS_SENT:
            bucket['sent'] += 1
        elif status == EMAIL_STATUS_FAILED:
            bucket['failed'] += 1
    return sorted(grouped.values(), key=lambda item: (item['Date'], item['TemplateName']), reverse=True)


def sent_email_totals(rows):
    totals = {'total': 0, 'sent': 0, 'failed': 0}
    for row in rows:
        totals['total'] += 1
        if row.get('Status') == EMAIL_STATUS_SENT:
            totals['sent'] += 1
        elif row.get('Status') == EMAIL_STATUS_FAILED:
            totals['failed'] += 1
    return totals


class SessionUser(UserMixin):
    """The signed-in account as returned by the users API.

    The object is rebuilt from the signed session on every request; it is
    never persisted locally.
    """

    def __init__(self, data, token=None):
        self.data = dict(data or {})
        self.token = token

    def get_id(self):
        return str(self.user_id)

    @property
    def user_id(self):
        return self.data.get('UserId') or self.data.get('id') or self.data.get('Id')

    @property
    def org_code(self):
        return self.data.get('OrgCode') or current_app.config.get('DEFAULT_ORG_CODE', 1)

    @property
    def user_type(self):
        return normalize_user_type(self.data.get('UserType'))

    @property
    def user_type_label(self):
        return USER_TYPE_LABELS[self.user_type]

    @property
    def name(self):
        return self.data.get('UserName') or self.data.get('LoginId') or 'User'

    @property
    def email(self):
        return self.data.get('UserEmail') or ''

    @property
    def is_super_admin(self):
        return self.user_type == USER_TYPE_SUPER_ADMIN

    @property
    def is_org_admin(self):
        return self.user_type == USER_TYPE_ORG_ADMIN

    def has_type(self, *user_types):
        return self.user_type in user_types
