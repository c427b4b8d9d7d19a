from flask import Blueprint, flash, render_template, url_for
from flask_login import current_user, login_required

from ..api_client import ApiError, get_api
from ..models import USER_TYPE_ORG_ADMIN, USER_TYPE_SUPER_ADMIN
from ..utils import parse_int

admin_bp = Blueprint('admin', __name__)

# (stat key, label, list endpoint)
ORG_STAT_CARDS = (
    ('subscribers', 'Subscribers', 'newsletter.subscribers'),
    ('enquiries', 'Enquiries', 'enquiries.index'),
    ('users', 'Users', 'users.index'),
    ('jobs', 'Jobs', 'careers.jobs'),
)
PLATFORM_STAT_SOURCES = (
    ('organizations', 'Organizations', 'org.organizations', 'orgs/'),
    ('licenses', 'Licenses', 'org.licenses', 'licenses/'),
    ('org_modules', 'Module assignments', 'org.org_modules', 'assignmodules/org-modules'),
)


def _card(key, label, endpoint, value):
    return {'key': key, 'label': label, 'endpoint': endpoint, 'value': value}


def _org_stats(api, org_code):
    stats = api.get(f'stats/admin/{org_code}')
    if not isinstance(stats, dict):
        stats = {}
    return [
        _card(key, label, endpoint, parse_int(stats.get(key), default=0, min_value=0))
        for key, label, endpoint in ORG_STAT_CARDS
    ]


def _platform_stats(api):
    return [
        _card(key, label, endpoint, len(api.get_list(path)))
        for key, label, endpoint, path in PLATFORM_STAT_SOURCES
    ]


def _zero_cards(sources):
    return [_card(item[0], item[1], item[2], 0) for item in sources]


@admin_bp.route('/')
@login_required
def dashboard():
    api = get_api()
    is_platform = current_user.user_type == USER_TYPE_SUPER_ADMIN
    try:
        cards = _platform_stats(api) if is_platform else _org_stats(api, current_user.org_code)
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        flash(f'Dashboard figures are unavailable right now: {exc.message}', 'warning')
        cards = _zero_cards(PLATFORM_STAT_SOURCES if is_platform else ORG_STAT_CARDS)
    # Plain users may lack the module behind a card, so only admins get links.
    show_links = current_user.has_type(USER_TYPE_SUPER_ADMIN, USER_TYPE_ORG_ADMIN)
    for card in cards:
        card['url'] = url_for(card['endpoint']) if show_links else None
    return render_template('dashboard.html', cards=cards)
