import logging

from flask import url_for

from .api_client import ApiError
from .models import (
    MODULE_BLOG,
    MODULE_CRM,
    MODULE_HR,
    MODULE_NEWSLETTER,
    MODULE_PRODUCTS,
    USER_TYPE_ORG_ADMIN,
    USER_TYPE_SUPER_ADMIN,
)
from .utils import as_bool

logger = logging.getLogger(__name__)

# Module code -> (label, endpoint) or (label, [(child label, endpoint, kwargs)])
MODULE_MENUS = {
    MODULE_CRM: ('Enquiries', 'enquiries.index'),
    MODULE_HR: ('Careers', [
        ('Jobs', 'careers.jobs', {}),
        ('Applications', 'careers.applications', {}),
    ]),
    MODULE_NEWSLETTER: ('Newsletters', [
        ('Subscribers', 'newsletter.subscribers', {}),
        ('Emailer', 'newsletter.templates', {}),
        ('Mail Sent', 'newsletter.sent', {}),
    ]),
    MODULE_BLOG: ('Blogs', [
        ('Authors', 'blog.authors', {}),
        ('Categories', 'blog.categories', {}),
    ]),
    MODULE_PRODUCTS: ('Products', [
        ('Categories', 'products.categories', {}),
        ('Sub Categories', 'products.subcategories', {}),
        ('Products', 'products.products', {}),
    ]),
}
ADMIN_MODULE_CODES = (MODULE_CRM, MODULE_HR, MODULE_NEWSLETTER, MODULE_BLOG, MODULE_PRODUCTS)
USER_MODULE_CODES = (MODULE_CRM, MODULE_HR, MODULE_NEWSLETTER, MODULE_BLOG)

TERMS_MENU = [
    ('FAQs', 'terms.index', {'kind': 'faqs'}),
    ('Privacy Policy', 'terms.index', {'kind': 'privacy-policy'}),
    ('Terms of Service', 'terms.index', {'kind': 'terms-of-service'}),
    ('Return & Refund', 'terms.index', {'kind': 'return-and-refund'}),
    ('Shipping', 'terms.index', {'kind': 'shipping'}),
]


def _link(label, endpoint, **kwargs):
    return {'label': label, 'href': url_for(endpoint, **kwargs), 'children': []}


def _group(label, children):
    return {
        'label': label,
        'href': None,
        'children': [_link(child_label, endpoint, **kwargs) for child_label, endpoint, kwargs in children],
    }


def active_module_codes(records):
    codes = []
    for record in records or []:
        status = record.get('Status')
        if status not in (None, '') and not as_bool(status):
            continue
        code = (record.get('ModuleCode') or '').strip()
        if code and code not in codes:
            codes.append(code)
    return codes


def module_menu_items(codes, allowed):
    items = []
    for code in codes:
        if code not in allowed:
            continue
        label, target = MODULE_MENUS[code]
        items.append(_link(label, target) if isinstance(target, str) else _group(label, target))
    return items


def fetch_org_modules(api, org_code):
    try:
        return api.get_list(f'assignmodules/org-modules/org/{org_code}')
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        logger.warning('Org module lookup failed for org %s: %s', org_code, exc.message)
        return []


def fetch_user_modules(api, user_id):
    if not user_id:
        return []
    try:
        return api.get_list(f'user-modules/user/{user_id}')
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        logger.warning('User module lookup failed for user %s: %s', user_id, exc.message)
        return []


def build_sidebar(user, api):
    if user.user_type == USER_TYPE_SUPER_ADMIN:
        return [
            _link('Dashboard', 'admin.dashboard'),
            _link('System Updates', 'notifications.system_updates'),
            _group('Organization', [
                ('Master', 'org.organizations', {}),
                ('License', 'org.licenses', {}),
                ('Modules', 'org.org_modules', {}),
            ]),
            _link('User & Module', 'org.user_modules'),
            _link('Profile', 'auth.profile'),
        ]

    if user.user_type == USER_TYPE_ORG_ADMIN:
        codes = active_module_codes(fetch_org_modules(api, user.org_code))
        return [
            _link('Dashboard', 'admin.dashboard'),
            _link('Notifications', 'notifications.org_updates'),
            *module_menu_items(codes, ADMIN_MODULE_CODES),
            _group('User & Module Mgt.', [
                ('User Management', 'users.index', {}),
                ('User Modules', 'org.user_modules', {}),
                ('Assign Modules', 'org.user_module_assign', {}),
            ]),
            _group('Terms', TERMS_MENU),
            _link('Profile', 'auth.profile'),
        ]

    codes = active_module_codes(fetch_user_modules(api, user.user_id))
    return [
        _link('Dashboard', 'admin.dashboard'),
        _link('My Notifications', 'notifications.inbox'),
        *module_menu_items(codes, USER_MODULE_CODES),
        _link('Profile', 'auth.profile'),
    ]
