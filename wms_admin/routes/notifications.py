from datetime import datetime, timezone

from flask import Blueprint, abort, redirect, request, url_for
from flask_login import current_user, login_required

from ..auth import role_required
from ..forms import OrgUpdateForm, SystemUpdateForm
from ..models import (
    USER_TYPE_ORG_ADMIN,
    USER_TYPE_SUPER_ADMIN,
    notification_status,
    notification_type_label,
    parse_api_datetime,
)
from ..utils import parse_int, parse_positive_int, record_id
from .common import (
    api_write,
    apply_filters,
    display_date,
    fetch_list,
    fetch_record,
    flash_form_errors,
    org_code,
    render_form,
    render_list,
    table_rows,
    trans_by,
)

notifications_bp = Blueprint('notifications', __name__)

NOTIFICATION_ID_KEYS = ('NotiId', 'id')
DATE_SORT_FIELDS = {'ValidFrom', 'ValidTo', 'TransDate'}
# Query value -> (column label, row field)
SYSTEM_UPDATE_SORTS = {
    'title': ('Title', 'NotiTitle'),
    'org': ('Organization', 'OrgName'),
    'valid_from': ('Valid From', 'ValidFrom'),
    'valid_to': ('Valid To', 'ValidTo'),
    'created': ('Created', 'TransDate'),
}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _status_cell(row):
    return notification_status(row).title()


def _type_cell(row):
    return notification_type_label(row.get('NotiType'))


def sort_notifications(rows, field, descending=False):
    if field in DATE_SORT_FIELDS:
        def key(row):
            return parse_api_datetime(row.get(field)) or _EPOCH
    else:
        def key(row):
            return str(row.get(field) or '').lower()
    return sorted(rows, key=key, reverse=descending)


def _org_choices():
    orgs = fetch_list('notifications/orglist/all')
    choices = []
    for org in orgs:
        code = parse_positive_int(org.get('OrgCode'))
        if code is None:
            continue
        choices.append((code, org.get('OrgName') or f'Org {code}'))
    return choices


def _system_update_payload(form):
    payload = form.to_payload()
    payload['TransBy'] = trans_by()
    return payload


@notifications_bp.route('/system')
@role_required(USER_TYPE_SUPER_ADMIN)
def system_updates():
    org_names = {str(code): name for code, name in _org_choices()}
    rows = apply_filters(fetch_list('notifications'), ('NotiTitle', 'NotiDesc'))
    for row in rows:
        row['OrgName'] = org_names.get(str(row.get('OrgCode')), str(row.get('OrgCode') or ''))

    sort = request.args.get('sort') or 'created'
    if sort not in SYSTEM_UPDATE_SORTS:
        sort = 'created'
    direction = 'asc' if request.args.get('dir') == 'asc' else 'desc'
    rows = sort_notifications(rows, SYSTEM_UPDATE_SORTS[sort][1], descending=(direction == 'desc'))

    columns = [
        ('Title', 'NotiTitle'),
        ('Organization', 'OrgName'),
        ('Type', _type_cell),
        ('Valid From', lambda row: display_date(row.get('ValidFrom'))),
        ('Valid To', lambda row: display_date(row.get('ValidTo'))),
        ('Status', _status_cell),
        ('Created', lambda row: display_date(row.get('TransDate'))),
    ]
    header_links = {}
    for key, (label, _) in SYSTEM_UPDATE_SORTS.items():
        next_dir = 'desc' if key == sort and direction == 'asc' else 'asc'
        header_links[label] = url_for(
            'notifications.system_updates',
            sort=key,
            dir=next_dir,
            q=request.args.get('q') or None,
        )
    items = table_rows(
        rows,
        columns,
        NOTIFICATION_ID_KEYS,
        'notifications.system_update_edit',
        'notifications.system_update_delete',
    )
    return render_list(
        'System Updates',
        columns,
        items,
        create_url=url_for('notifications.system_update_add'),
        status_filter=False,
        header_links=header_links,
    )


@notifications_bp.route('/system/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def system_update_add():
    form = SystemUpdateForm()
    form.org_code.choices = _org_choices()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', 'notifications', 'System update created.', json=_system_update_payload(form)) is not None:
            return redirect(url_for('notifications.system_updates'))
    return render_form('Add System Update', form, url_for('notifications.system_updates'))


@notifications_bp.route('/system/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def system_update_edit(id):
    form = SystemUpdateForm()
    form.org_code.choices = _org_choices()
    if request.method == 'GET':
        form.load_record(fetch_record(f'notifications/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write('put', f'notifications/{id}', 'System update saved.', json=_system_update_payload(form)) is not None:
        return redirect(url_for('notifications.system_updates'))
    return render_form('Edit System Update', form, url_for('notifications.system_updates'))


@notifications_bp.route('/system/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def system_update_delete(id):
    api_write('delete', f'notifications/{id}', 'System update deleted.')
    return redirect(url_for('notifications.system_updates'))


def _org_user_choices():
    users = fetch_list(f'admin-updates/users/{org_code()}')
    choices = [(None, 'Everyone in the organization')]
    for user in users:
        user_id = parse_positive_int(record_id(user, 'UserId', 'id'))
        if user_id is None:
            continue
        choices.append((user_id, user.get('UserName') or user.get('LoginId') or f'User {user_id}'))
    return choices


def _org_update_payload(form):
    payload = form.to_payload()
    payload['OrgCode'] = parse_int(org_code(), default=org_code())
    payload['TransBy'] = trans_by()
    return payload


def _find_org_update(id):
    for row in fetch_list(f'admin-updates/{org_code()}'):
        if str(record_id(row, *NOTIFICATION_ID_KEYS)) == str(id):
            return row
    abort(404)


ORG_UPDATE_COLUMNS = [
    ('Title', 'NotiTitle'),
    ('Type', _type_cell),
    ('Valid From', lambda row: display_date(row.get('ValidFrom'))),
    ('Valid To', lambda row: display_date(row.get('ValidTo'))),
    ('Status', _status_cell),
]


@notifications_bp.route('/org')
@role_required(USER_TYPE_ORG_ADMIN)
def org_updates():
    rows = apply_filters(fetch_list(f'admin-updates/{org_code()}'), ('NotiTitle', 'NotiDesc'))
    rows = sort_notifications(rows, 'ValidFrom', descending=True)
    items = table_rows(
        rows,
        ORG_UPDATE_COLUMNS,
        NOTIFICATION_ID_KEYS,
        'notifications.org_update_edit',
        'notifications.org_update_delete',
    )
    return render_list(
        'Notifications',
        ORG_UPDATE_COLUMNS,
        items,
        create_url=url_for('notifications.org_update_add'),
        status_filter=False,
    )


@notifications_bp.route('/org/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def org_update_add():
    form = OrgUpdateForm()
    form.user_id.choices = _org_user_choices()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', 'admin-updates', 'Notification created.', json=_org_update_payload(form)) is not None:
            return redirect(url_for('notifications.org_updates'))
    return render_form('Create Notification', form, url_for('notifications.org_updates'))


@notifications_bp.route('/org/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def org_update_edit(id):
    form = OrgUpdateForm()
    form.user_id.choices = _org_user_choices()
    if request.method == 'GET':
        form.load_record(_find_org_update(id))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write(
        'put',
        f'admin-updates/{org_code()}/{id}',
        'Notification updated.',
        json=_org_update_payload(form),
    ) is not None:
        return redirect(url_for('notifications.org_updates'))
    return render_form('Edit Notification', form, url_for('notifications.org_updates'))


@notifications_bp.route('/org/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def org_update_delete(id):
    api_write('delete', f'admin-updates/{org_code()}/{id}', 'Notification deleted.')
    return redirect(url_for('notifications.org_updates'))


@notifications_bp.route('/inbox')
@login_required
def inbox():
    rows = fetch_list(f'admin-updates/user/{current_user.user_id}/{org_code()}')
    rows = apply_filters(rows, ('NotiTitle', 'NotiDesc'))
    rows = sort_notifications(rows, 'ValidFrom', descending=True)
    columns = [
        ('Title', 'NotiTitle'),
        ('Type', _type_cell),
        ('Details', 'NotiDesc'),
        ('Valid From', lambda row: display_date(row.get('ValidFrom'))),
        ('Valid To', lambda row: display_date(row.get('ValidTo'))),
        ('Status', _status_cell),
    ]
    items = table_rows(rows, columns, NOTIFICATION_ID_KEYS)
    return render_list('My Notifications', columns, items, status_filter=False)
