from flask import Blueprint, flash, redirect, render_template, request, url_for

from ..auth import role_required
from ..forms import LicenseForm, OrgModuleForm, OrganizationForm
from ..models import USER_TYPE_ORG_ADMIN, USER_TYPE_SUPER_ADMIN
from ..uploads import IMAGE_EXTENSIONS
from ..utils import as_bool, parse_positive_int, record_id
from .common import (
    api_write,
    apply_filters,
    fetch_list,
    fetch_record,
    flash_form_errors,
    org_code,
    render_form,
    render_list,
    table_rows,
    trans_by,
    upload_parts,
)

org_bp = Blueprint('org', __name__)

ORG_ID_KEYS = ('OrgID', 'OrgId', 'id')
LICENSE_ID_KEYS = ('LicenseId', 'LicenseID', 'id')
ORG_MODULE_ID_KEYS = ('OrgModuleId', 'Id', 'id')
MODULE_ID_KEYS = ('ModuleId', 'ModuleID', 'id')
USER_MODULE_ID_KEYS = ('UserModuleId', 'Id', 'id')
USER_ID_KEYS = ('UserId', 'id')
LOGO_UPLOAD = {'logo': ('Logo', 'logo', IMAGE_EXTENSIONS)}

ORGANIZATION_COLUMNS = [
    ('Code', 'OrgCode'),
    ('Name', 'OrgName'),
    ('Type', 'OrgType'),
    ('Contact', 'ContactPerson'),
    ('Email', 'Email'),
    ('City', 'City'),
    ('Status', 'Status'),
]
LICENSE_COLUMNS = [
    ('License', 'LicenseName'),
    ('Org Code', 'OrgCode'),
    ('Max Users', 'MaxUsers'),
    ('Max Visitors', 'MaxVisitors'),
    ('Status', 'Status'),
]
ORG_MODULE_COLUMNS = [
    ('Organization', lambda row: row.get('OrgName') or row.get('OrgCode')),
    ('Module', lambda row: row.get('ModuleName') or row.get('ModuleCode')),
    ('Code', 'ModuleCode'),
    ('Status', 'Status'),
    ('Updated By', 'TransBy'),
]
USER_MODULE_COLUMNS = [
    ('User', lambda row: row.get('UserName') or row.get('LoginId') or row.get('UserId')),
    ('Module', lambda row: row.get('ModuleName') or row.get('ModuleCode')),
    ('Code', 'ModuleCode'),
    ('Status', 'Status'),
]


# Organizations
@org_bp.route('/organizations')
@role_required(USER_TYPE_SUPER_ADMIN)
def organizations():
    rows = apply_filters(fetch_list('orgs/'), ('OrgName', 'ContactPerson', 'Email', 'City'))
    items = table_rows(rows, ORGANIZATION_COLUMNS, ORG_ID_KEYS, 'org.organization_edit', 'org.organization_delete')
    return render_list(
        'Organizations',
        ORGANIZATION_COLUMNS,
        items,
        create_url=url_for('org.organization_add'),
        status_filter=False,
    )


def _organization_body(form):
    files = upload_parts(LOGO_UPLOAD)
    if files is None:
        return None
    return {'data': form.to_form_data(skip_empty=True), 'files': files or None}


@org_bp.route('/organizations/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def organization_add():
    form = OrganizationForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            body = _organization_body(form)
            if body is not None and api_write('post', 'orgs/register', 'Organization registered.', **body) is not None:
                return redirect(url_for('org.organizations'))
    return render_form('Add Organization', form, url_for('org.organizations'))


@org_bp.route('/organizations/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def organization_edit(id):
    form = OrganizationForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'orgs/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    else:
        body = _organization_body(form)
        if body is not None and api_write('put', f'orgs/{id}', 'Organization updated.', **body) is not None:
            return redirect(url_for('org.organizations'))
    return render_form('Edit Organization', form, url_for('org.organizations'))


@org_bp.route('/organizations/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def organization_delete(id):
    api_write('delete', f'orgs/{id}', 'Organization deleted.')
    return redirect(url_for('org.organizations'))


# Licenses
@org_bp.route('/licenses')
@role_required(USER_TYPE_SUPER_ADMIN)
def licenses():
    rows = apply_filters(fetch_list('licenses/'), ('LicenseName', 'OrgCode'))
    items = table_rows(rows, LICENSE_COLUMNS, LICENSE_ID_KEYS, 'org.license_edit', 'org.license_delete')
    return render_list(
        'Licenses',
        LICENSE_COLUMNS,
        items,
        create_url=url_for('org.license_add'),
        status_filter=False,
    )


@org_bp.route('/licenses/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def license_add():
    form = LicenseForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', 'licenses/create', 'License created.', json=form.to_payload()) is not None:
            return redirect(url_for('org.licenses'))
    return render_form('Add License', form, url_for('org.licenses'))


@org_bp.route('/licenses/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def license_edit(id):
    form = LicenseForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'licenses/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write('put', f'licenses/{id}', 'License updated.', json=form.to_payload()) is not None:
        return redirect(url_for('org.licenses'))
    return render_form('Edit License', form, url_for('org.licenses'))


@org_bp.route('/licenses/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def license_delete(id):
    api_write('delete', f'licenses/{id}', 'License deleted.')
    return redirect(url_for('org.licenses'))


# Org modules
def _module_catalog():
    return fetch_list('assignmodules/modules')


def _org_module_form(modules):
    form = OrgModuleForm()
    form.module_id.choices = [(None, 'Select a module')]
    for module in modules:
        module_id = parse_positive_int(record_id(module, *MODULE_ID_KEYS))
        if module_id:
            form.module_id.choices.append((module_id, module.get('ModuleName') or module.get('ModuleCode') or ''))
    form.org_code.choices = [(None, 'Select an organization')]
    for org in fetch_list('assignmodules/orgs'):
        code = parse_positive_int(org.get('OrgCode'))
        if code:
            form.org_code.choices.append((code, org.get('OrgName') or str(code)))
    return form


def _org_module_payload(form, modules):
    payload = form.to_payload()
    # The catalog code of the chosen module wins over whatever was typed.
    for module in modules:
        if str(record_id(module, *MODULE_ID_KEYS)) == str(payload.get('ModuleId')) and module.get('ModuleCode'):
            payload['ModuleCode'] = module['ModuleCode']
            break
    payload['TransBy'] = trans_by()
    return payload


@org_bp.route('/modules')
@role_required(USER_TYPE_SUPER_ADMIN)
def org_modules():
    rows = apply_filters(fetch_list('assignmodules/org-modules'), ('OrgName', 'ModuleName', 'ModuleCode'))
    items = table_rows(rows, ORG_MODULE_COLUMNS, ORG_MODULE_ID_KEYS, 'org.org_module_edit', 'org.org_module_delete')
    return render_list(
        'Organization Modules',
        ORG_MODULE_COLUMNS,
        items,
        create_url=url_for('org.org_module_add'),
        status_filter=False,
    )


@org_bp.route('/modules/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def org_module_add():
    modules = _module_catalog()
    form = _org_module_form(modules)
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write(
            'post',
            'assignmodules/org-modules',
            'Module assigned to organization.',
            json=_org_module_payload(form, modules),
        ) is not None:
            return redirect(url_for('org.org_modules'))
    return render_form('Assign Module', form, url_for('org.org_modules'))


@org_bp.route('/modules/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def org_module_edit(id):
    modules = _module_catalog()
    form = _org_module_form(modules)
    if request.method == 'GET':
        form.load_record(fetch_record(f'assignmodules/org-modules/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write(
        'put',
        f'assignmodules/org-modules/{id}',
        'Module assignment updated.',
        json=_org_module_payload(form, modules),
    ) is not None:
        return redirect(url_for('org.org_modules'))
    return render_form('Edit Module Assignment', form, url_for('org.org_modules'))


@org_bp.route('/modules/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_SUPER_ADMIN)
def org_module_delete(id):
    api_write('delete', f'assignmodules/org-modules/{id}', 'Module assignment removed.', json={'TransBy': trans_by()})
    return redirect(url_for('org.org_modules'))


# User modules
@org_bp.route('/user-modules')
@role_required(USER_TYPE_SUPER_ADMIN, USER_TYPE_ORG_ADMIN)
def user_modules():
    rows = apply_filters(fetch_list(f'user-modules/org/{org_code()}'), ('UserName', 'LoginId', 'ModuleName', 'ModuleCode'))
    items = table_rows(rows, USER_MODULE_COLUMNS, USER_MODULE_ID_KEYS)
    return render_list(
        'User Modules',
        USER_MODULE_COLUMNS,
        items,
        create_url=url_for('org.user_module_assign'),
        status_filter=False,
    )


def _module_key(record):
    return str(record.get('ModuleId') or record.get('ModuleID') or '')


@org_bp.route('/user-modules/assign')
@role_required(USER_TYPE_SUPER_ADMIN, USER_TYPE_ORG_ADMIN)
def user_module_assign():
    users = fetch_list(f'users/org/{org_code()}')
    user_id = parse_positive_int(request.args.get('user_id'))
    org_modules = fetch_list(f'assignmodules/org-modules/org/{org_code()}') if user_id else []
    assigned = {}
    if user_id:
        for record in fetch_list(f'user-modules/user/{user_id}'):
            assigned[_module_key(record)] = record
    modules = [
        {
            'module_id': _module_key(module),
            'name': module.get('ModuleName') or module.get('ModuleCode') or '',
            'code': module.get('ModuleCode') or '',
            'assigned': _module_key(module) in assigned,
        }
        for module in org_modules
        if _module_key(module)
    ]
    user_choices = [
        (record_id(user, *USER_ID_KEYS), user.get('UserName') or user.get('LoginId') or '')
        for user in users
        if record_id(user, *USER_ID_KEYS)
    ]
    return render_template(
        'org/user_module_assign.html',
        users=user_choices,
        selected_user=user_id,
        modules=modules,
    )


@org_bp.route('/user-modules/assign', methods=['POST'])
@role_required(USER_TYPE_SUPER_ADMIN, USER_TYPE_ORG_ADMIN)
def user_module_toggle():
    user_id = parse_positive_int(request.form.get('user_id'))
    module_id = (request.form.get('module_id') or '').strip()
    assign = as_bool(request.form.get('assign'))
    if not user_id or not module_id:
        flash('Choose a user and a module.', 'danger')
        return redirect(url_for('org.user_module_assign'))

    back = redirect(url_for('org.user_module_assign', user_id=user_id))
    org_module = next(
        (m for m in fetch_list(f'assignmodules/org-modules/org/{org_code()}') if _module_key(m) == module_id),
        None,
    )
    if org_module is None:
        flash('That module is not licensed to your organization.', 'danger')
        return back

    if assign:
        api_write(
            'post',
            'user-modules/assign',
            'Module assigned.',
            json={
                'UserId': user_id,
                'ModuleId': parse_positive_int(module_id) or module_id,
                'OrgCode': org_code(),
                'ModuleCode': org_module.get('ModuleCode') or '',
                'Status': 'Active',
                'TransBy': trans_by(),
            },
        )
        return back

    current = next(
        (r for r in fetch_list(f'user-modules/user/{user_id}') if _module_key(r) == module_id),
        None,
    )
    user_module_id = record_id(current, *USER_MODULE_ID_KEYS) if current else None
    if not user_module_id:
        flash('That module is not assigned to the user.', 'warning')
        return back
    api_write('delete', f'user-modules/{user_module_id}', 'Module unassigned.')
    return back
