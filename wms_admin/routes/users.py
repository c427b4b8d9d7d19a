from flask import Blueprint, redirect, request, url_for

from ..auth import role_required
from ..forms import OrgUserEditForm, OrgUserForm
from ..models import USER_TYPE_ORG_ADMIN
from ..uploads import IMAGE_EXTENSIONS
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
    upload_parts,
)

users_bp = Blueprint('users', __name__)

USER_ID_KEYS = ('UserId', 'id')
PHOTO_UPLOAD = {'user_photo': ('UserPhoto', 'photo', IMAGE_EXTENSIONS)}
USER_COLUMNS = [
    ('Name', 'UserName'),
    ('Employee Code', 'EmployeeCode'),
    ('Login ID', 'LoginId'),
    ('Email', 'UserEmail'),
    ('Mobile', 'Mobile'),
    ('Status', 'Status'),
    ('Created', lambda row: display_date(row.get('TransDate'), '%Y-%m-%d')),
]


@users_bp.route('/')
@role_required(USER_TYPE_ORG_ADMIN)
def index():
    rows = apply_filters(
        fetch_list(f'users/org/{org_code()}'),
        ('UserName', 'UserEmail', 'LoginId', 'EmployeeCode', 'Mobile'),
        status_key='Status',
    )
    items = table_rows(rows, USER_COLUMNS, USER_ID_KEYS, 'users.edit', 'users.delete')
    return render_list('User Management', USER_COLUMNS, items, create_url=url_for('users.create'))


@users_bp.route('/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def create():
    form = OrgUserForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            files = upload_parts(PHOTO_UPLOAD)
            data = form.to_form_data(skip_empty=True)
            data['OrgCode'] = str(org_code())
            if files is not None and api_write(
                'post', 'users/register', 'User created.', data=data, files=files or None
            ) is not None:
                return redirect(url_for('users.index'))
    return render_form('Add User', form, url_for('users.index'))


@users_bp.route('/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def edit(id):
    form = OrgUserEditForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'users/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    else:
        files = upload_parts(PHOTO_UPLOAD)
        data = form.to_form_data()
        if not data.get('LoginPwd'):
            data.pop('LoginPwd', None)
        if files or not data.get('ExistingUserPhoto'):
            data.pop('ExistingUserPhoto', None)
        if files is not None and api_write('put', f'users/{id}', 'User updated.', data=data, files=files or None) is not None:
            return redirect(url_for('users.index'))
    return render_form('Edit User', form, url_for('users.index'))


@users_bp.route('/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def delete(id):
    api_write('delete', f'users/{id}', 'User deleted.')
    return redirect(url_for('users.index'))
