from flask import Blueprint, flash, redirect, request, url_for

from ..auth import role_required
from ..forms import JobApplicationForm, JobForm
from ..models import USER_TYPE_ORG_ADMIN, USER_TYPE_USER
from ..uploads import DOCUMENT_EXTENSIONS
from ..utils import clean_text, distinct_values
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
    upload_parts,
)

careers_bp = Blueprint('careers', __name__)

CAREERS_ROLES = (USER_TYPE_ORG_ADMIN, USER_TYPE_USER)
JOB_ID_KEYS = ('id', 'JobId', '_id')
APPLICATION_ID_KEYS = ('id', 'ApplicationId', '_id')
JOB_COLUMNS = [
    ('Title', 'title'),
    ('Department', 'department'),
    ('Location', 'location'),
    ('Type', 'type'),
]
APPLICATION_COLUMNS = [
    ('Applicant', 'name'),
    ('Email', 'email'),
    ('Phone', 'phone'),
    ('Job', 'jobTitle'),
    ('Resume', 'resume'),
]


def _org_params():
    return {'OrgCode': org_code()}


def _job_payload(form):
    payload = form.to_payload()
    payload['OrgCode'] = org_code()
    return payload


def _select_filter(name, label, options):
    selected = clean_text(request.args.get(name), 120)
    return {'name': name, 'label': label, 'options': options, 'selected': selected}


@careers_bp.route('/jobs')
@role_required(*CAREERS_ROLES)
def jobs():
    all_rows = fetch_list('jobs/jd', params=_org_params())
    filters = [
        _select_filter('department', 'Department', distinct_values(all_rows, 'department')),
        _select_filter('type', 'Type', distinct_values(all_rows, 'type')),
    ]
    rows = apply_filters(all_rows, ('title', 'department', 'location', 'description'))
    for item in filters:
        if item['selected']:
            rows = [row for row in rows if row.get(item['name']) == item['selected']]
    items = table_rows(rows, JOB_COLUMNS, JOB_ID_KEYS, 'careers.job_edit', 'careers.job_delete')
    return render_list(
        'Job Descriptions',
        JOB_COLUMNS,
        items,
        create_url=url_for('careers.job_add'),
        status_filter=False,
        extra_filters=filters,
    )


@careers_bp.route('/jobs/add', methods=['GET', 'POST'])
@role_required(*CAREERS_ROLES)
def job_add():
    form = JobForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', 'jobs/jd', 'Job description created.', json=_job_payload(form)) is not None:
            return redirect(url_for('careers.jobs'))
    return render_form('Add Job Description', form, url_for('careers.jobs'))


@careers_bp.route('/jobs/<id>/edit', methods=['GET', 'POST'])
@role_required(*CAREERS_ROLES)
def job_edit(id):
    form = JobForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'jobs/jd/{id}', params=_org_params()))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write('put', f'jobs/jd/{id}', 'Job description updated.', params=_org_params(), json=_job_payload(form)) is not None:
        return redirect(url_for('careers.jobs'))
    return render_form('Edit Job Description', form, url_for('careers.jobs'))


@careers_bp.route('/jobs/<id>/delete', methods=['POST'])
@role_required(*CAREERS_ROLES)
def job_delete(id):
    api_write('delete', f'jobs/jd/{id}', 'Job description deleted.', params=_org_params())
    return redirect(url_for('careers.jobs'))


@careers_bp.route('/applications')
@role_required(*CAREERS_ROLES)
def applications():
    rows = apply_filters(fetch_list('jobs/application', params=_org_params()), ('name', 'email', 'jobTitle'))
    items = table_rows(rows, APPLICATION_COLUMNS, APPLICATION_ID_KEYS, delete_endpoint='careers.application_delete')
    return render_list(
        'Job Applications',
        APPLICATION_COLUMNS,
        items,
        create_url=url_for('careers.application_add'),
        status_filter=False,
    )


@careers_bp.route('/applications/add', methods=['GET', 'POST'])
@role_required(*CAREERS_ROLES)
def application_add():
    form = JobApplicationForm()
    titles = distinct_values(fetch_list('jobs/jd', params=_org_params()), 'title')
    form.job_title.choices = [('', 'Select a job')] + [(title, title) for title in titles]
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
            return render_form('Add Job Application', form, url_for('careers.applications'))
        parts = upload_parts({'resume': ('resume', 'resume', DOCUMENT_EXTENSIONS)})
        if parts is None:
            return render_form('Add Job Application', form, url_for('careers.applications'))
        if not parts:
            flash('A PDF resume is required.', 'danger')
            return render_form('Add Job Application', form, url_for('careers.applications'))
        data = form.to_form_data()
        data['OrgCode'] = str(org_code())
        if api_write('post', 'jobs/application', 'Application submitted.', data=data, files=parts) is not None:
            return redirect(url_for('careers.applications'))
    return render_form('Add Job Application', form, url_for('careers.applications'))


@careers_bp.route('/applications/<id>/delete', methods=['POST'])
@role_required(*CAREERS_ROLES)
def application_delete(id):
    api_write('delete', f'jobs/application/{id}', 'Application deleted.', params=_org_params())
    return redirect(url_for('careers.applications'))
