from flask import Blueprint, redirect, request, url_for

from ..auth import role_required
from ..forms import EnquiryForm, EnquiryStatusForm
from ..models import USER_TYPE_ORG_ADMIN, USER_TYPE_USER
from ..utils import clean_text, distinct_values
from .common import (
    active_label,
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
)

enquiries_bp = Blueprint('enquiries', __name__)

ENQUIRY_ROLES = (USER_TYPE_ORG_ADMIN, USER_TYPE_USER)
ENQUIRY_ID_KEYS = ('Id', 'id')
MESSAGE_PREVIEW_LENGTH = 80


def _contact(row):
    return ' / '.join(value for value in (row.get('Email'), row.get('Mobile')) if value)


def _message_preview(row):
    message = row.get('Message') or ''
    if len(message) <= MESSAGE_PREVIEW_LENGTH:
        return message
    return message[:MESSAGE_PREVIEW_LENGTH].rstrip() + '...'


ENQUIRY_COLUMNS = [
    ('ID', 'Id'),
    ('Name', 'Name'),
    ('Contact', _contact),
    ('Source', 'TicketSource'),
    ('Message', _message_preview),
    ('Status', lambda row: active_label(row.get('Status'))),
    ('Date', lambda row: display_date(row.get('TransDate'))),
]


def _org_params():
    return {'OrgCode': org_code()}


@enquiries_bp.route('/')
@role_required(*ENQUIRY_ROLES)
def index():
    all_rows = fetch_list('enquiry', params=_org_params())
    source = clean_text(request.args.get('source'), 60)
    rows = apply_filters(all_rows, ('Name', 'Email', 'Mobile', 'Message', 'TicketSource'), status_key='Status')
    if source:
        rows = [row for row in rows if row.get('TicketSource') == source]
    items = table_rows(rows, ENQUIRY_COLUMNS, ENQUIRY_ID_KEYS, 'enquiries.edit', 'enquiries.delete')
    return render_list(
        'Enquiries',
        ENQUIRY_COLUMNS,
        items,
        create_url=url_for('enquiries.create'),
        extra_filters=[{
            'name': 'source',
            'label': 'Source',
            'options': distinct_values(all_rows, 'TicketSource'),
            'selected': source,
        }],
    )


@enquiries_bp.route('/add', methods=['GET', 'POST'])
@role_required(*ENQUIRY_ROLES)
def create():
    form = EnquiryForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            payload = form.to_payload()
            payload['OrgCode'] = org_code()
            if api_write('post', 'enquiry', 'Enquiry created.', json=payload) is not None:
                return redirect(url_for('enquiries.index'))
    return render_form('Add Enquiry', form, url_for('enquiries.index'))


@enquiries_bp.route('/<int:id>/edit', methods=['GET', 'POST'])
@role_required(*ENQUIRY_ROLES)
def edit(id):
    # Only the status is writable; the rest of the enquiry is shown for reference.
    enquiry = fetch_record(f'enquiry/{id}', params=_org_params())
    form = EnquiryStatusForm()
    if request.method == 'GET':
        form.load_record(enquiry)
    elif not form.validate():
        flash_form_errors(form)
    else:
        payload = {'OrgCode': org_code(), 'Status': form.status.data}
        if api_write('put', f'enquiry/{id}/status', 'Enquiry status updated.', json=payload) is not None:
            return redirect(url_for('enquiries.index'))
    details = [
        ('Name', enquiry.get('Name') or ''),
        ('Email', enquiry.get('Email') or ''),
        ('Mobile', enquiry.get('Mobile') or ''),
        ('WhatsApp', enquiry.get('Whatsapp') or ''),
        ('Source', enquiry.get('TicketSource') or ''),
        ('Received', display_date(enquiry.get('TransDate'))),
        ('Message', enquiry.get('Message') or ''),
    ]
    return render_form('Enquiry', form, url_for('enquiries.index'), details=details)


@enquiries_bp.route('/<int:id>/delete', methods=['POST'])
@role_required(*ENQUIRY_ROLES)
def delete(id):
    api_write('delete', f'enquiry/{id}', 'Enquiry deleted.', json=_org_params())
    return redirect(url_for('enquiries.index'))
