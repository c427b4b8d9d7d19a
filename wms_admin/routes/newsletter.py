from flask import Blueprint, flash, redirect, render_template, request, url_for

from ..auth import role_required
from ..forms import NewsletterTemplateForm, SubscriberForm
from ..models import (
    EMAIL_STATUS_FAILED,
    EMAIL_STATUS_SENT,
    USER_TYPE_ORG_ADMIN,
    USER_TYPE_USER,
    group_sent_emails,
    sent_email_totals,
)
from ..utils import as_bool, clean_text, search_rows
from .common import (
    active_label,
    api_write,
    apply_filters,
    fetch_list,
    fetch_record,
    flash_form_errors,
    org_code,
    render_form,
    render_list,
    table_rows,
)

newsletter_bp = Blueprint('newsletter', __name__)

NEWSLETTER_ROLES = (USER_TYPE_ORG_ADMIN, USER_TYPE_USER)
SENT_STATUS_CHOICES = ('All', EMAIL_STATUS_SENT, EMAIL_STATUS_FAILED)
SUBSCRIBER_ID_KEYS = ('id', 'SubscriberId')
TEMPLATE_ID_KEYS = ('id', 'TemplateId')
SUBSCRIBER_COLUMNS = [
    ('Email', 'Email'),
    ('Status', lambda row: active_label(row.get('IsActive'))),
]
TEMPLATE_COLUMNS = [
    ('Name', 'Name'),
    ('Subject', 'Subject'),
    ('Status', lambda row: active_label(row.get('IsActive'))),
]


def _with_org(form):
    payload = form.to_payload()
    payload['OrgCode'] = org_code()
    return payload


@newsletter_bp.route('/subscribers')
@role_required(*NEWSLETTER_ROLES)
def subscribers():
    rows = apply_filters(fetch_list(f'newsletter/subscribers/{org_code()}'), ('Email',), status_key='IsActive')
    items = table_rows(
        rows,
        SUBSCRIBER_COLUMNS,
        SUBSCRIBER_ID_KEYS,
        'newsletter.subscriber_edit',
        'newsletter.subscriber_delete',
    )
    return render_list('Subscribers', SUBSCRIBER_COLUMNS, items, create_url=url_for('newsletter.subscriber_add'))


@newsletter_bp.route('/subscribers/add', methods=['GET', 'POST'])
@role_required(*NEWSLETTER_ROLES)
def subscriber_add():
    form = SubscriberForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', 'newsletter/subscriber', 'Subscriber added.', json=_with_org(form)) is not None:
            return redirect(url_for('newsletter.subscribers'))
    return render_form('Add Subscriber', form, url_for('newsletter.subscribers'))


@newsletter_bp.route('/subscribers/<int:id>/edit', methods=['GET', 'POST'])
@role_required(*NEWSLETTER_ROLES)
def subscriber_edit(id):
    form = SubscriberForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'newsletter/subscriber/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write('put', f'newsletter/subscriber/{id}', 'Subscriber updated.', json=_with_org(form)) is not None:
        return redirect(url_for('newsletter.subscribers'))
    return render_form('Edit Subscriber', form, url_for('newsletter.subscribers'))


@newsletter_bp.route('/subscribers/<int:id>/delete', methods=['POST'])
@role_required(*NEWSLETTER_ROLES)
def subscriber_delete(id):
    api_write('delete', f'newsletter/subscriber/{id}', 'Subscriber deleted.')
    return redirect(url_for('newsletter.subscribers'))


@newsletter_bp.route('/templates')
@role_required(*NEWSLETTER_ROLES)
def templates():
    rows = apply_filters(fetch_list(f'newsletter/templates/{org_code()}'), ('Name', 'Subject'), status_key='IsActive')
    items = table_rows(
        rows,
        TEMPLATE_COLUMNS,
        TEMPLATE_ID_KEYS,
        'newsletter.template_edit',
        'newsletter.template_delete',
        actions=[('Send', 'newsletter.template_send')],
    )
    return render_list('Email Templates', TEMPLATE_COLUMNS, items, create_url=url_for('newsletter.template_add'))


@newsletter_bp.route('/templates/add', methods=['GET', 'POST'])
@role_required(*NEWSLETTER_ROLES)
def template_add():
    form = NewsletterTemplateForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', 'newsletter/template', 'Email template created.', json=_with_org(form)) is not None:
            return redirect(url_for('newsletter.templates'))
    return render_form('Add Email Template', form, url_for('newsletter.templates'))


@newsletter_bp.route('/templates/<int:id>/edit', methods=['GET', 'POST'])
@role_required(*NEWSLETTER_ROLES)
def template_edit(id):
    form = NewsletterTemplateForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'newsletter/template/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write('put', f'newsletter/template/{id}', 'Email template updated.', json=_with_org(form)) is not None:
        return redirect(url_for('newsletter.templates'))
    return render_form('Edit Email Template', form, url_for('newsletter.templates'))


@newsletter_bp.route('/templates/<int:id>/delete', methods=['POST'])
@role_required(*NEWSLETTER_ROLES)
def template_delete(id):
    api_write('delete', f'newsletter/template/{id}', 'Email template deleted.')
    return redirect(url_for('newsletter.templates'))


@newsletter_bp.route('/templates/<int:id>/send', methods=['POST'])
@role_required(*NEWSLETTER_ROLES)
def template_send(id):
    template = fetch_record(f'newsletter/template/{id}')
    if not as_bool(template.get('IsActive')):
        flash('Only active templates can be sent. Activate the template first.', 'warning')
        return redirect(url_for('newsletter.templates'))
    api_write(
        'post',
        'newsletter/send',
        f"Newsletter \"{template.get('Name') or id}\" queued for sending.",
        json={'OrgCode': org_code(), 'TemplateId': id},
    )
    return redirect(url_for('newsletter.templates'))


@newsletter_bp.route('/sent')
@role_required(*NEWSLETTER_ROLES)
def sent():
    search = clean_text(request.args.get('q'), 200)
    status = request.args.get('status') or 'All'
    if status not in SENT_STATUS_CHOICES:
        status = 'All'

    sent_rows = fetch_list(f'newsletter/sent/{org_code()}')
    rows = search_rows(sent_rows, search, ('TemplateName', 'Subject', 'SubscriberEmail', 'Email'))
    if status != 'All':
        rows = [row for row in rows if row.get('Status') == status]
    return render_template(
        'newsletter/sent.html',
        groups=group_sent_emails(rows),
        totals=sent_email_totals(sent_rows),
        search=search,
        status=status,
        status_choices=SENT_STATUS_CHOICES,
    )
