from flask import Blueprint, abort, redirect, request, url_for

from ..auth import role_required
from ..forms import FaqEntryForm, TermsEntryForm
from ..models import USER_TYPE_ORG_ADMIN
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

terms_bp = Blueprint('terms', __name__)

# URL kind -> (page title, API collection)
TERMS_KINDS = {
    'faqs': ('FAQs', 'faq'),
    'privacy-policy': ('Privacy Policy', 'privacy'),
    'terms-of-service': ('Terms of Service', 'tos'),
    'return-and-refund': ('Return & Refund', 'returns'),
    'shipping': ('Shipping', 'shipping'),
}
ENTRY_ID_KEYS = ('id', 'Id')


def _resolve(kind):
    if kind not in TERMS_KINDS:
        abort(404)
    return TERMS_KINDS[kind]


def _form_for(kind):
    return FaqEntryForm() if kind == 'faqs' else TermsEntryForm()


def _columns(kind):
    columns = [('Question', 'question'), ('Status', lambda row: active_label(row.get('isActive')))]
    if kind == 'faqs':
        columns.insert(0, ('Title', 'title'))
    return columns


def _payload(form):
    payload = form.to_payload()
    payload['OrgCode'] = org_code()
    return payload


@terms_bp.route('/<kind>')
@role_required(USER_TYPE_ORG_ADMIN)
def index(kind):
    title, collection = _resolve(kind)
    columns = _columns(kind)
    rows = apply_filters(fetch_list(f'{collection}/{org_code()}'), ('question', 'answer'), status_key='isActive')
    items = table_rows(rows, columns, ENTRY_ID_KEYS, 'terms.edit', 'terms.delete', kind=kind)
    return render_list(title, columns, items, create_url=url_for('terms.create', kind=kind))


@terms_bp.route('/<kind>/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def create(kind):
    title, collection = _resolve(kind)
    form = _form_for(kind)
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        elif api_write('post', collection, f'{title} entry created.', json=_payload(form)) is not None:
            return redirect(url_for('terms.index', kind=kind))
    return render_form(f'Add {title} Entry', form, url_for('terms.index', kind=kind))


@terms_bp.route('/<kind>/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def edit(kind, id):
    title, collection = _resolve(kind)
    form = _form_for(kind)
    path = f'{collection}/{org_code()}/{id}'
    if request.method == 'GET':
        form.load_record(fetch_record(path))
    elif not form.validate():
        flash_form_errors(form)
    elif api_write('put', path, f'{title} entry updated.', json=_payload(form)) is not None:
        return redirect(url_for('terms.index', kind=kind))
    return render_form(f'Edit {title} Entry', form, url_for('terms.index', kind=kind))


@terms_bp.route('/<kind>/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def delete(kind, id):
    title, collection = _resolve(kind)
    api_write('delete', f'{collection}/{org_code()}/{id}', f'{title} entry deleted.')
    return redirect(url_for('terms.index', kind=kind))
