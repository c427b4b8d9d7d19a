"""Helpers shared by the CRUD blueprints."""
import logging

from flask import flash, render_template, request, url_for
from flask_login import current_user

from ..api_client import ApiError, get_api
from ..models import parse_api_datetime
from ..uploads import UploadError, collect_parts
from ..utils import STATUS_FILTER_CHOICES, as_bool, clean_text, filter_active, record_id, search_rows

logger = logging.getLogger(__name__)


def org_code():
    return current_user.org_code


def fetch_list(path, **kwargs):
    try:
        return get_api().get_list(path, **kwargs)
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        flash(exc.message, 'danger')
        return []


def fetch_record(path, **kwargs):
    return get_api().get_record(path, **kwargs)


def api_write(method, path, success_message, **kwargs):
    """Run one write call. Returns the API result, or None after flashing the error."""
    try:
        result = getattr(get_api(), method)(path, **kwargs)
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        logger.info('CMS API %s %s rejected: %s', method.upper(), path, exc.message)
        flash(exc.message, 'danger')
        return None
    flash(success_message, 'success')
    return result if result is not None else {}


def upload_parts(upload_fields):
    try:
        return collect_parts(request.files, upload_fields)
    except UploadError as exc:
        flash(str(exc), 'danger')
        return None


def flash_form_errors(form):
    for field_name, errors in form.errors.items():
        label = getattr(form, field_name).label.text if hasattr(form, field_name) else field_name
        for error in errors:
            flash(f'{label}: {error}', 'danger')


def list_filters():
    search = clean_text(request.args.get('q'), 200)
    status = request.args.get('status') or 'All'
    if status not in STATUS_FILTER_CHOICES:
        status = 'All'
    return search, status


def apply_filters(rows, search_keys, status_key=None):
    search, status = list_filters()
    rows = search_rows(rows, search, search_keys)
    if status_key:
        rows = filter_active(rows, status, key=status_key)
    return rows


def table_rows(rows, columns, id_keys, edit_endpoint=None, delete_endpoint=None, actions=(), **url_kwargs):
    # columns are (label, key) pairs where key is a field name or a callable on the row.
    items = []
    for row in rows:
        item_id = record_id(row, *id_keys)
        cells = []
        for _, key in columns:
            value = key(row) if callable(key) else row.get(key)
            cells.append('' if value is None else value)
        items.append({
            'id': item_id,
            'cells': cells,
            'edit_url': url_for(edit_endpoint, id=item_id, **url_kwargs) if edit_endpoint and item_id else None,
            'delete_url': url_for(delete_endpoint, id=item_id, **url_kwargs) if delete_endpoint and item_id else None,
            'actions': [
                {'label': label, 'url': url_for(endpoint, id=item_id, **url_kwargs)}
                for label, endpoint in actions
                if item_id
            ],
        })
    return items


def render_list(title, columns, items, create_url=None, status_filter=True, extra_filters=None, **context):
    search, status = list_filters()
    return render_template(
        'crud/list.html',
        title=title,
        headers=[label for label, _ in columns],
        items=items,
        create_url=create_url,
        search=search,
        status=status,
        status_filter=status_filter,
        extra_filters=extra_filters or [],
        **context,
    )


def render_form(title, form, cancel_url, **context):
    return render_template('crud/form.html', title=title, form=form, cancel_url=cancel_url, **context)


def active_label(value):
    return 'Active' if as_bool(value) else 'Inactive'


def trans_by():
    return str(current_user.data.get('LoginId') or current_user.name)


def display_date(value, fmt='%Y-%m-%d %H:%M'):
    parsed = parse_api_datetime(value)
    return parsed.strftime(fmt) if parsed else ''
