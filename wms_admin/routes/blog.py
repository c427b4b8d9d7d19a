from flask import Blueprint, flash, redirect, request, url_for
from slugify import slugify

from ..api_client import ApiError, get_api
from ..auth import role_required
from ..forms import BlogAuthorForm, BlogCategoryForm
from ..models import USER_TYPE_ORG_ADMIN, USER_TYPE_USER
from ..uploads import IMAGE_EXTENSIONS
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
    upload_parts,
)

blog_bp = Blueprint('blog', __name__)

BLOG_ROLES = (USER_TYPE_ORG_ADMIN, USER_TYPE_USER)
CATEGORY_COLUMNS = [
    ('Name', 'CategoryName'),
    ('Description', 'Description'),
    ('Status', lambda row: active_label(row.get('IsActive'))),
]
AUTHOR_COLUMNS = [
    ('Name', 'Name'),
    ('Role', 'Role'),
    ('LinkedIn', 'Linkedin'),
]


def _uploaded_path(upload_path, field_label):
    """Push an optional image to the blog upload endpoint and return its stored path.

    Returns '' when nothing was uploaded and None when the upload failed.
    """
    parts = upload_parts({'image': ('image', field_label, IMAGE_EXTENSIONS)})
    if parts is None:
        return None
    if not parts:
        return ''
    try:
        result = get_api().post(upload_path, files=parts)
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        flash(f'The {field_label} upload failed: {exc.message}', 'danger')
        return None
    file_path = result.get('filePath') if isinstance(result, dict) else None
    if not file_path:
        flash(f'The {field_label} upload did not return a file path.', 'danger')
        return None
    return file_path


def _category_payload(form):
    payload = form.to_payload()
    payload['OrgCode'] = org_code()
    payload['IsDeleted'] = False
    return payload


def _validate_category(form):
    if not form.validate():
        flash_form_errors(form)
        return False
    if not slugify(form.category_name.data or ''):
        flash('The category name must contain letters or numbers.', 'danger')
        return False
    return True


@blog_bp.route('/categories')
@role_required(*BLOG_ROLES)
def categories():
    rows = apply_filters(
        fetch_list(f'blog/categories/org/{org_code()}'),
        ('CategoryName', 'Description'),
        status_key='IsActive',
    )
    items = table_rows(rows, CATEGORY_COLUMNS, ('id', 'CategoryId'), 'blog.category_edit', 'blog.category_delete')
    return render_list('Blog Categories', CATEGORY_COLUMNS, items, create_url=url_for('blog.category_add'))


@blog_bp.route('/categories/add', methods=['GET', 'POST'])
@role_required(*BLOG_ROLES)
def category_add():
    form = BlogCategoryForm()
    if request.method == 'POST' and _validate_category(form):
        image_path = _uploaded_path('blog/categories/upload', 'category image')
        if image_path is not None:
            if image_path:
                form.img.data = image_path
            if api_write('post', 'blog/category', 'Blog category added.', json=_category_payload(form)) is not None:
                return redirect(url_for('blog.categories'))
    return render_form('Add Blog Category', form, url_for('blog.categories'))


@blog_bp.route('/categories/<int:id>/edit', methods=['GET', 'POST'])
@role_required(*BLOG_ROLES)
def category_edit(id):
    form = BlogCategoryForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'blog/category/{id}'))
    elif _validate_category(form):
        image_path = _uploaded_path('blog/categories/upload', 'category image')
        if image_path is not None:
            if image_path:
                form.img.data = image_path
            if api_write('put', f'blog/category/{id}', 'Blog category updated.', json=_category_payload(form)) is not None:
                return redirect(url_for('blog.categories'))
    return render_form('Edit Blog Category', form, url_for('blog.categories'))


@blog_bp.route('/categories/<int:id>/delete', methods=['POST'])
@role_required(*BLOG_ROLES)
def category_delete(id):
    api_write('delete', f'blog/category/{id}', 'Blog category deleted.')
    return redirect(url_for('blog.categories'))


@blog_bp.route('/authors')
@role_required(*BLOG_ROLES)
def authors():
    rows = apply_filters(fetch_list(f'blog/authors/org/{org_code()}'), ('Name', 'Role', 'Bio'))
    items = table_rows(rows, AUTHOR_COLUMNS, ('id', 'AuthorId'), 'blog.author_edit', 'blog.author_delete')
    return render_list(
        'Blog Authors',
        AUTHOR_COLUMNS,
        items,
        create_url=url_for('blog.author_add'),
        status_filter=False,
    )


def _author_payload(form):
    payload = form.to_payload()
    payload['OrgCode'] = org_code()
    return payload


@blog_bp.route('/authors/add', methods=['GET', 'POST'])
@role_required(*BLOG_ROLES)
def author_add():
    form = BlogAuthorForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            photo_path = _uploaded_path('blog/authors/upload', 'author photo')
            if photo_path is not None:
                if photo_path:
                    form.img.data = photo_path
                if api_write('post', 'blog/authors', 'Author added.', json=_author_payload(form)) is not None:
                    return redirect(url_for('blog.authors'))
    return render_form('Add Author', form, url_for('blog.authors'))


@blog_bp.route('/authors/<int:id>/edit', methods=['GET', 'POST'])
@role_required(*BLOG_ROLES)
def author_edit(id):
    form = BlogAuthorForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'blog/authors/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    else:
        photo_path = _uploaded_path('blog/authors/upload', 'author photo')
        if photo_path is not None:
            if photo_path:
                form.img.data = photo_path
            if api_write('put', f'blog/authors/{id}', 'Author updated.', json=_author_payload(form)) is not None:
                return redirect(url_for('blog.authors'))
    return render_form('Edit Author', form, url_for('blog.authors'))


@blog_bp.route('/authors/<int:id>/delete', methods=['POST'])
@role_required(*BLOG_ROLES)
def author_delete(id):
    api_write('delete', f'blog/authors/{id}', 'Author deleted.')
    return redirect(url_for('blog.authors'))
