from flask import Blueprint, abort, jsonify, redirect, request, url_for

from ..auth import role_required
from ..forms import ProductCategoryForm, ProductForm, ProductSubCategoryForm
from ..models import USER_TYPE_ORG_ADMIN
from ..uploads import DOCUMENT_EXTENSIONS, IMAGE_EXTENSIONS
from ..utils import parse_positive_int, record_id
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

products_bp = Blueprint('products', __name__)

CATEGORY_ID_KEYS = ('CatId', 'id')
SUBCATEGORY_ID_KEYS = ('SubCatId', 'id')
PRODUCT_ID_KEYS = ('ProductId', 'id')
CATEGORY_IMAGE_UPLOAD = {'image': ('image', 'category image', IMAGE_EXTENSIONS)}
SUBCATEGORY_IMAGE_UPLOAD = {'image': ('image', 'sub-category image', IMAGE_EXTENSIONS)}
PRODUCT_UPLOADS = {
    'image1': ('image1', 'first image', IMAGE_EXTENSIONS),
    'image2': ('image2', 'second image', IMAGE_EXTENSIONS),
    'image3': ('image3', 'third image', IMAGE_EXTENSIONS),
    'image4': ('image4', 'fourth image', IMAGE_EXTENSIONS),
    'brochure': ('brochure', 'brochure', DOCUMENT_EXTENSIONS),
}


def _status_cell(row):
    return active_label(row.get('Status'))


def _category_names(categories):
    return {str(record_id(cat, *CATEGORY_ID_KEYS)): cat.get('CatName') or '' for cat in categories}


def _category_choices(categories):
    choices = [(None, 'Select a category')]
    for cat in categories:
        cat_id = parse_positive_int(record_id(cat, *CATEGORY_ID_KEYS))
        if cat_id:
            choices.append((cat_id, cat.get('CatName') or f'Category {cat_id}'))
    return choices


def _subcategory_choices(subcategories, cat_id):
    choices = [(None, 'None')]
    for sub in subcategories:
        if cat_id and str(sub.get('CatId')) != str(cat_id):
            continue
        sub_id = parse_positive_int(record_id(sub, *SUBCATEGORY_ID_KEYS))
        if sub_id:
            choices.append((sub_id, sub.get('SubCatName') or f'Sub-category {sub_id}'))
    return choices


def _multipart(form, upload_fields):
    """Form data plus validated files, or None when an upload was rejected."""
    files = upload_parts(upload_fields)
    if files is None:
        return None
    data = form.to_form_data()
    data['OrgCode'] = str(org_code())
    return {'data': data, 'files': files or None}


CATEGORY_COLUMNS = [
    ('Name', 'CatName'),
    ('Description', 'Description'),
    ('Status', _status_cell),
]


@products_bp.route('/categories')
@role_required(USER_TYPE_ORG_ADMIN)
def categories():
    rows = apply_filters(fetch_list(f'products/categories/{org_code()}'), ('CatName', 'Description'), status_key='Status')
    items = table_rows(rows, CATEGORY_COLUMNS, CATEGORY_ID_KEYS, 'products.category_edit', 'products.category_delete')
    return render_list('Product Categories', CATEGORY_COLUMNS, items, create_url=url_for('products.category_add'))


@products_bp.route('/categories/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def category_add():
    form = ProductCategoryForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            body = _multipart(form, CATEGORY_IMAGE_UPLOAD)
            if body is not None and api_write('post', 'products/categories', 'Category created.', **body) is not None:
                return redirect(url_for('products.categories'))
    return render_form('Add Product Category', form, url_for('products.categories'))


@products_bp.route('/categories/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def category_edit(id):
    form = ProductCategoryForm()
    if request.method == 'GET':
        form.load_record(fetch_record(f'products/category/id/{id}'))
    elif not form.validate():
        flash_form_errors(form)
    else:
        body = _multipart(form, CATEGORY_IMAGE_UPLOAD)
        if body is not None and api_write('put', f'products/category/id/{id}', 'Category updated.', **body) is not None:
            return redirect(url_for('products.categories'))
    return render_form('Edit Product Category', form, url_for('products.categories'))


@products_bp.route('/categories/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def category_delete(id):
    api_write('delete', f'products/categories/{id}', 'Category deleted.')
    return redirect(url_for('products.categories'))


@products_bp.route('/subcategories')
@role_required(USER_TYPE_ORG_ADMIN)
def subcategories():
    names = _category_names(fetch_list(f'products/categories/{org_code()}'))
    columns = [
        ('Name', 'SubCatName'),
        ('Category', lambda row: names.get(str(row.get('CatId')), '')),
        ('Description', 'Description'),
        ('Status', _status_cell),
    ]
    rows = apply_filters(
        fetch_list(f'products/subcategories/{org_code()}'),
        ('SubCatName', 'Description'),
        status_key='Status',
    )
    items = table_rows(rows, columns, SUBCATEGORY_ID_KEYS, 'products.subcategory_edit', 'products.subcategory_delete')
    return render_list('Product Sub-categories', columns, items, create_url=url_for('products.subcategory_add'))


def _find_subcategory(id):
    for row in fetch_list(f'products/subcategories/{org_code()}'):
        if str(record_id(row, *SUBCATEGORY_ID_KEYS)) == str(id):
            return row
    abort(404)


@products_bp.route('/subcategories/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def subcategory_add():
    form = ProductSubCategoryForm()
    form.cat_id.choices = _category_choices(fetch_list(f'products/categories/{org_code()}'))
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            body = _multipart(form, SUBCATEGORY_IMAGE_UPLOAD)
            if body is not None and api_write('post', 'products/subcategories', 'Sub-category created.', **body) is not None:
                return redirect(url_for('products.subcategories'))
    return render_form('Add Sub-category', form, url_for('products.subcategories'))


@products_bp.route('/subcategories/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def subcategory_edit(id):
    form = ProductSubCategoryForm()
    form.cat_id.choices = _category_choices(fetch_list(f'products/categories/{org_code()}'))
    if request.method == 'GET':
        form.load_record(_find_subcategory(id))
    elif not form.validate():
        flash_form_errors(form)
    else:
        body = _multipart(form, SUBCATEGORY_IMAGE_UPLOAD)
        if body is not None and api_write('put', f'products/subcategories/{id}', 'Sub-category updated.', **body) is not None:
            return redirect(url_for('products.subcategories'))
    return render_form('Edit Sub-category', form, url_for('products.subcategories'))


@products_bp.route('/subcategories/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def subcategory_delete(id):
    api_write('delete', f'products/subcategories/{id}', 'Sub-category deleted.')
    return redirect(url_for('products.subcategories'))


@products_bp.route('/subcategories/by-category/<int:cat_id>')
@role_required(USER_TYPE_ORG_ADMIN)
def subcategories_for_category(cat_id):
    rows = fetch_list(f'products/subcategories/{org_code()}/{cat_id}')
    return jsonify([
        {'id': record_id(row, *SUBCATEGORY_ID_KEYS), 'name': row.get('SubCatName') or ''}
        for row in rows
        if str(row.get('CatId', cat_id)) == str(cat_id)
    ])


@products_bp.route('/')
@role_required(USER_TYPE_ORG_ADMIN)
def products():
    categories = fetch_list(f'products/categories/{org_code()}')
    names = _category_names(categories)
    columns = [
        ('Code', 'Code'),
        ('Name', 'ProductName'),
        ('Category', lambda row: names.get(str(row.get('CatId')), '')),
        ('Brand', 'Brand'),
        ('Status', _status_cell),
    ]
    category_filter = request.args.get('category') or ''
    rows = apply_filters(
        fetch_list(f'products/products/org/{org_code()}'),
        ('ProductName', 'Code', 'Brand'),
        status_key='Status',
    )
    if category_filter:
        rows = [row for row in rows if str(row.get('CatId')) == category_filter]
    items = table_rows(rows, columns, PRODUCT_ID_KEYS, 'products.product_edit', 'products.product_delete')
    filters = [{
        'name': 'category',
        'label': 'Category',
        'options': [(str(value), label) for value, label in _category_choices(categories) if value],
        'selected': category_filter,
    }]
    return render_list(
        'Products',
        columns,
        items,
        create_url=url_for('products.product_add'),
        extra_filters=filters,
    )


def _product_form(record=None):
    form = ProductForm()
    categories = fetch_list(f'products/categories/{org_code()}')
    form.cat_id.choices = _category_choices(categories)
    if record is not None:
        form.load_record(record)
    selected = form.cat_id.data
    subcategories = fetch_list(f'products/subcategories/{org_code()}') if selected else []
    form.sub_cat_id.choices = _subcategory_choices(subcategories, selected)
    return form


@products_bp.route('/add', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def product_add():
    form = _product_form()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
        else:
            body = _multipart(form, PRODUCT_UPLOADS)
            if body is not None and api_write('post', 'products/products', 'Product created.', **body) is not None:
                return redirect(url_for('products.products'))
    return render_form('Add Product', form, url_for('products.products'), subcategory_lookup=True)


@products_bp.route('/<int:id>/edit', methods=['GET', 'POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def product_edit(id):
    if request.method == 'GET':
        form = _product_form(fetch_record(f'products/products/{id}'))
    else:
        form = _product_form()
        if not form.validate():
            flash_form_errors(form)
        else:
            body = _multipart(form, PRODUCT_UPLOADS)
            if body is not None and api_write('put', f'products/products/{id}', 'Product updated.', **body) is not None:
                return redirect(url_for('products.products'))
    return render_form('Edit Product', form, url_for('products.products'), subcategory_lookup=True)


@products_bp.route('/<int:id>/delete', methods=['POST'])
@role_required(USER_TYPE_ORG_ADMIN)
def product_delete(id):
    api_write('delete', f'products/products/{id}', 'Product deleted.')
    return redirect(url_for('products.products'))
