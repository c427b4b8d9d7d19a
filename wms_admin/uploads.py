from flask import current_app
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
DOCUMENT_EXTENSIONS = {'pdf'}
EXTENSION_MIME_TYPES = {
    'png': {'image/png'},
    'jpg': {'image/jpeg'},
    'jpeg': {'image/jpeg'},
    'gif': {'image/gif'},
    'webp': {'image/webp'},
    'pdf': {'application/pdf'},
}


class UploadError(ValueError):
    pass


def has_upload(file):
    return bool(file and file.filename)


def allowed_file(filename, extensions=None):
    allowed = extensions if extensions is not None else current_app.config['ALLOWED_EXTENSIONS']
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed


def _verify_image(file):
    max_pixels = max(1, int(current_app.config.get('MAX_UPLOAD_IMAGE_PIXELS', 40_000_000)))
    try:
        with Image.open(file.stream) as image:
            width, height = image.size
            if width < 1 or height < 1 or (width * height) > max_pixels:
                return False
            image.verify()
        return True
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return False
    finally:
        file.stream.seek(0)


def validate_uploaded_file(file, extensions=None):
    if not has_upload(file):
        return False

    filename = secure_filename(file.filename)
    if not filename or len(filename) > 180 or not allowed_file(filename, extensions):
        return False

    extension = filename.rsplit('.', 1)[1].lower()
    mime_type = (file.mimetype or '').split(';', 1)[0].lower()
    allowed_mimes = current_app.config.get('ALLOWED_UPLOAD_MIME_TYPES', set())
    if (
        mime_type not in allowed_mimes
        or extension not in EXTENSION_MIME_TYPES
        or mime_type not in EXTENSION_MIME_TYPES[extension]
    ):
        return False

    file.stream.seek(0)
    if extension == 'pdf':
        signature = file.stream.read(5)
        file.stream.seek(0)
        return signature == b'%PDF-'

    if extension in IMAGE_EXTENSIONS:
        return _verify_image(file)

    return False


def multipart_part(file, label='file', extensions=None):
    if not validate_uploaded_file(file, extensions):
        raise UploadError(f'The {label} must be a valid, reasonably sized file of an allowed type.')
    filename = secure_filename(file.filename)
    file.stream.seek(0)
    return (filename, file.stream, (file.mimetype or '').split(';', 1)[0].lower())


def collect_parts(files, upload_fields):
    # upload_fields maps a request field to (api_field, label, extensions).
    parts = {}
    for field_name, (api_field, label, extensions) in upload_fields.items():
        file = files.get(field_name)
        if has_upload(file):
            parts[api_field] = multipart_part(file, label, extensions)
    return parts
