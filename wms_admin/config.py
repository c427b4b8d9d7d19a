import os


def _is_managed_runtime():
    return bool(
        os.environ.get('RAILWAY_ENVIRONMENT')
        or os.environ.get('RAILWAY_PROJECT_ID')
        or os.environ.get('RENDER')
        or os.environ.get('RENDER_SERVICE_ID')
    )


def _is_production_runtime():
    flask_env = (os.environ.get('FLASK_ENV') or '').strip().lower()
    railway_env = (os.environ.get('RAILWAY_ENVIRONMENT') or '').strip().lower()
    render_env = (os.environ.get('RENDER_ENV') or '').strip().lower()
    return flask_env == 'production' or railway_env == 'production' or render_env == 'production'


def _as_bool(value, default=False):
    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _api_base_url():
    raw = (os.environ.get('CMS_API_BASE_URL') or '').strip()
    if not raw:
        raw = 'https://api.smartcorpweb.com/api'
    return raw.rstrip('/')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or ''

    CMS_API_BASE_URL = _api_base_url()
    CMS_API_TIMEOUT_SECONDS = max(1.0, _as_float(os.environ.get('CMS_API_TIMEOUT_SECONDS'), 15.0))
    CMS_API_VERIFY_TLS = _as_bool(os.environ.get('CMS_API_VERIFY_TLS'), True)
    DEFAULT_ORG_CODE = _as_int(os.environ.get('DEFAULT_ORG_CODE'), 1)

    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max upload
    MAX_UPLOAD_IMAGE_PIXELS = _as_int(os.environ.get('MAX_UPLOAD_IMAGE_PIXELS'), 40_000_000)
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'pdf'}
    ALLOWED_UPLOAD_MIME_TYPES = {
        'image/png',
        'image/jpeg',
        'image/gif',
        'image/webp',
        'application/pdf',
    }

    LOGIN_ATTEMPT_LIMIT = max(1, _as_int(os.environ.get('LOGIN_ATTEMPT_LIMIT'), 5))
    LOGIN_ATTEMPT_WINDOW_SECONDS = max(1, _as_int(os.environ.get('LOGIN_ATTEMPT_WINDOW_SECONDS'), 300))

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _as_bool(
        os.environ.get('SESSION_COOKIE_SECURE'),
        ((os.environ.get('PREFERRED_URL_SCHEME') or '').lower() == 'https') or _is_production_runtime(),
    )
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    TRUST_PROXY_HEADERS = _as_bool(os.environ.get('TRUST_PROXY_HEADERS'), _is_managed_runtime())
    PREFERRED_URL_SCHEME = os.environ.get('PREFERRED_URL_SCHEME') or ('https' if SESSION_COOKIE_SECURE else 'http')
    HSTS_ENABLED = _as_bool(os.environ.get('HSTS_ENABLED'), True)
    HSTS_MAX_AGE = _as_int(os.environ.get('HSTS_MAX_AGE'), 31536000)
    HSTS_INCLUDE_SUBDOMAINS = _as_bool(os.environ.get('HSTS_INCLUDE_SUBDOMAINS'), True)
    HSTS_PRELOAD = _as_bool(os.environ.get('HSTS_PRELOAD'), False)

    SENTRY_DSN = (os.environ.get('SENTRY_DSN') or '').strip()
    SENTRY_ENVIRONMENT = (os.environ.get('SENTRY_ENVIRONMENT') or '').strip()
    SENTRY_TRACES_SAMPLE_RATE = _as_float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE'), 0.0)
    LOG_JSON = _as_bool(os.environ.get('LOG_JSON'), True)
    LOG_LEVEL = (os.environ.get('LOG_LEVEL') or 'INFO').strip().upper()
