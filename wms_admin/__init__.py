import json
import logging
import re
import secrets
import warnings
from urllib.parse import urlparse

from flask import Flask, abort, flash, g, has_request_context, redirect, render_template, request, session, url_for
from flask_login import current_user
from markupsafe import Markup, escape
from werkzeug.middleware.proxy_fix import ProxyFix

from .api_client import ApiError, get_api, get_client, init_api
from .auth import login_manager, logout
from .config import Config
from .models import USER_TYPE_LABELS
from .navigation import build_sidebar

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{8,80}$")
_sentry_initialized = False


class JsonLogFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'time': self.formatTime(record, self.datefmt),
        }
        if has_request_context():
            payload.update(
                {
                    'request_id': getattr(g, 'request_id', ''),
                    'method': request.method,
                    'path': request.path,
                    'remote_ip': request.remote_addr,
                }
            )
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(app):
    # app.logger is the "wms_admin" package logger, so module loggers propagate here.
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))
    if not app.config.get('LOG_JSON', True):
        return
    formatter = JsonLogFormatter()
    for handler in app.logger.handlers:
        handler.setFormatter(formatter)


def get_csrf_token():
    token = session.get('_csrf_token')
    if not token:
        token = secrets.token_urlsafe(32)
        session['_csrf_token'] = token
    return token


def csrf_input():
    token = get_csrf_token()
    return Markup(f'<input type="hidden" name="_csrf_token" value="{escape(token)}">')  # nosec B704


def get_csp_nonce():
    nonce = getattr(g, 'csp_nonce', '')
    if nonce:
        return nonce
    nonce = secrets.token_urlsafe(16)
    g.csp_nonce = nonce
    return nonce


def safe_referrer_path(fallback):
    raw_referrer = (request.referrer or '').strip()
    if not raw_referrer:
        return fallback

    parsed = urlparse(raw_referrer)
    if parsed.scheme and parsed.scheme not in {'http', 'https'}:
        return fallback
    if parsed.netloc and parsed.netloc != request.host:
        return fallback

    path = parsed.path or '/'
    if not path.startswith('/'):
        return fallback

    target = path
    if parsed.query:
        target = f"{target}?{parsed.query}"
    return target


def init_sentry(app):
    global _sentry_initialized
    if _sentry_initialized:
        return

    dsn = (app.config.get('SENTRY_DSN') or '').strip()
    if not dsn:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        traces_sample_rate = float(app.config.get('SENTRY_TRACES_SAMPLE_RATE') or 0.0)
        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=traces_sample_rate,
            environment=(app.config.get('SENTRY_ENVIRONMENT') or None),
        )
        _sentry_initialized = True
        app.logger.info('Sentry monitoring enabled.')
    except Exception:
        app.logger.exception('Failed to initialize Sentry monitoring.')


def create_app(config_overrides=None, api_session=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    configure_logging(app)

    if not app.config.get('SECRET_KEY'):
        app.config['SECRET_KEY'] = secrets.token_urlsafe(32)
        warnings.warn(
            'SECRET_KEY is not set. Using a random key, so sessions will not survive restarts. '
            'Set the SECRET_KEY environment variable for production.',
            stacklevel=2,
        )

    if app.config.get('TRUST_PROXY_HEADERS'):
        # Only trust one proxy hop (the platform edge) when explicitly enabled.
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    init_sentry(app)
    init_api(app, session=api_session)
    login_manager.init_app(app)

    @app.before_request
    def assign_request_id():
        incoming = (request.headers.get('X-Request-ID') or '').strip()
        if _REQUEST_ID_RE.match(incoming):
            g.request_id = incoming
        else:
            g.request_id = secrets.token_hex(16)

    @app.before_request
    def enforce_csrf():
        if request.method not in ('POST', 'PUT', 'PATCH', 'DELETE'):
            return
        expected = session.get('_csrf_token')
        provided = request.form.get('_csrf_token') or request.headers.get('X-CSRF-Token')
        if not expected or not provided or not secrets.compare_digest(expected, provided):
            abort(400, description='Invalid or missing CSRF token.')

    @app.before_request
    def ensure_csp_nonce():
        get_csp_nonce()

    @app.context_processor
    def inject_globals():
        sidebar = []
        if current_user.is_authenticated:
            sidebar = build_sidebar(current_user, get_api())
        return dict(
            sidebar=sidebar,
            user_type_labels=USER_TYPE_LABELS,
            csrf_token=get_csrf_token,
            csrf_input=csrf_input,
            csp_nonce=get_csp_nonce(),
        )

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Request-ID'] = getattr(g, 'request_id', '')
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        response.headers.setdefault('Permissions-Policy', 'geolocation=(), microphone=(), camera=()')
        response.headers.setdefault('Cross-Origin-Resource-Policy', 'same-origin')
        response.headers.setdefault('Cross-Origin-Opener-Policy', 'same-origin')
        response.headers.setdefault('X-Robots-Tag', 'noindex, nofollow, noarchive')
        if request.is_secure and app.config.get('HSTS_ENABLED', True):
            hsts_max_age = max(0, int(app.config.get('HSTS_MAX_AGE', 31536000)))
            hsts_parts = [f'max-age={hsts_max_age}']
            if app.config.get('HSTS_INCLUDE_SUBDOMAINS', True):
                hsts_parts.append('includeSubDomains')
            if app.config.get('HSTS_PRELOAD', False):
                hsts_parts.append('preload')
            response.headers.setdefault('Strict-Transport-Security', '; '.join(hsts_parts))

        if request.path.startswith('/static/') and response.status_code in (200, 304):
            response.headers['Cache-Control'] = 'public, max-age=31536000, immutable'

        # Dashboard pages carry per-user data and are never cached.
        if response.content_type and response.content_type.startswith('text/html'):
            nonce = get_csp_nonce()
            response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
            response.headers['Pragma'] = 'no-cache'
            response.headers['Expires'] = '0'
            csp_parts = [
                "default-src 'self'",
                "base-uri 'self'",
                "frame-ancestors 'none'",
                "form-action 'self'",
                "object-src 'none'",
                "img-src 'self' data: https:",
                f"script-src 'self' 'nonce-{nonce}' https://cdn.jsdelivr.net",
                f"style-src 'self' 'nonce-{nonce}' https://cdn.jsdelivr.net",
                "font-src 'self' data: https://cdn.jsdelivr.net",
                "connect-src 'self'",
            ]
            if request.is_secure:
                csp_parts.append('upgrade-insecure-requests')
            response.headers['Content-Security-Policy'] = "; ".join(csp_parts)
        return response

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.is_unauthorized:
            logout()
            flash('Your session has expired. Please sign in again.', 'warning')
            return redirect(url_for('auth.login'))
        if error.is_not_found:
            return render_template('errors/404.html'), 404
        app.logger.warning('CMS API failure surfaced to the user: %s', error.message)
        return render_template('errors/502.html', message=error.message), 502

    @app.errorhandler(400)
    def handle_bad_request(error):
        description = str(getattr(error, 'description', '') or '')
        if 'CSRF' in description:
            flash('Your form session expired. Please retry your action.', 'danger')
            return redirect(safe_referrer_path(url_for('auth.login')))
        return error

    @app.errorhandler(403)
    def handle_forbidden(error):
        return render_template('errors/403.html'), 403

    @app.errorhandler(404)
    def handle_not_found(error):
        return render_template('errors/404.html'), 404

    @app.errorhandler(413)
    def handle_too_large(error):
        flash('The upload is too large.', 'danger')
        return redirect(safe_referrer_path(url_for('admin.dashboard')))

    @app.errorhandler(500)
    def handle_server_error(error):
        return render_template('errors/500.html'), 500

    @app.get('/healthz')
    def healthz():
        return {'status': 'ok'}, 200

    @app.get('/readyz')
    def readyz():
        checks = {'cms_api': get_client().ping()}
        all_ready = all(checks.values())
        if not all_ready:
            app.logger.warning('Readiness check failed: CMS API unreachable.')
        return {'status': 'ready' if all_ready else 'degraded', 'checks': checks}, (200 if all_ready else 503)

    from .routes.admin import admin_bp
    from .routes.auth import auth_bp
    from .routes.blog import blog_bp
    from .routes.careers import careers_bp
    from .routes.enquiries import enquiries_bp
    from .routes.newsletter import newsletter_bp
    from .routes.notifications import notifications_bp
    from .routes.org import org_bp
    from .routes.products import products_bp
    from .routes.terms import terms_bp
    from .routes.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(blog_bp, url_prefix='/blog')
    app.register_blueprint(careers_bp, url_prefix='/careers')
    app.register_blueprint(enquiries_bp, url_prefix='/enquiries')
    app.register_blueprint(newsletter_bp, url_prefix='/newsletter')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(org_bp, url_prefix='/org')
    app.register_blueprint(products_bp, url_prefix='/products')
    app.register_blueprint(terms_bp, url_prefix='/terms')
    app.register_blueprint(users_bp, url_prefix='/users')

    return app
