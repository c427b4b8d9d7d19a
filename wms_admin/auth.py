import logging
import threading
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import abort, current_app, session
from flask_login import LoginManager, current_user, login_user, logout_user

from .api_client import get_api
from .models import SessionUser, USER_TYPE_USER, normalize_user_type, user_type_for_role
from .utils import get_request_ip

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = 'cms_token'
SESSION_USER_KEY = 'cms_user'
LOGIN_BUCKETS_KEY = 'login_buckets'

login_manager = LoginManager()
login_manager.login_view = 'auth.login'
login_manager.login_message = 'Please sign in to continue.'
login_manager.login_message_category = 'warning'

_bucket_lock = threading.Lock()


class AuthError(Exception):
    pass


def _utc_now():
    return datetime.now(timezone.utc)


def token_expiry(token):
    """Read the ``exp`` claim without verifying the signature."""
    try:
        claims = jwt.decode(token, options={'verify_signature': False})
    except jwt.PyJWTError:
        return None
    exp = claims.get('exp')
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def token_is_expired(token, now=None):
    expiry = token_expiry(token)
    if expiry is None:
        return False
    return expiry <= (now or _utc_now())


def current_token():
    return session.get(SESSION_TOKEN_KEY)


def clear_session_auth():
    session.pop(SESSION_TOKEN_KEY, None)
    session.pop(SESSION_USER_KEY, None)


@login_manager.user_loader
def load_user(user_id):
    token = session.get(SESSION_TOKEN_KEY)
    data = session.get(SESSION_USER_KEY)
    if not token or not isinstance(data, dict):
        return None
    if token_is_expired(token):
        logger.info('Session token expired; signing out.')
        clear_session_auth()
        return None
    user = SessionUser(data, token)
    if user.get_id() != str(user_id):
        return None
    return user


def _start_session(user_data, token):
    session.clear()
    session[SESSION_TOKEN_KEY] = token
    session[SESSION_USER_KEY] = user_data
    user = SessionUser(user_data, token)
    login_user(user)
    return user


def login(login_id, password):
    result = get_api(token='').post('users/login', json={'LoginId': login_id, 'LoginPwd': password}, unwrap=False)
    if not isinstance(result, dict) or not result.get('user') or not result.get('token'):
        raise AuthError('Login failed. Please check your credentials.')
    user_data = dict(result['user'])
    user_data['UserType'] = user_type_for_role(result.get('role'))
    user = _start_session(user_data, result['token'])
    logger.info('User signed in as %s.', user.user_type)
    return user


def register(fields, photo=None):
    files = {'UserPhoto': photo} if photo else None
    result = get_api(token='').post('users/register', data=fields, files=files, unwrap=False)
    if not isinstance(result, dict) or not result.get('user') or not result.get('token'):
        return None
    user_data = dict(result['user'])
    user_data['UserType'] = normalize_user_type(
        user_data.get('UserType') or user_type_for_role(result.get('role')),
        default=USER_TYPE_USER,
    )
    return _start_session(user_data, result['token'])


def _merge_profile(profile):
    existing = session.get(SESSION_USER_KEY) or {}
    merged = dict(existing)
    merged.update(profile)
    merged['UserType'] = existing.get('UserType') or normalize_user_type(profile.get('UserType'))
    session[SESSION_USER_KEY] = merged
    return merged


def get_profile():
    result = get_api().get('users/profile', unwrap=False)
    profile = result.get('user') if isinstance(result, dict) and isinstance(result.get('user'), dict) else result
    if not isinstance(profile, dict):
        raise AuthError('The profile could not be loaded.')
    return _merge_profile(profile)


def update_profile(fields, photo=None):
    files = {'UserPhoto': photo} if photo else None
    result = get_api().put('users/profile', data=fields, files=files, unwrap=False)
    if not isinstance(result, dict) or not isinstance(result.get('user'), dict):
        return None
    return _merge_profile(result['user'])


def logout():
    logout_user()
    clear_session_auth()


def role_required(*user_types):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()
            if not current_user.has_type(*user_types):
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def _login_buckets():
    return current_app.extensions.setdefault(LOGIN_BUCKETS_KEY, {})


def _get_login_bucket(ip, now):
    buckets = _login_buckets()
    for stale_ip in [key for key, value in buckets.items() if value['reset_at'] <= now]:
        del buckets[stale_ip]
    bucket = buckets.get(ip)
    window = timedelta(seconds=current_app.config['LOGIN_ATTEMPT_WINDOW_SECONDS'])
    if bucket is None:
        bucket = {'count': 0, 'reset_at': now + window}
        buckets[ip] = bucket
    return bucket


def is_login_rate_limited():
    now = _utc_now()
    with _bucket_lock:
        bucket = _get_login_bucket(get_request_ip(), now)
        if bucket['count'] < current_app.config['LOGIN_ATTEMPT_LIMIT']:
            return False, 0
        seconds = max(1, int((bucket['reset_at'] - now).total_seconds()))
    return True, seconds


def register_login_failure():
    now = _utc_now()
    with _bucket_lock:
        bucket = _get_login_bucket(get_request_ip(), now)
        bucket['count'] += 1
        return bucket['count']


def clear_login_failures():
    with _bucket_lock:
        _login_buckets().pop(get_request_ip(), None)
