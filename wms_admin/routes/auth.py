from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required

from .. import auth as session_auth
from ..api_client import ApiError
from ..forms import LoginForm, ProfileForm, RegisterForm
from ..uploads import IMAGE_EXTENSIONS, UploadError, has_upload, multipart_part
from .common import flash_form_errors

auth_bp = Blueprint('auth', __name__)


def _photo_part():
    photo = request.files.get('user_photo')
    if not has_upload(photo):
        return None
    return multipart_part(photo, 'photo', IMAGE_EXTENSIONS)


@auth_bp.route('/')
def index():
    if current_user.is_authenticated:
        return redirect(url_for('admin.dashboard'))
    return redirect(url_for('auth.login'))


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('admin.dashboard'))
    form = LoginForm()
    if request.method == 'POST':
        limited, seconds = session_auth.is_login_rate_limited()
        if limited:
            flash(f'Too many login attempts. Try again in {seconds} seconds.', 'danger')
            return render_template('auth/login.html', form=form), 429

        if not form.validate():
            flash('Login ID and password are required.', 'danger')
            return render_template('auth/login.html', form=form)

        try:
            session_auth.login(form.login_id.data.strip(), form.password.data)
        except (ApiError, session_auth.AuthError) as exc:
            attempts = session_auth.register_login_failure()
            remaining = max(0, current_app.config['LOGIN_ATTEMPT_LIMIT'] - attempts)
            if remaining == 0:
                flash('Too many failed attempts. Please wait 5 minutes and try again.', 'danger')
            else:
                message = str(exc) if isinstance(exc, session_auth.AuthError) else exc.message
                flash(f'{message} {remaining} attempt(s) remaining before temporary lock.', 'danger')
            return render_template('auth/login.html', form=form)

        session_auth.clear_login_failures()
        flash(f'Welcome back, {current_user.name}.', 'success')
        return redirect(url_for('admin.dashboard'))
    return render_template('auth/login.html', form=form)


@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    if current_user.is_authenticated:
        return redirect(url_for('admin.dashboard'))
    form = RegisterForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
            return render_template('auth/register.html', form=form)
        try:
            photo = _photo_part()
        except UploadError as exc:
            flash(str(exc), 'danger')
            return render_template('auth/register.html', form=form)

        try:
            user = session_auth.register(form.to_form_data(skip_empty=True), photo)
        except ApiError as exc:
            flash(exc.message, 'danger')
            return render_template('auth/register.html', form=form)

        if user is None:
            flash('Registration complete. Please sign in.', 'success')
            return redirect(url_for('auth.login'))
        flash('Registration complete. Welcome aboard.', 'success')
        return redirect(url_for('admin.dashboard'))
    return render_template('auth/register.html', form=form)


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    session_auth.logout()
    flash('You have been signed out.', 'info')
    return redirect(url_for('auth.login'))


@auth_bp.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    form = ProfileForm()
    if request.method == 'POST':
        if not form.validate():
            flash_form_errors(form)
            return render_template('auth/profile.html', form=form, profile=session.get(session_auth.SESSION_USER_KEY, {}))
        try:
            photo = _photo_part()
        except UploadError as exc:
            flash(str(exc), 'danger')
            return render_template('auth/profile.html', form=form, profile=session.get(session_auth.SESSION_USER_KEY, {}))
        try:
            updated = session_auth.update_profile(form.to_form_data(skip_empty=True), photo)
        except ApiError as exc:
            if exc.is_unauthorized:
                raise
            flash(exc.message, 'danger')
            return render_template('auth/profile.html', form=form, profile=session.get(session_auth.SESSION_USER_KEY, {}))
        if updated is None:
            flash('The profile update was not confirmed by the server.', 'warning')
        else:
            flash('Profile updated.', 'success')
        return redirect(url_for('auth.profile'))

    try:
        profile_data = session_auth.get_profile()
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        flash(exc.message, 'warning')
        profile_data = session.get(session_auth.SESSION_USER_KEY, {})
    except session_auth.AuthError as exc:
        flash(str(exc), 'warning')
        profile_data = session.get(session_auth.SESSION_USER_KEY, {})
    form.load_record(profile_data)
    return render_template('auth/profile.html', form=form, profile=profile_data)
