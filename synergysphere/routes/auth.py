from flask import Blueprint, g, request

import settings
from synergysphere.schemas import (
    RegisterRequest, LoginRequest, RefreshRequest, ForgotPasswordRequest, ResetPasswordRequest,
    ChangePasswordRequest, VerifyEmailRequest,
)
from synergysphere.services import auth_service, project_service, task_service
from synergysphere.util.auth import login_required
from synergysphere.util.http import success, parse_body

auth = Blueprint('auth', __name__, url_prefix='/auth')


@auth.post('/register')
def register():
    payload = parse_body(RegisterRequest)
    user, tokens = auth_service.register(payload)
    return success({'user': user.as_public_dict(), **tokens}, 'User registered successfully', 201)


@auth.post('/login')
def login():
    payload = parse_body(LoginRequest)
    user, tokens = auth_service.login(payload.email, payload.password, payload.rememberMe)
    return success({'user': user.as_public_dict(), **tokens}, 'Login successful')


@auth.post('/refresh')
def refresh():
    payload = parse_body(RefreshRequest)
    return success({'accessToken': auth_service.refresh(payload.refreshToken)}, 'Token refreshed successfully')


@auth.post('/logout')
@login_required
def logout():
    body = request.get_json(silent=True) or {}
    auth_service.logout(g.token, body.get('refreshToken'))
    return success(message='Logout successful')


@auth.post('/forgot-password')
def forgot_password():
    payload = parse_body(ForgotPasswordRequest)
    token = auth_service.forgot_password(payload.email)
    data = {'resetToken': token} if settings.DEBUG and token else None
    return success(data, 'If an account with that email exists, a password reset link has been sent')


@auth.post('/reset-password/<token>')
def reset_password(token):
    payload = parse_body(ResetPasswordRequest)
    tokens = auth_service.reset_password(token, payload.password)
    return success(tokens, 'Password reset successful')


@auth.post('/change-password')
@login_required
def change_password():
    payload = parse_body(ChangePasswordRequest)
    auth_service.change_password(g.user, payload.currentPassword, payload.newPassword)
    return success(message='Password changed successfully')


@auth.get('/me')
@login_required
def me():
    projects = project_service.projects_for(g.user)
    tasks = task_service.assigned_tasks(g.user)
    return success({
        'user': g.user.as_public_dict(),
        'projects': [p.as_dict() for p in projects],
        'assignedTasks': task_service.as_api_list(tasks),
    })


@auth.post('/verify-email')
@login_required
def verify_email():
    payload = parse_body(VerifyEmailRequest)
    auth_service.verify_email(g.user, payload.token)
    return success(message='Email verified successfully')
