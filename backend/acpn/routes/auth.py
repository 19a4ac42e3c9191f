# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Passwords hashed with bcrypt
- Email verification and password reset tokens stored as sha256 hashes
- Session JWT returned in the body and as an HTTP-only cookie
- Login refused until the email is verified and the account approved
"""

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth
from ..responses import json_body, success
from ..services import auth_service, permission_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _token_response(user, status_code: int = 200):
    token = session_service.issue_token(user)
    response = jsonify({"success": True, "token": token, "data": user.to_dict()})
    response.status_code = status_code
    response.set_cookie(
        current_app.config["JWT_COOKIE_NAME"],
        token,
        max_age=session_service.cookie_max_age(),
        httponly=True,
        secure=current_app.config["JWT_COOKIE_SECURE"],
        samesite="Lax",
    )
    return response


@auth_bp.post("/register")
def register_route():
    """
    Self-registration.

    The account stays pending until the email is verified and an
    administrator approves it. Email delivery is out of band; the raw
    verification token is logged at DEBUG level for operators.
    """
    user, raw_token = auth_service.register_user(json_body())
    current_app.logger.debug("Email verification token for user %s: %s", user.id, raw_token)
    return success(
        user.to_dict(),
        status_code=201,
        message="Registration successful. Please verify your email and wait for approval.",
    )


@auth_bp.get("/verify-email/<token>")
def verify_email_route(token: str):
    user = auth_service.verify_email(token)
    return success(user.to_summary(), message="Email verified successfully")


@auth_bp.post("/login")
def login_route():
    data = json_body()
    user = auth_service.authenticate(data.get("email"), data.get("password"))
    current_app.logger.info("User %s logged in", user.id)
    return _token_response(user)


@auth_bp.get("/logout")
def logout_route():
    response = jsonify({"success": True, "data": {}})
    response.delete_cookie(current_app.config["JWT_COOKIE_NAME"])
    return response


@auth_bp.get("/me")
@require_auth
def me_route():
    return success(g.current_user.to_dict())


@auth_bp.get("/me/permissions")
@require_auth
def my_permissions_route():
    user = g.current_user
    return success({
        "role": user.role,
        "permissions": permission_service.get_role_permission_pairs(user.role),
    })


@auth_bp.put("/updatedetails")
@require_auth
def update_details_route():
    user = auth_service.update_details(g.current_user, json_body())
    return success(user.to_dict())


@auth_bp.put("/updatepassword")
@require_auth
def update_password_route():
    data = json_body()
    user = auth_service.update_password(g.current_user, data.get("currentPassword"), data.get("newPassword"))
    return _token_response(user)


@auth_bp.post("/forgotpassword")
def forgot_password_route():
    user, raw_token = auth_service.forgot_password(json_body().get("email"))
    current_app.logger.debug("Password reset token for user %s: %s", user.id, raw_token)
    return success(message="Password reset instructions sent")


@auth_bp.put("/resetpassword/<token>")
def reset_password_route(token: str):
    user = auth_service.reset_password(token, json_body().get("password"))
    return _token_response(user)
