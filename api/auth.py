"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- GET  /auth/refresh           (Authorization: jwt <refresh token>)
- GET  /auth/logout            (Authorization: jwt <refresh token>)
- POST /auth/logout/all        (Authorization: jwt <access token>)
- GET  /auth/me
- POST /auth/change/password | /auth/change/email | /auth/change/username

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256)
- Tracks every refresh token as a session row so it can be rotated once and revoked
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort
from sqlalchemy import or_

from models import storage
from models.user import User
from models.schemas.user import UserCreateSchema, UserOutSchema, UserLoginSchema
from models.schemas.auth import (
    TokenPairSchema,
    ChangePasswordSchema,
    ChangeEmailSchema,
    ChangeUsernameSchema,
)
from services import get_token_service, get_credential_coordinator
from services.errors import Forbidden
from utils.decorators import jwt_required, extract_token
from utils.security import hash_password, verify_password

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
token_pair_schema = TokenPairSchema()
change_password_schema = ChangePasswordSchema()
change_email_schema = ChangeEmailSchema()
change_username_schema = ChangeUsernameSchema()

LOGIN_FAILED = "incorrect identifier or password"


@bp.post("/register")
def register():
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      200:
        description: Registered
      400:
        description: username already taken / email already used
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    session = storage.write_session()
    if session.query(User.id).filter(User.username == data["username"]).first():
        abort(400, description="username already taken")
    if session.query(User.id).filter(User.email == data["email"]).first():
        abort(400, description="email already used")

    user = User(
        username=data["username"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        password_version=1,
    )
    user.save()

    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/login")
def login():
    """
    Login with username or email: returns accessToken, refreshToken and userId
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             identifier: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      400:
        description: incorrect identifier or password
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)
    identifier = data["identifier"].strip()

    session = storage.get_session()
    user: User = session.query(User).filter(
        or_(User.username == identifier, User.email == identifier.lower())
    ).first()
    if not user or not verify_password(data["password"], user.password_hash):
        abort(400, description=LOGIN_FAILED)

    pair = get_token_service().issue(user.id)
    return jsonify(token_pair_schema.dump(pair)), 200


@bp.get("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access/refresh pair (single use rotation)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: No credential supplied
      403:
        description: Invalid, expired, reused or wrong kind of token
    """
    token = extract_token(request.headers.get("Authorization"))
    pair = get_token_service().refresh(token)
    return jsonify(token_pair_schema.dump(pair)), 200


@bp.get("/logout")
def logout():
    """
    Logout: revokes the presented refresh token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: No credential supplied
      403:
        description: Access token, already used refresh token or garbage
    """
    token = extract_token(request.headers.get("Authorization"))
    get_token_service().revoke(token)
    return jsonify({"message": "logged out"}), 200


@bp.post("/logout/all")
@jwt_required()
def logout_all():
    """
    Logout everywhere: revokes every active session of the caller
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Sessions revoked (returns how many)
      401:
        description: No credential supplied
      403:
        description: Invalid or expired access token
    """
    revoked = get_token_service().revoke_all(g.user_id)
    return jsonify({"revoked": revoked}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
      403:
        description: Forbidden
    """
    user = storage.get(User, g.user_id)
    if user is None:
        raise Forbidden("user no longer exists")
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/change/password")
@jwt_required()
def change_password():
    """
    Change password; the old password must match
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             oldPassword: { type: string }
             newPassword: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: old password is incorrect
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    revoked = get_credential_coordinator().change_password(
        g.identity, data["old_password"], data["new_password"]
    )
    return jsonify({"message": "password changed", "revokedSessions": revoked}), 200


@bp.post("/change/email")
@jwt_required()
def change_email():
    """
    Change email; it must not belong to another user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Email changed
      400:
        description: email already used
      422:
        description: Validation error
    """
    data = change_email_schema.load(request.get_json(silent=True) or {})
    revoked = get_credential_coordinator().change_email(g.identity, data["email"])
    return jsonify({"message": "email changed", "revokedSessions": revoked}), 200


@bp.post("/change/username")
@jwt_required()
def change_username():
    """
    Change username; it must not belong to another user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
    responses:
      200:
        description: Username changed
      400:
        description: username already taken
      422:
        description: Validation error
    """
    data = change_username_schema.load(request.get_json(silent=True) or {})
    revoked = get_credential_coordinator().change_username(g.identity, data["username"])
    return jsonify({"message": "username changed", "revokedSessions": revoked}), 200
