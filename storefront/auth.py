from functools import wraps

import bcrypt
from flask import request, jsonify, redirect, url_for
from flask_login import LoginManager, UserMixin, current_user

from storefront.db import main_session
from storefront.errors import Forbidden
from storefront.models import User, ADMIN_ROLES

login_manager = LoginManager()
login_manager.login_view = "shop.login"


class LoginUser(UserMixin):
    def __init__(self, u: User):
        self.id = str(u.id)
        self.email = u.email
        self.name = u.name
        self.role = u.role
        self.active = u.is_active

    @property
    def is_active(self):
        return self.active

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @property
    def user_id(self):
        return int(self.id)


@login_manager.user_loader
def load_user(user_id):
    with main_session() as db:
        u = db.get(User, int(user_id))
        return LoginUser(u) if u and u.is_active else None


@login_manager.unauthorized_handler
def unauthorized():
    if request.path.startswith("/api/"):
        return jsonify({"success": False, "error": "Authentication required"}), 401
    return redirect(url_for("shop.login", next=request.full_path))


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def current_user_id():
    if getattr(current_user, "is_authenticated", False):
        return int(current_user.id)
    return None


def is_admin(*roles):
    """True when the current user holds one of ``roles`` (any admin role by default)."""
    if not getattr(current_user, "is_authenticated", False):
        return False
    return current_user.role in (roles or ADMIN_ROLES)


def roles_required(*roles):
    allowed = roles or ADMIN_ROLES

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if current_user.role not in allowed:
                raise Forbidden("Access denied")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = roles_required()
