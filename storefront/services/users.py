from sqlalchemy import select

from storefront.auth import check_password, hash_password
from storefront.errors import ApiError, Conflict, Forbidden, NotFound, Unauthorized
from storefront.helpers import matches
from storefront.models import User
from storefront.notify import log, notify
from storefront.services.audit import log_audit


def list_users(db, q=None, role=None):
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role:
        stmt = stmt.where(User.role == role)
    return [u for u in db.execute(stmt).scalars().all() if matches(q, u.name, u.email)]


def get_user(db, user_id):
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def update_user(db, user_id, data, acting_user_id):
    """Change a user's role and/or active flag; nobody can demote or deactivate themselves."""
    user = get_user(db, user_id)
    if user.id == acting_user_id:
        if data.role is not None and data.role != user.role:
            raise ApiError("Cannot change your own super admin role")
        if data.is_active is False:
            raise ApiError("Cannot deactivate your own account")
    old = user.to_dict()
    if data.role is not None:
        user.role = data.role
    if data.is_active is not None:
        user.is_active = data.is_active
    db.flush()
    log_audit(db, acting_user_id, "users", user.id, "UPDATE", old_values=old, new_values=user.to_dict())
    return user


def delete_user(db, user_id, acting_user_id):
    user = get_user(db, user_id)
    if user.id == acting_user_id:
        raise ApiError("Cannot delete your own account")
    if user.orders:
        raise ApiError("Cannot delete a user with orders. Deactivate the account instead.")
    old = user.to_dict()
    db.delete(user); db.flush()
    log_audit(db, acting_user_id, "users", user_id, "DELETE", old_values=old)


def register(db, data):
    email = data.email.strip().lower()
    if db.execute(select(User.id).where(User.email == email)).first():
        raise Conflict("User already exists")
    user = User(email=email, name=data.name, phone=data.phone,
                password_hash=hash_password(data.password), role="CUSTOMER")
    db.add(user); db.flush()
    log.info(f"New customer registered: {email}")
    return user


def authenticate(db, email, password):
    email = (email or "").strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not check_password(password, user.password_hash):
        notify(f"Failed login attempt for {email}")
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account is deactivated")
    return user
