from sqlalchemy import select

from storefront.models import AuditLog
from storefront.notify import log


def _jsonable(values):
    if values is None:
        return None
    return {k: v for k, v in values.items() if isinstance(v, (str, int, float, bool, list, dict, type(None)))}


def log_audit(db, user_id, table_name, record_id, action, old_values=None, new_values=None):
    db.add(AuditLog(user_id=user_id, table_name=table_name, record_id=record_id, action=action,
                    old_values=_jsonable(old_values), new_values=_jsonable(new_values)))
    log.info(f"audit {action} {table_name}#{record_id} by user {user_id}")


def list_audit(db, table_name=None, limit=100):
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if table_name:
        stmt = stmt.where(AuditLog.table_name == table_name)
    return db.execute(stmt.limit(limit)).scalars().all()
