import uuid

from fastapi import Depends

from rdsync.auth.deps import get_current_user
from rdsync.errors import ForbiddenException
from rdsync.models.enums import AppRole
from rdsync.models.user import User
from rdsync.rbac.perms import PERMS

def can_access_empresa(user: User, empresa_id: uuid.UUID) -> bool:
    # broker staff see every empresa
    if user.role == AppRole.admin_vizio:
        return True
    return user.empresa_id is not None and user.empresa_id == empresa_id

def ensure_empresa_access(user: User, empresa_id: uuid.UUID) -> None:
    if not can_access_empresa(user, empresa_id):
        raise ForbiddenException("no access to this empresa")

def require_perm(action: str):
    allowed = PERMS.get(action)
    if allowed is None:
        raise RuntimeError(f"unknown permission action: {action}")

    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise ForbiddenException()
        return user

    return _checker
