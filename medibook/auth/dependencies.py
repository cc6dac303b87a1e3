from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from medibook.auth import jwt_handler
from medibook.database import get_db
from medibook.models.practitioner import Practitioner
from medibook.models.user import ROLE_ADMIN, ROLE_PENDING_PRACTITIONER, ROLE_PRACTITIONER, User

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    try:
        user_id = jwt_handler.user_id_from_token(credentials.credentials)
    except jwt_handler.InvalidToken as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only.")
    return current_user


def get_current_practitioner(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Practitioner:
    if current_user.role == ROLE_PENDING_PRACTITIONER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your practitioner application is still pending.",
        )
    if current_user.role != ROLE_PRACTITIONER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Practitioners only.")

    practitioner = db.query(Practitioner).filter(
        Practitioner.user_id == current_user.id,
        Practitioner.is_active.is_(True),
    ).first()
    if practitioner is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Practitioner profile not found.")
    return practitioner
