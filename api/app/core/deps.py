"""Request dependencies for the identity collaborator."""
from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.security import token_subject
from app.core.versioning_service import CatalogVersioningService
from app.models.user import User
from app.services.notifications import NotificationDispatcher, Notifier, get_notifier

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the acting user from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    email = token_subject(credentials.credentials)
    if email is None:
        raise credentials_exception

    user = db.query(User).filter(User.email == email).first()
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def get_versioning_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> CatalogVersioningService:
    """Versioning engine bound to the request session.

    Workflow notifications run as background tasks after the response.
    """
    dispatcher = NotificationDispatcher(notifier, schedule=background_tasks.add_task)
    return CatalogVersioningService(db, notifications=dispatcher)
