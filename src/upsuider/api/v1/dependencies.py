"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from upsuider.db.session import get_db
from upsuider.services.registry import ServiceContainer

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_services(request: Request) -> ServiceContainer:
    """Return the service container created at application startup."""
    return request.app.state.services


ServicesDep = Annotated[ServiceContainer, Depends(get_services)]
