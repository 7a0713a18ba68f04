"""API dependencies"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.core.config import settings
from app.services.dns_load_balancer import DNSLoadBalancerService, build_load_balancer_service

# Allow missing token for debug mode handling
security = HTTPBearer(auto_error=False)


async def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Verify the bearer JWT and return its subject"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    
    if not credentials:
        if settings.DEBUG:
            return "debug"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise credentials_exception
    
    subject = payload.get("sub")
    if subject is None:
        raise credentials_exception
    return str(subject)


def get_load_balancer_service(request: Request) -> DNSLoadBalancerService:
    """Service shared with the scheduler, built lazily when the app has none"""
    service = getattr(request.app.state, "load_balancer_service", None)
    if service is None:
        service = build_load_balancer_service()
        request.app.state.load_balancer_service = service
    return service
