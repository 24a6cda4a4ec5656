"""
Role-based permission helpers.

Defines roles and the checks route handlers use before touching billing
state or the pipeline.
"""

from typing import List
from fastapi import HTTPException, status


class Roles:
    """Standard organization roles."""
    ADMIN = "admin"
    RECRUITER = "recruiter"
    HIRING_MANAGER = "hiring_manager"
    VIEWER = "viewer"
    
    ALL = [ADMIN, RECRUITER, HIRING_MANAGER, VIEWER]
    
    # Capability matrix
    BILLING_MANAGERS = [ADMIN]
    CREDIT_SPENDERS = [ADMIN, RECRUITER]
    PIPELINE_EDITORS = [ADMIN, RECRUITER, HIRING_MANAGER]


def check_role_permission(user_role: str, allowed_roles: List[str]) -> bool:
    """
    Check if user's role is in the list of allowed roles.
    
    Args:
        user_role: The user's current role
        allowed_roles: List of roles that are permitted
        
    Returns:
        True if user has permission, False otherwise
    """
    if not user_role or not allowed_roles:
        return False
    return user_role in allowed_roles


def raise_if_not_roles(user_role: str, allowed_roles: List[str], action: str = "perform this action") -> None:
    """
    Raise 403 error if user doesn't have one of the allowed roles.
    
    Raises:
        HTTPException: 403 if user doesn't have permission
    """
    if not check_role_permission(user_role, allowed_roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions to {action}. Required: {', '.join(allowed_roles)}"
        )
