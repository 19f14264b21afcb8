"""
Audit logging infrastructure for login attempts and admin actions.
"""

from underground.infrastructure.audit.audit_logger import AuditLogger, LoginOutcome

__all__ = ["AuditLogger", "LoginOutcome"]
