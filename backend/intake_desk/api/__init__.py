"""
API route controllers for the Intake Desk.

Contains FastAPI routers for different endpoints.
Routes handle HTTP requests and delegate to services and repositories.
"""

from .health import router as health_router
from .clients import router as clients_router
from .outreach import router as outreach_router
from .evaluation_criteria import router as evaluation_criteria_router
from .referral_clinics import router as referral_clinics_router
from .templates import router as templates_router
from .settings import router as settings_router
from .audit_log import router as audit_log_router
from .text_evaluation_rules import router as text_evaluation_rules_router
from .intake_sync import router as intake_sync_router

__all__ = [
    "health_router",
    "clients_router",
    "outreach_router",
    "evaluation_criteria_router",
    "referral_clinics_router",
    "templates_router",
    "settings_router",
    "audit_log_router",
    "text_evaluation_rules_router",
    "intake_sync_router",
]
