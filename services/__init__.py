"""
Producing services for the CRM.

Each service owns its entities and publishes a domain event after every
committed change. None of them knows who consumes those events.
"""

from services.auth import AuthService, User, UsernameTaken
from services.base import EntityNotFound, InMemoryRepository
from services.customers import Customer, CustomerService
from services.sales import Lead, LeadService, Opportunity, OpportunityService
from services.tasks import Task, TaskService

__all__ = [
    "AuthService",
    "User",
    "UsernameTaken",
    "EntityNotFound",
    "InMemoryRepository",
    "Customer",
    "CustomerService",
    "Lead",
    "LeadService",
    "Opportunity",
    "OpportunityService",
    "Task",
    "TaskService",
]
