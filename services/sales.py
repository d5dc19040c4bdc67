"""
Sales service simulator: leads and opportunities.

Both live in the sales service and publish on their own domains (lead and
opportunity). Pipeline moves such as stage changes, assignment, closing and
conversion each publish a dedicated event so consumers can react to the
specific fact instead of diffing updates.
"""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from messaging.envelope import (
    LeadAssigned,
    LeadClosed,
    LeadConverted,
    LeadCreated,
    LeadDeleted,
    LeadStageChanged,
    LeadUpdated,
    OpportunityCreated,
    OpportunityDeleted,
    OpportunityLost,
    OpportunityUpdated,
    OpportunityWon,
)
from messaging.publisher import EventPublisher
from services.base import InMemoryRepository, announce

logger = logging.getLogger("sales_service")

CLOSED_WON = "CLOSED_WON"
CLOSED_LOST = "CLOSED_LOST"


class Lead(BaseModel):
    id: int
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    industry: Optional[str] = None
    assigned_to: Optional[str] = None
    expected_value: Optional[Decimal] = None
    status: str = "NEW"
    stage: str = "PROSPECTING"
    customer_id: Optional[int] = None


class Opportunity(BaseModel):
    id: int
    name: str
    customer_id: Optional[int] = None
    lead_id: Optional[int] = None
    assigned_to: Optional[str] = None
    amount: Optional[Decimal] = None
    stage: str = "PROSPECTING"
    type: Optional[str] = None
    loss_reason: Optional[str] = None


# =============================================================================
# Leads
# =============================================================================

class LeadService:
    """
    Simulated lead management that publishes lead events.

    Example:
        service = LeadService(publisher)
        lead = service.create_lead(email="l@x.com", company="Acme")
        service.change_stage(lead.id, "QUALIFICATION")
    """

    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher
        self.leads: InMemoryRepository[Lead] = InMemoryRepository("Lead")

    def _details(self, lead: Lead) -> dict:
        return lead.model_dump(
            include={
                "email", "first_name", "last_name", "company", "industry",
                "assigned_to", "expected_value", "status",
            }
        ) | {"lead_id": lead.id}

    def _announce(self, event_cls, **fields) -> bool:
        return announce(self.publisher.publish_lead_event, event_cls, **fields)

    def create_lead(self, **fields) -> Lead:
        lead = self.leads.save(Lead(id=self.leads.next_id(), **fields))
        logger.info(f"Lead {lead.id} created for {lead.company or lead.email}")
        self._announce(LeadCreated, **self._details(lead))
        return lead

    def update_lead(self, lead_id: int, **changes) -> Lead:
        """
        Raises:
            EntityNotFound: If the lead does not exist
            ValidationError: If the changes leave an invalid lead
        """
        _, lead = self.leads.update(lead_id, **changes)
        logger.info(f"Lead {lead_id} updated: {sorted(changes)}")
        self._announce(LeadUpdated, **self._details(lead))
        return lead

    def delete_lead(self, lead_id: int) -> None:
        lead = self.leads.delete(lead_id)
        logger.info(f"Lead {lead_id} deleted")
        self._announce(LeadDeleted, lead_id=lead.id, email=lead.email)

    def change_stage(self, lead_id: int, new_stage: str) -> Lead:
        previous, lead = self.leads.update(lead_id, stage=new_stage)
        logger.info(f"Lead {lead_id} stage: {previous.stage} -> {lead.stage}")
        self._announce(
            LeadStageChanged,
            lead_id=lead.id,
            customer_id=lead.customer_id,
            old_stage=previous.stage,
            new_stage=lead.stage,
            assigned_to=lead.assigned_to,
        )
        return lead

    def assign_lead(self, lead_id: int, assigned_to: str) -> Lead:
        previous, lead = self.leads.update(lead_id, assigned_to=assigned_to)
        logger.info(f"Lead {lead_id} assigned: {previous.assigned_to} -> {assigned_to}")
        self._announce(
            LeadAssigned,
            lead_id=lead.id,
            customer_id=lead.customer_id,
            old_assigned_to=previous.assigned_to,
            new_assigned_to=lead.assigned_to,
        )
        return lead

    def close_lead(self, lead_id: int, won: bool, value: Optional[Decimal] = None) -> Lead:
        stage = CLOSED_WON if won else CLOSED_LOST
        _, lead = self.leads.update(lead_id, stage=stage, status="CLOSED")
        logger.info(f"Lead {lead_id} closed as {stage}")
        self._announce(
            LeadClosed,
            lead_id=lead.id,
            customer_id=lead.customer_id,
            stage=stage,
            value=value if value is not None else lead.expected_value,
            assigned_to=lead.assigned_to,
        )
        return lead

    def convert_lead(self, lead_id: int, customer_id: int, opportunity_id: Optional[int] = None) -> Lead:
        """
        Record that a lead became a customer (and optionally an opportunity).

        Raises:
            EntityNotFound: If the lead does not exist
        """
        _, lead = self.leads.update(lead_id, status="CONVERTED", customer_id=customer_id)
        logger.info(f"Lead {lead_id} converted to customer {customer_id}")
        self._announce(
            LeadConverted,
            lead_id=lead.id,
            email=lead.email,
            customer_id=customer_id,
            opportunity_id=opportunity_id,
        )
        return lead


# =============================================================================
# Opportunities
# =============================================================================

class OpportunityService:
    """Simulated opportunity management that publishes opportunity events."""

    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher
        self.opportunities: InMemoryRepository[Opportunity] = InMemoryRepository("Opportunity")

    def _details(self, opportunity: Opportunity) -> dict:
        return opportunity.model_dump(
            include={
                "name", "customer_id", "lead_id", "assigned_to",
                "amount", "stage", "type",
            }
        ) | {"opportunity_id": opportunity.id}

    def _announce(self, event_cls, **fields) -> bool:
        return announce(self.publisher.publish_opportunity_event, event_cls, **fields)

    def create_opportunity(self, name: str, **fields) -> Opportunity:
        opportunity = self.opportunities.save(
            Opportunity(id=self.opportunities.next_id(), name=name, **fields)
        )
        logger.info(f"Opportunity {opportunity.id} created: {name}")
        self._announce(OpportunityCreated, **self._details(opportunity))
        return opportunity

    def update_opportunity(self, opportunity_id: int, **changes) -> Opportunity:
        _, opportunity = self.opportunities.update(opportunity_id, **changes)
        logger.info(f"Opportunity {opportunity_id} updated: {sorted(changes)}")
        self._announce(OpportunityUpdated, **self._details(opportunity))
        return opportunity

    def delete_opportunity(self, opportunity_id: int) -> None:
        opportunity = self.opportunities.delete(opportunity_id)
        logger.info(f"Opportunity {opportunity_id} deleted")
        self._announce(OpportunityDeleted, opportunity_id=opportunity.id, name=opportunity.name)

    def mark_won(self, opportunity_id: int) -> Opportunity:
        _, opportunity = self.opportunities.update(opportunity_id, stage=CLOSED_WON)
        logger.info(f"Opportunity {opportunity_id} won")
        self._announce(
            OpportunityWon,
            opportunity_id=opportunity.id,
            name=opportunity.name,
            amount=opportunity.amount,
            customer_id=opportunity.customer_id,
        )
        return opportunity

    def mark_lost(self, opportunity_id: int, reason: Optional[str] = None) -> Opportunity:
        _, opportunity = self.opportunities.update(
            opportunity_id, stage=CLOSED_LOST, loss_reason=reason
        )
        logger.info(f"Opportunity {opportunity_id} lost: {reason}")
        self._announce(
            OpportunityLost,
            opportunity_id=opportunity.id,
            name=opportunity.name,
            reason=reason,
            customer_id=opportunity.customer_id,
        )
        return opportunity
