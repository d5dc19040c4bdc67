"""
Customer service simulator.

Manages customers and publishes customer events when they change.

Key insight:
- This service ONLY publishes events
- It does NOT call the notification service
- A failed publish never fails the customer operation
"""

import logging
from typing import Optional

from pydantic import BaseModel

from messaging.envelope import CustomerCreated, CustomerDeleted, CustomerUpdated
from messaging.publisher import EventPublisher
from services.base import InMemoryRepository, announce

logger = logging.getLogger("customer_service")


class Customer(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    company: Optional[str] = None
    industry: Optional[str] = None
    assigned_to: Optional[str] = None


class CustomerService:
    """
    Simulated customer service that publishes events.

    Example:
        service = CustomerService(publisher)
        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee")
    """

    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher
        self.customers: InMemoryRepository[Customer] = InMemoryRepository("Customer")

    def _details(self, customer: Customer) -> dict:
        return {
            "customer_id": customer.id,
            "email": customer.email,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "company": customer.company,
            "industry": customer.industry,
            "assigned_to": customer.assigned_to,
        }

    def create_customer(
        self,
        email: str,
        first_name: str,
        last_name: str,
        company: Optional[str] = None,
        industry: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> Customer:
        customer = self.customers.save(Customer(
            id=self.customers.next_id(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            company=company,
            industry=industry,
            assigned_to=assigned_to,
        ))
        logger.info(f"Customer {customer.id} created: {customer.email}")

        announce(self.publisher.publish_customer_event, CustomerCreated, **self._details(customer))
        return customer

    def update_customer(self, customer_id: int, **changes) -> Customer:
        """
        Apply field changes to a customer.

        Raises:
            EntityNotFound: If the customer does not exist
            ValidationError: If the changes leave an invalid customer
        """
        _, customer = self.customers.update(customer_id, **changes)
        logger.info(f"Customer {customer_id} updated: {sorted(changes)}")

        announce(self.publisher.publish_customer_event, CustomerUpdated, **self._details(customer))
        return customer

    def delete_customer(self, customer_id: int) -> None:
        """
        Raises:
            EntityNotFound: If the customer does not exist
        """
        customer = self.customers.delete(customer_id)
        logger.info(f"Customer {customer_id} deleted")

        announce(
            self.publisher.publish_customer_event,
            CustomerDeleted,
            customer_id=customer.id,
            email=customer.email,
        )
