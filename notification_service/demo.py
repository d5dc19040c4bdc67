"""
Demonstration scripts for the CRM event flow.

These functions wire producers, an in-memory broker and the notification
worker together in one process. Run them to see events being published,
routed and turned into notifications and emails.
"""

from decimal import Decimal

from messaging.memory_bus import InMemoryBroker
from messaging.publisher import EventPublisher
from notification_service.worker import NotificationWorker
from services import AuthService, CustomerService, LeadService, OpportunityService, TaskService
from shared.channels import MockEmailGateway
from shared.config import Settings
from shared.logging_setup import configure_logging
from shared.notification_store import NotificationStore


class DemoEnvironment:
    """One broker, one worker and one publisher shared by a demo run."""

    def __init__(self, email_fail: bool = False):
        self.broker = InMemoryBroker()
        self.store = NotificationStore()
        self.email = MockEmailGateway(fail=email_fail)
        self.worker = NotificationWorker(
            settings=Settings(),
            bus=self.broker,
            store=self.store,
            email_gateway=self.email,
        )
        self.publisher = EventPublisher(self.broker)

    def __enter__(self) -> "DemoEnvironment":
        self.worker.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.broker.wait_until_idle()
        self.worker.stop()

    def report(self) -> None:
        self.broker.wait_until_idle()
        print("\nNotifications stored:")
        for n in sorted(self.store.all(), key=lambda n: n.id):
            print(f"  #{n.id} [{n.type.value}] to {n.recipient}: {n.message}")
        print("\nEmails sent:")
        for msg in self.email.sent_messages:
            print(f"  {msg}")
        print(f"\nOpportunity queue depth (no subscriber): {self.broker.queue_depth('opportunity.events.queue')}")


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(f"DEMO: {title}")
    print("=" * 70 + "\n")


def run_customer_created_demo() -> None:
    """
    A customer is created; the notification service stores one CUSTOMER
    notification for the administrator. CustomerService never hears about it.
    """
    _banner("Customer Created")
    with DemoEnvironment() as env:
        customers = CustomerService(env.publisher)
        customers.create_customer(
            email="a@x.com", first_name="Ann", last_name="Lee", company="Acme", industry="Retail"
        )
        env.report()


def run_user_registered_demo() -> None:
    """A user registers; a welcome email goes out and an INFO notification is stored."""
    _banner("User Registered")
    with DemoEnvironment() as env:
        AuthService(env.publisher).register("bob", "b@y.com", "Bob", "Jones")
        env.report()


def run_sales_pipeline_demo() -> None:
    """
    A lead moves through the pipeline and is converted. Lead and task
    events produce notifications; opportunity events wait in their queue.
    """
    _banner("Sales Pipeline")
    with DemoEnvironment() as env:
        leads = LeadService(env.publisher)
        opportunities = OpportunityService(env.publisher)
        tasks = TaskService(env.publisher)
        customers = CustomerService(env.publisher)

        lead = leads.create_lead(
            email="cto@globex.com", company="Globex", expected_value=Decimal("25000.00")
        )
        leads.assign_lead(lead.id, "rep.jane")
        leads.change_stage(lead.id, "QUALIFICATION")
        task = tasks.create_task(title="Discovery call with Globex", lead_id=lead.id, assigned_to="rep.jane")
        tasks.complete_task(task.id)

        customer = customers.create_customer(email="cto@globex.com", first_name="Hank", last_name="Scorpio")
        opportunity = opportunities.create_opportunity(
            "Globex rollout", customer_id=customer.id, lead_id=lead.id, amount=Decimal("25000.00")
        )
        leads.convert_lead(lead.id, customer.id, opportunity.id)
        opportunities.mark_won(opportunity.id)
        env.report()


def run_email_failure_demo() -> None:
    """
    The mail server is down while a user registers. The failure is logged,
    no notification is stored, and registration still succeeds.
    """
    _banner("User Registered, Email Down")
    with DemoEnvironment(email_fail=True) as env:
        user = AuthService(env.publisher).register("carol", "c@z.com", "Carol", "King")
        print(f"Registration returned user #{user.id} regardless of email outcome")
        env.report()


SCENARIOS = {
    "customer-created": run_customer_created_demo,
    "user-registered": run_user_registered_demo,
    "sales-pipeline": run_sales_pipeline_demo,
    "email-failure": run_email_failure_demo,
}


def run_demo(scenario: str = "all", log_level: str = "INFO") -> None:
    configure_logging(log_level)
    if scenario == "all":
        for run in SCENARIOS.values():
            run()
    else:
        SCENARIOS[scenario]()
