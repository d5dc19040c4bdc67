"""
Email templates for the CRM notification service.

Templates support variable substitution using Python's string formatting.

Design decisions:
- Templates are simple strings with {variable} placeholders
- Organized by email kind (welcome, generic notification)
- Plain text only; the SMTP gateway sends text/plain
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EmailKind(str, Enum):
    """Supported outbound email kinds."""
    WELCOME = "welcome"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class EmailTemplate:
    """A subject/body pair rendered with the same context."""
    kind: EmailKind
    subject: str
    body: str

    def render(self, **kwargs) -> tuple[str, str]:
        """
        Render the template with provided variables.

        Returns:
            Tuple of (subject, body)
        """
        return (
            self.subject.format(**kwargs),
            self.body.format(**kwargs),
        )


# =============================================================================
# Template Definitions
# =============================================================================

TEMPLATES: dict[EmailKind, EmailTemplate] = {

    EmailKind.WELCOME: EmailTemplate(
        kind=EmailKind.WELCOME,
        subject="Welcome to {system_name}!",
        body="""Dear {full_name},

Welcome to the {system_name}! Your account has been successfully created.

Account Details:
- Username: {username}
- Full Name: {full_name}

You can now log in to the {system_name} and start managing your customers, leads, and opportunities.

If you have any questions, please contact our support team.

Best regards,
{system_name} Team
""",
    ),

    EmailKind.NOTIFICATION: EmailTemplate(
        kind=EmailKind.NOTIFICATION,
        subject="{subject}",
        body="""{content}

--
This message was sent automatically by the {system_name}.
""",
    ),
}


# =============================================================================
# Template Access Functions
# =============================================================================

def get_template(kind: EmailKind) -> Optional[EmailTemplate]:
    """Get a template by kind."""
    return TEMPLATES.get(kind)


def render_email(kind: EmailKind, system_name: str = "CRM System", **context) -> tuple[str, str]:
    """
    Render an email of the given kind.

    Args:
        kind: Which template to use
        system_name: Product name shown in the text
        **context: Variables to substitute in the template

    Returns:
        (subject, body)

    Raises:
        ValueError: If no template exists for the kind
        KeyError: If the context misses a placeholder
    """
    template = get_template(kind)
    if not template:
        raise ValueError(f"No template found for email kind: {kind}")
    return template.render(system_name=system_name, **context)
