"""Email provider integrations."""

from proofdesk.integrations.email.resend_client import (
    EmailClientError,
    ResendClient,
    format_sender,
    get_resend_client,
)

__all__ = ["EmailClientError", "ResendClient", "format_sender", "get_resend_client"]
