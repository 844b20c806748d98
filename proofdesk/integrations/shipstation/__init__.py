"""ShipStation order API integration."""

from proofdesk.integrations.shipstation.client import (
    CredentialCheckResult,
    ShipStationAPIError,
    ShipStationAuthError,
    ShipStationClient,
    ShipStationError,
    ShipStationNetworkError,
    ShipStationNotConfiguredError,
    ShipStationRateLimitError,
    get_shipstation_client,
)

__all__ = [
    "CredentialCheckResult",
    "ShipStationAPIError",
    "ShipStationAuthError",
    "ShipStationClient",
    "ShipStationError",
    "ShipStationNetworkError",
    "ShipStationNotConfiguredError",
    "ShipStationRateLimitError",
    "get_shipstation_client",
]
