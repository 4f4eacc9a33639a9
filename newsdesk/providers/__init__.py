from newsdesk.providers.airtable import AirtableClient
from newsdesk.providers.base import HttpProvider, Provider, RetryPolicy
from newsdesk.providers.factory import ProviderFactory
from newsdesk.providers.gateway import ProviderGateway, Sender
from newsdesk.providers.resend import ResendClient
from newsdesk.providers.service_keys import ServiceKeyStore

__all__ = [
    "AirtableClient",
    "HttpProvider",
    "Provider",
    "ProviderFactory",
    "ProviderGateway",
    "ResendClient",
    "RetryPolicy",
    "Sender",
    "ServiceKeyStore",
]
