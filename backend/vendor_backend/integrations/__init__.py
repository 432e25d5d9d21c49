"""Clients for the remote services the vendor backend reports to or consults."""

from .dispatch import IntegrationClient, IntegrationFailure, RetryPolicy
from .inventory_client import InventoryClient
from .factory_client import FactoryClient
from .finance_client import FinanceClient
from .audit_client import AuditClient, AuditContext, emit_audit_log

__all__ = [
    'IntegrationClient', 'IntegrationFailure', 'RetryPolicy',
    'InventoryClient', 'FactoryClient', 'FinanceClient',
    'AuditClient', 'AuditContext', 'emit_audit_log',
]
