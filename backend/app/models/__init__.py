from .tenancy import Tenant, TenantIntegration
from .sales import Sale, SaleItem
from .inventory import InventoryItem, InventorySnapshot, InventorySnapshotRun
from .sync import SyncState

__all__ = [
    'Tenant', 'TenantIntegration',
    'Sale', 'SaleItem',
    'InventoryItem', 'InventorySnapshot', 'InventorySnapshotRun',
    'SyncState',
]
