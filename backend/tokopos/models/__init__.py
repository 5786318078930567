from .auth import User, SessionToken
from .catalog import Product, ProductUom, Barcode, PriceList, Customer, Location, StoreProfile
from .inventory import StockMove, Repack, RepackLine
from .purchasing import Supplier, Purchase, PurchaseLine
from .sales import Sale, SaleLine, Payment, SaleReturn, SaleReturnLine
from .sync import SyncClient, SyncCheckpoint, SyncInbound, Tombstone
from .audit import AuditLog

__all__ = [
    'User', 'SessionToken',
    'Product', 'ProductUom', 'Barcode', 'PriceList', 'Customer', 'Location', 'StoreProfile',
    'StockMove', 'Repack', 'RepackLine',
    'Supplier', 'Purchase', 'PurchaseLine',
    'Sale', 'SaleLine', 'Payment', 'SaleReturn', 'SaleReturnLine',
    'SyncClient', 'SyncCheckpoint', 'SyncInbound', 'Tombstone',
    'AuditLog',
]
