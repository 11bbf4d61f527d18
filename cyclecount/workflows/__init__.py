"""Workflows module: file imports."""
from .stock_import import StockDataset, read_stock_csv, parse_stock_text
from .purchase_orders import PurchaseOrderImport, read_purchase_order_csv, parse_purchase_order_text

__all__ = [
    'StockDataset', 'read_stock_csv', 'parse_stock_text',
    'PurchaseOrderImport', 'read_purchase_order_csv', 'parse_purchase_order_text',
]
