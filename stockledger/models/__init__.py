# stockledger/models/__init__.py
from stockledger.models.adjustment import Adjustment
from stockledger.models.delivery import Delivery, DeliveryLine
from stockledger.models.doc_sequence import DocSequence
from stockledger.models.master_data import Location, Product, Warehouse
from stockledger.models.receipt import Receipt, ReceiptLine
from stockledger.models.requisition import Requisition, RequisitionLine
from stockledger.models.stock_level import StockLevel
from stockledger.models.stock_movement import StockMovement
from stockledger.models.transfer import Transfer, TransferLine

__all__ = [
    "Adjustment",
    "Delivery",
    "DeliveryLine",
    "DocSequence",
    "Location",
    "Product",
    "Warehouse",
    "Receipt",
    "ReceiptLine",
    "Requisition",
    "RequisitionLine",
    "StockLevel",
    "StockMovement",
    "Transfer",
    "TransferLine",
]
