"""
GP Inventory Queries
Read-only access to Dynamics GP item, serial, quantity and sales order data
"""
from typing import Dict, List, Optional, Sequence
from decimal import Decimal
from functools import wraps
from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
import logging

from gpdash.core.config import settings
from gpdash.core.exceptions import ErpReadError
from gpdash.models.erp import (
    ItemMaster, ItemSiteQuantity, SerialMaster, ReceiptLayer,
    SopHeader, SopLine, SopSerial,
    QTY_TYPE_ON_HAND, RECORD_TYPE_SITE
)

logger = logging.getLogger(__name__)


def erp_read(func_):
    """Convert database errors into ErpReadError; GP data has no fallback"""
    @wraps(func_)
    def wrapper(self, *args, **kwargs):
        try:
            return func_(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"GP query {func_.__name__} failed: {e}")
            raise ErpReadError(f"Unable to read inventory data from GP ({func_.__name__})") from e
    return wrapper


def _trimmed(column):
    return func.rtrim(column)


class ErpInventoryRepository:
    """Queries against the GP company database"""

    def __init__(self, db: Session, open_sop_types: Optional[Sequence[int]] = None):
        self.db = db
        self.open_sop_types = list(open_sop_types or settings.OPEN_SOP_TYPES)

    @erp_read
    def get_tracking_option(self, item_number: str) -> Optional[int]:
        """Item master tracking flag, None when the item does not exist"""
        row = self.db.query(ItemMaster.tracking_option).filter(
            _trimmed(ItemMaster.item_number) == item_number.strip()
        ).first()
        return row.tracking_option if row else None

    @erp_read
    def list_unsold_serials(self, item_number: str, site_id: str) -> List[SerialMaster]:
        """On-hand, unsold serial units at one site, oldest receipt first"""
        return self.db.query(SerialMaster).filter(
            and_(
                _trimmed(SerialMaster.item_number) == item_number.strip(),
                _trimmed(SerialMaster.location_code) == site_id.strip(),
                SerialMaster.qty_type == QTY_TYPE_ON_HAND,
                SerialMaster.sold == 0
            )
        ).order_by(SerialMaster.date_received, SerialMaster.serial_number).all()

    @erp_read
    def has_unsold_serials(self, item_number: str) -> bool:
        """Whether the item has unsold serial units at any site"""
        row = self.db.query(SerialMaster.serial_number).filter(
            and_(
                _trimmed(SerialMaster.item_number) == item_number.strip(),
                SerialMaster.qty_type == QTY_TYPE_ON_HAND,
                SerialMaster.sold == 0
            )
        ).first()
        return row is not None

    @erp_read
    def get_serial_allocations(self, item_number: str, serial_numbers: Sequence[str]) -> Dict[str, Dict]:
        """
        Open sales documents each serial is already entered on

        Returns {serial_number: {"sop_number", "sop_type", "customer_name"}};
        when a serial sits on several documents the lowest document number wins.
        """
        if not serial_numbers:
            return {}

        wanted = [sn.strip() for sn in serial_numbers]
        rows = self.db.query(
            _trimmed(SopSerial.serial_number).label("serial_number"),
            _trimmed(SopSerial.sop_number).label("sop_number"),
            SopSerial.sop_type,
            _trimmed(SopHeader.customer_name).label("customer_name"),
        ).join(
            SopHeader,
            and_(
                SopHeader.sop_number == SopSerial.sop_number,
                SopHeader.sop_type == SopSerial.sop_type
            )
        ).filter(
            and_(
                _trimmed(SopSerial.item_number) == item_number.strip(),
                _trimmed(SopSerial.serial_number).in_(wanted),
                SopSerial.sop_type.in_(self.open_sop_types)
            )
        ).order_by(SopSerial.sop_number).all()

        allocations = {}
        for row in rows:
            allocations.setdefault(row.serial_number, {
                "sop_number": row.sop_number,
                "sop_type": row.sop_type,
                "customer_name": row.customer_name,
            })
        return allocations

    @erp_read
    def get_site_quantities(self, item_number: str, site_id: str) -> Dict[str, Decimal]:
        """On-hand and allocated quantity from the item's site record"""
        row = self.db.query(
            ItemSiteQuantity.qty_on_hand,
            ItemSiteQuantity.qty_allocated
        ).filter(
            and_(
                _trimmed(ItemSiteQuantity.item_number) == item_number.strip(),
                _trimmed(ItemSiteQuantity.location_code) == site_id.strip(),
                ItemSiteQuantity.record_type == RECORD_TYPE_SITE
            )
        ).first()

        if not row:
            return {"qty_on_hand": Decimal("0"), "qty_allocated": Decimal("0")}
        return {
            "qty_on_hand": Decimal(str(row.qty_on_hand or 0)),
            "qty_allocated": Decimal(str(row.qty_allocated or 0)),
        }

    @erp_read
    def get_receipt_layers(self, item_number: str, site_id: str) -> List[ReceiptLayer]:
        """Receipt layers with quantity still available, oldest first"""
        return self.db.query(ReceiptLayer).filter(
            and_(
                _trimmed(ReceiptLayer.item_number) == item_number.strip(),
                _trimmed(ReceiptLayer.location_code) == site_id.strip(),
                ReceiptLayer.qty_received - ReceiptLayer.qty_sold > 0
            )
        ).order_by(ReceiptLayer.date_received).all()

    @erp_read
    def get_serial_receipts(self, item_number: str, site_id: str) -> Dict[int, ReceiptLayer]:
        """Receipt layers at a site keyed by receipt sequence (for serial cost/receipt lookup)"""
        layers = self.db.query(ReceiptLayer).filter(
            and_(
                _trimmed(ReceiptLayer.item_number) == item_number.strip(),
                _trimmed(ReceiptLayer.location_code) == site_id.strip()
            )
        ).all()
        return {layer.receipt_sequence: layer for layer in layers}

    @erp_read
    def get_open_line_allocations(self, item_number: str, site_id: str) -> List:
        """Open sales lines with quantity allocated at a site, oldest document first"""
        return self.db.query(
            _trimmed(SopHeader.sop_number).label("sop_number"),
            _trimmed(SopHeader.customer_name).label("customer_name"),
            SopLine.qty_allocated,
            SopLine.quantity,
            SopHeader.document_date,
        ).join(
            SopHeader,
            and_(
                SopHeader.sop_number == SopLine.sop_number,
                SopHeader.sop_type == SopLine.sop_type
            )
        ).filter(
            and_(
                _trimmed(SopLine.item_number) == item_number.strip(),
                _trimmed(SopLine.location_code) == site_id.strip(),
                SopLine.qty_allocated > 0
            )
        ).order_by(SopHeader.document_date).all()
