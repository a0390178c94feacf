"""
Inventory Detail Service
Aging and allocation breakdown for one item at one site
"""
from typing import Optional
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session

from gpdash.models.erp import TRACKING_NONE, TRACKING_SERIAL
from gpdash.schemas.inventory import (
    InventoryDetail, SerialDetail, ReceiptLayerDetail, SalesAllocationDetail
)
from gpdash.services.inventory.allocation_resolver import aging_days
from gpdash.services.inventory.erp_inventory import ErpInventoryRepository


class InventoryDetailService:
    """
    Serialized items list each unsold serial with its receipt and the open
    document it sits on. Other items list open receipt layers and the sales
    lines holding allocated quantity.
    """

    def __init__(self, erp_db: Session):
        self.erp = ErpInventoryRepository(erp_db)

    def get_inventory_detail(self, item_number: str, site_id: str, today: Optional[date] = None) -> InventoryDetail:
        item_number = item_number.strip()
        site_id = site_id.strip()

        tracking_option = self.erp.get_tracking_option(item_number) or TRACKING_NONE
        detail = InventoryDetail(item_number=item_number, site_id=site_id, tracking_option=tracking_option)

        if tracking_option == TRACKING_SERIAL:
            serial_rows = self.erp.list_unsold_serials(item_number, site_id)
            receipts = self.erp.get_serial_receipts(item_number, site_id)
            documents = self.erp.get_serial_allocations(
                item_number, [row.serial_number.strip() for row in serial_rows]
            )

            for row in serial_rows:
                serial_number = row.serial_number.strip()
                receipt = receipts.get(row.receipt_sequence)
                document = documents.get(serial_number, {})
                detail.serials.append(SerialDetail(
                    serial_number=serial_number,
                    receipt_number=receipt.receipt_number.strip() if receipt else None,
                    date_received=row.date_received.date() if row.date_received else None,
                    days_old=aging_days(row.date_received, today),
                    bin=(row.bin or '').strip() or None,
                    unit_cost=Decimal(str(receipt.unit_cost)) if receipt else None,
                    document_number=document.get("sop_number"),
                    customer_name=document.get("customer_name")
                ))
            return detail

        for layer in self.erp.get_receipt_layers(item_number, site_id):
            detail.receipt_layers.append(ReceiptLayerDetail(
                receipt_number=(layer.receipt_number or '').strip(),
                date_received=layer.date_received.date() if layer.date_received else None,
                days_old=aging_days(layer.date_received, today),
                qty_available=Decimal(str(layer.qty_received)) - Decimal(str(layer.qty_sold)),
                location_code=layer.location_code.strip()
            ))

        for line in self.erp.get_open_line_allocations(item_number, site_id):
            detail.allocations.append(SalesAllocationDetail(
                sop_number=line.sop_number,
                customer_name=line.customer_name,
                qty_allocated=Decimal(str(line.qty_allocated)),
                quantity=Decimal(str(line.quantity)),
                document_date=line.document_date.date() if line.document_date else None
            ))

        return detail
