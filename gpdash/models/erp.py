"""
Dynamics GP Models
Read-only SQLAlchemy mappings for the GP inventory and sales order tables

Only the columns the dashboard reads are mapped. GP stores char fields
space-padded, so queries compare on RTRIM(column).
"""
from sqlalchemy import Column, String, Integer, Numeric, DateTime

from gpdash.core.database import ErpBase

# IV00101.ITMTRKOP values
TRACKING_NONE = 1
TRACKING_SERIAL = 2
TRACKING_LOT = 3

# IV00200.QTYTYPE: 1 = On Hand
QTY_TYPE_ON_HAND = 1

# IV00102.RCRDTYPE: 1 = all sites summary, 2 = site record
RECORD_TYPE_SITE = 2


class ItemMaster(ErpBase):
    """IV00101 - Item Master"""
    __tablename__ = "IV00101"

    item_number = Column("ITEMNMBR", String(31), primary_key=True)
    item_description = Column("ITEMDESC", String(101), default='')
    item_class = Column("ITMCLSCD", String(11), default='')
    tracking_option = Column("ITMTRKOP", Integer, default=TRACKING_NONE, doc="1=None, 2=Serial, 3=Lot")


class ItemSiteQuantity(ErpBase):
    """IV00102 - Item Quantity Master"""
    __tablename__ = "IV00102"

    item_number = Column("ITEMNMBR", String(31), primary_key=True)
    location_code = Column("LOCNCODE", String(11), primary_key=True)
    record_type = Column("RCRDTYPE", Integer, primary_key=True, default=RECORD_TYPE_SITE)
    qty_on_hand = Column("QTYONHND", Numeric(19, 5), default=0)
    qty_allocated = Column("ATYALLOC", Numeric(19, 5), default=0)


class SerialMaster(ErpBase):
    """IV00200 - Item Serial Number Master"""
    __tablename__ = "IV00200"

    item_number = Column("ITEMNMBR", String(31), primary_key=True)
    location_code = Column("LOCNCODE", String(11), primary_key=True)
    serial_number = Column("SERLNMBR", String(21), primary_key=True)
    qty_type = Column("QTYTYPE", Integer, primary_key=True, default=QTY_TYPE_ON_HAND)
    sold = Column("SERLNSLD", Integer, default=0)
    date_received = Column("DATERECD", DateTime)
    receipt_sequence = Column("RCTSEQNM", Integer, default=0)
    bin = Column("BIN", String(15), default='')


class ReceiptLayer(ErpBase):
    """IV10200 - Purchase Receipts Work (cost layers)"""
    __tablename__ = "IV10200"

    item_number = Column("ITEMNMBR", String(31), primary_key=True)
    location_code = Column("TRXLOCTN", String(11), primary_key=True)
    receipt_sequence = Column("RCTSEQNM", Integer, primary_key=True)
    receipt_number = Column("RCPTNMBR", String(21), default='')
    date_received = Column("DATERECD", DateTime)
    qty_received = Column("QTYRECVD", Numeric(19, 5), default=0)
    qty_sold = Column("QTYSOLD", Numeric(19, 5), default=0)
    unit_cost = Column("UNITCOST", Numeric(19, 5), default=0)


class SopHeader(ErpBase):
    """SOP10100 - Sales Transaction Work"""
    __tablename__ = "SOP10100"

    sop_type = Column("SOPTYPE", Integer, primary_key=True)
    sop_number = Column("SOPNUMBE", String(21), primary_key=True)
    customer_name = Column("CUSTNAME", String(65), default='')
    document_date = Column("DOCDATE", DateTime)


class SopLine(ErpBase):
    """SOP10200 - Sales Transaction Amounts Work"""
    __tablename__ = "SOP10200"

    sop_type = Column("SOPTYPE", Integer, primary_key=True)
    sop_number = Column("SOPNUMBE", String(21), primary_key=True)
    line_sequence = Column("LNITMSEQ", Integer, primary_key=True)
    item_number = Column("ITEMNMBR", String(31), nullable=False)
    location_code = Column("LOCNCODE", String(11), default='')
    quantity = Column("QUANTITY", Numeric(19, 5), default=0)
    qty_allocated = Column("ATYALLOC", Numeric(19, 5), default=0)


class SopSerial(ErpBase):
    """SOP10201 - Sales Serial/Lot Work and History"""
    __tablename__ = "SOP10201"

    sop_type = Column("SOPTYPE", Integer, primary_key=True)
    sop_number = Column("SOPNUMBE", String(21), primary_key=True)
    line_sequence = Column("LNITMSEQ", Integer, primary_key=True)
    serial_sequence = Column("SLTSQNUM", Integer, primary_key=True)
    item_number = Column("ITEMNMBR", String(31), nullable=False)
    serial_number = Column("SERLTNUM", String(21), nullable=False)
