"""
ERP Response Schemas
====================

Shape response ERP (erp.aero) yang kita harapkan. Setiap response
divalidasi ke schema ini; kalau tidak cocok client raise ``ApiError``.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional, Union


class ERPBaseModel(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class ERPEnvelope(ERPBaseModel):
    """Envelope umum: res == 1 artinya sukses."""
    res: int
    data: Any = None
    error: Optional[str] = None
    msg: Optional[str] = None


class ERPAuthData(ERPBaseModel):
    token: Optional[str] = None
    token_expire: Optional[int] = None


class ERPStatus(ERPBaseModel):
    status: str


class ERPVendor(ERPBaseModel):
    vendorname: Optional[str] = None


class ERPAddress(ERPBaseModel):
    company: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class ERPAddressBlock(ERPBaseModel):
    ship: Optional[ERPAddress] = None
    vendor: Optional[ERPAddress] = None


class ERPListBody(ERPBaseModel):
    po_id: int
    po_no: str
    type: Optional[str] = None
    status: ERPStatus
    modified_time: str
    created_time: Optional[str] = None
    vendor: Optional[ERPVendor] = None


class ERPListItem(ERPBaseModel):
    body: ERPListBody


class ERPListData(ERPBaseModel):
    items: List[ERPListItem] = Field(alias='list')


class ERPDetailsBody(ERPBaseModel):
    po_id: int
    po_no: str
    status: ERPStatus
    vendor: Optional[ERPVendor] = None
    ship_via: Optional[str] = None
    address: Optional[ERPAddressBlock] = None
    total: Optional[Union[str, float]] = None
    term_sale: Optional[str] = None
    modified_time: Optional[str] = None
    created_time: Optional[str] = None


class ERPProduct(ERPBaseModel):
    name: str


class ERPQuantity(ERPBaseModel):
    qty: float
    received: Optional[float] = None


class ERPPartTags(ERPBaseModel):
    sn: Optional[str] = None
    trace: Optional[str] = None


class ERPPartJsonData(ERPBaseModel):
    pn_sn: Optional[str] = None


class ERPPart(ERPBaseModel):
    id: Optional[int] = None
    product: Optional[ERPProduct] = None
    quantity: Optional[ERPQuantity] = None
    unit_price: Optional[float] = None
    serial_number: Optional[str] = None
    comment: Optional[str] = None
    tags: Optional[ERPPartTags] = None
    json_data: Optional[ERPPartJsonData] = None
    leadtime: Optional[str] = None
    condition: Optional[str] = None


class ERPOrderDetails(ERPBaseModel):
    body: ERPDetailsBody
    parts_list: List[ERPPart] = Field(default_factory=list, alias='partsList')


class ERPOrderSummary(BaseModel):
    """Ringkasan list item untuk ditampilkan tanpa fetch details."""
    external_id: int
    order_no: str
    status: str
    raw_status: str
    modified_time: str
    created_time: Optional[str] = None
    vendor_name: Optional[str] = None
