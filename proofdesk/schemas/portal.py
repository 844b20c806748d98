"""Pydantic schemas for the customer proof portal."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PortalFile(_CamelModel):
    id: str
    filename: str
    mime_type: str = Field(alias="mimeType")
    url: str


class PortalVersion(_CamelModel):
    id: str
    version_number: int = Field(alias="versionNumber")
    staff_note: Optional[str] = Field(default=None, alias="staffNote")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    files: List[PortalFile]


class PortalOrder(_CamelModel):
    id: str
    order_number: str = Field(alias="orderNumber")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    status: str
    product_name: Optional[str] = Field(default=None, alias="productName")
    sku: Optional[str] = None
    quantity: Optional[int] = None
    product_image_url: Optional[str] = Field(default=None, alias="productImageUrl")
    customization_options: Dict[str, Any] = Field(default_factory=dict, alias="customizationOptions")


class PortalBranding(_CamelModel):
    company_name: Optional[str] = Field(default=None, alias="companyName")
    accent_color: Optional[str] = Field(default=None, alias="accentColor")
    logo_data_url: Optional[str] = Field(default=None, alias="logoDataUrl")


class PortalResponse(_CamelModel):
    order: PortalOrder
    versions: List[PortalVersion]
    branding: PortalBranding
    decided: bool
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")
