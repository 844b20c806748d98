"""Pydantic schemas for the staff order API."""

from __future__ import annotations

from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrderCreateRequest(_CamelModel):
    order_number: str = Field(alias="orderNumber", min_length=1, max_length=100)
    customer_email: EmailStr = Field(alias="customerEmail")
    customer_name: Optional[str] = Field(default=None, alias="customerName", max_length=200)
    product_name: Optional[str] = Field(default=None, alias="productName", max_length=500)
    sku: Optional[str] = Field(default=None, max_length=100)
    quantity: int = Field(default=1, ge=1, le=100000)
    order_total: Optional[float] = Field(default=None, alias="orderTotal", ge=0)
    status: Literal["draft", "open"] = "draft"


class OrderResponse(_CamelModel):
    id: str
    external_id: Optional[str] = Field(default=None, alias="externalId")
    platform: str
    order_number: str = Field(alias="orderNumber")
    customer_email: str = Field(alias="customerEmail")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    status: str
    order_total: Optional[float] = Field(default=None, alias="orderTotal")
    sku: Optional[str] = None
    product_name: Optional[str] = Field(default=None, alias="productName")
    quantity: Optional[int] = None
    reminder_count: int = Field(alias="reminderCount")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    customer_decision_at: Optional[str] = Field(default=None, alias="customerDecisionAt")


class OrderListResponse(BaseModel):
    count: int
    orders: List[OrderResponse]


class BulkActionRequest(_CamelModel):
    action: Literal["mark_open", "mark_approved", "send_reminders"]
    order_ids: List[UUID] = Field(alias="orderIds", min_length=1, max_length=100)


class BulkActionResponse(_CamelModel):
    action: str
    processed: int
    processed_ids: List[str] = Field(alias="processedIds")
    skipped_ids: List[str] = Field(alias="skippedIds")
    not_found_ids: List[str] = Field(alias="notFoundIds")


class SearchResult(BaseModel):
    type: Literal["order"] = "order"
    id: str
    title: str
    subtitle: str
    href: str


class SearchResponse(BaseModel):
    results: List[SearchResult]
