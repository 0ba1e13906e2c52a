from pydantic import BaseModel
from datetime import date
from typing import Optional
from decimal import Decimal
from campaign_tracker.schemas.campaign_invoice import InvoiceResponse


class PortfolioTotalsResponse(BaseModel):
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    margin: Decimal
    invoice_count: int
    campaign_count: int

    class Config:
        from_attributes = True


class CampaignSummary(BaseModel):
    company: str
    campaign_name: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    invoice_count: int
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    margin: Decimal
    invoices: Optional[list[InvoiceResponse]] = None

    class Config:
        from_attributes = True


class DashboardResponse(BaseModel):
    campaigns: list[CampaignSummary]
    portfolio: PortfolioTotalsResponse
