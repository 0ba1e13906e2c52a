from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, func
from campaign_tracker.core.database import Base


class CampaignInvoice(Base):
    __tablename__ = "campaign_invoices"

    id = Column(Integer, primary_key=True, index=True)

    # campaign grouping: plain fields, grouped by exact (company, campaign_name)
    company = Column(String(255), nullable=False, index=True)
    campaign_name = Column(String(255), nullable=False, index=True)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)

    # customer invoice (money coming in)
    customer_invoice_number = Column(String(100), nullable=False, index=True)
    customer_amount_without_tax = Column(Numeric(12, 2), nullable=False, default=0)
    customer_amount_with_tax = Column(Numeric(14, 2), nullable=False, default=0)
    customer_received_amount_without_tax = Column(Numeric(12, 2), nullable=False, default=0)
    customer_received_amount_with_tax = Column(Numeric(14, 2), nullable=False, default=0)
    customer_payment_status = Column(String(10), nullable=False, default="Pending")  # Clear | Pending | Partial
    customer_payment_date = Column(Date, nullable=True)
    customer_remarks = Column(String(1000))

    # vendor expense (money going out)
    vendor_name = Column(String(255), nullable=True)
    vendor_invoice_number = Column(String(100), nullable=True)
    vendor_amount_without_tax = Column(Numeric(12, 2), nullable=False, default=0)
    vendor_amount_with_tax = Column(Numeric(14, 2), nullable=False, default=0)
    vendor_paid_amount_without_tax = Column(Numeric(12, 2), nullable=False, default=0)
    vendor_paid_amount_with_tax = Column(Numeric(14, 2), nullable=False, default=0)
    vendor_payment_status = Column(String(10), nullable=False, default="Pending")  # Clear | Pending | Partial
    vendor_payment_date = Column(Date, nullable=True)
    vendor_remarks = Column(String(1000))

    # written by the app on every save, never by clients; margin is unbounded below
    # (0.01 received against a maximal expense is about -1e14 percent)
    profit = Column(Numeric(12, 2), nullable=False, default=0)
    margin = Column(Numeric(20, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
