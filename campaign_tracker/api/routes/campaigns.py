import io
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from campaign_tracker.core.calculator import CampaignTotals, Totals, derive_totals
from campaign_tracker.core.database import get_db
from campaign_tracker.models.campaign_invoice import CampaignInvoice
from campaign_tracker.schemas.campaign import CampaignSummary, DashboardResponse, PortfolioTotalsResponse
from campaign_tracker.schemas.campaign_invoice import InvoiceResponse

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


def _to_summary(group: CampaignTotals, include_invoices: bool = True) -> CampaignSummary:
    return CampaignSummary(
        company=group.company,
        campaign_name=group.campaign_name,
        date_from=group.date_from,
        date_to=group.date_to,
        invoice_count=group.invoice_count,
        revenue=group.revenue,
        expenses=group.expenses,
        profit=group.profit,
        margin=group.margin,
        invoices=[InvoiceResponse.model_validate(inv) for inv in group.invoices] if include_invoices else None,
    )


async def _totals(db: AsyncSession) -> Totals:
    result = await db.execute(
        select(CampaignInvoice).order_by(CampaignInvoice.created_at.desc(), CampaignInvoice.id.desc())
    )
    return derive_totals(result.scalars().all())


@router.get("", response_model=DashboardResponse)
async def campaign_dashboard(
    include_invoices: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    totals = await _totals(db)
    return DashboardResponse(
        campaigns=[_to_summary(g, include_invoices) for g in totals.campaigns],
        portfolio=PortfolioTotalsResponse.model_validate(totals.portfolio),
    )


@router.get("/totals", response_model=PortfolioTotalsResponse)
async def portfolio_totals(db: AsyncSession = Depends(get_db)):
    totals = await _totals(db)
    return PortfolioTotalsResponse.model_validate(totals.portfolio)


@router.get("/export")
async def export_campaigns(db: AsyncSession = Depends(get_db)):
    totals = await _totals(db)
    return StreamingResponse(
        _generate_workbook(totals),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="campaign_profitability.xlsx"'},
    )


def _generate_workbook(totals: Totals) -> io.BytesIO:
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    ws = wb.active
    ws.title = "Campaigns"

    headers = ["Company", "Campaign", "From", "To", "Invoices", "Revenue", "Expenses", "Profit", "Margin %"]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for g in totals.campaigns:
        ws.append([
            g.company, g.campaign_name, g.date_from, g.date_to, g.invoice_count,
            g.revenue, g.expenses, g.profit, g.margin,
        ])

    p = totals.portfolio
    ws.append(["Total", None, None, None, p.invoice_count, p.revenue, p.expenses, p.profit, p.margin])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)

    # Money columns
    for col in "FGH":
        for cell in ws[col][1:]:
            cell.number_format = "#,##0.00"

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf
