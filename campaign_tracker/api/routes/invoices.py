import csv
import io
import logging
from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from campaign_tracker.core.calculator import InvalidAmount, TAX_FIELDS, to_amount
from campaign_tracker.core.config import get_settings
from campaign_tracker.core.database import get_db
from campaign_tracker.core.editor import CAMPAIGN_FIELDS, IncompleteDraft, InvoiceEditor
from campaign_tracker.models.campaign_invoice import CampaignInvoice
from campaign_tracker.schemas.campaign_invoice import (
    ImportSummary, InvoiceCreate, InvoiceDraft, InvoiceResponse, InvoiceUpdate, PaymentStatus,
)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])
logger = logging.getLogger(__name__)

WRITABLE_COLUMNS = frozenset(c.name for c in CampaignInvoice.__table__.columns) - {"id", "created_at", "updated_at"}


def _values(inv: CampaignInvoice) -> dict:
    return {name: getattr(inv, name) for name in WRITABLE_COLUMNS}


async def _get_invoice(invoice_id: int, db: AsyncSession) -> CampaignInvoice:
    result = await db.execute(select(CampaignInvoice).where(CampaignInvoice.id == invoice_id))
    inv = result.scalar_one_or_none()
    if not inv:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return inv


async def _save(editor: InvoiceEditor, db: AsyncSession, inv: CampaignInvoice | None = None) -> CampaignInvoice:
    """Derive the editor's draft and write it, as a new row when ``inv`` is None."""
    payload = editor.submit(get_settings().TAX_RATE)
    columns = {k: v for k, v in payload.items() if k in WRITABLE_COLUMNS}
    try:
        if inv is None:
            inv = CampaignInvoice(**columns)
            db.add(inv)
        else:
            for key, value in columns.items():
                setattr(inv, key, value)
        await db.flush()
        await db.refresh(inv)
    except SQLAlchemyError:
        editor.fail()
        logger.exception("Error saving invoice %s", editor.record_id or "(new)")
        raise HTTPException(status_code=500, detail="Error saving invoice")
    editor.complete()
    return inv


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    company: str | None = Query(None),
    campaign_name: str | None = Query(None),
    status: PaymentStatus | None = Query(None),
    search: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    query = select(CampaignInvoice)
    if company is not None:
        query = query.where(CampaignInvoice.company == company)
    if campaign_name is not None:
        query = query.where(CampaignInvoice.campaign_name == campaign_name)
    if status:
        query = query.where(
            or_(
                CampaignInvoice.customer_payment_status == status.value,
                CampaignInvoice.vendor_payment_status == status.value,
            )
        )
    if search:
        query = query.where(
            or_(
                CampaignInvoice.company.ilike(f"%{search}%"),
                CampaignInvoice.campaign_name.ilike(f"%{search}%"),
                CampaignInvoice.customer_invoice_number.ilike(f"%{search}%"),
                CampaignInvoice.vendor_invoice_number.ilike(f"%{search}%"),
                CampaignInvoice.vendor_name.ilike(f"%{search}%"),
            )
        )
    query = query.order_by(CampaignInvoice.created_at.desc(), CampaignInvoice.id.desc())
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/draft", response_model=InvoiceDraft)
async def new_invoice_draft(
    company: str | None = Query(None),
    campaign_name: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Blank invoice row, optionally prefilled to add to an existing campaign."""
    prefill = None
    if company is not None or campaign_name is not None:
        if company is None or campaign_name is None:
            raise HTTPException(status_code=400, detail="Both company and campaign_name are required")
        result = await db.execute(
            select(CampaignInvoice)
            .where(CampaignInvoice.company == company, CampaignInvoice.campaign_name == campaign_name)
            .order_by(CampaignInvoice.created_at, CampaignInvoice.id)
            .limit(1)
        )
        existing = result.scalars().first()
        if not existing:
            raise HTTPException(status_code=404, detail="Campaign not found")
        prefill = {name: getattr(existing, name) for name in CAMPAIGN_FIELDS}
    return InvoiceEditor().begin_new(prefill)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await _get_invoice(invoice_id, db)


@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    body: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
):
    editor = InvoiceEditor()
    editor.begin_new()
    editor.change(**body.model_dump())
    inv = await _save(editor, db)
    logger.info("Created invoice %s for %s / %s", inv.id, inv.company, inv.campaign_name)
    return inv


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    body: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
):
    inv = await _get_invoice(invoice_id, db)
    editor = InvoiceEditor()
    editor.begin_edit(inv.id, _values(inv))
    editor.change(**body.model_dump(exclude_unset=True))
    inv = await _save(editor, db, inv)
    logger.info("Updated invoice %s", inv.id)
    return inv


@router.delete("/{invoice_id}", status_code=204)
async def delete_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
):
    inv = await _get_invoice(invoice_id, db)
    try:
        await db.delete(inv)
        await db.flush()
    except SQLAlchemyError:
        logger.exception("Error deleting invoice %s", invoice_id)
        raise HTTPException(status_code=500, detail="Error deleting invoice")
    logger.info("Deleted invoice %s", invoice_id)


# ─── Bulk import: CSV + Excel ────────────────────────────────────────

REQUIRED_COLUMNS = {"company", "campaign_name", "date_from", "date_to", "customer_invoice_number"}
TEXT_COLUMNS = (
    "company", "campaign_name", "customer_invoice_number", "customer_remarks",
    "vendor_name", "vendor_invoice_number", "vendor_remarks",
)
STATUS_COLUMNS = ("customer_payment_status", "vendor_payment_status")
STATUSES = {s.value for s in PaymentStatus}


def _cell(row: dict, name: str) -> str:
    return str(row.get(name, "") or "").strip()


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    from dateutil.parser import parse as parse_date
    return parse_date(str(value).strip()).date()


def _row_fields(row: dict) -> dict:
    """Map one spreadsheet row onto draft fields, raising ValueError on bad cells."""
    fields = {name: _cell(row, name) or None for name in TEXT_COLUMNS}

    for name in ("date_from", "date_to", "customer_payment_date", "vendor_payment_date"):
        raw = row.get(name)
        if raw is None or _cell(row, name) == "":
            if name in REQUIRED_COLUMNS:
                raise ValueError(f"missing {name}")
            continue
        try:
            fields[name] = _parse_date(raw)
        except (ValueError, TypeError, OverflowError):
            raise ValueError(f"invalid date '{raw}' in {name}")

    for name in TAX_FIELDS:
        raw = _cell(row, name)
        if raw:
            fields[name] = to_amount(raw.replace(",", ""))

    for name in STATUS_COLUMNS:
        raw = _cell(row, name)
        if raw:
            status = raw.capitalize()
            if status not in STATUSES:
                raise ValueError(f"invalid {name} '{raw}'")
            fields[name] = status

    return fields


async def _import_rows(rows: list[dict], source: str, db: AsyncSession) -> ImportSummary:
    total = imported = skipped = 0
    errors = []
    tax_rate = get_settings().TAX_RATE

    for i, row in enumerate(rows, start=2):
        total += 1
        try:
            fields = _row_fields(row)
        except ValueError as e:
            # InvalidAmount is a ValueError too
            errors.append(f"Row {i}: {e}")
            continue

        editor = InvoiceEditor()
        editor.begin_new()
        editor.change(**fields)
        try:
            payload = editor.submit(tax_rate)
        except IncompleteDraft as e:
            errors.append(f"Row {i}: {e}")
            continue

        existing = await db.execute(
            select(CampaignInvoice.id).where(
                CampaignInvoice.company == payload["company"],
                CampaignInvoice.campaign_name == payload["campaign_name"],
                CampaignInvoice.customer_invoice_number == payload["customer_invoice_number"],
            )
        )
        if existing.first():
            editor.fail()
            skipped += 1
            continue

        db.add(CampaignInvoice(**{k: v for k, v in payload.items() if k in WRITABLE_COLUMNS}))
        editor.complete()
        imported += 1

    try:
        await db.flush()
    except SQLAlchemyError:
        logger.exception("Error importing %s rows", source)
        raise HTTPException(status_code=500, detail="Error importing invoices")
    logger.info("Imported %d of %d %s rows (%d duplicates, %d errors)", imported, total, source, skipped, len(errors))
    return ImportSummary(total_rows=total, imported=imported, skipped_duplicates=skipped, errors=errors)


@router.post("/import", response_model=ImportSummary)
async def import_file(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
):
    filename = (file.filename or "").lower()
    content = await file.read()

    if filename.endswith(".csv"):
        reader = csv.DictReader(io.StringIO(content.decode("utf-8-sig")))
        headers = {h.strip().lower() for h in (reader.fieldnames or [])}
        if not REQUIRED_COLUMNS.issubset(headers):
            raise HTTPException(status_code=400, detail=f"File must contain columns: {', '.join(sorted(REQUIRED_COLUMNS))}")
        rows = [{(k or "").strip().lower(): v for k, v in row.items()} for row in reader]
        return await _import_rows(rows, "csv", db)

    elif filename.endswith(".xlsx"):
        from openpyxl import load_workbook
        wb = load_workbook(filename=io.BytesIO(content), read_only=True)
        ws = wb.active
        headers = [str(cell.value or "").strip().lower() for cell in next(ws.iter_rows(min_row=1, max_row=1))]

        if not REQUIRED_COLUMNS.issubset(set(headers)):
            wb.close()
            raise HTTPException(status_code=400, detail=f"Excel must contain columns: {', '.join(sorted(REQUIRED_COLUMNS))}")

        rows = []
        for row in ws.iter_rows(min_row=2, values_only=True):
            if all(v is None for v in row):
                continue
            row_dict = {headers[i]: (row[i] if i < len(row) else None) for i in range(len(headers))}
            rows.append(row_dict)
        wb.close()
        return await _import_rows(rows, "excel", db)

    else:
        raise HTTPException(status_code=400, detail="File must be .csv or .xlsx")
