"""
VAT books, per-owner summary, liquidation and annual statistics, plus PDF/XML/ZIP exports.
"""
import io
import logging
import zipfile
from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from app.api.common import get_period
from app.core.liquidation import annual_statistics, generate_liquidation
from app.core.vat_book import (
    OwnerPeriodSummary,
    ReportPeriod,
    charged_book,
    generate_owner_summary,
    supported_book,
)
from app.db.database import get_db
from app.db.repositories import SqlOwnerRoster, SqlRecordRepository
from app.utils.fiscal_loader import get_invoicing_constants
from app.utils.pdf_generator import (
    generate_ledger_pdf,
    generate_liquidation_pdf,
    generate_owner_summary_pdf,
)
from app.utils.xml_generator import generate_ledger_xml, generate_liquidation_xml

logger = logging.getLogger(__name__)

router = APIRouter()


def _records(period: ReportPeriod, db: Session):
    return SqlRecordRepository(db).list_records(year=period.year)


def _ledger_options(period: ReportPeriod) -> dict:
    invoicing = get_invoicing_constants(period.year)
    return {
        "simplified_threshold": invoicing.get("simplified_invoice_threshold", 400),
        "today": date.today(),
    }


def _books(period: ReportPeriod, db: Session):
    records = _records(period, db)
    options = _ledger_options(period)
    return charged_book(records, period, **options), supported_book(records, period, **options)


def _owner_payload(summary: OwnerPeriodSummary) -> dict:
    return {
        "owner_id": summary.owner_id,
        "owner_name": summary.owner_name,
        "issued": asdict(summary.issued),
        "received": asdict(summary.received),
        "internal_expenses": asdict(summary.internal_expenses),
        "total_income": summary.total_income,
        "total_expenses": summary.total_expenses,
        "net_balance": summary.net_balance,
        "vat_charged": summary.vat_charged,
        "vat_supported": summary.vat_supported,
        "net_vat_position": summary.net_vat_position,
        "has_activity": summary.has_activity,
    }


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/charged")
def get_charged_book(period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    charged, _ = _books(period, db)
    return asdict(charged)


@router.get("/supported")
def get_supported_book(period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    _, supported = _books(period, db)
    return asdict(supported)


@router.get("/by-owner")
def get_owner_summary(period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    report = generate_owner_summary(_records(period, db), SqlOwnerRoster(db).list_owners(), period)
    return {
        "period": asdict(period),
        "owners": [_owner_payload(s) for s in report.owners],
        "overall_total": asdict(report.overall_total),
    }


@router.get("/liquidation")
def get_liquidation(period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    charged, supported = _books(period, db)
    return asdict(generate_liquidation(charged, supported))


@router.get("/stats/{year}")
def get_annual_statistics(year: int, db: Session = Depends(get_db)):
    period = get_period(year)
    return asdict(annual_statistics(_records(period, db), period.year))


@router.get("/export/pdf/{report}")
def export_pdf(report: str, period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    charged, supported = _books(period, db)
    generators = {
        "charged": lambda: generate_ledger_pdf(charged),
        "supported": lambda: generate_ledger_pdf(supported),
        "liquidation": lambda: generate_liquidation_pdf(generate_liquidation(charged, supported)),
        "by-owner": lambda: generate_owner_summary_pdf(
            generate_owner_summary(_records(period, db), SqlOwnerRoster(db).list_owners(), period)
        ),
    }
    if report not in generators:
        raise HTTPException(status_code=404, detail=f"Informe {report} no soportado.")

    logger.info("Exporting %s PDF for %s", report, period.label)
    return _attachment(generators[report](), "application/pdf", f"IVA_{period.label}_{report}.pdf")


@router.get("/export/xml/{report}")
def export_xml(report: str, period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    charged, supported = _books(period, db)
    generators = {
        "charged": lambda: generate_ledger_xml(charged),
        "supported": lambda: generate_ledger_xml(supported),
        "liquidation": lambda: generate_liquidation_xml(generate_liquidation(charged, supported)),
    }
    if report not in generators:
        raise HTTPException(status_code=404, detail=f"Informe {report} no soportado.")

    return _attachment(generators[report](), "application/xml", f"IVA_{period.label}_{report}.xml")


@router.get("/export/zip")
def export_zip(period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    charged, supported = _books(period, db)
    liquidation = generate_liquidation(charged, supported)

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(f"IVA_{period.label}_charged.pdf", generate_ledger_pdf(charged))
        zf.writestr(f"IVA_{period.label}_supported.pdf", generate_ledger_pdf(supported))
        zf.writestr(f"IVA_{period.label}_liquidation.pdf", generate_liquidation_pdf(liquidation))
        zf.writestr(f"IVA_{period.label}_charged.xml", generate_ledger_xml(charged))
        zf.writestr(f"IVA_{period.label}_supported.xml", generate_ledger_xml(supported))
        zf.writestr(f"IVA_{period.label}_liquidation.xml", generate_liquidation_xml(liquidation))

    buf.seek(0)
    return StreamingResponse(
        buf,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="IVA_{period.label}_completo.zip"'},
    )
