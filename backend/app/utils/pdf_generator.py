"""
PDF generator for the VAT books, the quarterly liquidation and the per-owner
summary using ReportLab. Produces structured, print-ready PDFs.
"""
import io
from datetime import date

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import (
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from app.core.liquidation import Liquidation, LiquidationResult
from app.core.vat_book import Book, Ledger, OwnerSummaryReport, ReportPeriod

HEADER_COLOR = colors.HexColor("#8b1c1c")
LIGHT_GRAY = colors.HexColor("#f5f5f5")
DARK_GRAY = colors.HexColor("#333333")

BOOK_TITLES = {
    Book.CHARGED: "Libro registro de IVA repercutido (facturas emitidas)",
    Book.SUPPORTED: "Libro registro de IVA soportado (facturas recibidas y gastos)",
}


def _money(value) -> str:
    return f"{value:,.2f} €"


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="FormTitle",
        fontSize=14,
        fontName="Helvetica-Bold",
        textColor=HEADER_COLOR,
        spaceAfter=6,
    ))
    styles.add(ParagraphStyle(
        name="SectionTitle",
        fontSize=10,
        fontName="Helvetica-Bold",
        textColor=HEADER_COLOR,
        spaceBefore=8,
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name="FieldLabel",
        fontSize=8,
        fontName="Helvetica",
        textColor=DARK_GRAY,
    ))
    styles.add(ParagraphStyle(
        name="Disclaimer",
        fontSize=7,
        fontName="Helvetica-Oblique",
        textColor=colors.gray,
    ))
    return styles


def _period_label(period: ReportPeriod | None) -> str:
    if period is None:
        return "Todos los periodos"
    if period.month:
        return f"Mes {period.month:02d}/{period.year}"
    if period.quarter:
        return f"{period.quarter}T {period.year}"
    return f"Ejercicio {period.year}"


def _header_table(title: str, period: ReportPeriod | None, styles, width: float = 18 * cm) -> Table:
    data = [
        [
            Paragraph(f"<b>{title}</b>", styles["FormTitle"]),
            Paragraph(_period_label(period), styles["FieldLabel"]),
        ]
    ]
    t = Table(data, colWidths=[width - 6 * cm, 6 * cm])
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 12),
        ("TOPPADDING", (0, 0), (-1, 0), 8),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("LEFTPADDING", (0, 0), (-1, 0), 6),
    ]))
    return t


def _kv_table(rows: list[tuple[str, str]], styles) -> Table:
    """Render a list of (label, value) pairs as a two-column table."""
    data = [[Paragraph(k, styles["FieldLabel"]), Paragraph(str(v), styles["FieldLabel"])]
            for k, v in rows]
    t = Table(data, colWidths=[10 * cm, 8 * cm])
    t.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("ROWBACKGROUNDS", (0, 0), (-1, -1), [colors.white, LIGHT_GRAY]),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
    ]))
    return t


def _grid_table(rows: list[list], col_widths: list[float], total_row: bool = True) -> Table:
    t = Table(rows, colWidths=col_widths, repeatRows=1)
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 7),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("ROWBACKGROUNDS", (1, 1), (-1, -1), [colors.white, LIGHT_GRAY]),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
    ]
    if total_row:
        style += [
            ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#e8e8e8")),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ]
    t.setStyle(TableStyle(style))
    return t


def _footer(styles) -> Paragraph:
    return Paragraph(
        f"Documento generado el {date.today().strftime('%d/%m/%Y')}. "
        "Informativo, no sustituye el asesoramiento fiscal profesional.",
        styles["Disclaimer"],
    )


def generate_ledger_pdf(ledger: Ledger) -> bytes:
    buf = io.BytesIO()
    page = landscape(A4)
    doc = SimpleDocTemplate(buf, pagesize=page, rightMargin=1.5 * cm, leftMargin=1.5 * cm,
                            topMargin=1.5 * cm, bottomMargin=1.5 * cm)
    styles = _styles()

    rows = [["Nº", "Fecha", "Factura", "Contraparte", "Base", "% IVA", "Cuota IVA",
             "Retención", "Total", "Clave", "Tipo"]]
    for e in ledger.entries:
        rows.append([
            e.index,
            e.record_date.strftime("%d/%m/%Y"),
            e.record_number or "",
            (e.counterparty_name or "")[:40],
            _money(e.base_amount),
            f"{e.vat_rate:.2f}",
            _money(e.vat_amount),
            _money(e.withholding_amount),
            _money(e.total_amount),
            e.operation_key.value,
            e.invoice_type,
        ])
    totals = ledger.totals
    rows.append([
        "TOTAL", "", "", f"{totals.count} registro(s)",
        _money(totals.base), "", _money(totals.vat),
        _money(totals.withholding), _money(totals.total), "", "",
    ])
    widths = [1.2 * cm, 2.2 * cm, 2.6 * cm, 6 * cm, 2.4 * cm, 1.4 * cm,
              2.4 * cm, 2.4 * cm, 2.6 * cm, 1.2 * cm, 1.2 * cm]

    breakdown_rows = [["% IVA", "Base imponible", "Cuota", "Registros"]]
    for item in ledger.breakdown_by_rate:
        breakdown_rows.append([f"{item.vat_rate:.2f}", _money(item.base), _money(item.vat_amount), item.count])

    story = [
        _header_table(BOOK_TITLES.get(ledger.book, "Libro registro de IVA"), ledger.period, styles,
                      width=page[0] - 3 * cm),
        Spacer(1, 0.4 * cm),
        _grid_table(rows, widths),
        Spacer(1, 0.4 * cm),
        Paragraph("DESGLOSE POR TIPO DE IVA", styles["SectionTitle"]),
        _grid_table(breakdown_rows, [3 * cm, 4 * cm, 4 * cm, 3 * cm], total_row=False),
    ]
    if ledger.book is Book.SUPPORTED:
        story += [
            Spacer(1, 0.3 * cm),
            _kv_table([
                ("Base deducible", _money(totals.deductible_base)),
                ("IVA deducible", _money(totals.deductible_vat)),
                ("Registros deducibles", str(totals.deductible_count)),
            ], styles),
        ]
    story += [Spacer(1, 0.5 * cm), _footer(styles)]
    doc.build(story)
    return buf.getvalue()


def generate_liquidation_pdf(liquidation: Liquidation) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, rightMargin=2 * cm, leftMargin=2 * cm,
                            topMargin=2 * cm, bottomMargin=2 * cm)
    styles = _styles()

    result_label = "A ingresar" if liquidation.result is LiquidationResult.TO_PAY else "A devolver"
    breakdown_rows = [["% IVA", "Base repercutida", "IVA repercutido", "Base soportada", "IVA soportado"]]
    for row in liquidation.breakdown:
        breakdown_rows.append([
            f"{row.vat_rate:.2f}",
            _money(row.charged_base),
            _money(row.charged_vat),
            _money(row.supported_base),
            _money(row.supported_vat),
        ])

    story = [
        _header_table("Liquidación de IVA", liquidation.period, styles),
        Spacer(1, 0.4 * cm),
        Paragraph("RESULTADO", styles["SectionTitle"]),
        _kv_table([
            ("IVA repercutido", _money(liquidation.charged_vat)),
            ("IVA soportado deducible", _money(liquidation.supported_vat)),
            ("Diferencia", _money(liquidation.net_vat)),
            ("Resultado", result_label),
            ("Importe", _money(liquidation.settlement_amount)),
        ], styles),
        Spacer(1, 0.3 * cm),
        Paragraph("RETENCIONES (IRPF)", styles["SectionTitle"]),
        _kv_table([
            ("Retenciones en facturas emitidas", _money(liquidation.withholding_charged)),
            ("Retenciones en facturas recibidas", _money(liquidation.withholding_supported)),
        ], styles),
        Spacer(1, 0.3 * cm),
        Paragraph("DESGLOSE POR TIPO", styles["SectionTitle"]),
        _grid_table(breakdown_rows, [2 * cm, 4 * cm, 4 * cm, 4 * cm, 4 * cm], total_row=False),
        Spacer(1, 0.5 * cm),
        _footer(styles),
    ]
    doc.build(story)
    return buf.getvalue()


def generate_owner_summary_pdf(report: OwnerSummaryReport) -> bytes:
    """One row per owner, zero-activity owners included."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, rightMargin=1.5 * cm, leftMargin=1.5 * cm,
                            topMargin=2 * cm, bottomMargin=2 * cm)
    styles = _styles()

    rows = [["Propietario", "Ingresos", "Gastos", "Saldo", "IVA rep.", "IVA sop.", "Posición IVA"]]
    for s in report.owners:
        rows.append([
            s.owner_name,
            _money(s.total_income),
            _money(s.total_expenses),
            _money(s.net_balance),
            _money(s.vat_charged),
            _money(s.vat_supported),
            _money(s.net_vat_position),
        ])
    overall = report.overall_total
    rows.append([
        "TOTAL",
        _money(overall.total_income),
        _money(overall.total_expenses),
        _money(overall.net_balance),
        _money(overall.vat_charged),
        _money(overall.vat_supported),
        _money(overall.net_vat_position),
    ])

    story = [
        _header_table("Resumen por propietario", report.period, styles),
        Spacer(1, 0.4 * cm),
        _grid_table(rows, [4.4 * cm] + [2.2 * cm] * 6),
        Spacer(1, 0.5 * cm),
        _footer(styles),
    ]
    doc.build(story)
    return buf.getvalue()
