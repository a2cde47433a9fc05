"""
XML generator for the VAT books (libros registro de IVA).
One <Registro> per ledger entry, followed by totals and the per-rate breakdown.
"""
from lxml import etree

from app.core.liquidation import Liquidation
from app.core.vat_book import Ledger


def _add_field(parent: etree._Element, code: str, value, label: str = "") -> None:
    el = etree.SubElement(parent, "Campo", codigo=code)
    if label:
        el.set("descripcion", label)
    el.text = str(value) if value is not None else ""


def _period_attributes(el: etree._Element, period) -> None:
    if period is None:
        return
    el.set("ejercicio", str(period.year))
    if period.month:
        el.set("periodo", f"{period.month:02d}")
    elif period.quarter:
        el.set("periodo", f"{period.quarter}T")
    else:
        el.set("periodo", "0A")


def generate_ledger_xml(ledger: Ledger, holder: dict | None = None) -> bytes:
    holder = holder or {}

    root = etree.Element("LibroRegistroIVA", xmlns="urn:backoffice:libro-iva:1.0")
    root.set("libro", ledger.book.value if ledger.book else "")
    _period_attributes(root, ledger.period)

    titular = etree.SubElement(root, "Titular")
    _add_field(titular, "NOMBRE", holder.get("name", ""), "Nombre o razón social")
    _add_field(titular, "NIF", holder.get("tax_id", ""), "NIF")

    registros = etree.SubElement(root, "Registros")
    for e in ledger.entries:
        reg = etree.SubElement(registros, "Registro", num=str(e.index))
        _add_field(reg, "FECHA", e.record_date.isoformat(), "Fecha de expedición")
        _add_field(reg, "NUMERO", e.record_number, "Número de factura")
        if e.external_number:
            _add_field(reg, "NUMERO_PROVEEDOR", e.external_number, "Número del proveedor")
        _add_field(reg, "CONTRAPARTE", e.counterparty_name, "Contraparte")
        _add_field(reg, "BASE", e.base_amount, "Base imponible")
        _add_field(reg, "TIPO", e.vat_rate, "Tipo de IVA")
        _add_field(reg, "CUOTA", e.vat_amount, "Cuota de IVA")
        _add_field(reg, "RETENCION", e.withholding_amount, "Retención IRPF")
        _add_field(reg, "TOTAL", e.total_amount, "Total factura")
        _add_field(reg, "CLAVE", e.operation_key.value, "Clave de operación")
        _add_field(reg, "TIPO_FACTURA", e.invoice_type, "Tipo de factura")
        _add_field(reg, "DEDUCIBLE", "S" if e.deductible else "N", "Deducible")

    totals = ledger.totals
    totales = etree.SubElement(root, "Totales", registros=str(totals.count))
    _add_field(totales, "BASE", totals.base, "Base imponible")
    _add_field(totales, "CUOTA", totals.vat, "Cuota de IVA")
    _add_field(totales, "RETENCION", totals.withholding, "Retenciones")
    _add_field(totales, "TOTAL", totals.total, "Total")
    _add_field(totales, "BASE_DEDUCIBLE", totals.deductible_base, "Base deducible")
    _add_field(totales, "CUOTA_DEDUCIBLE", totals.deductible_vat, "Cuota deducible")

    desglose = etree.SubElement(root, "Desglose")
    for item in ledger.breakdown_by_rate:
        tipo = etree.SubElement(desglose, "Tipo", porcentaje=str(item.vat_rate), registros=str(item.count))
        _add_field(tipo, "BASE", item.base, "Base imponible")
        _add_field(tipo, "CUOTA", item.vat_amount, "Cuota")

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8")


def generate_liquidation_xml(liquidation: Liquidation) -> bytes:
    root = etree.Element("LiquidacionIVA", xmlns="urn:backoffice:liquidacion-iva:1.0")
    _period_attributes(root, liquidation.period)

    _add_field(root, "DEVENGADO", liquidation.charged_vat, "IVA repercutido")
    _add_field(root, "DEDUCIBLE", liquidation.supported_vat, "IVA soportado deducible")
    _add_field(root, "DIFERENCIA", liquidation.net_vat, "Diferencia")
    _add_field(root, "RESULTADO", liquidation.result.value, "Resultado")
    _add_field(root, "IMPORTE", liquidation.settlement_amount, "Importe")

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8")
