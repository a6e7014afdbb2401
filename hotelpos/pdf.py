"""PDF generation for end-of-day reports using ReportLab."""

from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .reports import DailySalesReport, DailyStockReport, StockSuggestion

_SUGGESTION_LABELS = {
    "restock": "Restock",
    "low_stock": "Low stock",
    "adequate": "Adequate",
}


def _qty(value: float | None) -> str:
    if value is None:
        return "-"
    if math.isinf(value):
        return "inf"
    return f"{value:g}" if float(value).is_integer() else f"{value:.2f}"


def generate_report_pdf(
    sales: DailySalesReport,
    stock: DailyStockReport,
    suggestions: list[StockSuggestion],
    output_path: str | Path,
) -> Path:
    """Generate a PDF file from a day's reports.

    Args:
        sales: Daily sales report.
        stock: Daily stock report.
        suggestions: Restock suggestions for the same day.
        output_path: Where to save the PDF file.

    Returns:
        Path to the generated PDF file.

    Raises:
        ImportError: If reportlab is not installed.
    """
    try:
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import (
            Paragraph,
            SimpleDocTemplate,
            Spacer,
            Table,
            TableStyle,
        )
    except ImportError:
        raise ImportError(
            "reportlab is required: pip install 'hotelpos[pdf]'"
        )

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
    )

    styles = getSampleStyleSheet()
    title_style = styles["Title"]
    heading_style = styles["Heading2"]
    body_style = styles["Normal"]

    def table_style(header: str, stripe: str) -> TableStyle:
        return TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(header)),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor(stripe)]),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("LEFTPADDING", (0, 0), (-1, -1), 4),
            ("RIGHTPADDING", (0, 0), (-1, -1), 4),
        ])

    elements: list = []

    elements.append(Paragraph(f"Daily report {sales.date}", title_style))
    elements.append(
        Paragraph(
            f"Orders: {sales.total_orders} &nbsp;&nbsp; "
            f"Revenue: {sales.total_revenue:.2f}",
            body_style,
        )
    )
    status_line = ", ".join(
        f"{status}: {count}" for status, count in sales.orders_by_status.items()
    )
    elements.append(Paragraph(status_line, body_style))
    elements.append(Spacer(1, 6 * mm))

    # Sales
    elements.append(Paragraph("Top items", heading_style))
    if sales.top_items:
        data = [["Item", "Quantity", "Revenue"]]
        for top in sales.top_items:
            data.append([top.item_name, _qty(top.quantity_sold), f"{top.revenue:.2f}"])
        t = Table(data, colWidths=[80 * mm, 30 * mm, 40 * mm])
        t.setStyle(table_style("#4A90D9", "#F5F5F5"))
        elements.append(t)
    else:
        elements.append(Paragraph("No orders.", body_style))
    elements.append(Spacer(1, 6 * mm))

    # Stock
    elements.append(Paragraph("Stock", heading_style))
    if stock.items:
        data = [["Item", "Start", "Current", "Sold", "Unit"]]
        for row in stock.items:
            data.append([
                row.item_name,
                _qty(row.starting_stock),
                _qty(row.current_stock),
                _qty(row.sold_quantity),
                row.unit,
            ])
        t = Table(data, colWidths=[60 * mm, 25 * mm, 25 * mm, 25 * mm, 20 * mm])
        t.setStyle(table_style("#27AE60", "#EAF7EF"))
        elements.append(t)
    else:
        elements.append(Paragraph("No stock entries.", body_style))
    if stock.anomalies:
        elements.append(Spacer(1, 2 * mm))
        elements.append(
            Paragraph(f"{len(stock.anomalies)} stock anomalies recorded.", body_style)
        )
    elements.append(Spacer(1, 6 * mm))

    # Suggestions
    if suggestions:
        elements.append(Paragraph("Restock suggestions", heading_style))
        data = [["Item", "Current", "Avg/day", "Days left", "Suggestion", "Order"]]
        for s in suggestions:
            data.append([
                s.item_name,
                _qty(s.current_stock),
                _qty(s.average_daily_sales),
                _qty(s.days_remaining),
                _SUGGESTION_LABELS.get(s.suggestion, s.suggestion),
                _qty(s.recommended_quantity),
            ])
        t = Table(
            data,
            colWidths=[50 * mm, 22 * mm, 22 * mm, 22 * mm, 25 * mm, 20 * mm],
        )
        t.setStyle(table_style("#E67E22", "#FFF3E0"))
        elements.append(t)

    doc.build(elements)
    return output_path
