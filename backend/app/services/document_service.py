"""
文档服务 - 账单 / 订单 PDF 与管理员月报

render() 只读取持久化状态生成 PDF；唯一的写回是账单上的 pdf_url。
月报按 created_at 落在 [月初, 下月初) 的账单和订单汇总。
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging
import re

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.models.ontology import (
    GroceryOrder, Invoice, InvoiceStatus, OrderPaymentStatus, OrderStatus, User,
)
from app.housing.domain.access import ensure_admin, ensure_owner_or_admin
from app.housing.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

INVOICE = "invoice"
ORDER = "order"

W, H = A4
MARGIN = 50

_FILE_NAME = re.compile(r"^(invoice|order)_([A-Z]{3}-\d{6,8}-\d+)\.pdf$")
_REPORT_NAME = re.compile(r"^report_(\d{4})_(\d{1,2})\.pdf$")


@dataclass(frozen=True)
class FileHandle:
    file_name: str
    path: Path
    url: str


@dataclass(frozen=True)
class MonthlyReport:
    """一个自然月的账单与订单汇总；已取消的账单和订单计入数量，不计入金额"""
    year: int
    month: int
    invoice_count: int
    invoice_amount: Decimal
    paid_invoice_count: int
    paid_invoice_amount: Decimal
    outstanding_invoice_count: int
    outstanding_invoice_amount: Decimal
    order_count: int
    order_amount: Decimal
    delivered_order_count: int
    paid_order_amount: Decimal

    @property
    def collected(self) -> Decimal:
        return self.paid_invoice_amount + self.paid_order_amount


def _money(amount) -> str:
    return f"{settings.CURRENCY} {Decimal(amount):.2f}"


def _date(value) -> str:
    return value.strftime("%d %B %Y") if value else "-"


class DocumentRenderer:
    """PDF 渲染器"""

    def __init__(self, db: Session, output_dir: Optional[str] = None):
        self.db = db
        self.output_dir = Path(output_dir or settings.PDF_OUTPUT_DIR)

    # ============== 绘制 ==============

    def _draw(self, path: Path, title: str, meta: List[Tuple[str, str]],
              header: Tuple[str, ...], rows: List[Tuple[str, ...]], total: str,
              total_label: str = "Total:") -> None:
        c = canvas.Canvas(str(path), pagesize=A4)
        c.setTitle(title)

        y = H - MARGIN
        c.setFont("Helvetica-Bold", 18)
        c.drawString(MARGIN, y, "Worker Housing System")
        y -= 30
        c.setFont("Helvetica-Bold", 14)
        c.drawString(MARGIN, y, title)
        y -= 25

        c.setFont("Helvetica", 10)
        for label, value in meta:
            c.drawString(MARGIN, y, f"{label}: {value}")
            y -= 15

        columns = (MARGIN, 280, 350, 450)
        y -= 15
        c.setFont("Helvetica-Bold", 10)
        for x, text in zip(columns, header):
            c.drawString(x, y, text)
        y -= 5
        c.line(MARGIN, y, W - MARGIN, y)
        y -= 15

        c.setFont("Helvetica", 10)
        for row in rows:
            if y < MARGIN + 40:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = H - MARGIN
            for x, text in zip(columns, row):
                c.drawString(x, y, text)
            y -= 18

        c.line(MARGIN, y, W - MARGIN, y)
        y -= 20
        c.setFont("Helvetica-Bold", 12)
        c.drawString(350, y, total_label)
        c.drawString(450, y, total)
        c.save()

    def _render_invoice(self, invoice: Invoice, path: Path) -> None:
        rows = [
            (line.description, str(line.quantity), _money(line.amount), _money(line.amount * line.quantity))
            for line in invoice.lines
        ]
        self._draw(
            path,
            "INVOICE",
            [
                ("Invoice Number", invoice.invoice_number),
                ("Date", _date(invoice.created_at)),
                ("Due Date", _date(invoice.due_date)),
                ("Bill To", invoice.user.name if invoice.user else "-"),
                ("Room Number", invoice.room_number),
                ("Status", invoice.status.value),
            ],
            ("Description", "Quantity", "Price", "Amount"),
            rows,
            _money(invoice.amount),
        )

    def _render_order(self, order: GroceryOrder, path: Path) -> None:
        rows = [
            (line.item.name if line.item else f"#{line.item_id}", str(line.quantity),
             _money(line.price), _money(line.price * line.quantity))
            for line in order.lines
        ]
        self._draw(
            path,
            "ORDER RECEIPT",
            [
                ("Order Number", order.order_number),
                ("Date", _date(order.created_at)),
                ("Customer", order.user.name if order.user else "-"),
                ("Room Number", order.room_number),
                ("Payment Method", order.payment_method.value),
                ("Status", order.status.value),
            ],
            ("Item", "Quantity", "Price", "Amount"),
            rows,
            _money(order.total_amount),
        )

    def _render_report(self, report: MonthlyReport, path: Path) -> None:
        rows = [
            ("Invoices", str(report.invoice_count), "", _money(report.invoice_amount)),
            ("Paid invoices", str(report.paid_invoice_count), "", _money(report.paid_invoice_amount)),
            ("Outstanding invoices", str(report.outstanding_invoice_count), "",
             _money(report.outstanding_invoice_amount)),
            ("Orders", str(report.order_count), "", _money(report.order_amount)),
            ("Delivered orders", str(report.delivered_order_count), "", ""),
            ("Paid orders", "", "", _money(report.paid_order_amount)),
        ]
        self._draw(
            path,
            "MONTHLY REPORT",
            [
                ("Report Period", datetime(report.year, report.month, 1).strftime("%B %Y")),
                ("Generated On", _date(datetime.now())),
            ],
            ("Summary", "Count", "", "Amount"),
            rows,
            _money(report.collected),
            total_label="Collected:",
        )

    # ============== 对外接口 ==============

    def _load(self, entity_kind: str, entity_id: int):
        if entity_kind == INVOICE:
            entity = self.db.get(Invoice, entity_id)
        elif entity_kind == ORDER:
            entity = self.db.get(GroceryOrder, entity_id)
        else:
            raise ValidationError(f"Unsupported document kind: {entity_kind}")
        if not entity:
            raise NotFound(f"{entity_kind.capitalize()} not found: {entity_id}", entity_id=entity_id)
        return entity

    def render(self, entity_kind: str, entity_id: int) -> FileHandle:
        """生成 PDF 并返回文件句柄；账单会记录 pdf_url"""
        entity = self._load(entity_kind, entity_id)
        number = entity.invoice_number if entity_kind == INVOICE else entity.order_number
        file_name = f"{entity_kind}_{number}.pdf"

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / file_name
        if entity_kind == INVOICE:
            self._render_invoice(entity, path)
        else:
            self._render_order(entity, path)

        handle = FileHandle(file_name=file_name, path=path, url=f"/pdf/{file_name}")
        if entity_kind == INVOICE and entity.pdf_url != handle.url:
            entity.pdf_url = handle.url
            self.db.commit()

        logger.info(f"Rendered {entity_kind} {number} to {path}")
        return handle

    def render_for(self, caller: User, entity_kind: str, entity_id: int) -> FileHandle:
        """所有人或管理员生成文档"""
        entity = self._load(entity_kind, entity_id)
        ensure_owner_or_admin(caller, entity.user_id, f"download this {entity_kind}")
        return self.render(entity_kind, entity_id)

    def _totals_by_status(self, model, status_column, amount_column,
                          start: datetime, end: datetime) -> Dict:
        """status -> (数量, 金额)"""
        rows = (
            self.db.query(status_column, func.count(model.id), func.sum(amount_column))
            .filter(model.created_at >= start, model.created_at < end)
            .group_by(status_column)
            .all()
        )
        return {status: (count, Decimal(str(total or 0))) for status, count, total in rows}

    def monthly_report(self, month: int, year: int) -> MonthlyReport:
        """汇总某月创建的账单和订单"""
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")
        start = datetime(year, month, 1)
        end = datetime(year + month // 12, month % 12 + 1, 1)

        invoices = self._totals_by_status(Invoice, Invoice.status, Invoice.amount, start, end)
        orders = self._totals_by_status(GroceryOrder, GroceryOrder.status, GroceryOrder.total_amount, start, end)
        paid_orders = self._totals_by_status(
            GroceryOrder, GroceryOrder.payment_status, GroceryOrder.total_amount, start, end
        )
        zero = (0, Decimal("0"))

        def count(totals, *statuses):
            return sum(totals.get(s, zero)[0] for s in statuses)

        def amount(totals, *statuses):
            return sum((totals.get(s, zero)[1] for s in statuses), Decimal("0"))

        billable = [s for s in InvoiceStatus if s != InvoiceStatus.CANCELLED]
        outstanding = (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)
        return MonthlyReport(
            year=year,
            month=month,
            invoice_count=count(invoices, *InvoiceStatus),
            invoice_amount=amount(invoices, *billable),
            paid_invoice_count=count(invoices, InvoiceStatus.PAID),
            paid_invoice_amount=amount(invoices, InvoiceStatus.PAID),
            outstanding_invoice_count=count(invoices, *outstanding),
            outstanding_invoice_amount=amount(invoices, *outstanding),
            order_count=count(orders, *OrderStatus),
            order_amount=amount(orders, *[s for s in OrderStatus if s != OrderStatus.CANCELLED]),
            delivered_order_count=count(orders, OrderStatus.DELIVERED),
            paid_order_amount=amount(paid_orders, OrderPaymentStatus.PAID),
        )

    def render_report(self, month: int, year: int) -> FileHandle:
        """生成月报 PDF：report_<year>_<month>.pdf"""
        report = self.monthly_report(month, year)
        file_name = f"report_{year}_{month}.pdf"

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / file_name
        self._render_report(report, path)

        logger.info(f"Rendered monthly report {year}-{month:02d} to {path}")
        return FileHandle(file_name=file_name, path=path, url=f"/pdf/{file_name}")

    def resolve(self, caller: User, file_name: str) -> Path:
        """
        解析已生成的文件

        月报只对管理员开放，账单和订单文件对所有人和管理员开放。

        Raises:
            ValidationError: 文件名不合法（含路径穿越）
            NotFound: 文件或对应实体不存在
            Unauthorized: 无权访问
        """
        match = _FILE_NAME.match(file_name)
        report_match = _REPORT_NAME.match(file_name)
        if not match and not report_match:
            raise ValidationError(f"Invalid file name: {file_name}")

        root = self.output_dir.resolve()
        path = (root / file_name).resolve()
        if path.parent != root:
            raise ValidationError(f"Invalid file name: {file_name}")

        if report_match:
            ensure_admin(caller, "download reports")
            if not path.is_file():
                raise NotFound(f"File not found: {file_name}")
            return path

        kind, number = match.groups()
        if kind == INVOICE:
            entity = self.db.query(Invoice).filter(Invoice.invoice_number == number).first()
        else:
            entity = self.db.query(GroceryOrder).filter(GroceryOrder.order_number == number).first()
        if not entity or not path.is_file():
            raise NotFound(f"File not found: {file_name}")

        ensure_owner_or_admin(caller, entity.user_id, "download this file")
        return path
