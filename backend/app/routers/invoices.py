"""
账单路由
"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User, InvoiceStatus
from app.models.schemas import (
    InvoiceCreate, InvoiceStatusUpdate, InvoiceResponse, NoteCreate, FileHandleResponse
)
from app.services.invoice_service import InvoiceService
from app.services.document_service import DocumentRenderer, INVOICE
from app.security.auth import get_current_user

router = APIRouter(prefix="/invoices", tags=["账单管理"])


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(
    data: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """创建账单（管理员）"""
    service = InvoiceService(db)
    return InvoiceResponse(**service.to_detail(service.create_invoice(current_user, data)))


@router.get("", response_model=List[InvoiceResponse])
def list_invoices(
    status: Optional[InvoiceStatus] = None,
    room_number: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """账单列表；status=overdue 返回已过到期日的未付账单"""
    service = InvoiceService(db)
    now = datetime.now()
    invoices = service.list_invoices(current_user, status, room_number, start_date, end_date, now=now)
    return [InvoiceResponse(**service.to_detail(i, now)) for i in invoices]


@router.get("/overdue", response_model=List[InvoiceResponse])
def list_overdue_invoices(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """逾期账单"""
    service = InvoiceService(db)
    now = datetime.now()
    return [InvoiceResponse(**service.to_detail(i, now)) for i in service.list_overdue(current_user, now)]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = InvoiceService(db)
    return InvoiceResponse(**service.to_detail(service.get_invoice(current_user, invoice_id)))


@router.put("/{invoice_id}/status", response_model=InvoiceResponse)
def update_invoice_status(
    invoice_id: int,
    data: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """标记已支付 / 取消（管理员）"""
    service = InvoiceService(db)
    return InvoiceResponse(**service.to_detail(service.update_status(current_user, invoice_id, data)))


@router.post("/{invoice_id}/notes", response_model=InvoiceResponse)
def add_invoice_note(
    invoice_id: int,
    data: NoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """追加备注"""
    service = InvoiceService(db)
    return InvoiceResponse(**service.to_detail(service.add_note(current_user, invoice_id, data.content)))


@router.post("/{invoice_id}/reminders", response_model=InvoiceResponse)
def send_invoice_reminder(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """发送催缴提醒（管理员）"""
    service = InvoiceService(db)
    return InvoiceResponse(**service.to_detail(service.send_reminder(current_user, invoice_id)))


@router.get("/{invoice_id}/pdf", response_model=FileHandleResponse)
def generate_invoice_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """生成账单 PDF"""
    handle = DocumentRenderer(db).render_for(current_user, INVOICE, invoice_id)
    return FileHandleResponse(file_name=handle.file_name, pdf_url=handle.url)
