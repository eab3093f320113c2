"""
PDF 文件路由：管理员月报与已生成文件下载
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User
from app.models.schemas import FileHandleResponse
from app.services.document_service import DocumentRenderer
from app.security.auth import get_current_user, require_admin

router = APIRouter(prefix="/pdf", tags=["文档"])


@router.get("/report", response_model=FileHandleResponse)
def generate_monthly_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """生成月报（仅管理员）"""
    handle = DocumentRenderer(db).render_report(month, year)
    return FileHandleResponse(file_name=handle.file_name, pdf_url=handle.url)


@router.get("/{file_name}")
def download_pdf(
    file_name: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """下载已生成的 PDF"""
    path = DocumentRenderer(db).resolve(current_user, file_name)
    return FileResponse(path, media_type="application/pdf", filename=file_name)
