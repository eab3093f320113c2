# Business Services
from app.services.user_service import UserService
from app.services.catalog_service import CatalogService
from app.services.sequence_service import SequenceService
from app.services.order_service import OrderService
from app.services.invoice_service import InvoiceService
from app.services.maintenance_service import MaintenanceService
from app.services.notification_service import NotificationDispatcher, DeliveryResult
from app.services.document_service import DocumentRenderer, FileHandle

__all__ = [
    'UserService', 'CatalogService', 'SequenceService', 'OrderService',
    'InvoiceService', 'MaintenanceService', 'NotificationDispatcher',
    'DeliveryResult', 'DocumentRenderer', 'FileHandle'
]
