# Ontology Models
from app.models.ontology import (
    User, GroceryItem, GroceryOrder, GroceryOrderLine,
    Invoice, InvoiceLine, InvoiceNote, InvoiceReminder,
    MaintenanceTicket, MaintenanceNote, Notification, SequenceCounter
)

__all__ = [
    'User', 'GroceryItem', 'GroceryOrder', 'GroceryOrderLine',
    'Invoice', 'InvoiceLine', 'InvoiceNote', 'InvoiceReminder',
    'MaintenanceTicket', 'MaintenanceNote', 'Notification', 'SequenceCounter'
]
