# API Routers
from app.routers import auth, grocery, invoices, maintenance, notifications, pdf

__all__ = ['auth', 'grocery', 'invoices', 'maintenance', 'notifications', 'pdf']
