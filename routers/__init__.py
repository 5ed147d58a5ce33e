# routers/__init__.py
"""
API routers for the Wolf Gaming checkout backend.

Import and include these routers in the main FastAPI app:

     from routers import checkout_router, admin_router, payments_router
     app.include_router(checkout_router)
     app.include_router(admin_router)
     app.include_router(payments_router)
"""
from .admin import router as admin_router
from .checkout import router as checkout_router
from .payments import router as payments_router

__all__ = ["admin_router", "checkout_router", "payments_router"]
