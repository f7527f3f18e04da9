from fastapi import APIRouter

from .routes import exit_notes, health, inventory, products, reconciliation, returns, sales, sellers

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(products.router)
api_router.include_router(sellers.router)
api_router.include_router(inventory.router)
api_router.include_router(sales.router)
api_router.include_router(exit_notes.router)
api_router.include_router(returns.router)
api_router.include_router(reconciliation.router)
