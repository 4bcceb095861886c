from fastapi import APIRouter

from bookledger.api.routes import (
    auth,
    donations,
    exports,
    inventory,
    summary,
    transactions,
)


api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
api_router.include_router(donations.router, prefix="/donations", tags=["Donations"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
api_router.include_router(summary.router, prefix="/summary", tags=["Summary"])
api_router.include_router(exports.router, prefix="/exports", tags=["Exports"])
