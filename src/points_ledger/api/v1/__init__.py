from fastapi import APIRouter

from .endpoints import (
    events,
    observability,
    promotions,
    transactions,
    users,
)

router = APIRouter()
router.include_router(transactions.router)
router.include_router(users.router)
router.include_router(events.router)
router.include_router(promotions.router)
router.include_router(observability.router)
