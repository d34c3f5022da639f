from fastapi import APIRouter

from .endpoints import (
    admin,
    customers,
    health,
    ledger,
    observability,
    offers,
    pickups,
    preorders,
    rewards,
)

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(customers.router)
router.include_router(rewards.router)
router.include_router(offers.router)
router.include_router(preorders.router)
router.include_router(ledger.router)
router.include_router(admin.router)
router.include_router(pickups.router)
router.include_router(observability.router)
