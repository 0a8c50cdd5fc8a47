from fastapi import APIRouter

from . import checkout, history, solve, usage

router = APIRouter(prefix="/v1")
router.include_router(solve.router)
router.include_router(usage.router)
router.include_router(history.router)
# checkout is simulated; it only installs the PRO record
router.include_router(checkout.router)
