from fastapi import APIRouter
from .utils.router import router as utils_router
from .canva import router as canva_router

router = APIRouter()
router.include_router(utils_router, prefix="/utils")
router.include_router(canva_router)
