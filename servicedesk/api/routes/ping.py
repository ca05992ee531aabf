from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health", summary="Public health probe")
async def health() -> dict[str, bool]:
    return {"ok": True}
