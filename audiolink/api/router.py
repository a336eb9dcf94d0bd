from fastapi import APIRouter
from audiolink.modules.audio.router import router as audio_router

api_router = APIRouter()
api_router.include_router(audio_router, prefix="/audio", tags=["audio"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
