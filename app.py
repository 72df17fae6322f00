"""
FastAPI web application for the mixtape synthesizer.
Provides REST endpoints for synthesis, profiles, provider linking, connection refresh and export.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from config.settings import Settings
from mixtape import __version__
from mixtape.exceptions import ProviderUnavailable, ReauthRequired, RecordNotFound, SynthesisExhausted
from mixtape.models import Provider
from mixtape.services.mixtape_service import MixtapeService
from mixtape.storage.record_store import RecordStore

# Initialize settings
settings = Settings()
logging.basicConfig(level=settings.log_level, format=settings.log_format)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    store = RecordStore(settings.REDIS_URL)
    await store.connect()
    service = MixtapeService.from_settings(settings, store)
    app.state.service = service
    try:
        yield
    finally:
        await service.close()
        await store.close()

app = FastAPI(
    title="Mixtape Synthesizer API",
    description="Turn a free-text request into a playlist drawn from a listener's connected services",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

class SynthesizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    prompt: str = Field(min_length=1)
    conversation_id: str = Field(alias="conversationId")

def get_service(request: Request) -> MixtapeService:
    return request.app.state.service

def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity set by the upstream auth layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id

def require_same_user(caller: str, user_id: str):
    if caller != user_id:
        raise HTTPException(status_code=401, detail="Caller does not match user")

def parse_provider(provider: str) -> Provider:
    try:
        return Provider.parse(provider)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")

@app.exception_handler(ReauthRequired)
async def reauth_required_handler(request: Request, exc: ReauthRequired):
    return JSONResponse(
        status_code=409,
        content={"error": "reauth_required", "provider": exc.provider.value, "detail": str(exc)}
    )

@app.exception_handler(ProviderUnavailable)
async def provider_unavailable_handler(request: Request, exc: ProviderUnavailable):
    return JSONResponse(
        status_code=502,
        content={
            "error": "provider_unavailable",
            "provider": exc.provider.value if exc.provider else None,
            "detail": str(exc)
        }
    )

@app.exception_handler(SynthesisExhausted)
async def synthesis_exhausted_handler(request: Request, exc: SynthesisExhausted):
    return JSONResponse(
        status_code=502,
        content={"error": "synthesis_exhausted", "requested": exc.requested, "available": exc.available}
    )

@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(status_code=404, content={"error": "not_found", "detail": str(exc)})

@app.get("/")
async def root():
    return {"message": "Mixtape Synthesizer API", "version": __version__}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "providers": [p.value for p in Provider]}

@app.post("/synthesize")
async def synthesize(
    request: SynthesizeRequest,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    """Synthesize a playlist for a prompt and record the turn."""
    require_same_user(caller, request.user_id)
    message = await service.synthesize(request.user_id, request.prompt, request.conversation_id)
    return {"message": message.to_dict()}

@app.get("/auth/{provider}/connect")
async def connect_provider(
    provider: str,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    """Send the caller to the provider's consent page."""
    url = await service.gateway.authorization_url(caller, parse_provider(provider))
    return RedirectResponse(url, status_code=302)

@app.get("/auth/{provider}/callback")
async def provider_callback(
    provider: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    """Finish linking a provider and store the connection."""
    target = parse_provider(provider)
    if error:
        raise HTTPException(status_code=400, detail=f"{target.value} authorization denied: {error}")
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing authorization code or state")

    connection = await service.connect(caller, target, code, state)
    return {
        "provider": connection.provider.value,
        "status": connection.status.value,
        "provider_user_id": connection.provider_user_id,
        "expires_at": connection.expires_at.isoformat() if connection.expires_at else None
    }

@app.post("/connections/{provider}/refresh")
async def refresh_connection(
    provider: str,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    """Refresh a stored provider token. Safe to call repeatedly."""
    connection = await service.gateway.refresh(caller, parse_provider(provider))
    return {
        "provider": connection.provider.value,
        "status": connection.status.value,
        "expires_at": connection.expires_at.isoformat() if connection.expires_at else None
    }

@app.get("/profile/{user_id}")
async def get_profile(
    user_id: str,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    require_same_user(caller, user_id)
    profile = await service.aggregator.get_profile(user_id, build_if_missing=False)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No profile for user {user_id}")
    return profile.to_dict()

@app.post("/profile/{user_id}/refresh")
async def refresh_profile(
    user_id: str,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    """Rebuild the taste profile from every connected provider."""
    require_same_user(caller, user_id)
    profile = await service.aggregator.build_profile(user_id)
    return profile.to_dict()

@app.post("/playlists/{playlist_id}/export/{provider}")
async def export_playlist(
    playlist_id: str,
    provider: str,
    caller: str = Depends(current_user),
    service: MixtapeService = Depends(get_service)
):
    playlist = await service.exporter.export(caller, playlist_id, parse_provider(provider))
    return playlist.to_dict()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
