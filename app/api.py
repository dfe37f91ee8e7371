"""
FinancePro HTTP API

The server-side endpoints the dashboard and outside services call:
- POST /checkout        Stripe checkout session for the paid plan
- POST /stripe/webhook  Stripe events that activate or expire plans
- POST /ai-advisor      Gemini relay for the assistant
- POST /whatsapp        Twilio WhatsApp bot

Run with: uvicorn app.api:app
"""

from functools import lru_cache
from typing import Optional
from xml.sax.saxutils import escape

import httpx
import structlog
from fastapi import Depends, FastAPI, Form, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from financepro.agents import AdvisorAgent, AIServiceError
from financepro.audit import configure_logging
from financepro.config import get_settings
from financepro.orchestrator import AppComponents, create_app_components
from financepro.payments import PaymentError, WebhookVerificationError
from financepro.services.storage import StorageError


configure_logging(get_settings().app.debug_mode)
logger = structlog.get_logger("api")

app = FastAPI(title="FinancePro API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache()
def get_components() -> AppComponents:
    return create_app_components()


def get_advisor() -> Optional[AdvisorAgent]:
    """Gemini advisor, or None when no API key is configured."""
    try:
        return AdvisorAgent()
    except Exception as e:
        logger.warning("gemini_not_configured", error=str(e))
        return None


class MediaDownloader:
    """Fetches WhatsApp media from Twilio."""

    async def __call__(self, url: str) -> bytes:
        auth = get_settings().twilio.basic_auth
        async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as client:
            response = await client.get(url, auth=auth)
            response.raise_for_status()
            return response.content


def get_media_downloader() -> MediaDownloader:
    return MediaDownloader()


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def twiml_reply(message: str) -> Response:
    xml = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(message)}</Message></Response>"
    )
    return Response(content=xml, media_type="text/xml")


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CheckoutRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    price_id: Optional[str] = None


class AdvisorRequest(BaseModel):
    message: str = Field(..., min_length=1)
    context: str = ""


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    origin: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
):
    try:
        url = await components.payments.create_checkout(
            user_id=body.user_id,
            email=body.email,
            origin=origin or "",
            price_id=body.price_id,
        )
    except PaymentError as e:
        return error_response(str(e), 400)
    except StorageError as e:
        await components.audit_logger.log_error("checkout_failed", str(e), {"user_id": body.user_id})
        return error_response(str(e), 500)
    return {"url": url}


@app.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
):
    payload = await request.body()
    try:
        return await components.payments.handle_webhook(payload, stripe_signature)
    except WebhookVerificationError as e:
        return error_response(str(e), 400)
    except StorageError as e:
        await components.audit_logger.log_error("webhook_failed", str(e))
        return error_response(str(e), 500)


@app.post("/ai-advisor")
async def ai_advisor(
    body: AdvisorRequest,
    advisor: Optional[AdvisorAgent] = Depends(get_advisor),
):
    if advisor is None:
        return error_response("Chave GEMINI_API_KEY não encontrada no servidor.", 500)
    try:
        reply = await advisor.reply(body.message, body.context)
    except AIServiceError as e:
        logger.error("ai_advisor_failed", error=str(e))
        return error_response(str(e), 500)
    return {"reply": reply}


@app.post("/whatsapp")
async def whatsapp_bot(
    Body: str = Form(default=""),
    From: str = Form(default=""),
    NumMedia: int = Form(default=0),
    MediaUrl0: Optional[str] = Form(default=None),
    MediaContentType0: Optional[str] = Form(default=None),
    components: AppComponents = Depends(get_components),
    download: MediaDownloader = Depends(get_media_downloader),
):
    media = None
    mime_type = None
    try:
        if NumMedia > 0 and MediaUrl0 and MediaContentType0:
            media = await download(MediaUrl0)
            mime_type = MediaContentType0
        reply = await components.ingest.handle(
            from_number=From,
            body=Body,
            media=media,
            mime_type=mime_type,
        )
    except httpx.HTTPError as e:
        logger.error("whatsapp_media_download_failed", error=str(e))
        reply = f"Erro ao processar: {e}"
    return twiml_reply(reply)
