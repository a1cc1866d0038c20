"""Webhook server: Frappe triggers issuance, NFE.io reports status changes."""

from __future__ import annotations

import json
import logging

import requests
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from nfe_bridge.api.auth import verify_webhook_signature
from nfe_bridge.config import Settings
from nfe_bridge.services import issuance
from nfe_bridge.services.exceptions import InvoiceBuildError, UpstreamAPIError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhook", tags=["Webhooks"])


def _parse_json(body: bytes) -> dict:
    try:
        payload = json.loads(body or b"null")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON") from None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
    return payload


@router.post("/invoices/issue")
async def issue_invoice_webhook(request: Request, body: bytes = Depends(verify_webhook_signature)):
    """Issue the NF-e for the Frappe invoice named in the payload."""
    payload = _parse_json(body)
    name = str(payload.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing invoice name")

    settings: Settings = request.app.state.settings
    logger.info("Webhook de emissao recebido para %s", name)
    try:
        response = await run_in_threadpool(issuance.issue_invoice, name, settings)
    except InvoiceBuildError as exc:
        logger.warning("Nota %s rejeitada na montagem: %s", name, exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (UpstreamAPIError, requests.exceptions.RequestException) as exc:
        logger.error("Falha ao emitir %s: %s", name, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return {"message": "Invoice Issued", "nfe_id": response.id, "status": response.status}


@router.post("/nfeio/response")
async def nfeio_response_webhook(request: Request):
    """NFE.io status callback: logged and acknowledged."""
    payload = _parse_json(await request.body())
    logger.info(
        "Retorno NFE.io: nota %s, status %s, fluxo %s",
        payload.get("id", "-"),
        payload.get("status", "-"),
        payload.get("flowStatus", "-"),
    )
    return {"received": True}


def create_app(settings: Settings) -> FastAPI:
    """Build the webhook application bound to *settings*."""
    if not settings.webhook_secret:
        logger.warning("WEBHOOK_SECRET nao definido: assinaturas serao verificadas com chave vazia")

    app = FastAPI(title="frappe-nfe-bridge", docs_url=None, redoc_url=None)
    app.state.settings = settings
    app.include_router(router)

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "OK"

    return app
