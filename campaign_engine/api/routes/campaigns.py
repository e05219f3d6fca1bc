"""
Rotas de Campanhas.

As rotas so conhecem HTTP: recebem requests, chamam o
CampaignService e formatam a resposta. Erros de dominio viram
status HTTP em api/error_handlers.py.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from campaign_engine.api.deps import get_campaign_service
from campaign_engine.services.campaigns.service import CampaignService

router = APIRouter(prefix="/api/campaigns", tags=["Campaigns"])


# ---------------------------------------------------------------------------
# Schemas de Request (Pydantic)
# Regras chegam como dicts: a validacao fica no RuleCompiler, que
# aponta o indice da regra invalida.
# ---------------------------------------------------------------------------

class PreviewRequest(BaseModel):
    audienceRules: List[Dict[str, Any]] = Field(default_factory=list)


class CreateCampaignRequest(BaseModel):
    """Schema de entrada para criacao de campanha."""
    name: str = Field(..., description="Nome da campanha")
    message: str = Field(..., description="Template com {name}, {firstName}, {totalSpending}...")
    audienceRules: List[Dict[str, Any]] = Field(default_factory=list)
    description: Optional[str] = None
    messageType: str = Field(default="email", description="email, sms ou both")
    scheduledAt: Optional[datetime] = None
    status: Optional[str] = Field(None, description="draft, scheduled ou sending (envia logo)")


class UpdateCampaignRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    message: Optional[str] = None
    messageType: Optional[str] = None
    audienceRules: Optional[List[Dict[str, Any]]] = None
    scheduledAt: Optional[datetime] = None


_UPDATE_FIELDS = {
    "name": "name",
    "description": "description",
    "message": "message",
    "messageType": "message_type",
    "audienceRules": "audience_rules",
    "scheduledAt": "scheduled_at",
}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/preview")
async def preview_audience(
    dados: PreviewRequest,
    service: CampaignService = Depends(get_campaign_service),
):
    """Tamanho da audiencia, amostra e estimativas de custo/tempo."""
    return {"success": True, "data": await service.preview(dados.audienceRules)}


@router.get("")
async def list_campaigns(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: CampaignService = Depends(get_campaign_service),
):
    campaigns, pagination = await service.list(
        status=status, search=search, page=page, limit=limit
    )
    return {
        "success": True,
        "data": [c.to_response() for c in campaigns],
        "pagination": pagination,
    }


@router.post("", status_code=201)
async def create_campaign(
    dados: CreateCampaignRequest,
    service: CampaignService = Depends(get_campaign_service),
):
    campaign = await service.create(
        name=dados.name,
        message=dados.message,
        audience_rules=dados.audienceRules,
        description=dados.description,
        message_type=dados.messageType,
        scheduled_at=dados.scheduledAt,
        status=dados.status,
    )
    return {"success": True, "data": campaign.to_response()}


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    """Campanha e seus 100 MessageRecords mais recentes."""
    campaign, messages = await service.get(campaign_id)
    return {
        "success": True,
        "data": {
            "campaign": campaign.to_response(),
            "logs": [m.to_response() for m in messages],
        },
    }


@router.put("/{campaign_id}")
async def update_campaign(
    campaign_id: str,
    dados: UpdateCampaignRequest,
    service: CampaignService = Depends(get_campaign_service),
):
    changes = {
        _UPDATE_FIELDS[key]: value
        for key, value in dados.model_dump(exclude_unset=True).items()
    }
    campaign = await service.update(campaign_id, changes)
    return {"success": True, "data": campaign.to_response()}


@router.delete("/{campaign_id}")
async def delete_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    await service.delete(campaign_id)
    return {"success": True, "message": "Campaign deleted successfully"}


@router.post("/{campaign_id}/send")
async def send_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    """Grava `sending` e retorna; a entrega roda em background."""
    campaign = await service.send(campaign_id)
    return {
        "success": True,
        "message": "Campaign delivery started",
        "data": campaign.to_response(),
    }


@router.post("/{campaign_id}/pause")
async def pause_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    campaign = await service.pause(campaign_id)
    return {"success": True, "message": "Campaign paused", "data": campaign.to_response()}


@router.post("/{campaign_id}/retry")
async def retry_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    return {"success": True, "data": await service.retry(campaign_id)}


@router.get("/{campaign_id}/stats")
async def campaign_stats(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    return {"success": True, "data": await service.delivery_stats(campaign_id)}


@router.get("/{campaign_id}/analytics")
async def campaign_analytics(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    """Resumo, contagem por status e serie por dia/hora."""
    return {"success": True, "data": await service.analytics(campaign_id)}
