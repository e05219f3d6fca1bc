"""
Webhooks de recibo de entrega.

O corpo e lido bruto: a assinatura (X-Vendor-Signature) e o HMAC
dos bytes exatos enviados pelo vendor.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from campaign_engine.api.deps import get_receipt_processor
from campaign_engine.services.receipts import ReceiptProcessor

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)


@router.post("/delivery-receipt")
async def delivery_receipt(
    request: Request,
    x_vendor_signature: Optional[str] = Header(None),
    processor: ReceiptProcessor = Depends(get_receipt_processor),
):
    """
    Aplica um recibo.

    200 sucesso; 401 assinatura invalida; 404 messageId desconhecido.
    """
    body = await request.body()
    await processor.process(body, x_vendor_signature)
    return {"success": True, "message": "Delivery receipt processed"}


@router.post("/batch-delivery-receipt")
async def batch_delivery_receipt(
    request: Request,
    x_vendor_signature: Optional[str] = Header(None),
    processor: ReceiptProcessor = Depends(get_receipt_processor),
):
    """Aplica lote {receipts: [...]} com resultado por item."""
    body = await request.body()
    results = await processor.process_batch(body, x_vendor_signature)

    falhas = sum(1 for r in results if not r["success"])
    if falhas:
        logger.warning(f"Lote de recibos com {falhas}/{len(results)} falhas")

    return {
        "success": True,
        "message": "Batch delivery receipts processed",
        "results": results,
    }
