"""
Processamento de recibos de entrega (webhook do vendor).

Recibo:
    {messageId, status, timestamp, vendorMessageId, metadata{error?, errorCode?, errorDescription?}}

Assinatura (X-Vendor-Signature) e opcional: quando presente precisa
conferir com o HMAC do corpo bruto; quando ausente o recibo e aceito.

Aplicar o mesmo recibo duas vezes tem o mesmo efeito de aplicar uma
vez; recibos com timestamps diferentes seguem last-write-wins.
"""
import json
import logging
from typing import Any, List, Optional, Union

from campaign_engine.core.exceptions import (
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from campaign_engine.core.timezone import now_utc, parse_datetime
from campaign_engine.repositories.message import MessageRecordRepository
from campaign_engine.services.campaigns.types import MessageRecord, MessageStatus
from campaign_engine.services.stats import StatsAggregator
from campaign_engine.services.vendor.signature import verify_signature

logger = logging.getLogger(__name__)

RECEIPT_STATUSES = (MessageStatus.DELIVERED, MessageStatus.FAILED, MessageStatus.BOUNCED)
DEFAULT_FAILURE_MESSAGE = "Delivery failed"

RawBody = Union[bytes, str, dict]


class ReceiptProcessor:
    """Valida e aplica recibos nos MessageRecords."""

    def __init__(
        self,
        message_repo: MessageRecordRepository,
        stats: StatsAggregator,
        secret: str,
    ):
        self.message_repo = message_repo
        self.stats = stats
        self.secret = secret

    def verify(self, raw_body: RawBody, signature: Optional[str]) -> None:
        """
        Confere a assinatura, se houver.

        Raises:
            AuthenticationError: assinatura presente e invalida
        """
        if not signature:
            logger.debug("Recibo sem assinatura aceito")
            return

        payload = json.dumps(raw_body) if isinstance(raw_body, dict) else raw_body
        if not verify_signature(payload, signature, self.secret):
            logger.warning("Recibo com assinatura invalida rejeitado")
            raise AuthenticationError("Invalid webhook signature")

    async def process(self, raw_body: RawBody, signature: Optional[str] = None) -> MessageRecord:
        """
        Valida assinatura e aplica um recibo.

        Raises:
            AuthenticationError: assinatura invalida
            ValidationError: corpo invalido
            NotFoundError: messageId desconhecido
        """
        self.verify(raw_body, signature)
        return await self.apply(_decode(raw_body))

    async def process_batch(
        self,
        raw_body: RawBody,
        signature: Optional[str] = None,
    ) -> List[dict]:
        """
        Aplica lote {receipts: [...]}.

        Cada item e independente: falha em um nao interrompe os demais.

        Returns:
            Lista de {messageId, success, error?}
        """
        self.verify(raw_body, signature)
        data = _decode(raw_body)
        receipts = data.get("receipts")
        if not isinstance(receipts, list):
            raise ValidationError("Receipts must be an array")

        results = []
        for receipt in receipts:
            message_id = receipt.get("messageId") if isinstance(receipt, dict) else None
            try:
                await self.apply(receipt)
                results.append({"messageId": message_id, "success": True})
            except Exception as e:
                logger.warning(
                    f"Recibo do lote falhou ({message_id}): {e}",
                    extra={"message_id": message_id, "error_type": type(e).__name__},
                )
                results.append({"messageId": message_id, "success": False, "error": str(e)})
        return results

    async def apply(self, receipt: Any) -> MessageRecord:
        """
        Aplica um recibo ja decodificado.

        delivered grava delivered_at; failed/bounced gravam failed_at e
        error_message (metadata.error ou "Delivery failed").
        """
        if not isinstance(receipt, dict):
            raise ValidationError("Recibo deve ser um objeto")

        message_id = receipt.get("messageId")
        if not message_id:
            raise ValidationError("messageId obrigatorio")

        try:
            status = MessageStatus(receipt.get("status"))
        except ValueError:
            status = None
        if status not in RECEIPT_STATUSES:
            raise ValidationError(
                f"Status de recibo invalido: {receipt.get('status')}",
                details={"validos": [s.value for s in RECEIPT_STATUSES]},
            )

        try:
            timestamp = parse_datetime(receipt.get("timestamp")) or now_utc()
        except (TypeError, ValueError):
            raise ValidationError(f"Timestamp invalido: {receipt.get('timestamp')}")

        record = await self.message_repo.get(message_id)
        if record is None:
            raise NotFoundError("MessageRecord", message_id)

        metadata = receipt.get("metadata") or {}
        delivery_receipt = record.delivery_receipt.to_dict()
        delivery_receipt.update({
            "vendor_message_id": receipt.get("vendorMessageId"),
            "delivery_status": status.value,
            "delivery_time": timestamp.isoformat(),
        })
        data = {"status": status.value}

        if status == MessageStatus.DELIVERED:
            data["delivered_at"] = timestamp.isoformat()
        else:
            data["failed_at"] = timestamp.isoformat()
            data["error_message"] = metadata.get("error") or DEFAULT_FAILURE_MESSAGE
            delivery_receipt["error_code"] = metadata.get("errorCode")
            delivery_receipt["error_description"] = metadata.get("errorDescription")

        data["delivery_receipt"] = delivery_receipt
        updated = await self.message_repo.update(message_id, data)
        if updated is None:
            raise NotFoundError("MessageRecord", message_id)

        await self.stats.recompute(updated.campaign_id)

        logger.info(
            f"Recibo aplicado: {message_id} -> {status.value}",
            extra={"message_id": message_id, "campaign_id": updated.campaign_id},
        )
        return updated


def _decode(raw_body: RawBody) -> dict:
    if isinstance(raw_body, dict):
        return raw_body
    try:
        data = json.loads(raw_body)
    except (TypeError, ValueError):
        raise ValidationError("Corpo do recibo nao e JSON valido")
    if not isinstance(data, dict):
        raise ValidationError("Corpo do recibo deve ser um objeto")
    return data
