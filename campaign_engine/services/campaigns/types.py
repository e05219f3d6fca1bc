"""
Tipos e enums para campanhas e registros de mensagem.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from campaign_engine.core.timezone import isoformat_or_none, parse_datetime


class CampaignStatus(str, Enum):
    """Status possiveis de uma campanha."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


# Guardas de transicao
SENDABLE_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED, CampaignStatus.PAUSED)
PAUSABLE_STATUSES = (CampaignStatus.SENDING,)
RULES_EDITABLE_STATUSES = (CampaignStatus.DRAFT, CampaignStatus.SCHEDULED)
LOCKED_STATUSES = (CampaignStatus.SENDING, CampaignStatus.COMPLETED)


class MessageType(str, Enum):
    """Canal da campanha."""

    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"


class MessageStatus(str, Enum):
    """
    Status de um MessageRecord.

    pending -> sent -> delivered | failed; bounced apenas a partir de delivered.
    """

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    BOUNCED = "bounced"


@dataclass
class CampaignStats:
    """Contadores recalculados a partir dos MessageRecords."""

    total_sent: int = 0
    total_failed: int = 0
    total_delivered: int = 0
    delivery_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "CampaignStats":
        data = data or {}
        return cls(
            total_sent=data.get("total_sent", data.get("totalSent", 0)) or 0,
            total_failed=data.get("total_failed", data.get("totalFailed", 0)) or 0,
            total_delivered=data.get("total_delivered", data.get("totalDelivered", 0)) or 0,
            delivery_rate=data.get("delivery_rate", data.get("deliveryRate", 0.0)) or 0.0,
        )

    def to_dict(self) -> dict:
        return {
            "total_sent": self.total_sent,
            "total_failed": self.total_failed,
            "total_delivered": self.total_delivered,
            "delivery_rate": self.delivery_rate,
        }

    def to_response(self) -> dict:
        return {
            "totalSent": self.total_sent,
            "totalFailed": self.total_failed,
            "totalDelivered": self.total_delivered,
            "deliveryRate": self.delivery_rate,
        }


@dataclass
class Campaign:
    """Dados de uma campanha."""

    id: str
    name: str
    message: str
    audience_rules: List[dict] = field(default_factory=list)
    description: Optional[str] = None
    audience_size: int = 0
    message_type: MessageType = MessageType.EMAIL
    status: CampaignStatus = CampaignStatus.DRAFT
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    stats: CampaignStats = field(default_factory=CampaignStats)

    @classmethod
    def from_db_row(cls, row: dict) -> "Campaign":
        """Cria a partir de linha do banco."""
        try:
            status = CampaignStatus(row.get("status", "draft"))
        except ValueError:
            status = CampaignStatus.DRAFT

        try:
            message_type = MessageType(row.get("message_type", "email"))
        except ValueError:
            message_type = MessageType.EMAIL

        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            message=row.get("message", ""),
            audience_rules=list(row.get("audience_rules") or []),
            description=row.get("description"),
            audience_size=row.get("audience_size", 0) or 0,
            message_type=message_type,
            status=status,
            scheduled_at=parse_datetime(row.get("scheduled_at")),
            sent_at=parse_datetime(row.get("sent_at")),
            completed_at=parse_datetime(row.get("completed_at")),
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
            stats=CampaignStats.from_dict(row.get("stats")),
        )

    def to_dict(self) -> dict:
        """Converte para linha do banco."""
        return {
            "id": self.id,
            "name": self.name,
            "message": self.message,
            "audience_rules": self.audience_rules,
            "description": self.description,
            "audience_size": self.audience_size,
            "message_type": self.message_type.value,
            "status": self.status.value,
            "scheduled_at": isoformat_or_none(self.scheduled_at),
            "sent_at": isoformat_or_none(self.sent_at),
            "completed_at": isoformat_or_none(self.completed_at),
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
            "stats": self.stats.to_dict(),
        }

    def to_response(self) -> dict:
        """Formato da API (camelCase)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "message": self.message,
            "messageType": self.message_type.value,
            "audienceRules": self.audience_rules,
            "audienceSize": self.audience_size,
            "status": self.status.value,
            "scheduledAt": isoformat_or_none(self.scheduled_at),
            "sentAt": isoformat_or_none(self.sent_at),
            "completedAt": isoformat_or_none(self.completed_at),
            "createdAt": isoformat_or_none(self.created_at),
            "updatedAt": isoformat_or_none(self.updated_at),
            "stats": self.stats.to_response(),
        }


@dataclass
class Recipient:
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Recipient":
        data = data or {}
        return cls(email=data.get("email"), phone=data.get("phone"))

    def to_dict(self) -> dict:
        return {"email": self.email, "phone": self.phone}

    def address_for(self, message_type: MessageType) -> Optional[str]:
        """Endereco usado pelo vendor conforme o canal."""
        if message_type == MessageType.SMS:
            return self.phone or self.email
        return self.email or self.phone


@dataclass
class DeliveryReceipt:
    """Sub-registro de recibo de entrega."""

    vendor_message_id: Optional[str] = None
    delivery_status: Optional[str] = None
    delivery_time: Optional[datetime] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DeliveryReceipt":
        data = data or {}
        return cls(
            vendor_message_id=data.get("vendor_message_id"),
            delivery_status=data.get("delivery_status"),
            delivery_time=parse_datetime(data.get("delivery_time")),
            error_code=data.get("error_code"),
            error_description=data.get("error_description"),
        )

    def to_dict(self) -> dict:
        return {
            "vendor_message_id": self.vendor_message_id,
            "delivery_status": self.delivery_status,
            "delivery_time": isoformat_or_none(self.delivery_time),
            "error_code": self.error_code,
            "error_description": self.error_description,
        }


@dataclass
class MessageRecord:
    """
    Uma tentativa de entrega por destinatario.

    Nunca e deletado. Retry reaproveita a mesma linha (status volta a
    pending e retry_count incrementa).
    """

    message_id: str
    campaign_id: str
    customer_id: str
    message: str
    message_type: MessageType = MessageType.EMAIL
    recipient: Recipient = field(default_factory=Recipient)
    status: MessageStatus = MessageStatus.PENDING
    retry_count: int = 0
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    vendor_response: dict = field(default_factory=dict)
    delivery_receipt: DeliveryReceipt = field(default_factory=DeliveryReceipt)
    metadata: dict = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_db_row(cls, row: dict) -> "MessageRecord":
        try:
            status = MessageStatus(row.get("status", "pending"))
        except ValueError:
            status = MessageStatus.PENDING

        try:
            message_type = MessageType(row.get("message_type", "email"))
        except ValueError:
            message_type = MessageType.EMAIL

        return cls(
            message_id=row["message_id"],
            campaign_id=str(row["campaign_id"]),
            customer_id=str(row["customer_id"]),
            message=row.get("message", ""),
            message_type=message_type,
            recipient=Recipient.from_dict(row.get("recipient")),
            status=status,
            retry_count=row.get("retry_count", 0) or 0,
            sent_at=parse_datetime(row.get("sent_at")),
            delivered_at=parse_datetime(row.get("delivered_at")),
            failed_at=parse_datetime(row.get("failed_at")),
            error_message=row.get("error_message"),
            vendor_response=row.get("vendor_response") or {},
            delivery_receipt=DeliveryReceipt.from_dict(row.get("delivery_receipt")),
            metadata=row.get("metadata") or {},
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
        )

    def to_dict(self) -> dict:
        return {
            "message_id": self.message_id,
            "campaign_id": self.campaign_id,
            "customer_id": self.customer_id,
            "message": self.message,
            "message_type": self.message_type.value,
            "recipient": self.recipient.to_dict(),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "sent_at": isoformat_or_none(self.sent_at),
            "delivered_at": isoformat_or_none(self.delivered_at),
            "failed_at": isoformat_or_none(self.failed_at),
            "error_message": self.error_message,
            "vendor_response": self.vendor_response,
            "delivery_receipt": self.delivery_receipt.to_dict(),
            "metadata": self.metadata,
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
        }

    def to_response(self) -> dict:
        receipt = self.delivery_receipt
        return {
            "messageId": self.message_id,
            "campaignId": self.campaign_id,
            "customerId": self.customer_id,
            "messageType": self.message_type.value,
            "recipient": self.recipient.to_dict(),
            "message": self.message,
            "status": self.status.value,
            "retryCount": self.retry_count,
            "sentAt": isoformat_or_none(self.sent_at),
            "deliveredAt": isoformat_or_none(self.delivered_at),
            "failedAt": isoformat_or_none(self.failed_at),
            "errorMessage": self.error_message,
            "deliveryReceipt": {
                "vendorMessageId": receipt.vendor_message_id,
                "deliveryStatus": receipt.delivery_status,
                "deliveryTime": isoformat_or_none(receipt.delivery_time),
                "errorCode": receipt.error_code,
                "errorDescription": receipt.error_description,
            },
            "createdAt": isoformat_or_none(self.created_at),
        }
