from rider_service.models.rider_document import RiderDocumentVersion
from rider_service.models.acknowledgment import RiderAcknowledgment, ModificationEntryRecord
from rider_service.models.rider_contract import RiderContractRecord
from rider_service.models.contract_reminder import ContractReminder
from rider_service.models.negotiation_reminder import NegotiationReminder
from rider_service.models.audit_log import AuditLogRecord
from rider_service.models.idempotency_key import IdempotencyKeyRecord

__all__ = [
    "RiderDocumentVersion",
    "RiderAcknowledgment",
    "ModificationEntryRecord",
    "RiderContractRecord",
    "ContractReminder",
    "NegotiationReminder",
    "AuditLogRecord",
    "IdempotencyKeyRecord",
]
