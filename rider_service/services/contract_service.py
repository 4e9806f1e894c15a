from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from rider_service.core.config import get_settings
from rider_service.core.hashing import canonical_dumps, sha256_hex
from rider_service.core.rider_fields import encode_fields
from rider_service.core.types import Acknowledgment, RiderDocument
from rider_service.models.rider_contract import RiderContractRecord
from rider_service.services.modification_ledger import apply_approved


class ContractService:
    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or get_settings().contract_base_url).rstrip("/")

    def contract_url(self, contract_id: uuid.UUID) -> str:
        return f"{self.base_url}/{contract_id}"

    def create_for_acknowledgment(
        self,
        db: Session,
        *,
        ack: Acknowledgment,
        document: RiderDocument,
    ) -> RiderContractRecord:
        """
        Capture the agreed terms of a finalized negotiation.

        Runs inside the caller's transaction (flush only, no commit): if the
        finalize commit loses its revision check, the contract row goes with it.
        """
        terms, applied = apply_approved(document.fields, ack.ledger)
        terms_json = encode_fields(terms)

        # Contract hash = hash(canonical(full_contract_payload))
        full_payload = {
            "booking_id": ack.booking_id,
            "rider_document_id": str(ack.rider_document_id),
            "rider_version": ack.rider_version,
            "event_date": ack.event_date.isoformat(),
            "terms": terms_json,
        }
        contract_hash = sha256_hex(canonical_dumps(full_payload))

        contract_id = uuid.uuid4()
        contract = RiderContractRecord(
            id=contract_id,
            acknowledgment_id=ack.acknowledgment_id,
            booking_id=ack.booking_id,
            terms_json=terms_json,
            applied_entries_json=applied,
            contract_hash=contract_hash,
            contract_url=self.contract_url(contract_id),
        )
        db.add(contract)
        db.flush()
        return contract

    def get_for_acknowledgment(self, db: Session, acknowledgment_id: uuid.UUID) -> Optional[RiderContractRecord]:
        return db.execute(
            select(RiderContractRecord).where(RiderContractRecord.acknowledgment_id == acknowledgment_id)
        ).scalar_one_or_none()
