from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rider_service.core.hashing import payload_hash
from rider_service.models.idempotency_key import IdempotencyKeyRecord


@dataclass(frozen=True)
class IdempotencyScope:
    """
    Where a key is valid: one caller, one endpoint, one acknowledgment
    ("acknowledgments" for creation).
    """

    scope_key: str
    user_id: str
    endpoint_key: str
    idem_key: str


class IdempotencyService:
    def get_existing(self, db: Session, scope: IdempotencyScope) -> Optional[IdempotencyKeyRecord]:
        return db.execute(
            select(IdempotencyKeyRecord).where(
                IdempotencyKeyRecord.scope_key == scope.scope_key,
                IdempotencyKeyRecord.user_id == scope.user_id,
                IdempotencyKeyRecord.endpoint_key == scope.endpoint_key,
                IdempotencyKeyRecord.idem_key == scope.idem_key,
            )
        ).scalar_one_or_none()

    def reserve_or_replay(
        self,
        db: Session,
        scope: IdempotencyScope,
        request_payload: Dict[str, Any],
    ) -> Tuple[Optional[Dict[str, Any]], Optional[int], str]:
        """
        Returns (replay_json, replay_status_code, request_hash).

        A stored response for the same scope replays when the payload hash
        matches and raises ValueError when it does not.
        """
        req_hash = payload_hash(request_payload)
        existing = self.get_existing(db, scope)
        if existing is None:
            return None, None, req_hash

        if existing.request_hash != req_hash:
            raise ValueError("Idempotency-Key reuse with different payload is not allowed.")
        return existing.response_json, int(existing.response_status), req_hash

    def store_response(
        self,
        db: Session,
        scope: IdempotencyScope,
        *,
        request_hash: str,
        response_json: Dict[str, Any],
        response_status: int,
    ) -> None:
        if self.get_existing(db, scope) is not None:
            # first response wins
            return

        db.add(
            IdempotencyKeyRecord(
                scope_key=scope.scope_key,
                user_id=scope.user_id,
                endpoint_key=scope.endpoint_key,
                idem_key=scope.idem_key,
                request_hash=request_hash,
                response_status=str(response_status),
                response_json=response_json,
            )
        )
        try:
            db.commit()
        except IntegrityError:
            # a concurrent request with the same key stored first
            db.rollback()
