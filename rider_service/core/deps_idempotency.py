from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from rider_service.db.session import get_db
from rider_service.core.auth_deps import get_current_principal
from rider_service.policies.rbac import Principal
from rider_service.services.idempotency_service import IdempotencyScope, IdempotencyService


async def optional_idempotency_key(request: Request) -> Optional[str]:
    key = request.headers.get("Idempotency-Key")
    if key is not None and len(key) > 128:
        raise HTTPException(status_code=400, detail="Idempotency-Key too long.")
    return key or None


async def idempotency_guard(
    request: Request,
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Optional[str]:
    """
    Use on mutating acknowledgment endpoints.

    Stores in request.state:
      - idempotency_scope (None without a key)
      - idempotency_request_hash
      - idempotency_replay_json / idempotency_replay_status (set on replay)
    """
    request.state.idempotency_scope = None
    request.state.idempotency_replay_json = None
    request.state.idempotency_replay_status = None
    if idem_key is None:
        return None

    scope = IdempotencyScope(
        scope_key=str(request.path_params.get("acknowledgmentId") or "acknowledgments"),
        user_id=principal.user_id,
        endpoint_key=f"{request.method}:{request.url.path}",
        idem_key=idem_key,
    )

    # body is cached by Starlette; routes without one hash as {}
    try:
        payload = await request.json()
    except ValueError:
        payload = {}

    try:
        replay_json, replay_status, req_hash = IdempotencyService().reserve_or_replay(
            db,
            scope,
            payload if isinstance(payload, dict) else {"_": payload},
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    request.state.idempotency_scope = scope
    request.state.idempotency_request_hash = req_hash
    request.state.idempotency_replay_json = replay_json
    request.state.idempotency_replay_status = replay_status

    return idem_key


def replay_response(request: Request) -> Optional[JSONResponse]:
    body = getattr(request.state, "idempotency_replay_json", None)
    if body is None:
        return None
    return JSONResponse(content=body, status_code=request.state.idempotency_replay_status or 200)


def remember_response(
    request: Request,
    db: Session,
    principal: Principal,
    response_json: Dict[str, Any],
    status_code: int = 200,
) -> Dict[str, Any]:
    scope = getattr(request.state, "idempotency_scope", None)
    if scope is None:
        return response_json

    IdempotencyService().store_response(
        db,
        scope,
        request_hash=request.state.idempotency_request_hash,
        response_json=response_json,
        response_status=status_code,
    )
    return response_json
