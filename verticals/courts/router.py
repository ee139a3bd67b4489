"""Courts API router: rule evaluation, booking, and rule config endpoints.

- Pre-flight validation and admin override evaluation
- Booking create / override / cancel / no-show via BookingService
- Lockout check for admin tooling
- Rule catalog and facility rule config management
- Facility scoping via middleware (X-Facility-ID)
- Engine, service, and repository injection via FastAPI Depends
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.middleware import get_current_facility, require_facility
from verticals.courts.catalog import DEFINITIONS_BY_CODE, list_definitions
from verticals.courts.engine import RulesEngine
from verticals.courts.errors import ConfigError, NotFoundError, TransientIOError
from verticals.courts.models.schemas import (
    BookingCreate,
    CancellationCheck,
    CancellationCreate,
    CancellationResponse,
    EvaluationResponse,
    LockoutResponse,
    NoShowCreate,
    OverrideCreate,
    OverrideEvaluationResponse,
    RuleConfigUpsert,
)
from verticals.courts.repository import (
    RuleConfigRepository,
    get_booking_service,
    get_rule_config_repository,
    get_rules_engine,
)
from verticals.courts.service import BookingService
from verticals.courts.types import (
    AdminOverride,
    BookingRequest,
    CancellationEvaluation,
    CancellationRequest,
)

router = APIRouter()


@contextmanager
def engine_errors() -> Iterator[None]:
    """Translate engine exceptions into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TransientIOError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _booking_request(body: BookingCreate, facility_id: str) -> BookingRequest:
    return BookingRequest(
        user_id=body.user_id,
        court_id=body.court_id,
        facility_id=facility_id,
        booking_date=body.booking_date,
        start_time=body.start_time,
        end_time=body.end_time,
        booking_type=body.booking_type,
        activity_type=body.activity_type,
        notes=body.notes,
    )


def _override(body: OverrideCreate) -> AdminOverride:
    return AdminOverride(
        admin_id=body.admin_id,
        reason=body.reason,
        override_rule_codes=tuple(body.override_rule_codes),
    )


def _cancellation_body(evaluation: CancellationEvaluation) -> dict:
    return {
        "allowed": evaluation.allowed,
        "is_late_cancel": evaluation.is_late_cancel,
        "strike_will_be_issued": evaluation.strike_will_be_issued,
        "minutes_before_start": evaluation.minutes_before_start,
        "message": evaluation.message,
        "cutoff_minutes": evaluation.cutoff_minutes,
        "penalty_type": evaluation.penalty_type.value,
    }


# ============================================================================
# Evaluation Endpoints
# ============================================================================

@router.post("/bookings/validate", response_model=EvaluationResponse)
async def validate_booking(
    body: BookingCreate,
    facility_id: str = Depends(require_facility),
    engine: RulesEngine = Depends(get_rules_engine),
):
    """Run every enabled rule against a proposed booking. Writes nothing."""
    with engine_errors():
        result = await engine.evaluate(_booking_request(body, facility_id))
    return result.to_dict()


@router.post("/bookings/validate-override", response_model=OverrideEvaluationResponse)
async def validate_override(
    body: OverrideCreate,
    facility_id: str = Depends(require_facility),
    engine: RulesEngine = Depends(get_rules_engine),
):
    """Evaluate with an admin override and return the audit that would be stored."""
    with engine_errors():
        result = await engine.evaluate_with_override(
            _booking_request(body, facility_id), _override(body)
        )
    return result.to_dict()


@router.post("/cancellations/evaluate", response_model=CancellationResponse)
async def evaluate_cancellation(
    body: CancellationCheck,
    facility_id: str = Depends(require_facility),
    engine: RulesEngine = Depends(get_rules_engine),
):
    """Preview whether a cancellation is late and what penalty applies."""
    with engine_errors():
        evaluation = await engine.evaluate_cancellation(
            CancellationRequest(
                booking_id=body.booking_id,
                user_id=body.user_id,
                facility_id=facility_id,
                reason=body.reason,
            )
        )
    return _cancellation_body(evaluation)


@router.get("/strikes/check/{user_id}", response_model=LockoutResponse)
async def check_strikes(
    user_id: str,
    facility_id: Optional[str] = None,
    engine: RulesEngine = Depends(get_rules_engine),
):
    """Current strike count and lockout state for a user at a facility."""
    facility_id = facility_id or get_current_facility()
    if not facility_id:
        raise HTTPException(status_code=400, detail="facility_id is required")

    with engine_errors():
        status = await engine.check_lockout(user_id, facility_id)
    return {
        "user_id": user_id,
        "facility_id": facility_id,
        "is_locked_out": status.is_locked_out,
        "strike_count": status.strike_count,
        "threshold": status.threshold,
        "lockout_ends_at": status.lockout_ends_at,
    }


# ============================================================================
# Booking Endpoints
# ============================================================================

@router.post("/bookings", status_code=201)
async def create_booking(
    body: BookingCreate,
    facility_id: str = Depends(require_facility),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking if every rule passes and the slot is free."""
    with engine_errors():
        outcome = await service.create_booking(_booking_request(body, facility_id))
    if not outcome.success:
        raise HTTPException(
            status_code=409,
            detail={
                "error": outcome.error,
                "evaluation": outcome.evaluation.to_dict() if outcome.evaluation else None,
            },
        )
    return {
        "booking": outcome.booking,
        "warnings": [w.to_dict() for w in outcome.warnings],
    }


@router.post("/bookings/override", status_code=201)
async def create_booking_with_override(
    body: OverrideCreate,
    facility_id: str = Depends(require_facility),
    service: BookingService = Depends(get_booking_service),
):
    """Admin create that bypasses rule blockers. A taken slot still fails."""
    with engine_errors():
        outcome = await service.create_booking_with_override(
            _booking_request(body, facility_id), _override(body)
        )
    if not outcome.success:
        raise HTTPException(status_code=409, detail=outcome.error)
    return {"booking": outcome.booking, "override": outcome.override.to_dict()}


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    body: CancellationCreate,
    facility_id: str = Depends(require_facility),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking, recording the cancellation and any strike."""
    with engine_errors():
        outcome = await service.cancel_booking(
            CancellationRequest(
                booking_id=booking_id,
                user_id=body.user_id,
                facility_id=facility_id,
                reason=body.reason,
            )
        )
    if not outcome.success:
        raise HTTPException(status_code=409, detail=outcome.error)
    return {
        **_cancellation_body(outcome.evaluation),
        "cancellation_id": outcome.cancellation_id,
        "strike_id": outcome.strike_id,
    }


@router.post("/bookings/{booking_id}/no-show")
async def mark_no_show(
    booking_id: str,
    body: NoShowCreate,
    facility_id: str = Depends(require_facility),
    service: BookingService = Depends(get_booking_service),
):
    """Mark a booking as a no-show and issue a strike."""
    outcome = await service.mark_no_show(booking_id, facility_id, marked_by=body.marked_by)
    if not outcome.success:
        raise HTTPException(status_code=404, detail=outcome.error)
    return {"booking_id": booking_id, "strike_id": outcome.strike_id}


# ============================================================================
# Rule Catalog & Config Endpoints
# ============================================================================

@router.get("/rules/definitions")
async def get_rule_definitions(category: Optional[str] = None):
    """List the rule catalog, optionally filtered by category."""
    definitions = list_definitions(category)
    return {"data": definitions, "count": len(definitions)}


@router.get("/rules/configs")
async def list_rule_configs(
    rule_code: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    facility_id: str = Depends(require_facility),
    repo: RuleConfigRepository = Depends(get_rule_config_repository),
):
    """List this facility's rule config rows."""
    rows, total = await repo.list(
        facility_id=facility_id,
        page=page,
        limit=limit,
        filters={"rule_code": rule_code},
    )
    return {
        "data": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.get("/rules/configs/{rule_code}")
async def get_rule_config(
    rule_code: str,
    facility_id: str = Depends(require_facility),
    repo: RuleConfigRepository = Depends(get_rule_config_repository),
):
    """Rows configured for one rule, with the rule's system defaults."""
    definition = DEFINITIONS_BY_CODE.get(rule_code)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Rule not found: {rule_code}")
    rows = await repo.list_for_facility(facility_id, rule_code)
    return {
        "rule_code": rule_code,
        "rule_name": definition.name,
        "default_config": definition.config_model().model_dump(mode="json"),
        "data": rows,
    }


@router.put("/rules/configs/{rule_code}")
async def upsert_rule_config(
    rule_code: str,
    body: RuleConfigUpsert,
    facility_id: str = Depends(require_facility),
    repo: RuleConfigRepository = Depends(get_rule_config_repository),
):
    """Create or replace this facility's config row for a rule."""
    with engine_errors():
        row = await repo.upsert(facility_id, rule_code, body.model_dump())
    return row


@router.delete("/rules/configs/{rule_code}", status_code=204)
async def delete_rule_config(
    rule_code: str,
    facility_id: str = Depends(require_facility),
    repo: RuleConfigRepository = Depends(get_rule_config_repository),
):
    """Remove this facility's rows for a rule, reverting it to defaults."""
    deleted = await repo.delete_for_rule(facility_id, rule_code)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"No config for rule: {rule_code}")
