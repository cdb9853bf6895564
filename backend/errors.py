"""Typed failures raised by the compliance engine.

Every error carries a stable ``code`` and a ``details`` dict so the API
layer can render a user-facing message without parsing text.
"""

from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


def build_error_payload(code: str, message: str, details: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class COIEngineError(Exception):
    """Base exception for all engine errors."""

    code = "ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        return build_error_payload(self.code, self.message, self.details)


class BadRequest(COIEngineError):
    """Raised for caller input the schemas cannot reject on their own."""

    code = "BAD_REQUEST"
    status_code = 400


class NotFound(COIEngineError):
    """Raised when a building, template or COI does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "entity_id": entity_id})


class NoActiveRequirement(COIEngineError):
    """Raised when a building has no active requirement template. Never a pass."""

    code = "NO_ACTIVE_REQUIREMENT"
    status_code = 409

    def __init__(self, building_id: int):
        super().__init__(
            f"Building {building_id} has no active requirement template; the COI cannot be evaluated",
            {"building_id": building_id},
        )
        self.building_id = building_id


class InvalidSnapshot(COIEngineError):
    """Raised when a coverage snapshot has no coverage types or a bad date range."""

    code = "INVALID_SNAPSHOT"
    status_code = 422

    def __init__(self, problems: dict[str, str]):
        fields = ", ".join(sorted(problems))
        super().__init__(f"Coverage snapshot is invalid: {fields}", {"fields": problems})
        self.problems = problems


class InvalidTransition(COIEngineError):
    """Raised when a status change is not allowed from the current status."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, coi_id: Optional[int], current: str, target: str):
        super().__init__(
            f"COI {coi_id} cannot move from {current} to {target}",
            {"coi_id": coi_id, "from": current, "to": target},
        )
        self.current = current
        self.target = target


class OverrideReasonRequired(COIEngineError):
    """Raised when a reviewer approves a failing COI without an override note."""

    code = "OVERRIDE_REASON_REQUIRED"
    status_code = 422

    def __init__(self, coi_id: int, reasons: list[dict[str, Any]]):
        super().__init__(
            f"COI {coi_id} fails {len(reasons)} requirement(s); approving it needs an override note",
            {"coi_id": coi_id, "reasons": reasons},
        )
        self.reasons = reasons


class DuplicateReminder(COIEngineError):
    """Signals a reminder that was already recorded. Treated as a no-op."""

    code = "DUPLICATE_REMINDER"
    status_code = 200

    def __init__(self, coi_id: int, kind: str, tag: str):
        super().__init__(f"Reminder {kind}/{tag} already sent for COI {coi_id}",
                         {"coi_id": coi_id, "kind": kind, "tag": tag})


class LedgerBusy(COIEngineError):
    """Signals a reminder claim that lost the write lock to another tick. Retried next tick."""

    code = "LEDGER_BUSY"
    status_code = 503

    def __init__(self, coi_id: int, kind: str, tag: str):
        super().__init__(f"Reminder ledger is locked; {kind}/{tag} for COI {coi_id} left for the next tick",
                         {"coi_id": coi_id, "kind": kind, "tag": tag})


class DeliveryError(COIEngineError):
    """Raised by a notifier when a reminder could not be handed off."""

    code = "DELIVERY_FAILED"
    status_code = 502


async def engine_error_handler(_: Request, exc: COIEngineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
