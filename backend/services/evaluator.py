"""Compliance evaluation of a coverage snapshot against a requirement template.

`evaluate` is a pure function: it reads nothing but its arguments, so the
same snapshot, requirement and `now` always give the same result. Every
check runs independently and all failures are collected.

The requirement can be a `RequirementTemplate` row or any object with the
same attribute names (e.g. `schemas.requirements.RequirementFields`).
"""

from datetime import datetime

from data.coverage_lines import COVERAGE_LINE_RULES, POLICY_FLAG_RULES
from schemas.common import (CoverageLine, CoverageSnapshot, Evaluation, PolicyFlag, Reason,
                            ReasonCode, Verdict)


def snapshot_problems(snapshot: CoverageSnapshot) -> dict[str, str]:
    """Return offending field -> problem for a structurally invalid snapshot"""
    problems = {}
    if not snapshot.coverage_types:
        problems["coverage_types"] = "No coverage types present on the certificate"
    if snapshot.effective_date >= snapshot.expiration_date:
        problems["expiration_date"] = "Expiration date must be after the effective date"
    return problems


def check_temporal_validity(snapshot: CoverageSnapshot, now: datetime) -> list[Reason]:
    if snapshot.effective_date <= now < snapshot.expiration_date:
        return []
    if now < snapshot.effective_date:
        message = f"Coverage is not effective until {snapshot.effective_date.date().isoformat()}"
    else:
        message = f"Coverage expired on {snapshot.expiration_date.date().isoformat()}"
    return [Reason(code=ReasonCode.EXPIRED_OR_NOT_YET_EFFECTIVE, message=message)]


def check_limits(snapshot: CoverageSnapshot, requirement) -> list[Reason]:
    reasons = []
    for line, rule in COVERAGE_LINE_RULES.items():
        minimum = getattr(requirement, rule["requirement_field"])
        required_flag = rule.get("required_flag")
        flagged = bool(getattr(requirement, required_flag)) if required_flag else False
        if minimum is None and not flagged:
            continue
        if minimum is None:
            minimum = 0

        provided = getattr(snapshot, rule["snapshot_field"])
        if provided is None:
            message = f"{rule['name']} not shown; ${minimum:,} required"
        elif provided < minimum:
            message = f"{rule['name']} is ${provided:,} but ${minimum:,} is required"
        else:
            continue
        reasons.append(Reason(
            code=ReasonCode.LIMIT_BELOW_MINIMUM,
            line=CoverageLine(line),
            required=minimum,
            provided=provided,
            message=message,
        ))
    return reasons


def check_flags(snapshot: CoverageSnapshot, requirement) -> list[Reason]:
    reasons = []
    for flag, rule in POLICY_FLAG_RULES.items():
        if not getattr(requirement, rule["requirement_field"]):
            continue
        if getattr(snapshot, rule["snapshot_field"]):
            continue
        reasons.append(Reason(
            code=ReasonCode.MISSING_FLAG,
            flag=PolicyFlag(flag),
            message=f"{rule['name']} is required but not indicated on the certificate",
        ))
    return reasons


def check_notice_of_cancellation(snapshot: CoverageSnapshot, requirement) -> list[Reason]:
    minimum = requirement.notice_of_cancellation_min_days
    if minimum is None:
        return []
    provided = snapshot.notice_of_cancellation_days
    if provided is not None and provided >= minimum:
        return []
    shown = f"{provided} days" if provided is not None else "not shown"
    return [Reason(
        code=ReasonCode.NOTICE_TOO_SHORT,
        required=minimum,
        provided=provided,
        message=f"Notice of cancellation is {shown}; {minimum} days required",
    )]


def evaluate(snapshot: CoverageSnapshot, requirement, now: datetime) -> Evaluation:
    """Compare a snapshot with a requirement as of `now`.

    An invalid snapshot short-circuits to FAIL with a single INVALID_SNAPSHOT
    reason. Otherwise the result is the union of the temporal, limit, flag
    and notice checks; the verdict is PASS only when that union is empty.
    """
    problems = snapshot_problems(snapshot)
    if problems:
        reasons = [Reason(
            code=ReasonCode.INVALID_SNAPSHOT,
            message="; ".join(f"{field}: {problem}" for field, problem in sorted(problems.items())),
        )]
        return Evaluation(verdict=Verdict.FAIL, reasons=reasons, evaluated_at=now)

    reasons = []
    reasons.extend(check_temporal_validity(snapshot, now))
    reasons.extend(check_limits(snapshot, requirement))
    reasons.extend(check_flags(snapshot, requirement))
    reasons.extend(check_notice_of_cancellation(snapshot, requirement))

    verdict = Verdict.PASS if not reasons else Verdict.FAIL
    return Evaluation(verdict=verdict, reasons=reasons, evaluated_at=now)
