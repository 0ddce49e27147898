from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SigningTaskState(StrEnum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"


SIGNING_TASK_ALLOWED_TRANSITIONS: dict[SigningTaskState, set[SigningTaskState]] = {
    SigningTaskState.PENDING: {SigningTaskState.SIGNED, SigningTaskState.REJECTED},
    SigningTaskState.SIGNED: set(),
    SigningTaskState.REJECTED: set(),
}


def can_signing_task_transition(source: SigningTaskState, target: SigningTaskState) -> bool:
    return target in SIGNING_TASK_ALLOWED_TRANSITIONS.get(source, set())


class DocumentStatus(StrEnum):
    DRAFT = "DRAFT"
    SIGNED = "SIGNED"
    RETURNED = "RETURNED"


class DocumentKind(StrEnum):
    ORDER = "ORDER"
    REGULARITY_CERTIFICATE = "REGULARITY_CERTIFICATE"
    COMMITMENT_NOTE = "COMMITMENT_NOTE"
    SETTLEMENT_NOTE = "SETTLEMENT_NOTE"
    PAYMENT_ORDER = "PAYMENT_ORDER"
    EXCEPTIONAL_AUTHORIZATION = "EXCEPTIONAL_AUTHORIZATION"
    LEGAL_OPINION = "LEGAL_OPINION"
    LEGAL_DECISION = "LEGAL_DECISION"
    LEGAL_ORDER = "LEGAL_ORDER"
    LEGAL_CERTIFICATE = "LEGAL_CERTIFICATE"


LEGAL_DOCUMENT_KINDS: frozenset[DocumentKind] = frozenset(
    {
        DocumentKind.LEGAL_OPINION,
        DocumentKind.LEGAL_DECISION,
        DocumentKind.LEGAL_ORDER,
        DocumentKind.LEGAL_CERTIFICATE,
    }
)


class ProcessWorkflowState(StrEnum):
    AWAITING_FINANCE_SIGNATURE = "AWAITING_FINANCE_SIGNATURE"
    SIGNED_BY_FINANCE = "SIGNED_BY_FINANCE"
    AUTHORIZED_BY_ORDERER = "AUTHORIZED_BY_ORDERER"
    LEGAL_DOCUMENT_SIGNED = "LEGAL_DOCUMENT_SIGNED"
    RETURNED_TO_REQUESTER = "RETURNED_TO_REQUESTER"


class RouteBranch(StrEnum):
    EXCEPTIONAL_AUTHORIZATION = "EXCEPTIONAL_AUTHORIZATION"
    LEGAL_ADVISORY = "LEGAL_ADVISORY"
    FINANCE_APPROVAL = "FINANCE_APPROVAL"


@dataclass(frozen=True)
class ProcessRoute:
    branch: RouteBranch
    status: str
    workflow_state: ProcessWorkflowState


def route_for_document_kind(kind: DocumentKind) -> ProcessRoute:
    if kind == DocumentKind.EXCEPTIONAL_AUTHORIZATION:
        return ProcessRoute(
            branch=RouteBranch.EXCEPTIONAL_AUTHORIZATION,
            status="AUTHORIZED_BY_ORDERER",
            workflow_state=ProcessWorkflowState.AUTHORIZED_BY_ORDERER,
        )
    if kind in LEGAL_DOCUMENT_KINDS:
        return ProcessRoute(
            branch=RouteBranch.LEGAL_ADVISORY,
            status="DOCUMENT_SIGNED",
            workflow_state=ProcessWorkflowState.LEGAL_DOCUMENT_SIGNED,
        )
    return ProcessRoute(
        branch=RouteBranch.FINANCE_APPROVAL,
        status="APPROVED",
        workflow_state=ProcessWorkflowState.SIGNED_BY_FINANCE,
    )
