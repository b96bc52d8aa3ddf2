"""Final approval (전결): one senior decision settles every remaining step.

Later steps that already carry a real signature keep it; only empty slots get
a skip placeholder attributed to the final approver.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from hr_approval.core.exceptions import SignatureConflictError
from hr_approval.core.signatures import SignatureEntry, SignatureLedger

logger = logging.getLogger(__name__)

FINALIZED_TEXT = "finalized"


@dataclass(frozen=True)
class FinalApprover:
    user_id: str
    user_name: str


def finalized_reason(actor: FinalApprover) -> str:
    return f"finalized by {actor.user_name}"


def skip_placeholder(actor: FinalApprover) -> SignatureEntry:
    return SignatureEntry(
        text=FINALIZED_TEXT,
        image_url=None,
        is_signed=False,
        signer_id=actor.user_id,
        signer_name=actor.user_name,
        is_skipped=True,
        skipped_by=actor.user_id,
        skipped_by_name=actor.user_name,
        skipped_reason=finalized_reason(actor),
    )


def apply_final_approval(
    ledger: SignatureLedger,
    *,
    actor: FinalApprover,
    decision_slot: str,
    decision: Optional[SignatureEntry],
    later_slots: Sequence[str],
) -> List[str]:
    """Record the final approver's signature and placeholder every unsigned later slot.

    Returns the slots that received a placeholder. A different signer already
    holding `decision_slot` keeps their entry; `decision` None records nothing
    for the current step (review-only steps).
    """
    if decision is not None:
        try:
            ledger.record(decision_slot, decision)
        except SignatureConflictError as e:
            logger.info(
                "Keeping existing signature on final approval",
                extra={"slot": e.slot, "existing_signer_id": e.existing_signer_id, "actor_id": actor.user_id},
            )
    placed = []
    for slot in later_slots:
        if ledger.mark_skipped(slot, skip_placeholder(actor)):
            placed.append(slot)
    return placed
