"""Employment contracts routed through the generic approval process."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.api.v1.approval_processes.service import ensure_can_view_document, load_document, start_process
from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.effects import PostCommitEffects
from hr_approval.core.enums import DocumentStatus, DocumentType
from hr_approval.core.exceptions import AccessDeniedError, InvalidStateError
from hr_approval.core.models import EmploymentContract
from hr_approval.core.unit_of_work import run_action

from .schemas import ContractCreate, ContractResponse

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = frozenset({DocumentStatus.DRAFT.value, DocumentStatus.REJECTED.value})


async def create_contract(db: AsyncSession, creator_id: str, payload: ContractCreate) -> ContractResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> ContractResponse:
        await directory.get_user(creator_id)
        await directory.get_user(payload.employee_id)
        contract = EmploymentContract(
            creator_id=creator_id,
            employee_id=payload.employee_id,
            title=payload.title.strip(),
            form_data=payload.form_data,
            status=DocumentStatus.DRAFT.value,
            signatures={},
            printable=False,
        )
        db.add(contract)
        await db.flush()
        return ContractResponse.model_validate(contract)

    return await run_action(db, _action, name="contract.create")


async def get_contract(db: AsyncSession, contract_id: int, viewer_id: str) -> ContractResponse:
    contract = await load_document(db, DocumentType.EMPLOYMENT_CONTRACT, contract_id)
    await ensure_can_view_document(db, contract, viewer_id)
    return ContractResponse.model_validate(contract)


async def submit_contract(
    db: AsyncSession,
    contract_id: int,
    actor_id: str,
    approval_line_id: int,
    substitute_id: Optional[str] = None,
) -> ContractResponse:
    """Start a fresh approval process for a DRAFT or REJECTED contract."""

    async def _action(effects: PostCommitEffects) -> ContractResponse:
        contract = await load_document(db, DocumentType.EMPLOYMENT_CONTRACT, contract_id, for_update=True)
        if contract.creator_id != actor_id:
            raise AccessDeniedError("Only the creator can submit this contract")
        if contract.status not in EDITABLE_STATUSES:
            raise InvalidStateError(f"Contract cannot be submitted in status {contract.status}")
        process = await start_process(
            db,
            DocumentType.EMPLOYMENT_CONTRACT,
            contract,
            approval_line_id,
            actor_id,
            substitute_id=substitute_id,
        )
        effects.notify(contract.current_approver_id, "document_approval_requested", process_id=process.id, document_id=contract.id)
        await db.flush()
        return ContractResponse.model_validate(contract)

    return await run_action(db, _action, name="contract.submit")


async def delete_contract(db: AsyncSession, contract_id: int, actor_id: str) -> None:
    async def _action(effects: PostCommitEffects) -> None:
        contract = await load_document(db, DocumentType.EMPLOYMENT_CONTRACT, contract_id, for_update=True)
        if contract.creator_id != actor_id:
            raise AccessDeniedError("Only the creator can delete this contract")
        if contract.status != DocumentStatus.DRAFT.value:
            raise InvalidStateError("Only draft contracts can be deleted")
        contract.status = DocumentStatus.DELETED.value
        contract.updated_at = datetime.utcnow()
        await db.flush()
        logger.info("Contract deleted", extra={"document_id": contract.id})

    await run_action(db, _action, name="contract.delete")
