"""
Attachments API — implementation mappings and evidence on decisions and rules.

Both record types are polymorphic: the path segment selects the target kind
and the uid identifies the decision or rule they hang off.
"""

from enum import Enum

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from policy_trace.api.deps import evidence_or_404, get_db, mapping_or_404
from policy_trace.models import TargetType
from policy_trace.schemas.schemas import (
    AttachmentsResponse,
    EvidenceCreate,
    EvidenceSchema,
    MappingCreate,
    MappingSchema,
)
from policy_trace.services.records import RecordService
from policy_trace.services.traversal import (
    AttachmentTarget,
    list_evidence,
    list_mappings,
    resolve_target,
)

router = APIRouter(prefix="/api", tags=["attachments"])


class TargetCollection(str, Enum):
    DECISIONS = "decisions"
    RULES = "rules"


_COLLECTION_TARGETS = {
    TargetCollection.DECISIONS: TargetType.DECISION,
    TargetCollection.RULES: TargetType.RULE,
}


async def _target_or_404(db: AsyncSession, collection: TargetCollection, uid: str) -> AttachmentTarget:
    target = AttachmentTarget(_COLLECTION_TARGETS[collection], uid)
    if await resolve_target(db, target) is None:
        raise HTTPException(
            status_code=404,
            detail=f"{target.kind.value.capitalize()} {uid} not found",
        )
    return target


# ── GET /api/{decisions|rules}/{uid}/attachments ─────────────────────────────

@router.get("/{collection}/{target_uid}/attachments", response_model=AttachmentsResponse)
async def get_attachments(
    collection: TargetCollection,
    target_uid: str,
    db: AsyncSession = Depends(get_db),
):
    """Mappings and evidence attached to one decision or rule, oldest first."""
    target = await _target_or_404(db, collection, target_uid)
    return AttachmentsResponse(
        mappings=[MappingSchema.model_validate(m) for m in await list_mappings(db, target)],
        evidence=[EvidenceSchema.model_validate(e) for e in await list_evidence(db, target)],
    )


# ── POST /api/{decisions|rules}/{uid}/mappings ───────────────────────────────

@router.post("/{collection}/{target_uid}/mappings", response_model=MappingSchema, status_code=201)
async def add_mapping(
    collection: TargetCollection,
    target_uid: str,
    body: MappingCreate,
    db: AsyncSession = Depends(get_db),
):
    target = await _target_or_404(db, collection, target_uid)
    mapping = await RecordService(db).create_mapping(
        target, ref=body.ref, type=body.type, notes=body.notes,
    )
    return MappingSchema.model_validate(mapping)


# ── POST /api/{decisions|rules}/{uid}/evidence ───────────────────────────────

@router.post("/{collection}/{target_uid}/evidence", response_model=EvidenceSchema, status_code=201)
async def add_evidence(
    collection: TargetCollection,
    target_uid: str,
    body: EvidenceCreate,
    db: AsyncSession = Depends(get_db),
):
    target = await _target_or_404(db, collection, target_uid)
    evidence = await RecordService(db).create_evidence(
        target, ref=body.ref, kind=body.kind, status=body.status, notes=body.notes,
    )
    return EvidenceSchema.model_validate(evidence)


# ── DELETE /api/mappings/{uid}, /api/evidence/{uid} ──────────────────────────

@router.delete("/mappings/{mapping_uid}", status_code=204)
async def delete_mapping(mapping_uid: str, db: AsyncSession = Depends(get_db)):
    mapping = await mapping_or_404(db, mapping_uid)
    await RecordService(db).delete_mapping(mapping)
    return Response(status_code=204)


@router.delete("/evidence/{evidence_uid}", status_code=204)
async def delete_evidence(evidence_uid: str, db: AsyncSession = Depends(get_db)):
    evidence = await evidence_or_404(db, evidence_uid)
    await RecordService(db).delete_evidence(evidence)
    return Response(status_code=204)
