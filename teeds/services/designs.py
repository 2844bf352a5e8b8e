from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.orm import Session

from teeds.errors import NotFoundError, StorageError, UpstreamError, ValidationError
from teeds.logging import get_logger, log_event
from teeds.models import Design, User, Vote
from teeds.services.storage import BlobStore, clean_storage_path
from teeds.services.timeline import MODALITIES, ContestTimeline

logger = get_logger("services.designs")

MAX_DESIGNS_PER_SUBMITTER = 2


def serialize_design(design: Design, store: BlobStore | None = None) -> Mapping[str, Any]:
    payload = {
        "id": design.id,
        "filename": design.filename,
        "artwork_name": design.artwork_name,
        "modality": design.modality,
        "storage_path": design.storage_path,
        "submitted_at": design.submitted_at.isoformat() if design.submitted_at else None,
    }
    if store is not None:
        payload["public_url"] = store.public_url(design.storage_path)
    return payload


def _clean(value: object) -> str:
    return str(value).strip() if value is not None else ""


class DesignService:
    def __init__(self, session: Session, store: BlobStore, timeline: ContestTimeline | None = None) -> None:
        self.session = session
        self.store = store
        self.timeline = timeline

    def record_design(
        self,
        submitter_id: str,
        filename: object,
        artwork_name: object,
        modality: object,
        storage_path: object,
        now: datetime | None = None,
    ) -> Design:
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        fields = {
            "filename": _clean(filename),
            "artworkName": _clean(artwork_name),
            "modality": _clean(modality),
            "storagePath": _clean(storage_path),
        }
        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise ValidationError(f"{', '.join(missing)} required")
        if fields["modality"] not in MODALITIES:
            raise ValidationError("Unknown modality")
        try:
            clean_storage_path(fields["storagePath"])
        except StorageError as exc:
            raise ValidationError("Invalid storagePath") from exc
        if self.timeline is not None and not self.timeline.submissions_open_at(moment):
            raise ValidationError("Submissions are closed")

        existing = self.session.query(Design).filter_by(submitter_id=submitter_id).all()
        if len(existing) >= MAX_DESIGNS_PER_SUBMITTER:
            raise ValidationError("You already have two designs uploaded. Delete one to continue.")
        existing_modalities = {row.modality for row in existing}
        if existing_modalities and existing_modalities != {fields["modality"]}:
            raise ValidationError("All of your uploads must stay in the same modality unless you delete them first.")

        user = self.session.get(User, submitter_id)
        if user is None:
            raise ValidationError("User metadata missing")

        asurite = (user.asu_id or "").strip() or (user.email or "").split("@")[0] or None
        design = Design(
            submitter_id=submitter_id,
            filename=fields["filename"],
            artwork_name=fields["artworkName"],
            modality=fields["modality"],
            storage_path=fields["storagePath"],
            student_name=user.full_name,
            major=user.discipline,
            year_level=None,
            asurite=asurite,
            submitted_at=moment,
        )
        self.session.add(design)
        self.session.commit()
        self.session.refresh(design)
        log_event("designs", "record", "stored", metadata={"design_id": design.id, "modality": design.modality})
        return design

    def delete_design(self, submitter_id: str, design_id: object, storage_path: object = None) -> None:
        identifier = _clean(design_id)
        if not identifier:
            raise ValidationError("designId required")
        design = self.session.query(Design).filter_by(id=identifier, submitter_id=submitter_id).first()
        if design is None:
            raise NotFoundError("Design not found")
        requested_path = _clean(storage_path)
        if requested_path and requested_path != design.storage_path:
            raise ValidationError("storagePath does not match design")

        try:
            self.store.remove([design.storage_path])
        except StorageError as exc:
            logger.error("Blob removal failed for design_id=%s: %s", design.id, exc)
            raise UpstreamError("Unable to delete design") from exc

        self.session.query(Vote).filter_by(design_id=design.id).delete(synchronize_session=False)
        self.session.delete(design)
        self.session.commit()
        log_event("designs", "delete", "removed", metadata={"design_id": identifier})

    def list_gallery(self, modality: object = None) -> list[Design]:
        query = self.session.query(Design).filter(Design.is_flagged.is_(False))
        selected = _clean(modality)
        if selected:
            if selected not in MODALITIES:
                raise ValidationError("Unknown modality")
            query = query.filter(Design.modality == selected)
        return query.order_by(Design.submitted_at.desc()).all()

    def list_for_submitter(self, submitter_id: str) -> list[Design]:
        return (
            self.session.query(Design)
            .filter_by(submitter_id=submitter_id)
            .order_by(Design.submitted_at.desc())
            .all()
        )
