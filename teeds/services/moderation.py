from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from sqlalchemy.orm import Session

from teeds.errors import NotFoundError, ValidationError
from teeds.logging import AuditLogger, log_event
from teeds.models import Design, Vote

MAX_CANDIDATES = 5


@dataclass(frozen=True)
class FlagResult:
    design_id: str
    flagged: bool
    moved_to: str | None
    votes_moved: int
    votes_deleted: int

    def to_dict(self) -> dict:
        return {
            "designId": self.design_id,
            "flagged": self.flagged,
            "movedTo": self.moved_to,
            "votesMoved": self.votes_moved,
            "votesDeleted": self.votes_deleted,
        }


class ModerationService:
    def __init__(self, session: Session, audit: AuditLogger | None = None) -> None:
        self.session = session
        self.audit = audit or AuditLogger(session)

    def flag_design(self, design_id: object, flag: object = True, actor: str = "admin") -> FlagResult:
        identifier = str(design_id).strip() if design_id is not None else ""
        if not identifier:
            raise ValidationError("Missing designId")
        if flag is None:
            flag = True
        if not isinstance(flag, bool):
            raise ValidationError("flag must be a boolean")
        design = self.session.get(Design, identifier)
        if design is None:
            raise NotFoundError("Design not found")

        design.is_flagged = flag
        moved_to = None
        moved = deleted = 0
        if flag:
            moved_to = self._replacement_for(design)
            moved, deleted = self._redistribute(design.id, moved_to)
        self.session.commit()

        result = FlagResult(design.id, flag, moved_to, moved, deleted)
        self.audit.record_flag(design.id, actor, flag, moved_to, moved, deleted)
        log_event("moderation", "flag_design", "flagged" if flag else "unflagged", metadata=result.to_dict())
        return result

    def _replacement_for(self, design: Design) -> str | None:
        rows = (
            self.session.query(Vote.design_id)
            .filter(Vote.modality == design.modality, Vote.design_id != design.id)
            .order_by(Vote.created_at.asc())
            .all()
        )
        counts = Counter(row.design_id for row in rows)
        candidates = [candidate for candidate, _ in counts.most_common(MAX_CANDIDATES)]
        if not candidates:
            return None
        flagged_by_id = {
            row.id: row.is_flagged
            for row in self.session.query(Design.id, Design.is_flagged).filter(Design.id.in_(candidates)).all()
        }
        for candidate in candidates:
            if candidate in flagged_by_id and not flagged_by_id[candidate]:
                return candidate
        return None

    def _redistribute(self, design_id: str, target_id: str | None) -> tuple[int, int]:
        votes = self.session.query(Vote).filter_by(design_id=design_id).all()
        if target_id is None:
            for vote in votes:
                self.session.delete(vote)
            return 0, len(votes)

        target_voters = {
            row.voter_id for row in self.session.query(Vote.voter_id).filter_by(design_id=target_id).all()
        }
        moved = deleted = 0
        for vote in votes:
            # One vote per voter per design: a voter already backing the target loses the duplicate.
            if vote.voter_id in target_voters:
                self.session.delete(vote)
                deleted += 1
            else:
                vote.design_id = target_id
                moved += 1
        return moved, deleted
