from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teeds.errors import NotFoundError, ValidationError
from teeds.logging import log_event
from teeds.models import ContestSetting, Design, Vote
from teeds.services.timeline import MODALITIES, ContestTimeline


class VoteService:
    def __init__(
        self,
        session: Session,
        timeline: ContestTimeline | None = None,
        default_limit: int = 1,
    ) -> None:
        self.session = session
        self.timeline = timeline
        self.default_limit = default_limit

    def vote_limits(self) -> Mapping[str, int]:
        rows = self.session.query(ContestSetting).all()
        parsed: dict[str, float] = {}
        for row in rows:
            try:
                value = float(row.value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(value):
                parsed[row.key] = value
        limits = {}
        for modality in MODALITIES:
            for key in (f"votes_per_{modality}", f"votes_{modality}", "default"):
                if key in parsed:
                    limits[modality] = max(int(parsed[key]), 0)
                    break
            else:
                limits[modality] = self.default_limit
        return limits

    def vote_limit(self, modality: str) -> int:
        return self.vote_limits().get(modality, self.default_limit)

    def used_votes(self, voter_id: str) -> Mapping[str, int]:
        rows = (
            self.session.query(Vote.modality, func.count(Vote.id))
            .filter(Vote.voter_id == voter_id)
            .group_by(Vote.modality)
            .all()
        )
        return {modality: count for modality, count in rows}

    def cast_vote(
        self,
        voter_id: str,
        design_id: object,
        modality: object = None,
        now: datetime | None = None,
    ) -> Vote:
        moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        identifier = str(design_id).strip() if design_id is not None else ""
        if not identifier:
            raise ValidationError("designId required")
        if self.timeline is not None and not self.timeline.voting_open_at(moment):
            raise ValidationError("Voting is not open")

        design = self.session.get(Design, identifier)
        if design is None or design.is_flagged:
            raise NotFoundError("Design not found")
        requested = str(modality).strip() if modality is not None else ""
        if requested and requested != design.modality:
            raise ValidationError("Modality does not match design")

        already = self.session.query(Vote).filter_by(voter_id=voter_id, design_id=design.id).first()
        if already is not None:
            raise ValidationError("You already voted for this design")
        used = self.used_votes(voter_id).get(design.modality, 0)
        if used >= self.vote_limit(design.modality):
            raise ValidationError("Vote limit reached for this modality")

        vote = Vote(voter_id=voter_id, design_id=design.id, modality=design.modality, created_at=moment)
        self.session.add(vote)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationError("You already voted for this design") from exc
        self.session.refresh(vote)
        log_event("votes", "cast", "recorded", metadata={"design_id": design.id, "modality": design.modality})
        return vote

    def vote_status(self, voter_id: str, now: datetime | None = None) -> Mapping[str, Any]:
        limits = self.vote_limits()
        used = self.used_votes(voter_id)
        return {
            "votingOpen": self.timeline.voting_open_at(now) if self.timeline is not None else True,
            "limits": dict(limits),
            "used": {modality: used.get(modality, 0) for modality in MODALITIES},
            "remaining": {modality: max(limits[modality] - used.get(modality, 0), 0) for modality in MODALITIES},
        }
