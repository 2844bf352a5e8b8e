from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Sequence

MODALITIES: Mapping[str, str] = {
    "online": "TDS Online Student",
    "in-person": "TDS In-Person Student",
}


def modality_label(value: str) -> str:
    return MODALITIES.get(value, value)


@dataclass(frozen=True)
class TimelineEvent:
    id: str
    at: datetime
    title: str

    def to_dict(self) -> dict:
        return {"id": self.id, "date": self.at.isoformat(), "title": self.title}


class ContestTimeline:
    def __init__(
        self,
        submissions_open: datetime,
        submissions_close: datetime,
        voting_opens: datetime,
        voting_closes: datetime,
    ) -> None:
        if not submissions_open <= submissions_close <= voting_opens <= voting_closes:
            raise ValueError("Timeline milestones must be in chronological order")
        self.submissions_open = submissions_open
        self.submissions_close = submissions_close
        self.voting_opens = voting_opens
        self.voting_closes = voting_closes

    @classmethod
    def from_settings(cls, settings) -> "ContestTimeline":
        return cls(
            settings.submissions_open_at,
            settings.submissions_close_at,
            settings.voting_opens_at,
            settings.voting_closes_at,
        )

    def phase(self, now: datetime | None = None) -> str:
        moment = now or datetime.now(timezone.utc)
        if moment < self.submissions_open:
            return "upcoming"
        if moment <= self.submissions_close:
            return "submissions"
        if moment < self.voting_opens:
            return "review"
        if moment <= self.voting_closes:
            return "voting"
        return "closed"

    def submissions_open_at(self, now: datetime | None = None) -> bool:
        return self.phase(now) == "submissions"

    def voting_open_at(self, now: datetime | None = None) -> bool:
        return self.phase(now) == "voting"

    def events(self) -> Sequence[TimelineEvent]:
        return (
            TimelineEvent("start", self.submissions_open, "Contest starts"),
            TimelineEvent("deadline", self.submissions_close, "Submissions close"),
            TimelineEvent("voting", self.voting_opens, "Voting window opens"),
            TimelineEvent("results", self.voting_closes, "Voting closes"),
        )
