"""Aggregated submission, vote and attendance figures for the admin dashboard."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd
from sqlalchemy.orm import Session

from teeds.models import ContactMessage, Design, Rsvp, User, Vote
from teeds.services.timeline import modality_label

DESIGN_COLUMNS = (
    "id",
    "filename",
    "artwork_name",
    "student_name",
    "major",
    "year_level",
    "asurite",
    "modality",
    "storage_path",
    "is_flagged",
    "submitter_id",
)
VOTE_COLUMNS = ("design_id", "modality", "voter_id")
USER_COLUMNS = ("id", "email", "full_name", "asu_id", "discipline", "is_faculty", "created_at")
ENTRY_FIELDS = (
    "filename",
    "artwork_name",
    "student_name",
    "major",
    "year_level",
    "asurite",
    "modality",
    "storage_path",
)
LEADERBOARD_SIZE = 5
CONTACT_LIMIT = 50


def _frame(rows: Iterable[Any], columns: Sequence[str]) -> pd.DataFrame:
    records = [{column: getattr(row, column) for column in columns} for row in rows]
    return pd.DataFrame(records, columns=list(columns))


def _native(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.isoformat()
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if hasattr(value, "item"):
        return value.item()
    return value


class AnalyticsService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def summary(self) -> Mapping[str, Any]:
        designs = _frame(self.session.query(Design).all(), DESIGN_COLUMNS)
        votes = _frame(self.session.query(Vote).order_by(Vote.created_at.asc()).all(), VOTE_COLUMNS)
        users = _frame(self.session.query(User).order_by(User.created_at.desc()).all(), USER_COLUMNS)
        designs["is_flagged"] = designs["is_flagged"].eq(True)
        users["is_faculty"] = users["is_faculty"].eq(True)

        users_by_id = {row["id"]: row for row in self._records(users)}
        faculty_ids = set(users.loc[users["is_faculty"], "id"])

        leaderboard = self._leaderboard(designs, votes)
        return {
            "totals": self._totals(designs, votes),
            "leaderboard": leaderboard[:LEADERBOARD_SIZE],
            "topByModality": self._top_by_modality(leaderboard),
            "facultyLeaderboard": self._leaderboard(designs, votes[votes["voter_id"].isin(faculty_ids)]),
            "facultyCount": len(faculty_ids),
            "designVoteBreakdown": self._breakdown(designs, votes, users_by_id),
            "designs": [self._design_entry(row, users_by_id) for row in self._records(designs)],
            "users": self._records(users),
            "contacts": self._contacts(),
            "rsvpCounts": self._rsvp_counts(),
        }

    def _totals(self, designs: pd.DataFrame, votes: pd.DataFrame) -> list[Mapping[str, Any]]:
        design_counts = designs.groupby("modality").size()
        vote_counts = votes.groupby("modality").size()
        modalities = sorted(set(design_counts.index) | set(vote_counts.index))
        return [
            {
                "modality": modality,
                "label": modality_label(modality),
                "designs": int(design_counts.get(modality, 0)),
                "votes": int(vote_counts.get(modality, 0)),
            }
            for modality in modalities
        ]

    def _leaderboard(self, designs: pd.DataFrame, votes: pd.DataFrame) -> list[Mapping[str, Any]]:
        eligible = designs[~designs["is_flagged"]]
        merged = votes[["design_id"]].merge(eligible, left_on="design_id", right_on="id", how="inner")
        if merged.empty:
            return []
        counts = merged.groupby("design_id", sort=False).size().rename("total_votes").reset_index()
        ranked = counts.merge(eligible, left_on="design_id", right_on="id", how="left")
        ranked = ranked.sort_values("total_votes", ascending=False, kind="stable")
        entries = []
        for row in self._records(ranked):
            entry = {"design_id": row["design_id"]}
            entry.update({field: row[field] for field in ENTRY_FIELDS})
            entry["total_votes"] = row["total_votes"]
            entries.append(entry)
        return entries

    def _top_by_modality(self, leaderboard: Sequence[Mapping[str, Any]]) -> Mapping[str, Mapping[str, Any]]:
        top: dict[str, Mapping[str, Any]] = {}
        for entry in leaderboard:
            current = top.get(entry["modality"])
            if current is None or entry["total_votes"] > current["total_votes"]:
                top[entry["modality"]] = entry
        return top

    def _breakdown(
        self,
        designs: pd.DataFrame,
        votes: pd.DataFrame,
        users_by_id: Mapping[str, Mapping[str, Any]],
    ) -> list[Mapping[str, Any]]:
        vote_counts = votes.groupby("design_id").size()
        voters_by_design: dict[str, list[Mapping[str, Any]]] = {}
        for vote in self._records(votes):
            voter = users_by_id.get(vote["voter_id"])
            if voter is None:
                continue
            entries = voters_by_design.setdefault(vote["design_id"], [])
            if any(entry["id"] == voter["id"] for entry in entries):
                continue
            entries.append(
                {
                    "id": voter["id"],
                    "name": voter["full_name"] or voter["email"] or "Unknown voter",
                    "email": voter["email"] or "unknown",
                    "is_faculty": bool(voter["is_faculty"]),
                }
            )

        breakdown = []
        for row in self._records(designs):
            voters = voters_by_design.get(row["id"], [])
            faculty_voters = [
                {"id": voter["id"], "name": voter["name"], "email": voter["email"]}
                for voter in voters
                if voter["is_faculty"]
            ]
            breakdown.append(
                {
                    "design_id": row["id"],
                    "title": row["artwork_name"] or row["filename"],
                    "modality": row["modality"],
                    "total_votes": int(vote_counts.get(row["id"], 0)),
                    "faculty_votes": len(faculty_voters),
                    "faculty_voters": faculty_voters,
                    "voters": voters,
                }
            )
        breakdown.sort(key=lambda entry: entry["total_votes"], reverse=True)
        return breakdown

    def _design_entry(self, row: Mapping[str, Any], users_by_id: Mapping[str, Mapping[str, Any]]) -> Mapping[str, Any]:
        submitter = users_by_id.get(row["submitter_id"]) if row["submitter_id"] else None
        entry = dict(row)
        entry["submitter"] = (
            {key: submitter[key] for key in ("id", "email", "full_name", "asu_id", "discipline")}
            if submitter
            else None
        )
        return entry

    def _contacts(self) -> list[Mapping[str, Any]]:
        rows = (
            self.session.query(ContactMessage)
            .order_by(ContactMessage.created_at.desc())
            .limit(CONTACT_LIMIT)
            .all()
        )
        return [
            {
                "id": row.id,
                "sender_name": row.sender_name,
                "sender_email": row.sender_email,
                "topic": row.topic,
                "message": row.message,
                "created_at": _native(row.created_at),
            }
            for row in rows
        ]

    def _rsvp_counts(self) -> Mapping[str, int]:
        answers = pd.Series([row.will_attend for row in self.session.query(Rsvp.will_attend).all()], dtype=object)
        counts = answers.value_counts()
        return {
            "yes": int(counts.get("yes", 0)),
            "no": int(counts.get("no", 0)),
            "total": int(len(answers)),
        }

    def _records(self, frame: pd.DataFrame) -> list[dict[str, Any]]:
        return [
            {column: _native(value) for column, value in record.items()}
            for record in frame.astype(object).to_dict("records")
        ]
