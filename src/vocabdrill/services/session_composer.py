"""Compose practice sessions from overdue, due-soon and new words."""
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from vocabdrill.config import settings
from vocabdrill.models.base import utcnow
from vocabdrill.models.models import WordRecord
from vocabdrill.monitoring import session_size, sessions_composed
from vocabdrill.services.word_record_store import WordRecordStore

logger = logging.getLogger(__name__)


class SessionComposer:
    """Builds the word list of a practice session under a size budget."""

    def __init__(self, db: Session):
        """Initialize the composer with a database session."""
        self.db = db
        self.store = WordRecordStore(db)

    def compose_session(
        self,
        user_id: int,
        target_size: int,
        prioritize_overdue: bool = True,
        collection_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[WordRecord]:
        """Select word records for a session.

        Words come in three groups, each ordered oldest first: overdue
        reviews, reviews due within the due-soon window, then never-reviewed
        words filling what is left. The result never exceeds
        ``target_size`` and holds each record at most once.
        """
        if target_size <= 0:
            return []

        now = now or utcnow()
        practice = settings.practice

        overdue_cap = target_size if prioritize_overdue else math.floor(practice.overdue_share * target_size)
        overdue = self.store.list_due(
            user_id, before=now, limit=overdue_cap, collection_id=collection_id
        )

        remaining = target_size - len(overdue)
        due_soon_cap = math.floor(practice.due_soon_share * remaining)
        due_soon = []
        if due_soon_cap > 0:
            due_soon = self.store.list_due(
                user_id,
                before=now + timedelta(hours=practice.due_soon_hours),
                after=now,
                limit=due_soon_cap,
                collection_id=collection_id,
            )

        remaining -= len(due_soon)
        new_words = []
        if remaining > 0:
            new_words = self.store.list_new(user_id, remaining, collection_id=collection_id)

        selected: List[WordRecord] = []
        seen = set()
        for record in overdue + due_soon + new_words:
            if record.id in seen:
                continue
            seen.add(record.id)
            selected.append(record)
        selected = selected[:target_size]

        sessions_composed.inc()
        session_size.observe(len(selected))
        logger.info(
            f"Composed session for user {user_id}: {len(overdue)} overdue, "
            f"{len(due_soon)} due soon, {len(new_words)} new"
        )
        return selected
