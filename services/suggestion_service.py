from __future__ import annotations
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError

from config.assistant_config import ConfigProvider
from models import Suggestion, ShopperIdentity
from models.suggestion import as_utc, utc_now
from services.catalog_repository import CatalogRepository
from services.question_generator import build_questions
from services.suggestion_store import SuggestionStore
from utils.logger import setup_logger
from utils.seeded_shuffle import seeded_shuffle, session_hour_seed

logger = setup_logger(__name__)


SuggestionItem = Dict[str, Any]


def _to_item(suggestion: Suggestion) -> SuggestionItem:
    return {
        "id": suggestion.id,
        "question": suggestion.question,
        "priority": suggestion.priority,
    }


class SuggestionService:
    def __init__(
        self,
        config: ConfigProvider,
        store: Optional[SuggestionStore] = None,
        catalog: Optional[CatalogRepository] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None
    ):
        self.config = config
        self.store = store or SuggestionStore()
        self.catalog = catalog or CatalogRepository()
        self.clock = clock
        self.rng = rng or random.Random()

    def get_suggestions(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity
    ) -> List[str]:
        suggestions = self.get_or_create_suggestions(db_session, product_id)
        if not suggestions:
            return []

        smart_rotation = self.config.is_smart_rotation_enabled()

        if smart_rotation:
            suggestions = self.apply_smart_rotation(db_session, product_id, identity, suggestions)

        if self.config.is_randomize_suggestions_enabled():
            suggestions = self.randomize_suggestions(suggestions, identity.session_id or "")

        per_load = max(self.config.get_suggestions_per_load(), 0)
        suggestions = suggestions[:per_load]

        if smart_rotation:
            self.track_viewed_suggestions(
                db_session, product_id, [s["id"] for s in suggestions], identity
            )

        logger.info(
            "Suggestions served",
            extra={
                "product_id": product_id,
                "count": len(suggestions),
                "smart_rotation": smart_rotation,
                "guest": identity.is_guest
            }
        )

        return [s["question"] for s in suggestions]

    def get_or_create_suggestions(self, db_session: Session, product_id: int) -> List[SuggestionItem]:
        existing = self.store.get_active_suggestions(db_session, product_id)
        cache_lifetime = self.config.get_suggestions_cache_lifetime()

        if existing:
            if cache_lifetime > 0 and self._cache_age_days(existing) <= cache_lifetime:
                return [_to_item(s) for s in existing]

            self.invalidate(db_session, product_id)

        return self.generate_new_suggestions(db_session, product_id)

    def _cache_age_days(self, suggestions: Sequence[Suggestion]) -> int:
        oldest = min(as_utc(s.created_at) for s in suggestions)
        return (as_utc(self.clock()) - oldest).days

    def invalidate(self, db_session: Session, product_id: int) -> None:
        deleted = self.store.delete_suggestions(db_session, product_id)
        # view records reference the deleted ids
        self.store.delete_product_views(db_session, product_id)
        logger.info(
            "Suggestion cache invalidated",
            extra={"product_id": product_id, "deleted": deleted}
        )

    def generate_new_suggestions(self, db_session: Session, product_id: int) -> List[SuggestionItem]:
        try:
            product = self.catalog.get_product(db_session, product_id)
        except Exception as e:
            logger.warning(
                "Product lookup failed, no suggestions generated",
                extra={"product_id": product_id, "error": str(e)}
            )
            return []

        saved: List[SuggestionItem] = []
        for question in build_questions(product, self.rng):
            try:
                suggestion = self.store.add_suggestion(
                    db_session,
                    product_id=product_id,
                    question=str(question["question"]),
                    priority=int(question["priority"]),
                    created_at=self.clock()
                )
            except SQLAlchemyError as e:
                db_session.rollback()
                logger.warning(
                    "Failed to save suggestion, skipping",
                    extra={"product_id": product_id, "question": question["question"], "error": str(e)}
                )
                continue
            saved.append(_to_item(suggestion))

        logger.info(
            "Suggestions generated",
            extra={"product_id": product_id, "count": len(saved)}
        )

        return saved

    def apply_smart_rotation(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity,
        suggestions: List[SuggestionItem]
    ) -> List[SuggestionItem]:
        viewed_ids = set(self.store.get_viewed_ids(db_session, product_id, identity))

        unviewed = [s for s in suggestions if s["id"] not in viewed_ids]
        viewed = [s for s in suggestions if s["id"] in viewed_ids]
        rotated = unviewed + viewed

        if not unviewed and viewed:
            self.reset_viewed_suggestions(db_session, product_id, identity)
            self.rng.shuffle(rotated)

        return rotated

    def randomize_suggestions(self, suggestions: List[SuggestionItem], session_id: str) -> List[SuggestionItem]:
        """Shuffle that stays stable for one session within the same clock hour."""
        seed = session_hour_seed(session_id, self.clock())
        return seeded_shuffle(suggestions, seed)

    def track_viewed_suggestions(
        self,
        db_session: Session,
        product_id: int,
        suggestion_ids: Sequence[int],
        identity: ShopperIdentity
    ) -> bool:
        try:
            active_ids = {s.id for s in self.store.get_active_suggestions(db_session, product_id)}
            known_ids = [i for i in suggestion_ids if i in active_ids]
            if len(known_ids) != len(suggestion_ids):
                logger.info(
                    "Ignoring viewed ids that are not active suggestions of the product",
                    extra={"product_id": product_id, "ignored": len(suggestion_ids) - len(known_ids)}
                )
            if known_ids:
                self.store.merge_viewed_ids(db_session, product_id, identity, known_ids)
            return True
        except SQLAlchemyError as e:
            db_session.rollback()
            logger.warning(
                "Failed to track viewed suggestions",
                extra={"product_id": product_id, "error": str(e)}
            )
            return False

    def get_unviewed_suggestions(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity
    ) -> List[SuggestionItem]:
        viewed_ids = set(self.store.get_viewed_ids(db_session, product_id, identity))
        return [
            _to_item(s)
            for s in self.store.get_active_suggestions(db_session, product_id)
            if s.id not in viewed_ids
        ]

    def reset_viewed_suggestions(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity
    ) -> bool:
        try:
            self.store.delete_views(db_session, product_id, identity)
            return True
        except SQLAlchemyError as e:
            db_session.rollback()
            logger.warning(
                "Failed to reset viewed suggestions",
                extra={"product_id": product_id, "error": str(e)}
            )
            return False
