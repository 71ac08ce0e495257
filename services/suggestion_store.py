from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Sequence
from sqlmodel import Session, select
from sqlalchemy.orm.attributes import flag_modified

from models import Suggestion, SuggestionView, ShopperIdentity
from models.suggestion import utc_now
from utils.logger import setup_logger

logger = setup_logger(__name__)


class SuggestionStore:
    """Persistence for generated suggestions and per-identity view records.

    There is no locking: two requests regenerating the same product at the
    same time both delete and reinsert rows, and the last writer wins.
    """

    def get_active_suggestions(self, db_session: Session, product_id: int) -> List[Suggestion]:
        return list(db_session.exec(
            select(Suggestion)
            .where(Suggestion.product_id == product_id)
            .where(Suggestion.is_active == True)  # noqa: E712
            .order_by(Suggestion.priority.asc(), Suggestion.created_at.desc())
        ).all())

    def add_suggestion(
        self,
        db_session: Session,
        product_id: int,
        question: str,
        priority: int,
        created_at: Optional[datetime] = None
    ) -> Suggestion:
        suggestion = Suggestion(
            product_id=product_id,
            question=question,
            priority=priority,
            created_at=created_at or utc_now(),
            is_active=True
        )
        db_session.add(suggestion)
        db_session.commit()
        db_session.refresh(suggestion)
        return suggestion

    def delete_suggestions(self, db_session: Session, product_id: int) -> int:
        rows = db_session.exec(
            select(Suggestion).where(Suggestion.product_id == product_id)
        ).all()
        for row in rows:
            db_session.delete(row)
        db_session.commit()
        return len(rows)

    def _view_query(self, product_id: int, identity: ShopperIdentity):
        query = select(SuggestionView).where(SuggestionView.product_id == product_id)
        if identity.customer_id:
            return query.where(SuggestionView.customer_id == identity.customer_id)
        # a guest must not pick up an authenticated record sharing its session id
        return query.where(
            SuggestionView.session_id == identity.session_id,
            SuggestionView.customer_id == None  # noqa: E711
        )

    def get_view(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity
    ) -> Optional[SuggestionView]:
        return db_session.exec(self._view_query(product_id, identity)).first()

    def get_viewed_ids(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity
    ) -> List[int]:
        view = self.get_view(db_session, product_id, identity)
        return list(view.viewed_suggestions or []) if view else []

    def merge_viewed_ids(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity,
        suggestion_ids: Sequence[int]
    ) -> SuggestionView:
        view = self.get_view(db_session, product_id, identity)

        if view:
            merged = list(view.viewed_suggestions or [])
            for suggestion_id in suggestion_ids:
                if suggestion_id not in merged:
                    merged.append(suggestion_id)
            view.viewed_suggestions = merged
            view.updated_at = utc_now()
            flag_modified(view, "viewed_suggestions")
        else:
            view = SuggestionView(
                product_id=product_id,
                customer_id=identity.customer_id or None,
                session_id=identity.session_id,
                viewed_suggestions=list(dict.fromkeys(suggestion_ids))
            )

        db_session.add(view)
        db_session.commit()
        db_session.refresh(view)
        return view

    def delete_views(
        self,
        db_session: Session,
        product_id: int,
        identity: ShopperIdentity
    ) -> int:
        rows = db_session.exec(self._view_query(product_id, identity)).all()
        for row in rows:
            db_session.delete(row)
        db_session.commit()
        return len(rows)

    def delete_product_views(self, db_session: Session, product_id: int) -> int:
        rows = db_session.exec(
            select(SuggestionView).where(SuggestionView.product_id == product_id)
        ).all()
        for row in rows:
            db_session.delete(row)
        db_session.commit()
        return len(rows)
