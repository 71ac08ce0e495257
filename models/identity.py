from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ShopperIdentity:
    """Who a suggestion view record is tracked for.

    Authenticated shoppers are keyed by customer id; guests by session id.
    """
    customer_id: Optional[int] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if not self.customer_id and not self.session_id:
            raise ValueError("session_id is required when customer_id is absent")

    @property
    def is_guest(self) -> bool:
        return not self.customer_id

    @property
    def key(self) -> Union[int, str]:
        return self.customer_id if self.customer_id else self.session_id  # type: ignore[return-value]
