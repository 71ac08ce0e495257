import hashlib
from datetime import datetime
from typing import List, Sequence, TypeVar

import numpy as np

T = TypeVar('T')


def hour_bucket(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d-%H")


def session_hour_seed(session_id: str, moment: datetime) -> int:
    digest = hashlib.sha256(f"{session_id}|{hour_bucket(moment)}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def seeded_shuffle(items: Sequence[T], seed: int) -> List[T]:
    """Deterministic permutation: the same seed always yields the same order.

    Uses the PCG64 bit generator explicitly so the ordering does not depend
    on numpy's default generator choice.
    """
    if len(items) < 2:
        return list(items)
    generator = np.random.Generator(np.random.PCG64(seed))
    order = generator.permutation(len(items))
    return [items[int(i)] for i in order]
