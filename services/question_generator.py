from __future__ import annotations
import random
from typing import Dict, List, Optional, Union

from models import Product


Question = Dict[str, Union[str, int]]

VARIETY_QUESTIONS: List[Question] = [
    {"question": "What makes this product special?", "priority": 50},
    {"question": "Who is this product best suited for?", "priority": 60},
    {"question": "How does this compare to similar products?", "priority": 70},
    {"question": "What are customers saying about this product?", "priority": 80},
    {"question": "Are there any special care instructions?", "priority": 90},
    {"question": "What warranty or guarantee comes with this?", "priority": 100},
]

VARIETY_PICK_COUNT = 3


def build_base_questions(product: Product) -> List[Question]:
    questions: List[Question] = [
        {"question": f"Tell me more about {product.name}", "priority": 10},
        {"question": "What are the key features of this product?", "priority": 20},
        {"question": "How do I use this product?", "priority": 30},
        {"question": "What other products would you recommend with this?", "priority": 40},
    ]

    if product.short_description or product.description:
        questions.append({"question": "Can you summarize the description for me?", "priority": 15})

    if product.weight:
        questions.append({"question": "How much does this product weigh?", "priority": 25})

    if product.price:
        questions.append({"question": "Is this product good value for money?", "priority": 35})

    return questions


def pick_variety_questions(rng: Optional[random.Random] = None) -> List[Question]:
    pool = [dict(q) for q in VARIETY_QUESTIONS]
    (rng or random).shuffle(pool)
    return pool[:VARIETY_PICK_COUNT]


def build_questions(product: Product, rng: Optional[random.Random] = None) -> List[Question]:
    """Base questions for the product followed by three randomly picked variety questions."""
    return build_base_questions(product) + pick_variety_questions(rng)
