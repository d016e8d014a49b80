"""
Static planning questions used when AI generation is unavailable
"""
import random
from typing import Dict, List, Optional

from models.question import GeneratedQuestion

QUESTION_TEMPLATES: Dict[str, List[str]] = {
    "user_research": [
        "Who is the primary user persona for this project?",
        "What are the key pain points your users are experiencing?",
        "How do you plan to gather user feedback during development?",
        "What user research have you conducted so far?",
        "What are the primary user journeys for your product?",
    ],
    "problem_definition": [
        "What specific problem does this project solve?",
        "How is this problem currently being solved?",
        "Why is now the right time to solve this problem?",
        "What are the consequences if this problem remains unsolved?",
        "How did you validate that this problem is worth solving?",
    ],
    "market_analysis": [
        "Who are your main competitors in this space?",
        "What is your unique value proposition?",
        "What existing solutions have you researched?",
        "How large is the target market for this product?",
        "What market trends support the need for your solution?",
    ],
    "technical": [
        "What technical constraints are you working with?",
        "What technology stack do you plan to use?",
        "What are the potential technical challenges you foresee?",
        "How will you ensure the solution is scalable?",
        "What security considerations are important for this project?",
    ],
    "business": [
        "What is your budget for this project?",
        "How do you plan to monetize this solution?",
        "What is the expected ROI for this project?",
        "What business metrics will you track?",
        "How does this project align with your overall business strategy?",
    ],
    "timeline": [
        "What is your timeline for launching this project?",
        "What are the key milestones for this project?",
        "How have you prioritized features for the initial release?",
        "What is your release strategy?",
        "How will you manage scope to meet your timeline?",
    ],
    "success_metrics": [
        "What metrics will you use to measure success?",
        "How will you know if this project is successful?",
        "What are your KPIs for this project?",
        "How will you gather feedback after launch?",
        "What would make this project a failure in your view?",
    ],
}


def fallback_questions(
    count: int = 5,
    start_sequence_number: int = 1,
    rng: Optional[random.Random] = None,
) -> List[GeneratedQuestion]:
    """
    Pick `count` template questions.

    The first min(categories, count) questions come from distinct, randomly
    ordered categories; any remainder is drawn from random categories and
    may repeat. Sequence numbers follow selection order.
    """
    rng = rng or random.Random()
    categories = list(QUESTION_TEMPLATES)

    # random.shuffle is an in-place Fisher-Yates shuffle
    shuffled = categories[:]
    rng.shuffle(shuffled)

    picks = [rng.choice(QUESTION_TEMPLATES[category]) for category in shuffled[:min(len(categories), count)]]
    while len(picks) < count:
        category = rng.choice(categories)
        picks.append(rng.choice(QUESTION_TEMPLATES[category]))

    return [
        GeneratedQuestion(question=text, sequence_number=start_sequence_number + index)
        for index, text in enumerate(picks)
    ]


def category_of(question: str) -> Optional[str]:
    """Category a template question belongs to, None for non-template text."""
    for category, templates in QUESTION_TEMPLATES.items():
        if question in templates:
            return category
    return None
