from typing import Any, Dict, List

from pydantic import Field

from .base import Collection, Record


class TagRule(Record):
    """
    A predicate over node attributes yielding at most one tag.

    ``tag_matchers`` is opaque here; only the configured TagRuleEvaluator
    interprets it.
    """

    collection = Collection.TAG

    name: str
    tag: str
    tag_matchers: List[Dict[str, Any]] = Field(default_factory=list)
