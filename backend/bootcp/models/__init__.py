from .base import Collection, Record
from .node import Node
from .policy import MatchUsing, Policy
from .image import Image
from .model import ActiveModel, Model
from .tag_rule import TagRule

__all__ = [
    "Collection",
    "Record",
    "Node",
    "MatchUsing",
    "Policy",
    "Image",
    "Model",
    "ActiveModel",
    "TagRule",
]
