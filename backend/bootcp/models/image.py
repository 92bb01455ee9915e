from pydantic import Field

from .base import Collection, Record


class Image(Record):
    collection = Collection.IMAGE

    path_prefix: str
    filename: str = ""
    version_weight: float = 0
    verified: bool = Field(
        default=False,
        description="Outcome of the last verification against the image path",
    )
