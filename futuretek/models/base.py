import math

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def round_half_up(value) -> int:
    """Nearest integer with .5 rounded toward +infinity (-2.5 -> -2), as browsers round scores.

    Accepts Decimal, which PostgreSQL returns for AVG().
    """
    return math.floor(float(value) + 0.5)


class ApiModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
