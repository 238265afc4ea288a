from typing import ClassVar, Tuple

from pydantic import BaseModel, model_validator


class PatchModel(BaseModel):
    """
    Partial update body.

    Fields named in `not_nullable` may be left out but not sent as null,
    since they back NOT NULL columns.
    """

    not_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_nulls(self):
        nulls = [f for f in self.not_nullable if f in self.model_fields_set and getattr(self, f) is None]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self
