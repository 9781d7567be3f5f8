from datetime import datetime

from pydantic import BaseModel, field_validator

from common.core.clock import ensure_utc


class BillingModel(BaseModel):
    """Base for billing domain models. All datetimes are normalised to UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalise_datetimes(cls, v):
        if isinstance(v, datetime):
            return ensure_utc(v)
        return v
