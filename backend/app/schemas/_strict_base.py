"""Strict schema baselines: unexpected fields are rejected."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Base for request bodies; clients cannot smuggle extra fields through."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)
