#!/usr/bin/env python3
"""Sample models for validated journal records and the gateway payload."""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, constr

PROTO_VERSION = 1


class _FrozenModel(BaseModel):
	model_config = ConfigDict(extra="forbid", frozen=True)


class SampleRecord(_FrozenModel):
	"""One validated sample, consumed once by the upload function."""

	model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

	name: constr(min_length=1, pattern=r"^\S+$")
	value: float
	collected_at: int
	instance: Optional[str] = None


class GatewayPayload(_FrozenModel):
	"""Body POSTed to the custom metrics gateway."""

	timestamp: int
	proto_version: int = Field(default=PROTO_VERSION)
	data: List[SampleRecord] = Field(default_factory=list)
