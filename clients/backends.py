#!/usr/bin/env python3
"""Upload backend selection.

Backends are resolved once, when the upload loop is configured, into a plain
``upload_fn(contents) -> response`` callable.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional

from clients.stackdriver_client import StackdriverClient, coerce_config
from utils.errors import ConfigError

UploadFn = Callable[[str], Any]


class BackendKind(str, Enum):
	STACKDRIVER = "stackdriver"

	@classmethod
	def parse(cls, name: Any) -> "BackendKind":
		if isinstance(name, BackendKind):
			return name
		try:
			return cls(str(name or "").strip().lower())
		except ValueError:
			known = ", ".join(k.value for k in cls)
			raise ConfigError(f"unknown backend {name!r} (known: {known})", code="CONFIG") from None


def resolve_backend(name: Any, config: Any, stats_logger: Optional[Any] = None) -> UploadFn:
	"""Validate the backend config and return its upload function.

	Args:
		name: backend name or BackendKind
		config: backend config (model or mapping)
		stats_logger: supplies the instance id and rejection list at upload time

	Raises:
		ConfigError: unknown backend, absent config, or missing credentials
	"""
	kind = BackendKind.parse(name)
	if config is None:
		raise ConfigError(f"missing config for backend {kind.value}", code="CONFIG")

	if kind is BackendKind.STACKDRIVER:
		client = StackdriverClient(coerce_config(config))

		def upload_fn(contents: str) -> str:
			instance = getattr(stats_logger, "instance", None)
			rejects = stats_logger.rejected_lines if stats_logger is not None else None
			return client.upload(contents, instance=instance, rejects=rejects)

		upload_fn.client = client  # type: ignore[attr-defined]
		return upload_fn

	raise ConfigError(f"backend {kind.value} has no uploader", code="CONFIG")
