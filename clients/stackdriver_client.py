#!/usr/bin/env python3
"""Stackdriver custom metrics gateway client.

Parses captured journal contents and POSTs the surviving samples in one
request. The gateway only accepts samples collected within the last two hours.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from configs.config import Config
from utils.errors import ConfigError, UploadError
from utils.journal_parser import DEFAULT_STALE_AFTER_S, parse_journal_contents
from utils.sample_models import GatewayPayload

logger = logging.getLogger(__name__)

APIKEY_HEADER = "X-Stackdriver-Apikey"


class StackdriverConfig(BaseModel):
	api_key: Optional[str] = Field(default=None, alias="apiKey")
	host: str = "custom-gateway.stackdriver.com"
	port: int = 443
	path: str = "/v1/custom"
	timeout_s: float = 30
	connect_retries: int = 2

	model_config = ConfigDict(extra="ignore", populate_by_name=True)

	@property
	def url(self) -> str:
		scheme = "https" if self.port == 443 else "http"
		path = self.path if self.path.startswith("/") else "/" + self.path
		return f"{scheme}://{self.host}:{self.port}{path}"

	@classmethod
	def from_env(cls) -> "StackdriverConfig":
		return cls(**Config.get_stackdriver_config())


def coerce_config(config: Any) -> StackdriverConfig:
	"""Accept a StackdriverConfig or a plain mapping; None is a configuration error."""
	if config is None:
		raise ConfigError("missing backend config", code="CONFIG")
	if isinstance(config, StackdriverConfig):
		return config
	if isinstance(config, Mapping):
		try:
			return StackdriverConfig.model_validate(dict(config))
		except ValidationError as e:
			raise ConfigError(f"invalid backend config: {e}", code="CONFIG", cause=e) from e
	raise ConfigError(f"unsupported backend config type: {type(config).__name__}", code="CONFIG")


class StackdriverClient:
	def __init__(self, config: Any = None, session: Optional[requests.Session] = None) -> None:
		self.config = coerce_config(config) if config is not None else StackdriverConfig.from_env()
		if not self.config.api_key:
			raise ConfigError("missing apiKey", code="CONFIG")
		self.stale_after_s = DEFAULT_STALE_AFTER_S
		self.session = session or self._make_session()

	def _make_session(self) -> requests.Session:
		session = requests.Session()
		# only retry connection setup; nothing has been sent yet at that point
		retry_strategy = Retry(
			total=self.config.connect_retries,
			connect=self.config.connect_retries,
			read=0,
			status=0,
			backoff_factor=0.5,
			allowed_methods=None,
		)
		adapter = HTTPAdapter(max_retries=retry_strategy)
		session.mount("https://", adapter)
		session.mount("http://", adapter)
		return session

	def build_payload(
		self,
		contents: str,
		instance: Optional[str] = None,
		rejects: Optional[List[str]] = None,
	) -> Optional[Dict[str, Any]]:
		"""Parse journal contents into the gateway body; None when nothing is uploadable."""
		records = parse_journal_contents(
			contents, instance=instance, stale_after_s=self.stale_after_s, rejects=rejects
		)
		if not records:
			return None
		payload = GatewayPayload(timestamp=int(time.time()), data=records)
		return payload.model_dump(exclude_none=True)

	def upload(
		self,
		contents: str,
		instance: Optional[str] = None,
		rejects: Optional[List[str]] = None,
	) -> str:
		"""Upload journal contents.

		Returns:
			Gateway response body, or "" when no valid samples remained

		Raises:
			UploadError: network failure or HTTP status >= 300
		"""
		body = self.build_payload(contents, instance=instance, rejects=rejects)
		if body is None:
			logger.info("No valid samples to upload")
			return ""

		url = self.config.url
		headers = {
			"Content-Type": "application/json",
			APIKEY_HEADER: self.config.api_key,
		}
		n_samples = len(body["data"])
		try:
			logger.info(f"Uploading {n_samples} samples to {url}")
			response = self.session.post(
				url,
				headers=headers,
				data=json.dumps(body),
				timeout=self.config.timeout_s,
				allow_redirects=False,
			)
		except requests.Timeout as e:
			raise UploadError(f"Timeout uploading to {url}", code="TIMEOUT", payload=str(e), cause=e) from e
		except requests.RequestException as e:
			raise UploadError(f"Network error uploading to {url}: {e}", code="NETWORK", payload=str(e), cause=e) from e

		if response.status_code >= 300:
			raise UploadError(
				f"error HTTP {response.status_code}",
				code=f"HTTP_{response.status_code}",
				payload=response.text,
			)
		logger.debug(f"✓ Uploaded {n_samples} samples: HTTP {response.status_code}")
		return response.text

	def close(self) -> None:
		self.session.close()


def upload_to_stackdriver(
	contents: str,
	config: Any,
	instance: Optional[str] = None,
	rejects: Optional[List[str]] = None,
	session: Optional[requests.Session] = None,
) -> str:
	"""One-shot upload; the missing api key check happens before any parsing."""
	client = StackdriverClient(coerce_config(config), session=session)
	try:
		return client.upload(contents, instance=instance, rejects=rejects)
	finally:
		if session is None:
			client.close()
