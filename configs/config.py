import os
from typing import Dict, Any

class Config:
	"""Configuration for the stats journal and its upload backends."""
	
	# Journal
	STATS_JOURNAL = os.getenv("STATS_JOURNAL", "stats.journal")
	STATS_PREFIX = os.getenv("STATS_PREFIX", "")
	STATS_HOSTNAME = os.getenv("STATS_HOSTNAME", "")
	STATS_INSTANCE_ID = os.getenv("STATS_INSTANCE_ID", "")
	STATS_COLLECT_REJECTS = bool(int(os.getenv("STATS_COLLECT_REJECTS", "1")))

	# Upload cycle
	STATS_BACKEND = os.getenv("STATS_BACKEND", "stackdriver")
	UPLOAD_INTERVAL_S = float(os.getenv("UPLOAD_INTERVAL_S", "120"))
	
	# Stackdriver custom metrics gateway
	STACKDRIVER_API_KEY = os.getenv("STACKDRIVER_API_KEY", "")
	STACKDRIVER_HOST = os.getenv("STACKDRIVER_HOST", "custom-gateway.stackdriver.com")
	STACKDRIVER_PORT = int(os.getenv("STACKDRIVER_PORT", "443"))
	STACKDRIVER_PATH = os.getenv("STACKDRIVER_PATH", "/v1/custom")
	HTTP_TIMEOUT_S = int(os.getenv("HTTP_TIMEOUT_S", "30"))
	HTTP_CONNECT_RETRIES = int(os.getenv("HTTP_CONNECT_RETRIES", "2"))

	# AWS instance metadata
	INSTANCE_METADATA_URL = os.getenv(
		"INSTANCE_METADATA_URL", "http://169.254.169.254/latest/meta-data/instance-id"
	)
	INSTANCE_METADATA_TIMEOUT_S = float(os.getenv("INSTANCE_METADATA_TIMEOUT_S", "2"))

	@classmethod
	def get_journal_config(cls) -> Dict[str, Any]:
		"""Get stats logger configuration."""
		return {
			"journal": cls.STATS_JOURNAL,
			"prefix": cls.STATS_PREFIX or None,
			"hostname": cls.STATS_HOSTNAME or None,
			"instance": cls.STATS_INSTANCE_ID or None,
			"collect_rejects": cls.STATS_COLLECT_REJECTS,
		}

	@classmethod
	def get_stackdriver_config(cls) -> Dict[str, Any]:
		"""Get Stackdriver gateway configuration.
		
		Returns:
			Mapping accepted by ``StackdriverConfig``; ``api_key`` is None when unset.
		"""
		return {
			"api_key": cls.STACKDRIVER_API_KEY or None,
			"host": cls.STACKDRIVER_HOST,
			"port": cls.STACKDRIVER_PORT,
			"path": cls.STACKDRIVER_PATH,
			"timeout_s": cls.HTTP_TIMEOUT_S,
			"connect_retries": cls.HTTP_CONNECT_RETRIES,
		}
