"""Engine settings loaded from the environment or a YAML file.

```yaml
api_timeout: 120
read_attempts: 5
retry_min_wait: 0.5
retry_max_wait: 5
audit_log_path: /var/log/vswitch/audit.log
```
"""
import logging
import os
from dataclasses import dataclass, fields
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Platform default for a single API call: five minutes
DEFAULT_API_TIMEOUT = 300.0

ENV_VARS = {
    "api_timeout": "VSWITCH_API_TIMEOUT",
    "read_attempts": "VSWITCH_READ_ATTEMPTS",
    "retry_min_wait": "VSWITCH_RETRY_MIN_WAIT",
    "retry_max_wait": "VSWITCH_RETRY_MAX_WAIT",
    "audit_log_path": "VSWITCH_AUDIT_LOG",
}


@dataclass
class EngineSettings:
    """Deadline, retry and audit settings passed into ReconcileEngine."""
    api_timeout: float = DEFAULT_API_TIMEOUT
    read_attempts: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0
    audit_log_path: Optional[str] = None

    def __post_init__(self):
        if self.api_timeout <= 0:
            raise ValueError(f"api_timeout must be positive, got {self.api_timeout}")
        if self.read_attempts < 1:
            raise ValueError(f"read_attempts must be at least 1, got {self.read_attempts}")
        if self.retry_min_wait < 0 or self.retry_max_wait < self.retry_min_wait:
            raise ValueError(
                f"Invalid retry wait bounds {self.retry_min_wait}..{self.retry_max_wait}"
            )

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from VSWITCH_* environment variables."""
        values = {}
        for name, var in ENV_VARS.items():
            raw = os.environ.get(var)
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**_coerce(values))

    @classmethod
    def from_file(cls, path: str) -> "EngineSettings":
        """Load settings from a YAML file. A missing file yields defaults."""
        if not os.path.exists(path):
            logger.warning(f"Settings file {path} not found, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning(f"Ignoring unknown setting '{key}' in {path}")
        return cls(**_coerce({k: v for k, v in data.items() if k in known}))


def _coerce(values: dict) -> dict:
    types = {
        "api_timeout": float,
        "read_attempts": int,
        "retry_min_wait": float,
        "retry_max_wait": float,
        "audit_log_path": str,
    }
    try:
        return {k: types[k](v) for k, v in values.items()}
    except ValueError as e:
        raise ValueError(f"Invalid setting value: {e}") from e
