"""Client configuration for snoopager."""

import os
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

from snoopager.constants import DEFAULT_RETRY_ERROR_CODES


class ClientConfig(BaseModel):
    """
    Configuration passed to a RedditClient at construction time.

    The same instance is handed to the rate gate, the token manager and the
    request pipeline. Unknown options are rejected.

    Example:
        >>> config = ClientConfig(
        ...     user_agent="my-bot/0.1 (by /u/me)",
        ...     client_id="abc",
        ...     client_secret="xyz",
        ...     refresh_token="tok",
        ...     request_delay=1.0,
        ... )
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field(..., min_length=1, description="User agent sent with every request")

    # Credentials
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    access_token: Optional[str] = None
    device_id: Optional[str] = None

    endpoint_domain: str = Field("reddit.com", min_length=1)
    request_delay: float = Field(
        0.0,
        ge=0,
        description="Minimum spacing in seconds between dispatched requests",
    )
    request_timeout: float = Field(30.0, gt=0, description="Per-request timeout in seconds")
    continue_after_ratelimit_error: bool = Field(
        False,
        description="Queue requests until the rate window resets instead of raising",
    )
    retry_error_codes: FrozenSet[int] = Field(default=DEFAULT_RETRY_ERROR_CODES)
    max_retry_attempts: int = Field(3, ge=1)
    max_token_latency: float = Field(
        10.0,
        ge=0,
        description="A 401 on a token with less lifetime than this is treated as a stale-token race",
    )
    continue_thread_stub_name: str = Field(
        "t1__",
        description="Name of the stub sent in place of replies at the depth limit of a thread",
    )
    log_level: str = "INFO"

    @property
    def oauth_base_url(self) -> str:
        return f"https://oauth.{self.endpoint_domain}"

    @property
    def token_url(self) -> str:
        return f"https://www.{self.endpoint_domain}/api/v1/access_token"

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Load configuration from REDDIT_* environment variables."""
        env_vars = {
            "REDDIT_USER_AGENT": "user_agent",
            "REDDIT_CLIENT_ID": "client_id",
            "REDDIT_CLIENT_SECRET": "client_secret",
            "REDDIT_REFRESH_TOKEN": "refresh_token",
            "REDDIT_USERNAME": "username",
            "REDDIT_PASSWORD": "password",
            "REDDIT_ACCESS_TOKEN": "access_token",
            "REDDIT_DEVICE_ID": "device_id",
            "REDDIT_ENDPOINT_DOMAIN": "endpoint_domain",
            "REDDIT_REQUEST_DELAY": "request_delay",
            "LOG_LEVEL": "log_level",
        }

        values = {}
        for env_var, field_name in env_vars.items():
            value = os.getenv(env_var)
            if value:
                values[field_name] = value

        values.setdefault("user_agent", "snoopager/0.1 (by /u/snoopager)")
        values.update(overrides)
        return cls(**values)
