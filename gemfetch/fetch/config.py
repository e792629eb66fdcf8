"""Configuration models for a fetch session."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from gemfetch.fetch.constants import (
    DEFAULT_API_REQUEST_LIMIT,
    DEFAULT_API_TIMEOUT_SECONDS,
    DEFAULT_REDIRECT_LIMIT,
    FULL_INDEX_PATH,
    MARSHAL_SPEC_DIR,
)
from gemfetch.fetch.models import RetryPolicy


class SessionConfig(BaseModel):
    """Tunables for one fetch session.

    Passed into each session explicitly so independent sessions cannot
    interfere with each other.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    redirect_limit: Annotated[int, Field(ge=0, le=50)] = DEFAULT_REDIRECT_LIMIT
    api_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = (
        DEFAULT_API_TIMEOUT_SECONDS
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    api_request_limit: Annotated[int, Field(ge=1, le=1000)] = DEFAULT_API_REQUEST_LIMIT
    self_name: str = Field(
        default="bundler",
        min_length=1,
        description="Package named like the package manager itself; never indexed",
    )
    marshal_spec_dir: str = MARSHAL_SPEC_DIR
    full_index_path: str = FULL_INDEX_PATH
    endpoint_host_aliases: dict[str, str] = Field(
        default_factory=dict,
        description="Registry host -> host serving its dependency API",
    )

    def api_host_for(self, host: str) -> str:
        """Get the host that serves the dependency API for a registry host.

        Args:
            host: Registry host.

        Returns:
            Aliased host, or the host itself.
        """
        return self.endpoint_host_aliases.get(host, host)
