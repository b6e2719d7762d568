"""
Pydantic models for the token endpoint contract.

The access token endpoint answers `POST api/v1/access_token` with either a
token payload or an OAuth error payload; both are parsed into TokenResponse.
"""
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """
    Response body of the access token endpoint.

    Example:
        >>> TokenResponse(access_token="abc", expires_in=3600, scope="read identity")
    """

    model_config = ConfigDict(extra="ignore")

    access_token: Optional[str] = Field(None, description="Bearer token for OAuth requests")
    token_type: Optional[str] = None
    expires_in: Optional[float] = Field(None, ge=0, description="Token lifetime in seconds")
    scope: str = Field("", description="Space-separated list of granted scopes")
    refresh_token: Optional[str] = None
    error: Optional[Union[str, int]] = Field(None, description="OAuth error code, e.g. invalid_grant")
    error_description: Optional[str] = None

    @property
    def scopes(self) -> List[str]:
        return self.scope.split()

    @property
    def is_error(self) -> bool:
        return self.error is not None or self.error_description is not None
