"""Pydantic configuration models for probe targets and organisations."""

from typing import Dict, List, Set

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator


class TargetConfig(BaseModel):
    """A single URL to probe and the HTTP status codes that count as healthy."""
    model_config = ConfigDict(frozen=True)

    url: str
    accepted_status_codes: Set[int] = Field(default_factory=lambda: {200})

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v

    @field_validator('accepted_status_codes')
    @classmethod
    def validate_status_codes(cls, v: Set[int]) -> Set[int]:
        """Status codes must be valid HTTP codes."""
        for code in v:
            if code < 100 or code > 599:
                raise ValueError(f'Invalid HTTP status code: {code}')
        return v


class OrganisationConfig(BaseModel):
    """
    Probing setup of one tenant.

    The organisation_id is sent as the X-Scope-OrgID header on every push.
    """
    model_config = ConfigDict(frozen=True)

    organisation_id: str
    polling_interval_seconds: int = Field(ge=1)
    targets: List[TargetConfig] = Field(default_factory=list)

    @field_validator('organisation_id', mode='before')
    @classmethod
    def coerce_organisation_id(cls, v):
        """YAML turns bare numeric ids into ints; tenant ids are strings."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('organisation_id')
    @classmethod
    def validate_organisation_id(cls, v: str) -> str:
        """Tenant id must not be blank."""
        if not v.strip():
            raise ValueError('organisation_id must not be empty')
        return v


class ProbeConfig(RootModel[Dict[str, OrganisationConfig]]):
    """Root configuration: organisation short-name to organisation config."""

    def __iter__(self):
        return iter(self.root.items())

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, key: str) -> OrganisationConfig:
        return self.root[key]

    def __contains__(self, key: str) -> bool:
        return key in self.root

    def names(self) -> List[str]:
        """Organisation short-names in file order."""
        return list(self.root.keys())
