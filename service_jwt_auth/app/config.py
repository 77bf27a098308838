"""
Configuration for the JWT auth service: service settings, per-route filter
configuration and the route table that maps request paths to it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.config import ServiceConfig
from shared.logging import get_logger
from .auth.claim_path import ClaimPath
from .auth.jwt_parser import REGISTERED_CLAIMS


class JwtAuthSettings(ServiceConfig):
    """Process-level settings, read from ``ACCESS_*`` environment variables."""

    routes_file: Optional[str] = None
    protected_prefix: str = "/"
    cache_ttl_seconds: Optional[float] = None
    cache_negative_ttl_seconds: Optional[float] = 30.0
    cache_max_entries: Optional[int] = 10000
    cache_negative_max_entries: Optional[int] = 10000
    # Serve the DELETE /cache routes without running the JWT filter.
    cache_admin_exempt: bool = False


class ClaimHeaderMapping(BaseModel):
    """Copy the claim at ``claim_path`` into the upstream header ``header``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    claim_path: ClaimPath
    header: str

    @field_validator("claim_path", mode="before")
    @classmethod
    def _parse_claim_path(cls, value: Any) -> ClaimPath:
        if isinstance(value, ClaimPath):
            return value
        return ClaimPath.parse(value)

    @field_validator("header")
    @classmethod
    def _check_header(cls, value: str) -> str:
        value = value.strip()
        if not value or any(char in value for char in " :\r\n"):
            raise ValueError(f"invalid header name {value!r}")
        return value


class JwtPluginConfig(BaseModel):
    """Filter configuration for one route."""

    model_config = ConfigDict(frozen=True)

    uri_param_names: Tuple[str, ...] = ("jwt",)
    cookie_names: Tuple[str, ...] = ()
    key_claim_name: str = "iss"
    claims_to_verify: FrozenSet[str] = Field(default_factory=frozenset)
    secret_is_base64: bool = False
    anonymous: str = ""
    run_on_preflight: bool = True
    claim_headers: Tuple[ClaimHeaderMapping, ...] = ()

    @field_validator("claims_to_verify", mode="before")
    @classmethod
    def _check_claims(cls, value: Any) -> FrozenSet[str]:
        claims: Set[str] = set(value or ())
        unknown = claims - set(REGISTERED_CLAIMS)
        if unknown:
            raise ValueError(f"unsupported claims to verify: {', '.join(sorted(unknown))}")
        return frozenset(claims)

    @field_validator("anonymous", mode="before")
    @classmethod
    def _anonymous_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("claim_headers", mode="before")
    @classmethod
    def _mapping_pairs(cls, value: Any) -> Any:
        # Accept {"$.sub": "X-Subject", ...} as well as a list of mappings.
        if isinstance(value, dict):
            return [{"claim_path": path, "header": header} for path, header in value.items()]
        return value


class RouteEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path_prefix: str
    config: JwtPluginConfig = Field(default_factory=JwtPluginConfig)


class RouteTable:
    """
    Resolves the filter configuration for a request path.

    Routes are matched by longest path prefix; requests matching no route
    use ``default``. The table may be loaded from a YAML file of the form::

        default:
          key_claim_name: iss
        routes:
          - path_prefix: /api
            config:
              claims_to_verify: [exp]
        seed:
          consumers: [...]
          jwt_secrets: [...]
    """

    def __init__(
        self,
        routes: Optional[List[RouteEntry]] = None,
        default: Optional[JwtPluginConfig] = None,
        seed: Optional[Dict[str, Any]] = None,
    ):
        self.default = default or JwtPluginConfig()
        self.seed = seed or {}
        self._routes: List[RouteEntry] = []
        self.replace(routes or [])

    def replace(self, routes: List[RouteEntry]) -> None:
        # Readers iterate whichever list they picked up; it is never mutated.
        self._routes = sorted(routes, key=lambda route: len(route.path_prefix), reverse=True)

    @property
    def routes(self) -> List[RouteEntry]:
        return list(self._routes)

    def config_for(self, path: str) -> JwtPluginConfig:
        for route in self._routes:
            if path == route.path_prefix or path.startswith(route.path_prefix.rstrip("/") + "/"):
                return route.config
        return self.default

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "RouteTable":
        default = JwtPluginConfig(**(data.get("default") or {}))
        routes = [RouteEntry(**item) for item in data.get("routes") or []]
        return cls(routes=routes, default=default, seed=data.get("seed") or {})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RouteTable":
        path = Path(path)
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        table = cls.from_mapping(data)
        get_logger("jwt_auth.config").info(
            "Loaded route table",
            path=str(path),
            routes=len(table.routes),
        )
        return table
