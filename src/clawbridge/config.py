"""Runtime configuration loaded from the workspace YAML file and environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from clawbridge.errors import ConfigError

PRODUCTION_VAULT_URL = "https://clawbridge.cloud"


def config_dir() -> Path:
    return Path(os.getenv("CLAWBRIDGE_HOME", str(Path.home() / ".clawbridge")))


def default_config_path() -> Path:
    return config_dir() / "config.yml"


@dataclass(slots=True)
class ProjectProfile:
    """What the workspace offers and who it is looking for."""

    offer: str
    ask: str
    ideal_persona: str
    verticals: tuple[str, ...]
    geo_timezone: str | None = None
    disallowed: tuple[str, ...] = ()
    tone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "offer": self.offer,
            "ask": self.ask,
            "ideal_persona": self.ideal_persona,
            "verticals": list(self.verticals),
        }
        if self.geo_timezone is not None:
            payload["geo_timezone"] = self.geo_timezone
        if self.disallowed:
            payload["disallowed"] = list(self.disallowed)
        if self.tone is not None:
            payload["tone"] = self.tone
        return payload


@dataclass(slots=True)
class Constraints:
    no_spam_rules: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    avoid_list: tuple[str, ...] = ()
    top_k: int = 5
    min_evidence: int = 2
    recency_days: int = 30


@dataclass(slots=True)
class RunBudget:
    max_searches: int = 20
    max_fetches: int = 50
    max_minutes: int = 10


@dataclass(slots=True)
class VaultSettings:
    enabled: bool = False
    api_url: str = PRODUCTION_VAULT_URL
    workspace_key: str | None = None
    request_timeout_seconds: float = 30.0

    @property
    def effective_url(self) -> str:
        """Vault base URL; local development hosts are redirected to production."""

        parsed = urlparse(self.api_url)
        if parsed.hostname in {"localhost", "127.0.0.1"}:
            return PRODUCTION_VAULT_URL
        return self.api_url.rstrip("/")


@dataclass(slots=True)
class OutputSettings:
    dir: Path = field(default_factory=lambda: config_dir() / "output")
    keep_runs: int = 30


@dataclass(slots=True)
class DiscoverySettings:
    timeout_seconds: int = 300
    grace_seconds: float = 15.0
    max_output_bytes: int = 8 * 1024 * 1024


@dataclass(slots=True)
class Settings:
    """Workspace settings grouped by concern."""

    workspace_id: str
    project_profile: ProjectProfile
    workspace_key: str | None = None
    constraints: Constraints = field(default_factory=Constraints)
    run_budget: RunBudget = field(default_factory=RunBudget)
    vault: VaultSettings = field(default_factory=VaultSettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    source_path: Path | None = None

    @classmethod
    def from_file(cls, path: Path | None = None) -> Settings:
        """Load YAML config, then apply secrets and tunables from environment."""

        config_path = (path or default_config_path()).expanduser().resolve()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            raw = yaml.safe_load(config_path.read_text("utf-8")) or {}
        except yaml.YAMLError as error:
            raise ConfigError(f"Config file is not valid YAML: {config_path}: {error}") from error
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")
        settings = cls.from_mapping(raw)
        settings.source_path = config_path
        return settings

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> Settings:
        workspace_id = _required_str(raw, "workspace_id")
        profile_raw = raw.get("project_profile")
        if not isinstance(profile_raw, dict):
            raise ConfigError("Config missing required field: project_profile")
        verticals = _str_tuple(profile_raw.get("verticals"))
        if not verticals:
            raise ConfigError("Config missing required field: project_profile.verticals")
        profile = ProjectProfile(
            offer=_required_str(profile_raw, "offer", prefix="project_profile."),
            ask=_required_str(profile_raw, "ask", prefix="project_profile."),
            ideal_persona=_required_str(profile_raw, "ideal_persona", prefix="project_profile."),
            verticals=verticals,
            geo_timezone=_optional_str(profile_raw.get("geo_timezone")),
            disallowed=_str_tuple(profile_raw.get("disallowed")),
            tone=_optional_str(profile_raw.get("tone")),
        )

        constraints_raw = _mapping(raw, "constraints")
        budget_raw = _mapping(raw, "run_budget")
        vault_raw = _mapping(raw, "vault")
        output_raw = _mapping(raw, "output")

        env_key = os.getenv("CLAWBRIDGE_WORKSPACE_KEY") or os.getenv("CLAWBRIDGE_WORKSPACE_TOKEN")
        workspace_key = (
            env_key
            or _optional_str(raw.get("workspace_key"))
            or _optional_str(raw.get("workspace_token"))
        )
        vault_key = (
            env_key
            or _optional_str(vault_raw.get("workspace_key"))
            or _optional_str(vault_raw.get("workspace_token"))
            or workspace_key
        )

        default_output = OutputSettings()
        settings = cls(
            workspace_id=workspace_id,
            project_profile=profile,
            workspace_key=workspace_key,
            constraints=Constraints(
                no_spam_rules=_str_tuple(constraints_raw.get("no_spam_rules")),
                regions=_str_tuple(constraints_raw.get("regions")),
                avoid_list=_str_tuple(constraints_raw.get("avoid_list")),
                top_k=_as_int(constraints_raw.get("top_k", 5), "constraints.top_k"),
                min_evidence=_as_int(
                    os.getenv("CLAWBRIDGE_MIN_EVIDENCE", constraints_raw.get("min_evidence", 2)),
                    "constraints.min_evidence",
                ),
                recency_days=_as_int(
                    constraints_raw.get("recency_days", 30),
                    "constraints.recency_days",
                ),
            ),
            run_budget=RunBudget(
                max_searches=_as_int(
                    budget_raw.get("max_searches", 20),
                    "run_budget.max_searches",
                ),
                max_fetches=_as_int(
                    budget_raw.get("max_fetches", 50),
                    "run_budget.max_fetches",
                ),
                max_minutes=_as_int(
                    budget_raw.get("max_minutes", 10),
                    "run_budget.max_minutes",
                ),
            ),
            vault=VaultSettings(
                enabled=bool(vault_raw.get("enabled", False)),
                api_url=os.getenv(
                    "CLAWBRIDGE_VAULT_URL",
                    _optional_str(vault_raw.get("api_url")) or PRODUCTION_VAULT_URL,
                ),
                workspace_key=vault_key,
                request_timeout_seconds=_as_float(
                    vault_raw.get("request_timeout_seconds", 30.0),
                    "vault.request_timeout_seconds",
                ),
            ),
            output=OutputSettings(
                dir=Path(
                    os.getenv("CLAWBRIDGE_OUTPUT_DIR")
                    or output_raw.get("dir")
                    or default_output.dir,
                ).expanduser(),
                keep_runs=_as_int(
                    os.getenv("CLAWBRIDGE_KEEP_RUNS", output_raw.get("keep_runs", 30)),
                    "output.keep_runs",
                ),
            ),
            discovery=DiscoverySettings(
                timeout_seconds=_as_int(
                    os.getenv("CLAWBRIDGE_TIMEOUT_SECONDS", "300"),
                    "CLAWBRIDGE_TIMEOUT_SECONDS",
                ),
                grace_seconds=_as_float(
                    os.getenv("CLAWBRIDGE_GRACE_SECONDS", "15"),
                    "CLAWBRIDGE_GRACE_SECONDS",
                ),
            ),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.constraints.min_evidence < 1:
            raise ConfigError("constraints.min_evidence must be >= 1.")
        if self.output.keep_runs < 0:
            raise ConfigError("output.keep_runs must be >= 0.")
        if self.discovery.timeout_seconds <= 0:
            raise ConfigError("CLAWBRIDGE_TIMEOUT_SECONDS must be > 0.")
        parsed = urlparse(self.vault.api_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ConfigError(
                f"Invalid vault api_url: {self.vault.api_url!r}. "
                "Expected an absolute URL with http:// or https:// scheme.",
            )


def _mapping(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config field {key} must be a mapping.")
    return value


def _as_int(value: object, name: str) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as error:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from error


def _as_float(value: object, name: str) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as error:
        raise ConfigError(f"{name} must be a number, got {value!r}") from error


def _required_str(raw: dict[str, Any], key: str, *, prefix: str = "") -> str:
    value = _optional_str(raw.get(key))
    if value is None:
        raise ConfigError(f"Config missing required field: {prefix}{key}")
    return value


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _str_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())
