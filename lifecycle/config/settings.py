"""Run configuration: environment variables plus Docker-style secret files.

Secrets are looked up in ``SECRETS_DIR`` first, then in the environment.
Everything else comes from the environment only; CLI flags override the
result in ``scripts/lifecycle_cli.py``.
"""
from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from pathlib import Path

SECRETS_DIR = Path("/run/secrets")

DEFAULT_GRAPH_API_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_GRAPH_LOGIN_URL = "https://login.microsoftonline.com"
DEFAULT_LOG_DIR = ".runtime/logs"


def read_secret(name: str, env_var: str | None = None) -> str | None:
    """Return ``SECRETS_DIR/<name>`` if it holds a value, else ``env_var``, else None."""
    path = SECRETS_DIR / name
    if path.is_file():
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            print(f"[settings] could not read {path}: {e}", file=sys.stderr)
        else:
            if value:
                return value
    if env_var:
        return os.environ.get(env_var) or None
    return None


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_bool(name: str, default: bool = False) -> bool:
    return _env(name, str(default)).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got '{raw}'") from None


@dataclass
class AppConfig:
    """Settings for one lifecycle run."""
    # Microsoft Graph app registration
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    graph_api_url: str = DEFAULT_GRAPH_API_URL
    graph_login_url: str = DEFAULT_GRAPH_LOGIN_URL
    request_timeout: int = 30

    log_dir: str = DEFAULT_LOG_DIR
    log_file: str = ""

    default_usage_location: str = ""
    dry_run: bool = False
    operator: str = "automation"

    @property
    def client_secret_resolved(self) -> str:
        """The app secret: explicit value, then the ``graph_client_secret`` file, then ``GRAPH_CLIENT_SECRET``.

        Raises:
            RuntimeError: If none of them is set
        """
        secret = self.client_secret or read_secret("graph_client_secret", "GRAPH_CLIENT_SECRET")
        if not secret:
            raise RuntimeError(
                f"GRAPH_CLIENT_SECRET not found; set the variable or mount {SECRETS_DIR / 'graph_client_secret'}"
            )
        return secret

    @property
    def has_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id)


def load_settings() -> AppConfig:
    """Build an AppConfig from the current environment."""
    return AppConfig(
        tenant_id=_env("GRAPH_TENANT_ID"),
        client_id=_env("GRAPH_CLIENT_ID"),
        client_secret=read_secret("graph_client_secret", "GRAPH_CLIENT_SECRET") or "",
        graph_api_url=_env("GRAPH_API_URL", DEFAULT_GRAPH_API_URL).rstrip("/"),
        graph_login_url=_env("GRAPH_LOGIN_URL", DEFAULT_GRAPH_LOGIN_URL).rstrip("/"),
        request_timeout=_env_int("GRAPH_REQUEST_TIMEOUT", 30),
        log_dir=_env("LIFECYCLE_LOG_DIR", DEFAULT_LOG_DIR),
        log_file=_env("LIFECYCLE_LOG_FILE"),
        default_usage_location=_env("DEFAULT_USAGE_LOCATION").upper(),
        dry_run=_env_bool("DRY_RUN"),
        operator=_env("LIFECYCLE_OPERATOR", "automation"),
    )
