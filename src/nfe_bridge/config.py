from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import keyring
import platformdirs
import yaml
from dotenv import load_dotenv
from keyring.errors import KeyringError

from nfe_bridge.utils.validators import validate_uf

logger = logging.getLogger(__name__)

APP_NAME = "frappe-nfe-bridge"
KEYRING_SERVICE = APP_NAME
KEYRING_NFE_API_KEY = "nfe-api-key"
KEYRING_FRAPPE_SECRET = "frappe-api-secret"

DEFAULT_NFE_ENDPOINT = "https://api.nfe.io/v2/companies"
DEFAULT_NFE_ENDPOINT_CONSULT = "https://nfe.api.nfe.io/v2"
DEFAULT_FRAPPE_DOCTYPE = "Invoices"
DEFAULT_SIGNATURE_HEADER = "X-Webhook-Signature"
DEFAULT_PORT = 3000

FRAPPE_TIMEOUT = 30
NFEIO_TIMEOUT = 60

ISSUER_FILE = "issuer.yaml"


def _project_root() -> Path:
    # src/nfe_bridge/config.py -> ../../.. = project root
    return Path(__file__).resolve().parent.parent.parent


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Config dir candidates available before .env itself is loaded.

    Returns None if only a not-yet-created platformdirs directory would resolve.
    """
    from_env = os.environ.get("NFE_BRIDGE_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    candidate = _project_root() / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default."""
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    candidate = _project_root() / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("NFE_BRIDGE_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("NFE_BRIDGE_DATA_DIR", "data", kind="data")


# --- Keyring helpers ---


def get_keyring_secret(username: str) -> str | None:
    """Read a secret from the OS keyring; None when absent or no backend is usable."""
    try:
        return keyring.get_password(KEYRING_SERVICE, username)
    except KeyringError as exc:
        logger.debug("Keyring indisponivel para %s: %s", username, exc)
        return None


def set_keyring_secret(username: str, secret: str) -> bool:
    """Store a secret in the OS keyring. Returns True on success."""
    try:
        keyring.set_password(KEYRING_SERVICE, username, secret)
    except KeyringError as exc:
        logger.warning("Nao foi possivel gravar %s no keyring: %s", username, exc)
        return False
    return True


def delete_keyring_secret(username: str) -> bool:
    """Remove a secret from the OS keyring. Returns True on success."""
    try:
        keyring.delete_password(KEYRING_SERVICE, username)
    except KeyringError as exc:
        logger.warning("Nao foi possivel remover %s do keyring: %s", username, exc)
        return False
    return True


def _secret(env_var: str, keyring_username: str) -> str | None:
    value = os.environ.get(env_var)
    if value:
        return value
    return get_keyring_secret(keyring_username)


def get_nfe_api_key() -> str:
    """Return the NFE.io API key.

    Priority: 1) NFE_API_KEY env var, 2) OS keyring.
    Raises KeyError if neither source has the key.
    """
    value = _secret("NFE_API_KEY", KEYRING_NFE_API_KEY)
    if not value:
        raise KeyError("NFE_API_KEY")
    return value


def get_frappe_api_secret() -> str:
    """Return the Frappe API secret from env or keyring ("" when unset)."""
    return _secret("FRAPPE_API_SECRET", KEYRING_FRAPPE_SECRET) or ""


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_issuer() -> dict:
    """Load issuer configuration from issuer.yaml ({} when the file does not exist)."""
    path = get_config_dir() / ISSUER_FILE
    if not path.exists():
        return {}
    return load_yaml(path)


# --- Settings ---


@dataclass(frozen=True)
class Settings:
    frappe_url: str
    nfe_api_key: str
    nfe_company_id: str
    issuer_state: str
    frappe_api_key: str = ""
    frappe_api_secret: str = ""
    frappe_doctype: str = DEFAULT_FRAPPE_DOCTYPE
    nfe_endpoint: str = DEFAULT_NFE_ENDPOINT
    nfe_endpoint_consult: str = DEFAULT_NFE_ENDPOINT_CONSULT
    webhook_secret: str = ""
    webhook_signature_header: str = DEFAULT_SIGNATURE_HEADER
    port: int = DEFAULT_PORT

    @property
    def frappe_authorization(self) -> str:
        return f"token {self.frappe_api_key}:{self.frappe_api_secret}"


def _required(env_var: str, fallback: object = None) -> str:
    value = os.environ.get(env_var) or fallback
    if not value:
        raise KeyError(env_var)
    return str(value).strip()


def load_settings() -> Settings:
    """Build the process settings from env, keyring and issuer.yaml.

    Raises KeyError naming the first missing required value.
    """
    issuer = load_issuer()
    frappe_url = _required("FRAPPE_URL")
    nfe_api_key = get_nfe_api_key()
    company_id = _required("NFE_COMPANY_ID", issuer.get("company_id"))
    issuer_state = validate_uf(_required("ISSUER_STATE", issuer.get("state")))

    return Settings(
        frappe_url=frappe_url.rstrip("/"),
        nfe_api_key=nfe_api_key,
        nfe_company_id=company_id,
        issuer_state=issuer_state,
        frappe_api_key=os.environ.get("FRAPPE_API_KEY", ""),
        frappe_api_secret=get_frappe_api_secret(),
        frappe_doctype=os.environ.get("CUSTOM_DOCTYPE") or DEFAULT_FRAPPE_DOCTYPE,
        nfe_endpoint=(os.environ.get("NFE_ENDPOINT") or DEFAULT_NFE_ENDPOINT).rstrip("/"),
        nfe_endpoint_consult=(
            os.environ.get("NFE_ENDPOINT_CONSULT") or DEFAULT_NFE_ENDPOINT_CONSULT
        ).rstrip("/"),
        webhook_secret=os.environ.get("WEBHOOK_SECRET", ""),
        webhook_signature_header=os.environ.get("WEBHOOK_SIGNATURE") or DEFAULT_SIGNATURE_HEADER,
        port=int(os.environ.get("PORT") or DEFAULT_PORT),
    )
