"""
Configuration module for loading the user profile and settings.
"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from .errors import ProfileValidationError, SettingsValidationError

CONFIG_DIR = Path(__file__).parent.parent / "config"
PROFILES_DIR = CONFIG_DIR / "profiles"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

MAX_VALUE_LENGTH = 500
MAX_EMAIL_LENGTH = 254
MAX_CUSTOM_KEY_LENGTH = 100

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[+]?[\d\s\-()]{10,20}$")
_DOMAIN_RE = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class Profile:
    """Flat profile record plus user-defined custom fields."""
    full_name: str = ""
    email: str = ""
    phone: str = ""
    student_number: str = ""
    tenth_marks: str = ""
    twelfth_marks: str = ""
    ug_cgpa: str = ""
    degree: str = ""
    specialization: str = ""
    gender: str = ""
    campus: str = ""
    date_of_birth: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    leetcode_url: str = ""
    resume_url: str = ""
    portfolio_url: str = ""
    custom_fields: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def attribute_names(cls) -> List[str]:
        """Fixed attribute names, in declaration order."""
        return [f.name for f in fields(cls) if f.name != "custom_fields"]

    def get_field_value(self, field_type: str) -> Optional[str]:
        """Get value for a profile attribute, or None for unknown names."""
        if field_type in self.attribute_names():
            return getattr(self, field_type)
        return None

    def filled_attributes(self) -> Dict[str, str]:
        """Attributes with a non-blank value."""
        result = {}
        for name in self.attribute_names():
            value = getattr(self, name)
            if value and value.strip():
                result[name] = value
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Wire form with camelCase keys, as carried in an autofill command."""
        data: Dict[str, Any] = {_camel(name): getattr(self, name) for name in self.attribute_names()}
        data["customFields"] = dict(self.custom_fields)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Profile":
        """Build a profile from camelCase or snake_case keys; unknown keys are ignored."""
        data = data or {}
        kwargs: Dict[str, Any] = {}
        for name in cls.attribute_names():
            for key in (name, _camel(name)):
                if key in data and data[key] is not None:
                    kwargs[name] = str(data[key])
                    break
        custom = data.get("custom_fields", data.get("customFields")) or {}
        kwargs["custom_fields"] = {str(k): str(v) for k, v in custom.items() if v is not None}
        return cls(**kwargs)


@dataclass
class Settings:
    """Runtime settings."""
    active_profile: str = "default"
    auto_fill_enabled: bool = False
    blacklisted_domains: List[str] = field(default_factory=list)
    event_delay_ms: int = 50
    cache_ttl_seconds: float = 10.0
    fill_timeout_seconds: float = 30.0
    rescan_passes: int = 1
    verbose: bool = False


def get_available_profiles() -> List[str]:
    """Get list of available profile names."""
    if not PROFILES_DIR.exists():
        return []
    return sorted(p.name for p in PROFILES_DIR.iterdir() if p.is_dir() and (p / "profile.yaml").exists())


def get_profile_path(profile_name: str) -> Path:
    """Get path to profile.yaml for a profile."""
    return PROFILES_DIR / profile_name / "profile.yaml"


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings from YAML. A missing file yields defaults.

    AUTOFILL_DEBUG=true forces verbose logging.
    """
    path = Path(config_path) if config_path is not None else SETTINGS_PATH
    data: Dict[str, Any] = {}
    if path.exists():
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

    settings = validate_settings(data)

    if os.getenv("AUTOFILL_DEBUG", "").lower() in ("1", "true", "yes"):
        settings.verbose = True

    return settings


def load_profile(
    profile_name: Optional[str] = None,
    config_path: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Profile:
    """Load user profile from YAML file.

    Args:
        profile_name: Name of the profile directory (e.g., "default").
                      If provided, loads from config/profiles/{profile_name}/profile.yaml
        config_path: Direct path to profile YAML file. Overrides profile_name if provided.
        settings: Used for the active profile name when neither of the above is given.

    Returns:
        Validated Profile object.
    """
    if config_path is not None:
        path = Path(config_path)
    else:
        if profile_name is None:
            profile_name = settings.active_profile if settings else "default"
        path = get_profile_path(profile_name)

    if not path.exists():
        available = get_available_profiles()
        if available:
            raise FileNotFoundError(
                f"Profile config not found: {path}\n"
                f"Available profiles: {', '.join(available)}"
            )
        raise FileNotFoundError(f"Profile config not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Override with environment variables if present
    if os.getenv("AUTOFILL_EMAIL"):
        data["email"] = os.getenv("AUTOFILL_EMAIL")
    if os.getenv("AUTOFILL_PHONE"):
        data["phone"] = os.getenv("AUTOFILL_PHONE")

    return validate_profile_data(data)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_profile_data(data: Optional[Dict[str, Any]]) -> Profile:
    """Trim, validate and default a raw profile mapping.

    All problems are collected and raised together.
    """
    profile = Profile.from_dict(data)
    errors: List[str] = []

    for name in Profile.attribute_names():
        value = getattr(profile, name).strip()
        setattr(profile, name, value)
        if not value:
            continue
        if len(value) > MAX_VALUE_LENGTH:
            errors.append(f"{name} is too long (max {MAX_VALUE_LENGTH} characters)")
            continue
        if name == "email" and (len(value) > MAX_EMAIL_LENGTH or not _EMAIL_RE.match(value)):
            errors.append(f"Invalid email address: {value}")
        elif name == "phone" and not _PHONE_RE.match(value):
            errors.append(f"Invalid phone number: {value}")
        elif name.endswith("_url") and not _is_http_url(value):
            errors.append(f"{name} must be an http(s) URL")

    custom: Dict[str, str] = {}
    for key, value in profile.custom_fields.items():
        key = key.strip()
        if not key or key.isdigit() or len(key) > MAX_CUSTOM_KEY_LENGTH:
            continue
        value = value.strip()
        if len(value) > MAX_VALUE_LENGTH:
            errors.append(f"Custom field '{key}' is too long (max {MAX_VALUE_LENGTH} characters)")
            continue
        custom[key] = value
    profile.custom_fields = custom

    if errors:
        raise ProfileValidationError(errors)
    return profile


def validate_settings(data: Optional[Dict[str, Any]]) -> Settings:
    """Validate a raw settings mapping; unknown keys are ignored."""
    data = data or {}
    errors: List[str] = []
    settings = Settings()

    if data.get("active_profile"):
        settings.active_profile = str(data["active_profile"]).strip()
    if "auto_fill_enabled" in data:
        settings.auto_fill_enabled = bool(data["auto_fill_enabled"])
    if "verbose" in data:
        settings.verbose = bool(data["verbose"])

    domains = data.get("blacklisted_domains") or []
    if not isinstance(domains, list):
        errors.append("blacklisted_domains must be a list")
        domains = []
    for domain in domains:
        domain = str(domain).strip().lower()
        if not domain:
            continue
        if _DOMAIN_RE.match(domain):
            settings.blacklisted_domains.append(domain)
        else:
            errors.append(f"Invalid domain: {domain}")

    numeric = {
        "event_delay_ms": int,
        "cache_ttl_seconds": float,
        "fill_timeout_seconds": float,
        "rescan_passes": int,
    }
    for key, cast in numeric.items():
        if key not in data:
            continue
        try:
            value = cast(data[key])
        except (TypeError, ValueError):
            errors.append(f"{key} must be a number")
            continue
        if value < 0:
            errors.append(f"{key} must not be negative")
            continue
        setattr(settings, key, value)

    if errors:
        raise SettingsValidationError(errors)
    return settings


def is_blacklisted(url: str, settings: Settings) -> bool:
    """Check if the URL's hostname, or any parent domain, is blacklisted."""
    hostname = (urlparse(url).hostname or "").lower()
    if not hostname:
        return False
    parts = hostname.split(".")
    candidates = {".".join(parts[i:]) for i in range(len(parts))}
    return any(domain in candidates for domain in settings.blacklisted_domains)
