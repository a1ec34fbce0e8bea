"""
Page Server configuration

Settings for the shared browser, snapshot rendering, selector synthesis
and the MCP listener. Values come from defaults, an optional YAML file
and PAGE_SERVER_* environment variables, in that order.
"""

import os
import tempfile
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class BrowserConfig:
    """Shared browser settings"""
    headless: bool = True
    channel: Optional[str] = None

    # Persistent profile (cookies/storage survive restarts)
    profile_dir: str = str(Path.home() / ".page-server" / "profile")

    # Default page geometry
    viewport_width: int = 1280
    viewport_height: int = 720

    launch_args: List[str] = field(default_factory=list)
    default_timeout_ms: int = 30000


@dataclass
class SnapshotConfig:
    """Snapshot rendering settings"""
    max_text_length: int = 80
    max_attribute_length: int = 100

    # Best-effort onclick/onkeydown detection
    detect_handlers: bool = True

    indent: str = "  "


@dataclass
class SelectorConfig:
    """Selector synthesis settings"""
    stable_attributes: List[str] = field(default_factory=lambda: [
        'id', 'data-testid', 'data-test-id', 'data-test', 'data-qa', 'data-cy'
    ])
    combination_attributes: List[str] = field(default_factory=lambda: [
        'name', 'type', 'href', 'aria-label', 'placeholder', 'role', 'title', 'alt'
    ])

    # Re-check each joined selector through page.locator(); on a page-wide
    # duplicate the next candidate is tried, up to max_locator_checks
    verify_with_locator: bool = True
    max_locator_checks: int = 20


@dataclass
class ServerConfig:
    """MCP listener settings"""
    name: str = "Page Server"
    host: str = "127.0.0.1"
    port: int = 9224
    transport: str = "streamable-http"
    screenshot_dir: str = os.path.join(tempfile.gettempdir(), "page-server-shots")


@dataclass
class PageServerConfig:
    """Root configuration"""
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    debug: bool = False
    log_level: str = "INFO"


def _apply_mapping(target: Any, values: Dict[str, Any]) -> None:
    """Copy known keys from a mapping onto a (nested) dataclass"""
    known = {f.name for f in fields(target)}
    for key, value in (values or {}).items():
        if key not in known:
            raise ValueError(f"Unknown config key: {key}")
        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ValueError(f"Config section '{key}' must be a mapping")
            _apply_mapping(current, value)
        else:
            setattr(target, key, value)


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(config: Optional[PageServerConfig] = None) -> PageServerConfig:
    """Apply PAGE_SERVER_* environment overrides"""
    config = config or PageServerConfig()

    # Browser
    headless = _env_bool("PAGE_SERVER_HEADLESS")
    if headless is not None:
        config.browser.headless = headless

    if os.getenv("PAGE_SERVER_CHANNEL"):
        config.browser.channel = os.getenv("PAGE_SERVER_CHANNEL")

    if os.getenv("PAGE_SERVER_PROFILE_DIR"):
        config.browser.profile_dir = os.getenv("PAGE_SERVER_PROFILE_DIR")

    if os.getenv("PAGE_SERVER_TIMEOUT_MS"):
        config.browser.default_timeout_ms = int(os.getenv("PAGE_SERVER_TIMEOUT_MS"))

    # Snapshot
    if os.getenv("PAGE_SERVER_MAX_TEXT_LENGTH"):
        config.snapshot.max_text_length = int(os.getenv("PAGE_SERVER_MAX_TEXT_LENGTH"))

    detect_handlers = _env_bool("PAGE_SERVER_DETECT_HANDLERS")
    if detect_handlers is not None:
        config.snapshot.detect_handlers = detect_handlers

    # Listener
    if os.getenv("PAGE_SERVER_HOST"):
        config.server.host = os.getenv("PAGE_SERVER_HOST")

    if os.getenv("PAGE_SERVER_PORT"):
        config.server.port = int(os.getenv("PAGE_SERVER_PORT"))

    # Debugging
    debug = _env_bool("PAGE_SERVER_DEBUG")
    if debug is not None:
        config.debug = debug

    if os.getenv("PAGE_SERVER_LOG_LEVEL"):
        config.log_level = os.getenv("PAGE_SERVER_LOG_LEVEL")

    return config


def load_config(path: Optional[str] = None) -> PageServerConfig:
    """Load defaults, then the YAML file (if any), then the environment"""
    config = PageServerConfig()
    if path:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        _apply_mapping(config, data)
    return load_config_from_env(config)


