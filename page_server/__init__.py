"""
Page Server Package

Long-lived browser automation server: named pages that survive between
client sessions, indexed snapshots of interactive elements and selector
synthesis for those indices, exposed as MCP tools over HTTP.
"""

from .automation_server import AutomationServer
from .browser_owner import BrowserOwner
from .client import PageServerClient, RemotePage
from .config import (
    BrowserConfig, PageServerConfig, SelectorConfig, ServerConfig, SnapshotConfig,
    load_config, load_config_from_env
)
from .element_classifier import ElementClassifier
from .errors import (
    InvalidPageNameError, NotFoundError, NotReadyError, PageClosedError,
    PageServerError, RemoteOperationError, SelectorAmbiguousError,
    StaleReferenceError, UnknownIndexError
)
from .mcp_tools import MCPPageTools
from .page_registry import PageRegistry, PageSession
from .selector_synth import SelectorSynthesizer
from .snapshot_walker import SnapshotWalker
from .types import (
    ElementNode, ElementRef, MarkerNode, MarkerType, PageInfo, SessionState,
    Snapshot, TextNode
)

__version__ = "0.1.0"

__all__ = [
    "AutomationServer",
    "BrowserOwner",
    "PageServerClient",
    "RemotePage",
    "BrowserConfig",
    "PageServerConfig",
    "SelectorConfig",
    "ServerConfig",
    "SnapshotConfig",
    "load_config",
    "load_config_from_env",
    "ElementClassifier",
    "InvalidPageNameError",
    "NotFoundError",
    "NotReadyError",
    "PageClosedError",
    "PageServerError",
    "RemoteOperationError",
    "SelectorAmbiguousError",
    "StaleReferenceError",
    "UnknownIndexError",
    "MCPPageTools",
    "PageRegistry",
    "PageSession",
    "SelectorSynthesizer",
    "SnapshotWalker",
    "ElementNode",
    "ElementRef",
    "MarkerNode",
    "MarkerType",
    "PageInfo",
    "SessionState",
    "Snapshot",
    "TextNode",
]
