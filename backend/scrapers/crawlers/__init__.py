"""Browser session managers for the different access paths."""

from .session import BrowserSession, BrowserSessionManager, SessionError
from .stealth import StealthBrowserManager
from .remote import RemoteBrowserManager, build_endpoint

__all__ = [
    'BrowserSession',
    'BrowserSessionManager',
    'SessionError',
    'StealthBrowserManager',
    'RemoteBrowserManager',
    'build_endpoint',
]
