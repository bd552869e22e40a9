"""Campus portal client: cookie session, preference bus and schedule sync.

Talks to a university information portal that authenticates through a form
login with rememberMe cookies and answers schedule queries as JSON.
"""

from src.campus.api import PortalClient
from src.campus.gateway import HttpGateway
from src.campus.models import Course, Result
from src.campus.preferences import PreferenceBus, UserPreferences, open_preferences
from src.campus.session import SessionStore
from src.campus.sync import ScheduleState, ScheduleSyncEngine

__all__ = [
    "PortalClient",
    "HttpGateway",
    "Course",
    "Result",
    "PreferenceBus",
    "UserPreferences",
    "open_preferences",
    "SessionStore",
    "ScheduleState",
    "ScheduleSyncEngine",
]
