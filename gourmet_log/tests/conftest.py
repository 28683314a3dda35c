from __future__ import annotations

import pytest

from gourmet_log.analytics.store import clear_usage
from gourmet_log.chat.history import clear_histories
from gourmet_log.favorites.cache import clear_cache
from gourmet_log.favorites.reconcile import clear_views
from gourmet_log.favorites.store import clear_restaurants
from gourmet_log.search.orchestrator import clear_sessions
from gourmet_log.sharing.store import clear_shares
from gourmet_log.social.follows import clear_social
from gourmet_log.social.notifications import clear_notifications


@pytest.fixture(autouse=True)
def _reset_state():
    clear_restaurants()
    clear_views()
    clear_cache()
    clear_sessions()
    clear_shares()
    clear_social()
    clear_notifications()
    clear_histories()
    clear_usage()
    yield
