"""
Serverless entry point for the Inbox Review Console
"""
import sys
import os

# Add parent directory to path
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

os.environ.setdefault("ENVIRONMENT", "production")

from mangum import Mangum
from src.config import settings
from src.inbox.infrastructure import HttpInboxAPI, InMemoryDraftStorage
from src.main import app
from src.shared.infrastructure.logging import setup_logging

# Lifespan is off under the adapter; do its startup work at import
setup_logging(settings.log_level, settings.environment)
app.state.settings = settings
app.state.inbox_api = HttpInboxAPI(
    base_url=settings.inbox_api_base_url,
    token=settings.inbox_api_token,
    timeout=settings.inbox_api_timeout_seconds
)
app.state.draft_storage = InMemoryDraftStorage()

handler = Mangum(app, lifespan="off")
