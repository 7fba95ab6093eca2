from fastapi import Request

from app.automation.engine import AutomationEngine
from app.automation.repository import AutomationLogStore
from app.webhooks.ingest import WebhookIngestor


def get_engine(request: Request) -> AutomationEngine:
    return request.app.state.engine


def get_ingestor(request: Request) -> WebhookIngestor:
    return request.app.state.ingestor


def get_log_store(request: Request) -> AutomationLogStore:
    return request.app.state.log_store
