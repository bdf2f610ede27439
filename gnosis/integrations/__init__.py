# Collaborator protocols and implementations
from gnosis.integrations.content_client import ContentServiceClient
from gnosis.integrations.protocols import (
    ActivityContent,
    ActivityStep,
    ContentGenerator,
    HistoryProvider,
    PersistenceSink,
    RecommendationDraft,
)
from gnosis.integrations.templates import TemplateContentGenerator

__all__ = [
    "ActivityContent",
    "ActivityStep",
    "ContentGenerator",
    "ContentServiceClient",
    "HistoryProvider",
    "PersistenceSink",
    "RecommendationDraft",
    "TemplateContentGenerator",
]
