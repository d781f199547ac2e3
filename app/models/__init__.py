from app.models.analytics import Analytics
from app.models.competitor import Competitor
from app.models.prompt import Prompt
from app.models.response import Response
from app.models.source import Source
from app.models.topic import Topic

__all__ = [
    "Analytics",
    "Competitor",
    "Prompt",
    "Response",
    "Source",
    "Topic",
]
