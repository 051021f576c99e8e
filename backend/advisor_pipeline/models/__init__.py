"""Domain records for the advisor pipeline.

    from advisor_pipeline.models import Application, ApplicationStage
"""

from advisor_pipeline.models.application import Application, ApplicationStage

__all__ = [
    "Application",
    "ApplicationStage",
]
