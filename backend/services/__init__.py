from .store import analysis_pipeline, archive_log, auto_recorder

__all__ = ["analysis_pipeline", "archive_log", "auto_recorder"]
