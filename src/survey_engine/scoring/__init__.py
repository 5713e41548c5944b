from survey_engine.scoring.classifier import NpsSummary, SentimentTier, classify, summarize

__all__ = ["NpsSummary", "SentimentTier", "classify", "summarize"]
