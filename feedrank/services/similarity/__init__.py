"""
Similarity collaborators behind the personalized providers.

Tag preferences, content-based matching, behavioural and social collaborative
filtering, and per-item social proximity scores.
"""

from feedrank.services.similarity.collaborative import CollaborativeRecommender, SocialCollaborativeRecommender
from feedrank.services.similarity.content_based import ContentBasedRecommender
from feedrank.services.similarity.preferences import TagPreferenceCalculator
from feedrank.services.similarity.social_graph import SocialGraph, SocialGraphLoader
from feedrank.services.similarity.social_score import SocialScoreCalculator, SocialScoreOptions

__all__ = [
    "TagPreferenceCalculator",
    "ContentBasedRecommender",
    "CollaborativeRecommender",
    "SocialCollaborativeRecommender",
    "SocialGraph",
    "SocialGraphLoader",
    "SocialScoreCalculator",
    "SocialScoreOptions",
]
