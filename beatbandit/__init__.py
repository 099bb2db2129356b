"""
BeatBandit - Adaptive Music Recommendation Engine

Combines several scoring strategies (audio DNA, hidden gems, exploratory,
contextual, catalog-seeded), learns from listener feedback and lets a
Thompson-sampling bandit decide which strategy to trust over time.
"""

__version__ = "0.1.0"
__author__ = "BeatBandit Team"
