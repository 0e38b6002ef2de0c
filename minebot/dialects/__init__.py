"""
Chat classifiers for MineBot.

A classifier turns a raw inbound event into (channel, sender, text), or
rejects it. Each server formats chat differently, so classifiers are
selected per server.
"""

from minebot.dialects.classifier import (
    ClassifiedMessage,
    Classifier,
    PatternClassifier,
    DialectClassifier,
    ServerDialect,
    SERVER_DIALECTS,
    extract_click_username,
    get_classifier,
)

__all__ = [
    "ClassifiedMessage",
    "Classifier",
    "PatternClassifier",
    "DialectClassifier",
    "ServerDialect",
    "SERVER_DIALECTS",
    "extract_click_username",
    "get_classifier",
]
