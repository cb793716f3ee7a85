"""
core/classifier.py

Command classification for pipeline routing.

This module decides which branch of the orchestrator handles an operator request:
a literal echo-style question, a complex request that needs architecting, or a simple
request that goes straight to the AI provider. Classification is a pure function of
the text, so it never fails and never touches the network.
"""

import logging

from shared.models import Classification

logger = logging.getLogger(__name__)


class CommandClassifier:
    """
    Classifies operator requests by word count and the question marker pattern.

    A question starts with the sentinel prefix `_` and ends with `?`. Any other request
    with more than `complexity_threshold` words is complex. Empty or whitespace-only
    input has zero words and classifies as simple, so it never triggers architecting.
    """

    QUESTION_PREFIX = "_"
    QUESTION_SUFFIX = "?"
    COMPLEXITY_THRESHOLD = 4

    def __init__(self, complexity_threshold: int = COMPLEXITY_THRESHOLD):
        self.complexity_threshold = complexity_threshold

    def is_question(self, request: str) -> bool:
        text = request.strip()
        return (
            len(text) >= 2
            and text.startswith(self.QUESTION_PREFIX)
            and text.endswith(self.QUESTION_SUFFIX)
        )

    def classify(self, request: str) -> Classification:
        """
        Classify a request.

        Args:
            request (str): Raw operator text.

        Returns:
            Classification: is_question, is_complex and the whitespace word count.
        """
        word_count = len(request.split())
        is_question = self.is_question(request)
        result = Classification(
            is_question=is_question,
            is_complex=word_count > self.complexity_threshold and not is_question,
            word_count=word_count,
        )
        logger.debug(
            "[CommandClassifier] %d word(s): question=%s complex=%s",
            word_count, result.is_question, result.is_complex,
        )
        return result

    def strip_question_markers(self, request: str) -> str:
        """Return the question text without the leading `_` and trailing `?`."""
        text = request.strip()
        if not self.is_question(text):
            return text
        return text[len(self.QUESTION_PREFIX):-len(self.QUESTION_SUFFIX)]
