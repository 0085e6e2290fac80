from __future__ import annotations

import logging
from typing import Protocol

from .schemas import AnalysisRequest

logger = logging.getLogger(__name__)

# Stand-in for speech-to-text output until a real transcription service is wired in.
PLACEHOLDER_TRANSCRIPT = r"""
[00:00] Instructor: Hello class. Today we are diving into the fundamentals of Thermodynamics, specifically the Second Law.
[00:30] The Second Law of Thermodynamics states that the total entropy of an isolated system can never decrease over time.
[01:15] Think of entropy as disorder. If you drop a glass and it shatters, that's high entropy. It doesn't spontaneously put itself back together.
[02:00] The formula involves Delta S, which must be greater than or equal to zero for spontaneous processes. Written as: \Delta S_{univ} \geq 0.
[03:45] We also relate this to Heat Transfer. Heat always flows from a hot body to a cold body, never the reverse spontaneously.
[05:00] This leads to the concept of Heat Engines and Efficiency. No engine can be 100% efficient due to this law. Carnot Efficiency gives us the theoretical maximum.
[06:30] Let's solve a problem. If we have a reservoir at 500K and a cold sink at 300K, what is the max efficiency? Efficiency = 1 - (Tc/Th).
[08:00] So, 1 - (300/500) = 1 - 0.6 = 0.4. That is 40% efficiency.
[09:15] Remember, energy quality degrades. Energy quantity is conserved (First Law), but quality decreases (Second Law).
[10:00] For the exam, memorize the Carnot efficiency formula and the definition of Entropy.
""".strip()

DEMO_TRANSCRIPT = """
Welcome to this lecture on Introduction to Machine Learning. Today we're going to cover the basic concepts of supervised and unsupervised learning.
00:10 - Let's start with Supervised Learning. In supervised learning, we have a dataset consisting of both input features and target variables. The goal is to learn a mapping function from input to output. Common algorithms include Linear Regression and Decision Trees.
05:30 - Now moving on to Unsupervised Learning. Here, we only have input data, no labels. The goal is to find hidden structures in the data. Clustering is a prime example, like K-Means clustering.
10:15 - A key concept in ML is the Bias-Variance tradeoff. High bias means underfitting, high variance means overfitting. You want to find the sweet spot.
15:00 - Finally, let's discuss Neural Networks briefly. They are inspired by the biological brain and consist of layers of neurons. Deep Learning is essentially just deep neural networks.
""".strip()


class TranscriptProducer(Protocol):
    async def transcribe(self, request: AnalysisRequest) -> str:
        ...


class PlaceholderTranscriber:
    """Returns a fixed transcript for every media upload."""

    def __init__(self, transcript: str = PLACEHOLDER_TRANSCRIPT) -> None:
        self.transcript = transcript

    async def transcribe(self, request: AnalysisRequest) -> str:
        logger.info(
            "No speech-to-text backend configured; using placeholder transcript for %s (%s, %d bytes)",
            request.filename or "upload",
            request.content_type,
            request.size_bytes,
        )
        return self.transcript
