"""Request analysis and result synthesis for framesight.

Public API:
    SynthesisEngine -- Cross-frame synthesis of frame analyses
    SynthesisError -- Synthesis failure
    NoValidInputError -- Every frame analysis errored
"""

from framesight.analysis.synthesis import NoValidInputError, SynthesisEngine, SynthesisError

__all__ = ["NoValidInputError", "SynthesisEngine", "SynthesisError"]
