"""
Natural-language request interpretation.
"""

from .request_interpreter import RequestInterpretation, RequestInterpreter, RequestOutcome
