"""Natural-language interpretation, caching and suggestions."""

from taskpilot.nlp.cache import CacheStats, ResponseCache, input_hash, normalize_input
from taskpilot.nlp.interpreter import (
    Interpreter,
    RuleInterpreter,
    compound_args,
    split_compound,
)
from taskpilot.nlp.llm_interpreter import LlmInterpreter
from taskpilot.nlp.suggestions import (
    AutoCompleter,
    Suggestion,
    SuggestionEngine,
    SuggestionKind,
    SuggestionRequest,
    SuggestionResult,
)

__all__ = [
    "AutoCompleter",
    "CacheStats",
    "Interpreter",
    "LlmInterpreter",
    "ResponseCache",
    "RuleInterpreter",
    "Suggestion",
    "SuggestionEngine",
    "SuggestionKind",
    "SuggestionRequest",
    "SuggestionResult",
    "compound_args",
    "input_hash",
    "normalize_input",
    "split_compound",
]
