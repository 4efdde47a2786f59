"""Context documents: naming, live-fetch provider interface and assembly."""

from tipster.context.abbreviations import TEAM_ABBREVIATIONS, get_team_abbreviation
from tipster.context.assembler import AssembledContext, ContextAssembler, merge_context
from tipster.context.documents import (
    optional_document_names,
    required_document_names,
    strip_display_suffix,
)
from tipster.context.provider import ContextProvider, StaticContextProvider

__all__ = [
    "TEAM_ABBREVIATIONS",
    "get_team_abbreviation",
    "AssembledContext",
    "ContextAssembler",
    "merge_context",
    "optional_document_names",
    "required_document_names",
    "strip_display_suffix",
    "ContextProvider",
    "StaticContextProvider",
]
