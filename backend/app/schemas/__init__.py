from .criteria_mapping_schemas import (
    CriteriaMappingInputSchema,
    SaveCriteriaMappingsSchema,
    RenameCriteriaMappingSchema,
    SimilarityCandidateSchema,
    SuggestionScanSchema,
    AcceptSuggestionSchema
)

__all__ = [
    'CriteriaMappingInputSchema',
    'SaveCriteriaMappingsSchema',
    'RenameCriteriaMappingSchema',
    'SimilarityCandidateSchema',
    'SuggestionScanSchema',
    'AcceptSuggestionSchema'
]
