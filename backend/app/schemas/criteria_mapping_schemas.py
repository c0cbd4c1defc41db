from marshmallow import EXCLUDE, Schema, fields, validate, pre_load, post_load


def _strip_text(data, *keys):
    if not isinstance(data, dict):
        return data
    data = dict(data)
    for key in keys:
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


class CriteriaMappingInputSchema(Schema):
    """One mapping as edited by a user: a display name over one or more criteria."""

    class Meta:
        # Loaded mappings are sent back with their read-only columns
        unknown = EXCLUDE

    id = fields.Raw(load_default=None)
    display_name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    original_criteria = fields.List(
        fields.Str(validate=validate.Length(min=1)),
        required=True,
        validate=validate.Length(min=1, error='Select at least one criterion')
    )
    usage_count = fields.Int(load_default=1, validate=validate.Range(min=1))

    @pre_load
    def strip_display_name(self, data, **kwargs):
        return _strip_text(data, 'display_name')

    @post_load
    def dedupe_criteria(self, data, **kwargs):
        criteria = []
        for criterion in data['original_criteria']:
            if criterion not in criteria:
                criteria.append(criterion)
        data['original_criteria'] = criteria
        return data


class SaveCriteriaMappingsSchema(Schema):
    event_type = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    mappings = fields.List(fields.Nested(CriteriaMappingInputSchema), required=True)

    @pre_load
    def strip_event_type(self, data, **kwargs):
        return _strip_text(data, 'event_type')


class RenameCriteriaMappingSchema(Schema):
    display_name = fields.Str(required=True, validate=validate.Length(min=1, max=200))

    @pre_load
    def strip_display_name(self, data, **kwargs):
        return _strip_text(data, 'display_name')


class SimilarityCandidateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    mapping_id = fields.Raw(load_default=None)
    display_name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    original_criteria = fields.List(fields.Str(), load_default=list)
    usage_count = fields.Int(load_default=1)
    similarity_score = fields.Float(load_default=0.0, validate=validate.Range(min=0, max=1))

    @pre_load
    def strip_display_name(self, data, **kwargs):
        return _strip_text(data, 'display_name')


class SuggestionScanSchema(Schema):
    event_type = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    # Omitted: scan every unmapped criterion
    criteria = fields.List(fields.Str(validate=validate.Length(min=1)), load_default=None)


class AcceptSuggestionSchema(Schema):
    event_type = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    criterion = fields.Str(required=True, validate=validate.Length(min=1))
    candidate = fields.Nested(SimilarityCandidateSchema, required=True)
