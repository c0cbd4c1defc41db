import logging
from flask import Blueprint, request, jsonify, Response
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required
from marshmallow import ValidationError
from typing import Tuple, Dict, Any, Optional, List

from app.errors import ReportStorageError
from app.schemas.criteria_mapping_schemas import (
    SaveCriteriaMappingsSchema,
    RenameCriteriaMappingSchema,
    SuggestionScanSchema,
    AcceptSuggestionSchema
)
from app.services.competition_report_service import CompetitionReportService
from app.services.criteria_suggestion_service import SimilarityCandidate
from app.services.performance_chart_service import PerformanceChartService

logger = logging.getLogger(__name__)

reports_bp = Blueprint('competition_reports', __name__)

# HELPER FUNCTIONS
def get_report_context() -> Tuple[Optional[str], Optional[str]]:
    """Returns (user_id, school_id) from the access token."""
    user_id = get_jwt_identity()
    school_id = get_jwt().get('school_id')
    return (str(user_id) if user_id is not None else None,
            str(school_id) if school_id else None)

def get_report_service() -> CompetitionReportService:
    return CompetitionReportService.from_app()

def error_response(message: str, status_code: int = 400, details: Dict[str, Any] = None) -> Tuple[Dict, int]:
    response = {'error': message}
    if details:
        response['details'] = details
    return jsonify(response), status_code

def success_response(message: str, data: Dict[str, Any] = None, status_code: int = 200) -> Tuple[Dict, int]:
    response = {'message': message}
    if data:
        response['data'] = data
    return jsonify(response), status_code

def parse_id_list(name: str) -> Optional[List[str]]:
    """
    Parses a comma separated query parameter.
    Returns None when the parameter is absent and [] when it is present but empty.
    """
    if name not in request.args:
        return None
    values = []
    for raw in request.args.getlist(name):
        values.extend(part.strip() for part in raw.split(',') if part.strip())
    return values

def parse_report_args() -> Tuple[Optional[str], Optional[List[str]], Optional[List[str]]]:
    event_type = (request.args.get('event_type') or '').strip()
    competition_ids = parse_id_list('competition_ids')
    # Criterion labels may contain commas, so they are passed as repeated params
    criteria = [c for c in request.args.getlist('criteria') if c.strip()] or None
    return event_type, competition_ids, criteria

def candidates_payload(candidates: List[SimilarityCandidate]) -> List[Dict[str, Any]]:
    return [candidate.to_dict() for candidate in candidates]

#ROUTES

# ------------------------------
#REPORT ROUTES

#event types with recorded scores for the user's school
@reports_bp.route('/events', methods=['GET'])
@jwt_required()
def get_available_events():
    _, school_id = get_report_context()
    try:
        events = get_report_service().available_events(school_id)
    except ReportStorageError as e:
        return error_response(str(e), 500)
    return success_response("Events retrieved successfully", {'events': events})

#competitions the school scored in for one event type
@reports_bp.route('/competitions', methods=['GET'])
@jwt_required()
def get_available_competitions():
    _, school_id = get_report_context()
    event_type = (request.args.get('event_type') or '').strip()
    if not event_type:
        return error_response("event_type query parameter is required", 400)
    try:
        competitions = get_report_service().available_competitions(school_id, event_type)
    except ReportStorageError as e:
        return error_response(str(e), 500)
    return success_response("Competitions retrieved successfully", {'competitions': competitions})

#performance time series for one event type
@reports_bp.route('/performance', methods=['GET'])
@jwt_required()
def get_performance_report():
    _, school_id = get_report_context()
    event_type, competition_ids, criteria = parse_report_args()
    if not event_type:
        return error_response("event_type query parameter is required", 400)

    try:
        report = get_report_service().build_report(
            event_type, school_id,
            competition_ids=competition_ids,
            criteria=criteria
        )
    except ReportStorageError as e:
        return error_response(str(e), 500)

    return success_response("Report generated successfully", {
        'event_type': event_type,
        'series': report['series'],
        'criteria': report['criteria']
    })

#performance chart as PNG
@reports_bp.route('/performance-chart', methods=['GET'])
@jwt_required()
def get_performance_chart():
    _, school_id = get_report_context()
    event_type, competition_ids, criteria = parse_report_args()
    if not event_type:
        return error_response("event_type query parameter is required", 400)

    try:
        report = get_report_service().build_report(
            event_type, school_id,
            competition_ids=competition_ids,
            criteria=criteria
        )
    except ReportStorageError as e:
        return error_response(str(e), 500)

    image_data = PerformanceChartService.generate_performance_chart(
        report['series'], report['criteria'], title=event_type
    )
    filename = f"performance_{event_type.replace(' ', '_').lower()}.png"

    # Return image as response (not JSON!)
    return Response(
        image_data,
        mimetype='image/png',
        headers={'Content-Disposition': f'inline; filename={filename}'}
    )

# ------------------------------
#MAPPING ROUTES

#mappings visible to the school plus the criteria they produce
@reports_bp.route('/mappings', methods=['GET'])
@jwt_required()
def get_criteria_mappings():
    _, school_id = get_report_context()
    event_type = (request.args.get('event_type') or '').strip()
    if not event_type:
        return error_response("event_type query parameter is required", 400)

    try:
        overview = get_report_service().criteria_overview(event_type, school_id)
    except ReportStorageError as e:
        return error_response(str(e), 500)

    overview['mappings'] = [mapping.to_dict() for mapping in overview['mappings']]
    return success_response("Mappings retrieved successfully", overview)

#replace the school's own mappings for an event type
@reports_bp.route('/mappings', methods=['PUT'])
@jwt_required()
def save_criteria_mappings():
    user_id, school_id = get_report_context()
    if not school_id:
        return error_response("No school associated with this account", 403)

    try:
        validated = SaveCriteriaMappingsSchema().load(request.get_json() or {})
    except ValidationError as err:
        return error_response("Validation failed", 400, err.messages)

    try:
        saved = get_report_service().save_mappings(
            validated['event_type'], school_id, validated['mappings'], created_by=user_id
        )
    except ReportStorageError as e:
        return error_response(str(e), 500)

    return success_response("Mappings saved successfully", {
        'mappings': [mapping.to_dict() for mapping in saved]
    })

#rename one of the school's mappings
@reports_bp.route('/mappings/<int:mapping_id>', methods=['PATCH'])
@jwt_required()
def rename_criteria_mapping(mapping_id: int):
    _, school_id = get_report_context()
    try:
        validated = RenameCriteriaMappingSchema().load(request.get_json() or {})
    except ValidationError as err:
        return error_response("Validation failed", 400, err.messages)

    try:
        mapping = get_report_service().mapping_service.rename_mapping(
            mapping_id, school_id, validated['display_name']
        )
    except ValueError as e:
        return error_response(str(e), 404)
    except ReportStorageError as e:
        return error_response(str(e), 500)

    return success_response("Mapping updated successfully", {'mapping': mapping.to_dict()})

#delete one of the school's mappings
@reports_bp.route('/mappings/<int:mapping_id>', methods=['DELETE'])
@jwt_required()
def delete_criteria_mapping(mapping_id: int):
    _, school_id = get_report_context()
    try:
        get_report_service().mapping_service.delete_mapping(mapping_id, school_id)
    except ValueError as e:
        return error_response(str(e), 404)
    except ReportStorageError as e:
        return error_response(str(e), 500)

    return success_response("Mapping deleted successfully")

# ------------------------------
#SUGGESTION ROUTES

#similar existing mappings for one criterion
@reports_bp.route('/suggestions', methods=['GET'])
@jwt_required()
def get_criteria_suggestions():
    event_type = (request.args.get('event_type') or '').strip()
    criterion = (request.args.get('criterion') or '').strip()
    if not event_type or not criterion:
        return error_response("event_type and criterion query parameters are required", 400)

    candidates = get_report_service().get_suggestions(criterion, event_type)
    return success_response("Suggestions retrieved successfully", {
        'criterion': criterion,
        'suggestions': candidates_payload(candidates)
    })

#suggestions for many criteria (defaults to every unmapped criterion)
@reports_bp.route('/suggestions/scan', methods=['POST'])
@jwt_required()
def scan_criteria_suggestions():
    _, school_id = get_report_context()
    try:
        validated = SuggestionScanSchema().load(request.get_json() or {})
    except ValidationError as err:
        return error_response("Validation failed", 400, err.messages)

    try:
        suggestions = get_report_service().get_all_suggestions(
            validated['event_type'], school_id, criteria=validated['criteria']
        )
    except ReportStorageError as e:
        return error_response(str(e), 500)

    return success_response("Suggestions retrieved successfully", {
        'suggestions': {
            criterion: candidates_payload(candidates)
            for criterion, candidates in suggestions.items()
        }
    })

#turn an accepted suggestion into a mapping
@reports_bp.route('/suggestions/accept', methods=['POST'])
@jwt_required()
def accept_criteria_suggestion():
    user_id, school_id = get_report_context()
    if not school_id:
        return error_response("No school associated with this account", 403)

    try:
        validated = AcceptSuggestionSchema().load(request.get_json() or {})
    except ValidationError as err:
        return error_response("Validation failed", 400, err.messages)

    candidate = SimilarityCandidate(**validated['candidate'])
    try:
        mapping = get_report_service().accept_suggestion(
            validated['event_type'], school_id, validated['criterion'], candidate,
            created_by=user_id
        )
    except ReportStorageError as e:
        return error_response(str(e), 500)

    return success_response("Suggestion accepted", {'mapping': mapping.to_dict()}, 201)
