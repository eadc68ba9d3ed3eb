"""
Usage errors — the only exceptions that cross the usage core's boundary.

Store-availability problems never show up here; they are absorbed by the
counter store and the fallback paths.
"""
from flask import jsonify


class UsageError(Exception):
    """Base class. Carries an HTTP status and a JSON-ready payload."""

    status_code = 500
    code = 'USAGE_ERROR'

    def __init__(self, message, metadata=None):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.metadata:
            payload['details'] = self.metadata
        return payload


class WorkspaceNotFound(UsageError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, workspace_id):
        super().__init__('Workspace not found', {'workspace_id': workspace_id})
        self.workspace_id = workspace_id


class Unauthenticated(UsageError):
    status_code = 401
    code = 'UNAUTHORIZED'

    def __init__(self, message='Authentication required'):
        super().__init__(message)


class Forbidden(UsageError):
    status_code = 403
    code = 'FORBIDDEN'


class LimitExceeded(Forbidden):
    """Projected usage is over the resolved limit. Metadata drives the upgrade prompt."""

    def __init__(self, metric, current, limit, suggested_plan=None, plan=None):
        message = f'{metric.capitalize()} limit reached'
        if plan:
            message += f' on the {plan} plan'
        if suggested_plan:
            message += f'. Upgrade to {suggested_plan} to continue.'
        super().__init__(message, {
            'error': 'LIMIT_EXCEEDED',
            'metric': metric,
            'current': current,
            'limit': limit,
            'action': 'upgrade',
            'suggestedPlan': suggested_plan,
        })
        self.metric = metric
        self.current = current
        self.limit = limit
        self.suggested_plan = suggested_plan


class InvalidUsageRequest(UsageError):
    status_code = 400
    code = 'BAD_REQUEST'


def register_usage_error_handlers(app):
    """Render any UsageError that escapes a route as a JSON error response."""

    @app.errorhandler(UsageError)
    def handle_usage_error(err):
        return jsonify(err.to_dict()), err.status_code
