"""Error taxonomy shared by the access model, resolver and state machine."""


class PortalError(Exception):
    status_code = 500
    code = 'portal_error'
    default_message = 'Unexpected portal error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_payload(self):
        return {'error': self.message, 'code': self.code}


class Unauthenticated(PortalError):
    status_code = 401
    code = 'unauthenticated'
    default_message = 'Session expired. Please login again.'


class AccessDenied(PortalError):
    status_code = 403
    code = 'access_denied'
    default_message = 'You are not permitted to access this content.'


class NotFound(PortalError):
    status_code = 404
    code = 'not_found'
    default_message = 'No content found'

    def to_payload(self):
        payload = super().to_payload()
        payload['empty_state'] = True
        return payload


class InvalidTransition(PortalError):
    status_code = 400
    code = 'invalid_transition'
    default_message = 'Navigation step is not reachable from the current view'


class BackendUnavailable(PortalError):
    status_code = 503
    code = 'backend_unavailable'
    default_message = 'Could not reach the content server. Please try again.'

    def to_payload(self):
        payload = super().to_payload()
        payload['retryable'] = True
        return payload
