class AppError(Exception):
    """
    Application error carrying the HTTP status the client should see.
    Everything raised from services that the client is allowed to read is an AppError.
    """
    status_code = 500

    def __init__(self, message, status_code=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super(AppError, self).__init__(message)

    @property
    def status(self):
        return 'fail' if str(self.status_code).startswith('4') else 'error'


class ValidationException(AppError):
    status_code = 400

    def __init__(self, message, errors=None):
        self.errors = errors or []
        super(ValidationException, self).__init__(message)


class AuthenticationException(AppError):
    status_code = 401


class PermissionDeniedException(AppError):
    status_code = 403


class RepositoryException(AppError):
    def __init__(self, message='Repository error'):
        super(RepositoryException, self).__init__(message)


class DocumentNotFoundException(RepositoryException):
    status_code = 404

    def __init__(self, document_type, requested_document_id=None):
        self.document_type = document_type
        self.requested_document_id = requested_document_id
        super(DocumentNotFoundException, self).__init__(f'{document_type} not found')


class ListItemNotFoundException(AppError):
    status_code = 404

    def __init__(self, document_id, list_field, item_identifier):
        self.document_id = document_id
        self.list_field = list_field
        self.item_identifier = item_identifier
        super(ListItemNotFoundException, self).__init__(
            f'{list_field} item not found (doc:{self.document_id},identifier:{self.item_identifier})')
