class ServiceError(Exception):
    """
    Error raised by the service layer.

    Carries the HTTP status the API layer should answer with.
    """

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class WorkflowError(ServiceError):
    pass


class ProductImportError(ServiceError):
    def __init__(self, message: str):
        super().__init__(400, message)
