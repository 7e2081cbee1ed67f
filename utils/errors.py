class SchemaContextError(Exception):
    """Base error for everything the schema context engine raises."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchemaContextError):
    status_code = 404


class IntrospectionError(SchemaContextError):
    status_code = 502


class FormatError(SchemaContextError):
    status_code = 400


class ModelLimitError(SchemaContextError):
    status_code = 429


class LLMError(SchemaContextError):
    status_code = 502


class ValidationError(SchemaContextError):
    status_code = 400

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code
