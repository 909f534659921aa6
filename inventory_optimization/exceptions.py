class InventoryOptimizationError(Exception):
    """Base exception for Inventory Optimization System errors."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the Inventory Optimization System"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(InventoryOptimizationError):
    """Exception raised for configuration errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Configuration error"
        super().__init__(message, code, details)


class DatabaseError(InventoryOptimizationError):
    """Exception raised for database-related errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Database error"
        super().__init__(message, code, details)


class DataQualityError(InventoryOptimizationError):
    """Exception raised when a fact row breaks the input contract.

    Covers duplicate (product, date) pairs, missing required fields and
    negative quantities or costs.
    """

    def __init__(self, message=None, code=None, details=None):
        message = message or "Data quality error"
        super().__init__(message, code, details)


class InvalidInputError(DataQualityError):
    """Raised when a malformed history reaches the recalculation pipeline.

    The stored reorder point for the product is left untouched.
    """

    def __init__(self, message=None, code=None, details=None):
        message = message or "Invalid input for reorder point calculation"
        super().__init__(message, code, details)


class ComputationAnomaly(InventoryOptimizationError):
    """Non-fatal calculation anomaly.

    Anomalies are collected and logged for operator review. The pipeline
    clamps the offending value and carries on instead of raising.
    """

    def __init__(self, message=None, code=None, details=None):
        message = message or "Computation anomaly"
        super().__init__(message, code, details)


class ConcurrencyConflictError(InventoryOptimizationError):
    """Exception raised when two writes for the same product collide."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Concurrent update conflict"
        super().__init__(message, code, details)


class NotFoundError(InventoryOptimizationError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Resource not found"
        super().__init__(message, code, details)


class BatchProcessError(InventoryOptimizationError):
    """Exception raised for batch process errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Batch process error"
        super().__init__(message, code, details)


class CalculationError(InventoryOptimizationError):
    """Exception raised for calculation errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Calculation error"
        super().__init__(message, code, details)
