"""
Custom Application Exceptions
"""


class GPDashException(Exception):
    """Base exception for the dashboard application"""
    pass


class ValidationError(GPDashException):
    """Raised when data validation fails"""
    pass


class BusinessLogicError(GPDashException):
    """Raised when business rules are violated"""
    pass


class IntegrationError(GPDashException):
    """Raised when external system integration fails"""
    pass


class ErpReadError(IntegrationError):
    """Raised when Dynamics GP data cannot be read"""
    pass


class ReservationStoreError(IntegrationError):
    """Raised when the reservation table cannot be read or written"""
    pass
