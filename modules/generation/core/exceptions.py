"""
Custom exceptions for generation module.
"""

from typing import List, Optional


class GenerationException(Exception):
    """Base exception for generation module."""
    pass


class ConfigurationException(GenerationException):
    """Exception raised for configuration errors."""
    pass


class TemplateNotFoundException(GenerationException):
    """Exception raised when a template, variant, version or environment is not found."""
    pass


class TemplateValidationException(GenerationException):
    """Exception raised when input data fails the template data model."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class VariantResolutionException(GenerationException):
    """Exception raised when no variant can be selected."""
    pass


class AmbiguousVariantException(VariantResolutionException):
    """Exception raised when several variants share the top score."""

    def __init__(self, message: str, variant_ids: Optional[List[str]] = None):
        super().__init__(message)
        self.variant_ids = variant_ids or []


class ExpressionException(GenerationException):
    """Exception raised when a required expression cannot be evaluated."""
    pass


class RenderException(GenerationException):
    """Exception raised by renderers."""
    pass


class BatchValidationException(GenerationException):
    """Exception raised when a generation submission is rejected."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class JobNotFoundException(GenerationException):
    """Exception raised when generation job not found."""
    pass
