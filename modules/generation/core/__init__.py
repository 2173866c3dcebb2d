"""
Core components for generation module.
"""

from modules.generation.core.interfaces import (
    IRenderer,
    IExpressionEvaluator,
    INodeRenderer,
    GenerationRequest,
    GenerationItem,
    GenerationBatch,
    Document,
    RequestStatus,
    ItemStatus,
    JobKind,
    CANCELLED_ITEM_MESSAGE,
    truncate_error,
)

from modules.generation.core.registry import (
    RendererRegistry,
    ExpressionLanguageRegistry,
    NodeRendererRegistry,
    register_renderer,
    register_expression_language,
    register_node_renderer,
)

from modules.generation.core.exceptions import (
    GenerationException,
    ConfigurationException,
    TemplateNotFoundException,
    TemplateValidationException,
    VariantResolutionException,
    AmbiguousVariantException,
    ExpressionException,
    RenderException,
    BatchValidationException,
    JobNotFoundException,
)

__all__ = [
    # Interfaces
    "IRenderer",
    "IExpressionEvaluator",
    "INodeRenderer",
    # Records
    "GenerationRequest",
    "GenerationItem",
    "GenerationBatch",
    "Document",
    "RequestStatus",
    "ItemStatus",
    "JobKind",
    "CANCELLED_ITEM_MESSAGE",
    "truncate_error",
    # Registries
    "RendererRegistry",
    "ExpressionLanguageRegistry",
    "NodeRendererRegistry",
    # Decorators
    "register_renderer",
    "register_expression_language",
    "register_node_renderer",
    # Exceptions
    "GenerationException",
    "ConfigurationException",
    "TemplateNotFoundException",
    "TemplateValidationException",
    "VariantResolutionException",
    "AmbiguousVariantException",
    "ExpressionException",
    "RenderException",
    "BatchValidationException",
    "JobNotFoundException",
]
