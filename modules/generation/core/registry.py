"""
Registry pattern implementation for generation components.

Renderers, expression languages and node renderers self-register with
these registries. Adding a node type or language needs no core changes.
"""

from typing import Dict, Callable, Any, List, Type
from modules.generation.core.interfaces import IRenderer, IExpressionEvaluator, INodeRenderer
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


# ==============================================================================
# RENDERER REGISTRY
# ==============================================================================

class RendererRegistry:
    """
    Registry for output renderers (pdf, ...).

    Renderers self-register using @register_renderer decorator.
    """

    _REGISTRY: Dict[str, Callable[..., IRenderer]] = {}

    @classmethod
    def register(
        cls,
        name: str,
        factory_func: Callable[..., IRenderer]
    ) -> None:
        """
        Register a renderer factory function.

        Args:
            name: Output format name
            factory_func: Function that takes config and returns IRenderer
        """
        if name in cls._REGISTRY:
            logger.warning(f"Renderer '{name}' already registered, overwriting")

        cls._REGISTRY[name] = factory_func
        logger.debug(f"Registered renderer: {name}")

    @classmethod
    def get(cls, name: str, config: Dict[str, Any], **kwargs) -> IRenderer:
        """
        Get renderer instance from registry.

        Args:
            name: Renderer name
            config: Renderer configuration
            **kwargs: Additional dependencies to inject (e.g., font_cache)

        Returns:
            IRenderer instance

        Raises:
            ValueError: If renderer not registered
        """
        factory_func = cls._REGISTRY.get(name)

        if not factory_func:
            available = list(cls._REGISTRY.keys())
            raise ValueError(
                f"Renderer '{name}' not registered. "
                f"Available: {available}. "
                f"Make sure the renderer module has been imported."
            )

        logger.debug(f"Creating renderer instance: {name}")
        return factory_func(config, **kwargs)

    @classmethod
    def list_renderers(cls) -> List[str]:
        """Get list of registered renderers"""
        return list(cls._REGISTRY.keys())

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if renderer is registered"""
        return name in cls._REGISTRY


def register_renderer(name: str):
    """
    Decorator to register an output renderer.

    Usage:
        @register_renderer("pdf")
        class PdfRenderer(IRenderer):
            def render(self, document, data, styles=None):
                # Implementation
    """
    def decorator(cls):
        def factory(config, **kwargs):
            return cls(config, **kwargs)
        RendererRegistry.register(name, factory)
        return cls
    return decorator


# ==============================================================================
# EXPRESSION LANGUAGE REGISTRY
# ==============================================================================

class ExpressionLanguageRegistry:
    """
    Registry for expression evaluators, keyed by language name.

    Evaluators are stateless, so a single instance per language is shared.
    """

    _REGISTRY: Dict[str, IExpressionEvaluator] = {}

    @classmethod
    def register(cls, language: str, evaluator: IExpressionEvaluator) -> None:
        """Register an evaluator instance for a language"""
        if language in cls._REGISTRY:
            logger.warning(f"Expression language '{language}' already registered, overwriting")

        cls._REGISTRY[language] = evaluator
        logger.debug(f"Registered expression language: {language}")

    @classmethod
    def get(cls, language: str) -> IExpressionEvaluator:
        """
        Get the evaluator for a language.

        Raises:
            ValueError: If language not registered
        """
        evaluator = cls._REGISTRY.get(language)
        if evaluator is None:
            available = list(cls._REGISTRY.keys())
            raise ValueError(
                f"Expression language '{language}' not registered. "
                f"Available: {available}."
            )
        return evaluator

    @classmethod
    def list_languages(cls) -> List[str]:
        """Get list of registered languages"""
        return list(cls._REGISTRY.keys())

    @classmethod
    def is_registered(cls, language: str) -> bool:
        """Check if language is registered"""
        return language in cls._REGISTRY


def register_expression_language(language: str):
    """
    Decorator to register an expression evaluator.

    Usage:
        @register_expression_language("jsonata")
        class JsonataEvaluator(IExpressionEvaluator):
            def evaluate(self, expression, data, loop_context=None):
                # Implementation
    """
    def decorator(cls):
        instance = cls()
        instance.language = language
        ExpressionLanguageRegistry.register(language, instance)
        return cls
    return decorator


# ==============================================================================
# NODE RENDERER REGISTRY
# ==============================================================================

class NodeRendererRegistry:
    """
    Registry for template node renderers, keyed by node type.
    """

    _REGISTRY: Dict[str, Type[INodeRenderer]] = {}

    @classmethod
    def register(cls, node_type: str, renderer_cls: Type[INodeRenderer]) -> None:
        """Register a node renderer class"""
        if node_type in cls._REGISTRY:
            logger.warning(f"Node renderer '{node_type}' already registered, overwriting")

        cls._REGISTRY[node_type] = renderer_cls
        logger.debug(f"Registered node renderer: {node_type}")

    @classmethod
    def create_all(cls) -> Dict[str, INodeRenderer]:
        """Instantiate one renderer per registered node type"""
        return {node_type: renderer_cls() for node_type, renderer_cls in cls._REGISTRY.items()}

    @classmethod
    def list_node_types(cls) -> List[str]:
        """Get list of registered node types"""
        return list(cls._REGISTRY.keys())

    @classmethod
    def is_registered(cls, node_type: str) -> bool:
        """Check if node type is registered"""
        return node_type in cls._REGISTRY


def register_node_renderer(*node_types: str):
    """
    Decorator to register a node renderer for one or more node types.

    Usage:
        @register_node_renderer("root", "container")
        class ContainerNodeRenderer(INodeRenderer):
            def render(self, node, context):
                # Implementation
    """
    def decorator(cls):
        for node_type in node_types:
            NodeRendererRegistry.register(node_type, cls)
        return cls
    return decorator
