"""
Generation Module

Asynchronous PDF generation from versioned, tenant-owned templates:
job claiming and execution, template rendering, variant selection and
style cascade resolution.

Subpackages are imported where they are used; importing this package
does not load renderers or storage backends.
"""

__version__ = "1.0.0"

from modules.generation.config import (
    GenerationConfig,
    get_generation_config,
    set_generation_config,
)

__all__ = [
    "GenerationConfig",
    "get_generation_config",
    "set_generation_config",
]
