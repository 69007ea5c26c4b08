"""ODM Schema to TypeScript

Generates TypeScript interfaces from ODM (Mongoose-style) model schemas
declared in Python modules. Models are extracted, normalized into a small
IR, rendered with Jinja2 templates and written atomically, once or in watch
mode.
"""

__version__ = "1.0.0"
__author__ = "François Lagunas"

from .config import ExportStyle, OutputMode, TypeGenConfig, load_config
from .errors import ErrorCode, TypeGenError
from .extractor import OdmSchemaExtractor
from .generator import TypeScriptGenerator
from .ir_nodes import FieldType, NormalizedField, NormalizedModel
from .normalizer import normalize_field, normalize_model, validate_schema
from .pipeline import GenerationResult, generate_types
from .watcher import ChangeCoordinator, SchemaWatcher, watch_with_generation
from .writer import SafeWriter

__all__ = [
    "generate_types",
    "GenerationResult",
    "TypeGenConfig",
    "load_config",
    "OutputMode",
    "ExportStyle",
    "ErrorCode",
    "TypeGenError",
    "OdmSchemaExtractor",
    "TypeScriptGenerator",
    "SafeWriter",
    "FieldType",
    "NormalizedField",
    "NormalizedModel",
    "normalize_field",
    "normalize_model",
    "validate_schema",
    "ChangeCoordinator",
    "SchemaWatcher",
    "watch_with_generation",
]
