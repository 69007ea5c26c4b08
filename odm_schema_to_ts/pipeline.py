"""
Generation pipeline.

Runs the phases in order:

1. Extract: load model modules into normalized models
2. Validate: skip (or, in strict mode, reject) invalid models
3. Render: produce TypeScript text
4. Write: persist every file with backup and rollback

Per-item failures (a file that cannot be loaded, an invalid model, a file
that cannot be written) are collected in the result; only "nothing to
generate" conditions abort a run, and they are returned, not raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .config import OutputMode, TypeGenConfig
from .errors import ErrorCode, TypeGenError
from .extractor import ExtractionFailure, OdmSchemaExtractor
from .generator import INDEX_FILE_NAME, RenderedOutput, TypeScriptGenerator
from .ir_nodes import NormalizedModel
from .normalizer import validate_schema
from .writer import BatchWriteResult, SafeWriter

logger = logging.getLogger(__name__)

# Source kind -> extractor class
EXTRACTORS = {
    "odm": OdmSchemaExtractor,
}


@dataclass
class ValidationFailure:
    """A model rejected by validate_schema."""

    model_name: str
    file_path: str | None
    errors: list[str] = field(default_factory=list)


@dataclass
class GenerationResult:
    """Aggregate outcome of one pipeline run."""

    models: list[NormalizedModel] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)
    write_result: BatchWriteResult | None = None
    extraction_failures: list[ExtractionFailure] = field(default_factory=list)
    validation_failures: list[ValidationFailure] = field(default_factory=list)
    error: TypeGenError | None = None

    @property
    def failures(self) -> list[TypeGenError]:
        """Every per-item failure of the run, in pipeline order."""
        errors = [f.error for f in self.extraction_failures]
        errors.extend(
            TypeGenError(ErrorCode.SCHEMA_VALIDATION_FAILED, {"model": f.model_name or "<unnamed>", "errors": "; ".join(f.errors)})
            for f in self.validation_failures
        )
        if self.write_result is not None:
            errors.extend(r.error for r in self.write_result.results if not r.success and r.error is not None)
        return errors

    @property
    def success(self) -> bool:
        return self.error is None and not self.failures

    @property
    def nothing_to_generate(self) -> bool:
        """Whether the run stopped because there was no input, rather than crashing."""
        return self.error is not None and self.error.is_no_input


def resolve_output_files(config: TypeGenConfig, rendered: RenderedOutput) -> dict[Path, str]:
    """Map rendered file names to destination paths.

    In single mode ``output_path`` may name the .ts file itself; otherwise it
    is the output directory.
    """
    output_path = Path(config.output_path)
    if rendered.mode is OutputMode.SINGLE and output_path.suffix == ".ts":
        return {output_path: rendered.files[INDEX_FILE_NAME]}
    return {output_path / name: content for name, content in rendered.files.items()}


def collect_models(config: TypeGenConfig, result: GenerationResult) -> list[NormalizedModel]:
    """Run extraction and validation, recording failures on result."""
    if not config.source:
        raise TypeGenError(ErrorCode.NO_SOURCE_DETECTED, {"models_path": str(config.models_path)})

    extractor_cls = EXTRACTORS.get(config.source)
    if extractor_cls is None:
        raise TypeGenError(ErrorCode.UNSUPPORTED_SOURCE, {"source": config.source})

    extractor = extractor_cls(config.custom_type_map)
    batch = extractor.parse_models(config.models_path, config.pattern, config.exclude)
    result.extraction_failures = batch.failures

    models = []
    for model in batch.models:
        validation = validate_schema(model)
        if validation.valid:
            models.append(model)
            continue
        logger.warning("Skipping invalid model %s: %s", model.model_name or "<unnamed>", "; ".join(validation.errors))
        result.validation_failures.append(ValidationFailure(model.model_name, model.file_path, validation.errors))

    return models


def generate_types(
    config: TypeGenConfig,
    writer: SafeWriter | None = None,
    generator: TypeScriptGenerator | None = None,
) -> GenerationResult:
    """
    Run the full pipeline once.

    Args:
        config: Validated configuration
        writer: Writer to persist files (defaults to SafeWriter())
        generator: Generator to render models (defaults to one built from config)

    Returns:
        GenerationResult; check ``success`` and ``nothing_to_generate``
    """
    result = GenerationResult()

    try:
        models = collect_models(config, result)

        if config.strict_validation and result.validation_failures:
            raise TypeGenError(
                ErrorCode.SCHEMA_VALIDATION_FAILED,
                {"invalid_models": ", ".join(f.model_name or "<unnamed>" for f in result.validation_failures)},
            )

        if not models:
            raise TypeGenError(ErrorCode.NO_MODELS_FOUND, {"models_path": str(config.models_path)})

        result.models = models
        rendered = (generator or TypeScriptGenerator(config)).render(models)
    except TypeGenError as e:
        result.error = e
        return result

    files = resolve_output_files(config, rendered)
    result.files = list(files)
    result.write_result = (writer or SafeWriter()).write_multiple(files)

    logger.info(
        "Generated %d model(s) into %d file(s) (%d failure(s))",
        len(result.models),
        result.write_result.successful,
        len(result.failures),
    )
    return result
