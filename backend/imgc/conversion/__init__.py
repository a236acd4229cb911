from .service import ConversionService, RunReport
from .models import ConversionOutcome, ConversionTask, ImageFormat, OutcomeKind, RunConfig, SupportedFormats
from .cancellation import CancellationToken

__all__ = [
    "ConversionService",
    "RunReport",
    "ConversionOutcome",
    "ConversionTask",
    "ImageFormat",
    "OutcomeKind",
    "RunConfig",
    "SupportedFormats",
    "CancellationToken",
]
