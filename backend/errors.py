"""
OptiTax - Errors
================
Exception hierarchy shared by the encoder, the AI client and the workflow.

Only two kinds reach the advisor:
- DocumentValidationError: nothing to analyze (raised before any async work)
- AnalysisError: anything that went wrong while encoding, calling or parsing

Details are for the logs. The UI always shows the same fixed messages.
"""


NO_FILES_MESSAGE = (
    "Action requise : Veuillez sélectionner au moins un document fiscal "
    "(avis d'imposition ou déclaration) pour lancer l'audit."
)

ANALYSIS_FAILED_MESSAGE = (
    "Une erreur est survenue lors de l'analyse. "
    "Veuillez vérifier vos documents et réessayer."
)


class OptiTaxError(Exception):
    """Base class for all application errors."""


class DocumentValidationError(OptiTaxError):
    """The request cannot be built (no document selected)."""

    def __init__(self, message: str = NO_FILES_MESSAGE):
        super().__init__(message)


class AnalysisError(OptiTaxError):
    """The analysis run failed: read, transport, malformed or incomplete response."""


class DocumentReadError(AnalysisError):
    """An uploaded file could not be read completely."""

    def __init__(self, filename: str, reason: str = ""):
        self.filename = filename
        message = f"Could not read '{filename}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
