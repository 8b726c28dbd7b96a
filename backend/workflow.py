"""
OptiTax - Audit Workflow
========================
State machine behind the upload page.

    Idle --run--> Loading --ok--> Success --reset--> Idle
                          --ko--> Error   --reset/select--> Idle
                                          --run--> Loading

The controller owns the pending files and the advisor's context text. The
AI call is injected as a plain coroutine function so tests can swap in a
deterministic stub.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Set, Union

from document_encoder import encode_files
from errors import ANALYSIS_FAILED_MESSAGE, NO_FILES_MESSAGE
from llm_prompts import build_analysis_request
from models import AnalysisRequest, AnalysisResult, EncodedPayload

logger = logging.getLogger(__name__)

Analyzer = Callable[[AnalysisRequest], Awaitable[AnalysisResult]]
Encoder = Callable[[Iterable[Any]], Awaitable[List[EncodedPayload]]]


def _upload_id(upload: Any) -> str:
    # Streamlit and models.UploadedFile both carry a per-upload file_id
    return getattr(upload, "file_id", None) or str(id(upload))


# =============================================================================
# STATES
# =============================================================================

@dataclass(frozen=True)
class IdleState:
    """Waiting for a run. notice holds the validation message, if any."""
    notice: Optional[str] = None


@dataclass(frozen=True)
class LoadingState:
    started_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SuccessState:
    result: AnalysisResult


@dataclass(frozen=True)
class ErrorState:
    message: str = ANALYSIS_FAILED_MESSAGE


WorkflowState = Union[IdleState, LoadingState, SuccessState, ErrorState]


# =============================================================================
# CONTROLLER
# =============================================================================

class AuditWorkflow:
    """
    Drives one advisor session from document selection to dashboard.

    Only one run can be in flight: run() is a no-op while Loading.
    """

    def __init__(self, analyzer: Analyzer, encoder: Encoder = encode_files):
        self.analyzer = analyzer
        self.encoder = encoder
        self.files: List[Any] = []
        self.context: str = ""
        self.state: WorkflowState = IdleState()
        # Uploads removed by hand; the uploader widget keeps offering them
        self.removed_ids: Set[str] = set()

    # --- Derived views -----------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return isinstance(self.state, LoadingState)

    @property
    def can_trigger(self) -> bool:
        """The trigger control is enabled only outside Loading."""
        return not self.is_loading

    @property
    def result(self) -> Optional[AnalysisResult]:
        if isinstance(self.state, SuccessState):
            return self.state.result
        return None

    @property
    def error_message(self) -> Optional[str]:
        """Message to show: the failure message or the validation notice."""
        if isinstance(self.state, ErrorState):
            return self.state.message
        if isinstance(self.state, IdleState):
            return self.state.notice
        return None

    # --- User actions ------------------------------------------------------

    def select_files(self, files: Sequence[Any]) -> None:
        """Replace the selection and clear any error or notice.

        Files removed earlier with remove_file() are left out.
        """
        if self.is_loading:
            logger.warning("File selection ignored: an analysis is running")
            return
        self.files = [f for f in files if _upload_id(f) not in self.removed_ids]
        if isinstance(self.state, (IdleState, ErrorState)):
            self.state = IdleState()

    def remove_file(self, index: int) -> None:
        if self.is_loading:
            logger.warning("File removal ignored: an analysis is running")
            return
        if 0 <= index < len(self.files):
            removed = self.files.pop(index)
            self.removed_ids.add(_upload_id(removed))
            logger.info(f"Removed '{getattr(removed, 'name', index)}' from selection")

    def set_context(self, text: Optional[str]) -> None:
        if self.is_loading:
            return
        self.context = text or ""

    async def run(self) -> WorkflowState:
        """
        Run one analysis over the current selection.

        Returns:
            The state reached: IdleState with a notice when nothing is
            selected, otherwise SuccessState or ErrorState
        """
        if self.is_loading:
            logger.warning("Analysis already in progress, trigger ignored")
            return self.state

        if not self.files:
            self.state = IdleState(notice=NO_FILES_MESSAGE)
            return self.state

        self.state = LoadingState()
        names = [getattr(f, "name", "?") for f in self.files]
        logger.info(f"Starting analysis of {len(names)} document(s): {', '.join(names)}")

        try:
            payloads = await self.encoder(self.files)
            request = build_analysis_request(payloads, self.context)
            result = await self.analyzer(request)
        except Exception:
            # Operator log gets the cause, the advisor gets the fixed message
            logger.exception("Analysis failed")
            self.state = ErrorState(ANALYSIS_FAILED_MESSAGE)
            return self.state

        self.state = SuccessState(result)
        self.files = []
        logger.info(f"Analysis succeeded with {len(result.optimizations)} optimization(s)")
        return self.state

    def reset(self) -> None:
        """Back to a blank Idle: no files, no context, no result, no error."""
        self.files = []
        self.context = ""
        self.removed_ids = set()
        self.state = IdleState()
