import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lessonplanner.core.config import SESSION_IDLE_SECONDS
from lessonplanner.core.logging_config import get_logger
from lessonplanner.models.lesson_plan import DESIGNATIONS, GRADE_LEVELS, OPTIONAL_ACTIVITY_SLOTS, LessonPlan
from lessonplanner.services.ai_lesson_plan_generator import GENERATION_ERROR_MESSAGE
from lessonplanner.services.lesson_form import FormFieldError, LessonForm, PROSE_FIELD_SPECS
from lessonplanner.services.lesson_session import LessonPlanSession
from lessonplanner.services.pdf_export import export_pdf, pdf_filename
from lessonplanner.services.renderer import PreviewMode, render_preview

router = APIRouter()

logger = get_logger("lesson_plan_api")


# -------------------------
# In-memory workspaces (one per editing session, never persisted)
# -------------------------
_clock = time.monotonic


@dataclass
class Workspace:
    session: LessonPlanSession = field(default_factory=LessonPlanSession)
    form: Optional[LessonForm] = None
    last_seen: float = field(default_factory=lambda: _clock())

    def __post_init__(self):
        if self.form is None:
            self.form = LessonForm(self.session)

    def close(self):
        self.form.close()
        self.session.close()


_workspaces: Dict[str, Workspace] = {}


def _expire_idle_workspaces():
    now = _clock()
    expired = [sid for sid, ws in _workspaces.items() if now - ws.last_seen > SESSION_IDLE_SECONDS]
    for session_id in expired:
        _workspaces.pop(session_id).close()
        logger.info(f"Session {session_id} expired after {SESSION_IDLE_SECONDS:.0f}s idle")


def _get_workspace(session_id: str) -> Workspace:
    _expire_idle_workspaces()
    workspace = _workspaces.get(session_id)
    if workspace is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    workspace.last_seen = _clock()
    return workspace


# -------------------------
# Request / Response Models
# -------------------------
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldSpec(_CamelModel):
    name: str
    label: str
    placeholder: str
    optional: bool


class FormState(_CamelModel):
    params: Dict[str, Any]
    has_image: bool
    is_loading: bool
    can_submit: bool
    error: Optional[str] = None


class SessionResponse(_CamelModel):
    session_id: str
    plan: Dict[str, Any]
    form: FormState
    has_pending_update: bool = False


class FormatRequest(_CamelModel):
    command: str = Field(..., pattern="^(bold|italic|bulleted_list)$")
    start: int = Field(0, ge=0)
    end: Optional[int] = Field(None, ge=0)


class FormatResponse(_CamelModel):
    field: str
    content: str


class ImageResponse(_CamelModel):
    attached: bool


class FormOptions(_CamelModel):
    designations: list
    grade_levels: list
    prose_fields: list


def _session_response(session_id: str, workspace: Workspace) -> SessionResponse:
    form = workspace.form
    params = form.params.model_dump(by_alias=True, exclude={"image"})
    return SessionResponse(
        session_id=session_id,
        plan=workspace.session.plan.model_dump(by_alias=True),
        form=FormState(
            params=params,
            has_image=form.has_image,
            is_loading=form.is_loading,
            can_submit=form.can_submit,
            error=form.error_message,
        ),
        has_pending_update=workspace.session.has_pending_update,
    )


# -------------------------
# Sessions
# -------------------------
@router.get("/form-options", response_model=FormOptions, summary="Select choices and rich text fields of the form")
def form_options():
    return FormOptions(
        designations=list(DESIGNATIONS),
        grade_levels=list(GRADE_LEVELS),
        prose_fields=[
            FieldSpec(name=to_camel(key), label=label, placeholder=placeholder, optional=key in OPTIONAL_ACTIVITY_SLOTS)
            for key, label, placeholder in PROSE_FIELD_SPECS
        ],
    )


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session():
    _expire_idle_workspaces()
    session_id = uuid.uuid4().hex
    workspace = Workspace()
    _workspaces[session_id] = workspace
    logger.info(f"Session {session_id} created")
    return _session_response(session_id, workspace)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    return _session_response(session_id, _get_workspace(session_id))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str):
    workspace = _workspaces.pop(session_id, None)
    if workspace is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    workspace.close()
    logger.info(f"Session {session_id} discarded")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -------------------------
# Form edits
# -------------------------
@router.put("/sessions/{session_id}/form", response_model=SessionResponse, status_code=status.HTTP_202_ACCEPTED)
async def update_form(session_id: str, edits: Dict[str, Any]):
    """
    Apply form edits (camelCase keys, any subset of fields). The preview
    document picks them up once edits pause.
    """
    workspace = _get_workspace(session_id)
    try:
        workspace.form.apply_edits(edits)
    except FormFieldError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _session_response(session_id, workspace)


@router.post("/sessions/{session_id}/fields/{field_name}/format", response_model=FormatResponse)
async def format_field(session_id: str, field_name: str, req: FormatRequest):
    workspace = _get_workspace(session_id)
    key = {to_camel(k): k for k in workspace.form.fields}.get(field_name, field_name)
    try:
        content = workspace.form.format_prose(key, req.command, req.start, req.end)
    except FormFieldError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return FormatResponse(field=to_camel(key), content=content)


@router.post("/sessions/{session_id}/image", response_model=ImageResponse)
async def attach_image(session_id: str, file: UploadFile = File(...)):
    """Attach a textbook photo; non-images and unreadable uploads are ignored."""
    workspace = _get_workspace(session_id)
    if not (file.content_type or "").lower().startswith("image/"):
        return ImageResponse(attached=False)
    try:
        data = await file.read()
    except OSError as e:
        # read failures stay local to the form; no error banner
        logger.warning(f"Could not read uploaded image for session {session_id}: {e}")
        return ImageResponse(attached=False)
    return ImageResponse(attached=workspace.form.attach_image(data, file.content_type))


@router.delete("/sessions/{session_id}/image", response_model=ImageResponse)
async def remove_image(session_id: str):
    workspace = _get_workspace(session_id)
    workspace.form.clear_image()
    return ImageResponse(attached=False)


# -------------------------
# Generation
# -------------------------
@router.post("/sessions/{session_id}/generate", response_model=SessionResponse, summary="Fill the lesson plan with AI")
async def generate(session_id: str):
    workspace = _get_workspace(session_id)
    if not workspace.form.can_submit:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Generation already in progress")

    ok = await workspace.form.submit()
    if not ok:
        # details are in the log; users only ever see the generic message
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERATION_ERROR_MESSAGE)
    logger.info(f"Lesson plan generated for session {session_id}")
    return _session_response(session_id, workspace)


@router.delete("/sessions/{session_id}/error", response_model=SessionResponse, summary="Dismiss the generation error banner")
async def dismiss_error(session_id: str):
    workspace = _get_workspace(session_id)
    workspace.session.clear_error()
    return _session_response(session_id, workspace)


# -------------------------
# Preview & export
# -------------------------
def _export_plan(workspace: Workspace) -> LessonPlan:
    # review/export always reflects the latest edits
    workspace.session.flush_pending()
    return workspace.session.plan


@router.get("/sessions/{session_id}/preview", response_class=HTMLResponse)
async def preview(session_id: str, mode: PreviewMode = Query(PreviewMode.INLINE)):
    workspace = _get_workspace(session_id)
    plan = _export_plan(workspace) if mode is PreviewMode.REVIEW else workspace.session.plan
    return HTMLResponse(render_preview(plan, mode))


@router.get("/sessions/{session_id}/print", response_class=HTMLResponse)
async def print_view(session_id: str):
    plan = _export_plan(_get_workspace(session_id))
    return HTMLResponse(render_preview(plan, PreviewMode.REVIEW, auto_print=True))


@router.get("/sessions/{session_id}/pdf")
async def download_pdf(session_id: str):
    plan = _export_plan(_get_workspace(session_id))
    try:
        pdf = export_pdf(plan)
    except Exception:
        logger.exception("Failed to export lesson plan PDF")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="PDF export failed")

    filename = pdf_filename(plan.topic)
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
        },
    )
