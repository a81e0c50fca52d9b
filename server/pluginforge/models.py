import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

LANGUAGES = ("java", "kotlin", "skript", "datapack")
PLATFORMS = ("paper", "spigot", "velocity", "bukkit", "skript", "datapack", "fabric", "forge")

Language = Literal["java", "kotlin", "skript", "datapack"]
Platform = Literal["paper", "spigot", "velocity", "bukkit", "skript", "datapack", "fabric", "forge"]
JobStatus = Literal["pending", "processing", "completed", "failed"]
LogType = Literal["info", "success", "error"]

PLACEHOLDER_PROJECT_NAME = "Generating..."
DEFAULT_LANGUAGE = "java"
DEFAULT_PLATFORM = "paper"


def _coerce_choice(value: Any, choices, default: str, field: str) -> Any:
    if not isinstance(value, str):
        return value
    v = value.strip().lower()
    if v in choices:
        return v
    logger.warning("Unknown %s %r, falling back to %r", field, value, default)
    return default


class ProjectFile(BaseModel):
    path: str = Field(..., min_length=1, description="Forward-slash relative path, unique within a project")
    content: str = Field("", description="File content; empty while a file is still streaming")


class ProjectMetadata(BaseModel):
    dependencies: List[str] = Field(default_factory=list)
    notes: str = ""


class ExplainStep(BaseModel):
    title: str = ""
    description: str = ""
    estimated_time: str = ""


class ProjectData(BaseModel):
    project_name: str = PLACEHOLDER_PROJECT_NAME
    language: Language = DEFAULT_LANGUAGE
    platform: Platform = DEFAULT_PLATFORM
    mc_version: str = ""
    files: List[ProjectFile] = Field(default_factory=list)
    scripts: List[str] = Field(default_factory=list)
    explain_steps: List[ExplainStep] = Field(default_factory=list)
    metadata: ProjectMetadata = Field(default_factory=ProjectMetadata)

    @field_validator("language", mode="before")
    @classmethod
    def _language(cls, v):
        return _coerce_choice(v, LANGUAGES, DEFAULT_LANGUAGE, "language")

    @field_validator("platform", mode="before")
    @classmethod
    def _platform(cls, v):
        return _coerce_choice(v, PLATFORMS, DEFAULT_PLATFORM, "platform")

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata(cls, v):
        # models sometimes answer with null metadata
        return v or {}

    @field_validator("scripts", "explain_steps", mode="before")
    @classmethod
    def _lists(cls, v):
        return v or []

    @classmethod
    def placeholder(cls, platform: str, mc_version: str) -> "ProjectData":
        return cls(platform=platform, mc_version=mc_version)


class BuildLogEntry(BaseModel):
    time: str
    message: str
    type: LogType = "info"


class GenerationJob(BaseModel):
    id: str
    user_id: Optional[str] = None
    status: JobStatus = "pending"
    progress: int = Field(0, ge=0, le=100)
    error_message: Optional[str] = None
    project_data: Optional[ProjectData] = None
    model: Optional[str] = None
    description: str = ""
    plugin_type: str = DEFAULT_PLATFORM
    mc_version: str = ""
    created_at: Optional[str] = None
    completed_at: Optional[str] = None

    @model_validator(mode="after")
    def _terminal_states(self):
        if self.status == "completed" and (self.project_data is None or self.progress != 100):
            raise ValueError("completed job requires project_data and progress=100")
        if self.status == "failed" and self.error_message is None:
            raise ValueError("failed job requires error_message")
        return self


# ----------------------------
# Request / response bodies
# ----------------------------
class GenerateRequest(BaseModel):
    description: str
    pluginType: Platform = DEFAULT_PLATFORM
    mcVersion: str = "1.21"
    model: Optional[str] = None

    @field_validator("pluginType", mode="before")
    @classmethod
    def _plugin_type(cls, v):
        return _coerce_choice(v, PLATFORMS, DEFAULT_PLATFORM, "pluginType")


class CreateJobRequest(BaseModel):
    user_id: Optional[str] = None
    description: str
    plugin_type: str = DEFAULT_PLATFORM
    mc_version: str = "1.21"
    model: Optional[str] = None


class JobRequest(BaseModel):
    job_id: str


class JobStatusOut(BaseModel):
    id: str
    status: JobStatus
    progress: int
    error_message: Optional[str] = None
    project_data: Optional[ProjectData] = None


class FilePatch(BaseModel):
    path: str
    new_content: str


class FixResult(BaseModel):
    patches: List[FilePatch] = Field(default_factory=list)
    explanation: str = ""


class AutoFixRequest(BaseModel):
    buildLog: str = ""
    files: List[ProjectFile] = Field(default_factory=list)
    model: Optional[str] = None


class FileUpdate(BaseModel):
    path: str
    content: str
    description: str = ""


class UpdateResult(BaseModel):
    updates: List[FileUpdate] = Field(default_factory=list)
    summary: str = ""


class UpdateRequest(BaseModel):
    prompt: str
    existingFiles: List[ProjectFile] = Field(default_factory=list)
    platform: str = DEFAULT_PLATFORM
    mcVersion: str = ""
    model: Optional[str] = None


class CompileRequest(BaseModel):
    project_name: str
    files: List[ProjectFile] = Field(default_factory=list)
    platform: str = DEFAULT_PLATFORM
    scripts: List[str] = Field(default_factory=list)


class ProjectRecord(BaseModel):
    user_id: str
    project_name: str
    description: str = ""
    language: str = DEFAULT_LANGUAGE
    platform: str = DEFAULT_PLATFORM
    mc_version: str = ""
    files: List[ProjectFile] = Field(default_factory=list)
    scripts: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None

    @classmethod
    def from_project(cls, user_id: str, description: str, project: ProjectData) -> "ProjectRecord":
        return cls(
            user_id=user_id,
            project_name=project.project_name,
            description=description,
            language=project.language,
            platform=project.platform,
            mc_version=project.mc_version,
            files=[f.model_copy() for f in project.files],
            scripts=list(project.scripts),
            metadata=project.metadata.model_dump(),
        )
