"""Language server discovery models for agy-top."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import DetectionFailure


class ProcessCandidate(BaseModel):
    """An unverified process match parsed from one OS process command line."""

    model_config = ConfigDict(frozen=True)

    process_id: int = Field(..., gt=0, description="OS process identifier")
    declared_port: int = Field(
        default=0, ge=0, le=65535, description="Port from launch flags, 0 when absent"
    )
    csrf_token: str = Field(..., min_length=1, description="CSRF token from launch flags")
    workspace_id: Optional[str] = Field(default=None, description="Workspace identifier")


class ServerHandle(BaseModel):
    """A verified, live language server endpoint."""

    model_config = ConfigDict(frozen=True)

    process_id: int = Field(..., gt=0, description="OS process identifier")
    port: int = Field(..., ge=1, le=65535, description="Port that answered the API probe")
    csrf_token: str = Field(..., min_length=1, description="CSRF token for local API calls")
    workspace_id: Optional[str] = Field(default=None, description="Workspace identifier")

    @classmethod
    def from_candidate(cls, candidate: ProcessCandidate, port: int) -> "ServerHandle":
        return cls(
            process_id=candidate.process_id,
            port=port,
            csrf_token=candidate.csrf_token,
            workspace_id=candidate.workspace_id,
        )


class DetectionResult(BaseModel):
    """Outcome of a detection run: a handle, or a failure with remediation tip."""

    model_config = ConfigDict(frozen=True)

    server: Optional[ServerHandle] = None
    failure: Optional[DetectionFailure] = None
    error: Optional[str] = None
    tip: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.server is not None

    @classmethod
    def found(cls, server: ServerHandle) -> "DetectionResult":
        return cls(server=server)

    @classmethod
    def not_found(
        cls, failure: DetectionFailure, error: str, tip: Optional[str] = None
    ) -> "DetectionResult":
        return cls(failure=failure, error=error, tip=tip)
