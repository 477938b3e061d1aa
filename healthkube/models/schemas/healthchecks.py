"""
Pydantic schemas for the Healthchecks Management API (v3).
Contains the raw request/response shapes and their mapping onto the domain descriptors.
"""
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from healthkube.models.descriptors import IntegrationDescriptor, MonitorConfig, MonitorDescriptor


def split_channels(raw: Optional[str]) -> frozenset:
    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def split_tags(raw: Optional[str]) -> frozenset:
    if not raw:
        return frozenset()
    return frozenset(raw.split())


class CheckPayload(BaseModel):
    """Body of create (POST /checks/) and update (POST /checks/<uuid>) calls.

    Every field is sent on update so manual edits in the UI are overwritten.
    """
    name: str = Field(min_length=1, description="Monitor name, the derived identity key")
    tags: str = Field("", description="Space-separated tags")
    desc: str = Field("", description="Free-form description")
    schedule: str = Field(description="Five-field cron expression")
    tz: str = Field(description="IANA timezone the schedule is evaluated in")
    grace: int = Field(ge=60, le=31_536_000, description="Grace period in seconds")
    channels: str = Field("", description="Comma-separated integration ids; empty removes all")
    unique: Optional[List[str]] = Field(None, description="Fields used by the server to upsert on create")

    model_config = ConfigDict(extra="forbid", json_schema_extra={
        "example": {
            "name": "batch/nightly-report",
            "tags": "healthkube nightly",
            "desc": "CronJob batch/nightly-report (context prod)",
            "schedule": "0 2 * * *",
            "tz": "UTC",
            "grace": 86700,
            "channels": "4ec5a071-2d08-4baa-898a-eb4eb3cd6941",
            "unique": ["name"]
        }
    })

    @classmethod
    def from_config(cls, config: MonitorConfig, *, upsert: bool = False) -> "CheckPayload":
        return cls(
            name=config.name,
            tags=" ".join(sorted(config.tags)),
            desc=config.desc,
            schedule=config.schedule,
            tz=config.timezone,
            grace=config.grace,
            channels=",".join(sorted(config.integration_ids)),
            unique=["name"] if upsert else None,
        )


class CheckResponse(BaseModel):
    """Raw check as returned with a read/write API key."""
    name: str = ""
    slug: Optional[str] = None
    tags: str = ""
    desc: str = ""
    grace: int = Field(0, ge=0)
    status: str = Field("new", description="new, up, grace, down, paused or started")
    schedule: Optional[str] = None
    tz: Optional[str] = None
    timeout: Optional[int] = None
    channels: Optional[str] = None
    ping_url: Optional[str] = None
    update_url: Optional[str] = None
    uuid: Optional[str] = None
    unique_key: Optional[str] = None

    model_config = ConfigDict(extra="ignore", json_schema_extra={
        "example": {
            "name": "batch/nightly-report",
            "tags": "healthkube nightly",
            "desc": "",
            "grace": 86700,
            "status": "up",
            "schedule": "0 2 * * *",
            "tz": "UTC",
            "channels": "4ec5a071-2d08-4baa-898a-eb4eb3cd6941",
            "ping_url": "https://hc-ping.com/662ebe36-ecab-48db-afe3-e20029cb71e6",
            "update_url": "https://healthchecks.io/api/v3/checks/662ebe36-ecab-48db-afe3-e20029cb71e6"
        }
    })

    def check_id(self) -> Optional[str]:
        """The check uuid, which doubles as the ping key."""
        if self.uuid:
            return self.uuid
        for url in (self.update_url, self.ping_url):
            if url:
                tail = url.rstrip("/").rsplit("/", 1)[-1]
                if tail:
                    return tail
        return None

    def to_descriptor(self) -> Optional[MonitorDescriptor]:
        check_id = self.check_id()
        if check_id is None:
            return None
        return MonitorDescriptor(
            id=check_id,
            name=self.name,
            schedule=self.schedule,
            timezone=self.tz,
            grace=self.grace,
            integration_ids=split_channels(self.channels),
            tags=split_tags(self.tags),
            status=self.status,
            desc=self.desc,
        )


class ChecksListResponse(BaseModel):
    checks: List[CheckResponse] = Field(default_factory=list)


class ChannelResponse(BaseModel):
    """Raw integration (channel) entry."""
    id: str
    name: str = ""
    kind: str = ""

    def to_descriptor(self) -> IntegrationDescriptor:
        return IntegrationDescriptor(id=self.id, name=self.name, kind=self.kind)


class ChannelsListResponse(BaseModel):
    channels: List[ChannelResponse] = Field(default_factory=list)
