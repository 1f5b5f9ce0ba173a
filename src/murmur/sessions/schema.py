from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from common.ids import generate_id, new_chat_id, now_ms
from murmur.config import DEFAULT_SYSTEM_PROMPT, DEFAULT_TITLE

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Version(BaseModel):
    model_config = _CAMEL

    id: str = Field(default_factory=generate_id)
    content: str = ""


class TextMessage(BaseModel):
    """A user or system message with a single editable body."""

    model_config = _CAMEL

    role: Literal["user", "system"] = "user"
    id: str = Field(default_factory=generate_id)
    timestamp: int = Field(default_factory=now_ms)
    deleted: bool = False
    content: str = ""
    editing: bool = Field(default=False, exclude=True)


class AssistantMessage(BaseModel):
    """An assistant reply holding one or more alternative versions.

    ``current_version`` selects the version used for rendering and for the
    outbound history. Versions are only ever appended.
    """

    model_config = _CAMEL

    role: Literal["assistant"] = "assistant"
    id: str = Field(default_factory=generate_id)
    timestamp: int = Field(default_factory=now_ms)
    deleted: bool = False
    versions: list[Version] = Field(default_factory=lambda: [Version()])
    current_version: int = 0

    @model_validator(mode="after")
    def _repair_versions(self) -> "AssistantMessage":
        if not self.versions:
            self.versions = [Version()]
        if not 0 <= self.current_version < len(self.versions):
            self.current_version = len(self.versions) - 1
        return self

    @property
    def current(self) -> Version:
        return self.versions[self.current_version]


Message = Annotated[Union[TextMessage, AssistantMessage], Field(discriminator="role")]


class ChatSession(BaseModel):
    model_config = _CAMEL

    id: str = Field(default_factory=new_chat_id)
    title: str = DEFAULT_TITLE
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    messages: list[Message] = Field(default_factory=list)

    def snapshot(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
