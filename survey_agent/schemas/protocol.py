from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    # camelCase on the wire, snake_case in code; frozen once generated
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TranscriptAnalysis(_Record):
    has_contradictions: bool = Field(description="Whether contradictions were found")
    contradictions: List[str] = Field(default_factory=list, description="Contradicting statements")
    has_ambiguities: bool = Field(description="Whether vague or incomplete statements were found")
    ambiguities: List[str] = Field(default_factory=list, description="Vague or incomplete statements")
    missing_critical_info: List[str] = Field(
        default_factory=list, description="Information the protocol needs but the transcript lacks"
    )
    confidence: Literal["high", "medium", "low"] = Field(description="Confidence in data completeness")


class Participant(_Record):
    full_name: str = Field(description="Full name")
    position: str = Field(description="Position or role")


class ParticipantGroup(_Record):
    organization_name: str = Field(description="Organization name")
    people: List[Participant] = Field(default_factory=list)


class Participants(_Record):
    customer: ParticipantGroup
    executor: ParticipantGroup


class Agenda(_Record):
    title: str = Field(description="Main meeting topic")
    items: List[str] = Field(default_factory=list, description="Agenda items")


class TermDefinition(_Record):
    term: str
    definition: str


class Abbreviation(_Record):
    abbreviation: str
    full_form: str


class Subtopic(_Record):
    title: Optional[str] = None
    content: str


class Topic(_Record):
    title: str
    content: str
    subtopics: List[Subtopic] = Field(default_factory=list)


class MigrationFeature(_Record):
    tab: str = Field(description="Tab or screen name")
    features: str = Field(description="Migration specifics")


class MeetingContent(_Record):
    introduction: Optional[str] = None
    topics: List[Topic] = Field(default_factory=list)
    migration_features: List[MigrationFeature] = Field(
        default_factory=list, description="Migration specifics, if discussed"
    )


class QuestionAnswer(_Record):
    question: str
    answer: str


class Decision(_Record):
    decision: str
    responsible: str = Field(description="Responsible party (executor or customer)")


class Signature(_Record):
    organization: str
    representative: str = Field(description="Representative full name")


class Approval(_Record):
    executor_signature: Signature
    customer_signature: Signature


class ProtocolDocument(_Record):
    """Ten-section survey protocol. Section numbers match the rendered document."""

    # 1
    protocol_number: str = Field(description="Protocol number, e.g. №7")
    meeting_date: str = Field(description="Meeting date, DD.MM.YYYY")
    # 2
    agenda: Agenda
    # 3
    participants: Participants
    # 4
    terms_and_definitions: List[TermDefinition] = Field(default_factory=list)
    # 5
    abbreviations: List[Abbreviation] = Field(default_factory=list)
    # 6
    meeting_content: MeetingContent
    # 7
    questions_and_answers: List[QuestionAnswer] = Field(default_factory=list)
    # 8
    decisions: List[Decision] = Field(default_factory=list)
    # 9
    open_questions: List[str] = Field(default_factory=list)
    # 10
    approval: Approval


@dataclass(frozen=True)
class RenderedArtifact:
    markdown_text: str
    binary_bytes: Optional[bytes]
    filename: str
