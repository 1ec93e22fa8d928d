"""Protocol fixtures shared by rendering and pipeline tests."""

from survey_agent.schemas.protocol import (
    Abbreviation,
    Agenda,
    Approval,
    Decision,
    MeetingContent,
    MigrationFeature,
    Participant,
    ParticipantGroup,
    Participants,
    ProtocolDocument,
    QuestionAnswer,
    Signature,
    Subtopic,
    TermDefinition,
    Topic,
    TranscriptAnalysis,
)


def sample_protocol() -> ProtocolDocument:
    return ProtocolDocument(
        protocol_number="№7",
        meeting_date="12.03.2025",
        agenda=Agenda(title="Обследование складского учёта", items=["Приёмка товара", "Инвентаризация"]),
        participants=Participants(
            customer=ParticipantGroup(
                organization_name="ООО «Ромашка»",
                people=[Participant(full_name="Иванов Иван Иванович", position="Директор по логистике")],
            ),
            executor=ParticipantGroup(
                organization_name="ООО «Интегратор»",
                people=[
                    Participant(full_name="Петров Пётр Петрович", position="Аналитик"),
                    Participant(full_name="Сидорова Анна Сергеевна", position="Руководитель проекта"),
                ],
            ),
        ),
        terms_and_definitions=[TermDefinition(term="WMS", definition="Система управления складом")],
        abbreviations=[Abbreviation(abbreviation="ТМЦ", full_form="Товарно-материальные ценности")],
        meeting_content=MeetingContent(
            introduction="Обсуждался текущий процесс приёмки.",
            topics=[
                Topic(
                    title="Приёмка",
                    content="Приёмка ведётся на бумаге.",
                    subtopics=[Subtopic(title="Сканирование", content="Сканеры отсутствуют.")],
                )
            ],
            migration_features=[MigrationFeature(tab="Остатки", features="Перенос | по складам")],
        ),
        questions_and_answers=[QuestionAnswer(question="Сколько складов?", answer="Три.")],
        decisions=[Decision(decision="Закупить сканеры", responsible="Заказчик")],
        open_questions=["Сроки внедрения"],
        approval=Approval(
            executor_signature=Signature(organization="ООО «Интегратор»", representative="Сидорова А.С."),
            customer_signature=Signature(organization="ООО «Ромашка»", representative="Иванов И.И."),
        ),
    )


def empty_protocol() -> ProtocolDocument:
    """Every list empty, every optional text missing."""
    blank = ParticipantGroup(organization_name="", people=[])
    return ProtocolDocument(
        protocol_number="",
        meeting_date="",
        agenda=Agenda(title="", items=[]),
        participants=Participants(customer=blank, executor=blank),
        meeting_content=MeetingContent(),
        approval=Approval(
            executor_signature=Signature(organization="", representative=""),
            customer_signature=Signature(organization="", representative=""),
        ),
    )


def sample_analysis() -> TranscriptAnalysis:
    return TranscriptAnalysis(
        has_contradictions=True,
        contradictions=["Число складов: два и три"],
        has_ambiguities=False,
        ambiguities=[],
        missing_critical_info=["Дата запуска"],
        confidence="medium",
    )
