"""Survey agent error hierarchy.

Only ProtocolGenerationError ends a document run. Everything else is
caught where it is raised and turned into a fallback, a warning or a log line.

    SurveyAgentError
    ├── StructuredOutputError       # model reply did not match the schema
    ├── ClassifierError
    │   ├── ClassifierParseError
    │   └── ClassifierInvocationError
    ├── AnalysisInvocationError     # pipeline continues without analysis
    ├── ProtocolGenerationError     # fatal for the current run
    ├── RenderingError              # fatal, renderer bug
    ├── BinaryRenderError           # .docx skipped, markdown still returned
    ├── PersistenceError            # logged only
    └── AttachmentError             # extraction failed, placeholder used
"""

from __future__ import annotations


class SurveyAgentError(Exception):
    """Base class for all survey agent errors."""


class StructuredOutputError(SurveyAgentError):
    pass


class ClassifierError(SurveyAgentError):
    pass


class ClassifierParseError(ClassifierError):
    pass


class ClassifierInvocationError(ClassifierError):
    pass


class AnalysisInvocationError(SurveyAgentError):
    pass


class ProtocolGenerationError(SurveyAgentError):
    pass


class RenderingError(SurveyAgentError):
    pass


class BinaryRenderError(SurveyAgentError):
    pass


class PersistenceError(SurveyAgentError):
    pass


class AttachmentError(SurveyAgentError):
    pass
