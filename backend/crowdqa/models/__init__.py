from crowdqa.models.session import (
    ConfusionSession,
    Attendee,
    SessionEvent,
    SessionStatus,
    EventKind,
)
