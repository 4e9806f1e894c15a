from rider_service.schemas.riders import RiderPublishPayload, RiderVersionResponse, RiderHistoryResponse
from rider_service.schemas.acknowledgments import (
    OpenAcknowledgmentPayload,
    ChecklistUpdatePayload,
    AcknowledgePayload,
    ProposeModificationPayload,
    ApprovePayload,
    RejectPayload,
    ArchivePayload,
    AcknowledgmentResponse,
    FinalizeResponse,
    TimelineResponse,
    TermsResponse,
)
