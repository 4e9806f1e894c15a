from rider_service.core.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
