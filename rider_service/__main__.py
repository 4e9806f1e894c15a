"""Run the API with uvicorn: `python -m rider_service` or `rider-service`."""
import uvicorn

from rider_service.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "rider_service.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
