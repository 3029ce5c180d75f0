"""Run the agent API: ``python -m anemone``."""

from anemone.config.settings import get_settings


def main() -> None:
    import uvicorn

    from anemone.api import create_app

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
