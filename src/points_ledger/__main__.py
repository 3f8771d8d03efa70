import uvicorn

from points_ledger.core.settings import settings


def main() -> None:
    uvicorn.run(
        "points_ledger.app:create_app",
        factory=True,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    main()
