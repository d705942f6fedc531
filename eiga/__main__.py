import uvicorn

from eiga.core.config import settings


def main() -> None:
    uvicorn.run("eiga.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEV)


if __name__ == "__main__":
    main()
