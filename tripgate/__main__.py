"""Run the service: python -m tripgate"""
import uvicorn

from tripgate.config import SERVICE_PORT


def main() -> None:
    uvicorn.run("tripgate.main:app", host="0.0.0.0", port=SERVICE_PORT)


if __name__ == "__main__":
    main()
